"""
Main orchestrator pipeline.

Coordinates all pipeline steps to turn a question into an illustrated answer.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar

from answer_pipeline.config import config
from answer_pipeline.errors import EmptyResultError, ValidationError
from answer_pipeline.pipelines.image_admission import admit_images
from answer_pipeline.pipelines.response_composer import compose_response
from answer_pipeline.prompts import IMAGE_ANALYSIS_INSTRUCTION, build_answer_prompt
from answer_pipeline.services.gemini import GeminiGateway, get_gemini_gateway
from answer_pipeline.services.image_processor import ImageProcessor
from answer_pipeline.services.term_generator import generate_search_terms
from answer_pipeline.services.wikimedia import WikimediaService, get_wikimedia_service
from answer_pipeline.types import (
    Answer,
    CandidateRef,
    ImageDetail,
    ModelRequest,
    ProgressEvent,
    answer_to_dict,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')

EventCallback = Callable[[ProgressEvent], None]


def _fan_out(
    fn: Callable[[T], R],
    items: List[T],
    default: Callable[[], R],
    max_workers: Optional[int] = None,
) -> List[R]:
    """
    Run fn over items on a bounded pool and collect every result in input order.

    Waits for all calls to settle; a failing call yields default() and never
    cancels its siblings.
    """
    if not items:
        return []

    if max_workers is None:
        max_workers = config.fanout_workers
    workers = max(1, min(max_workers, len(items)))
    results: List[R] = []

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(fn, item) for item in items]
        for item, future in zip(items, futures):
            try:
                results.append(future.result())
            except Exception as e:
                logger.warning(f"[Pipeline] Parallel task failed for {item!r}: {e}")
                results.append(default())

    return results


def search_all_terms(
    terms: List[str],
    wikimedia: WikimediaService,
    max_candidates: Optional[int] = None,
    max_workers: Optional[int] = None,
) -> List[CandidateRef]:
    """
    Search every term concurrently, concatenate in term order and cap the total.
    """
    if max_candidates is None:
        max_candidates = config.max_search_candidates
    logger.info(f"[Search] Searching Wikimedia for {len(terms)} terms in parallel")

    per_term = _fan_out(wikimedia.search_images, terms, list, max_workers)
    candidates = [ref for refs in per_term for ref in refs]

    if len(candidates) > max_candidates:
        logger.info(f"[Search] Limiting results to {max_candidates} images from {len(candidates)} total results")
        candidates = candidates[:max_candidates]
    return candidates


def fetch_all_details(
    candidates: Iterable[CandidateRef],
    wikimedia: WikimediaService,
    max_workers: Optional[int] = None,
) -> List[ImageDetail]:
    """Resolve candidate titles concurrently; drop the ones with no detail."""
    titles = [ref.title for ref in candidates]
    details = _fan_out(wikimedia.get_image_details, titles, lambda: None, max_workers)
    resolved = [detail for detail in details if detail is not None]
    logger.info(f"[Details] Successfully retrieved details for {len(resolved)}/{len(titles)} images")
    return resolved


def answer_question(
    question: str,
    api_key: Optional[str] = None,
    model_name: Optional[str] = None,
    use_relay: bool = True,
    on_event: Optional[EventCallback] = None,
    wikimedia: Optional[WikimediaService] = None,
    processor: Optional[ImageProcessor] = None,
    gateway: Optional[GeminiGateway] = None,
) -> Answer:
    """
    Answer a question with illustrations from Wikimedia Commons.

    This orchestrates:
    1. Search term generation
    2. Parallel: Wikimedia search per term
    3. Parallel: metadata lookup per candidate
    4. Sequential image admission under the payload budget
    5. Vision model answer (relay first unless disabled)
    6. Placeholder resolution + markdown rendering

    Args:
        question: The user's question
        api_key: Gemini key for the direct path (falls back to GEMINI_API_KEY)
        model_name: Answer model (defaults to ANSWER_MODEL)
        use_relay: Try the credential-free relay before the direct API
        on_event: Observer for ProgressEvents
        wikimedia, processor, gateway: Collaborator overrides

    Returns:
        Answer with the rendered document

    Raises:
        ValidationError: Missing question, or relay disabled without a key
        ModelCallError: Term generation or answer generation failed
        EmptyResultError: No images survived search and admission
    """
    question = (question or '').strip()
    if not question:
        raise ValidationError("Please enter a question")

    api_key = (api_key or '').strip() or config.gemini_api_key
    if not use_relay and not api_key:
        raise ValidationError("Please enter your Gemini API key when not using the relay")

    wikimedia = wikimedia or get_wikimedia_service()
    gateway = gateway or get_gemini_gateway()
    events: List[ProgressEvent] = []

    def emit(event: ProgressEvent) -> None:
        events.append(event)
        if on_event:
            on_event(event)

    logger.info(f"=== [Pipeline] Processing question: {question} ===")

    # STEP 1: Search terms
    emit(ProgressEvent(stage='terms', message='Generating search terms...'))
    terms = generate_search_terms(question, api_key=api_key, use_relay=use_relay, gateway=gateway)
    logger.info(f"[Pipeline] Using search terms: {', '.join(terms)}")

    # STEP 2: Search (parallel)
    emit(ProgressEvent(stage='searching', message='Finding images...', data={'search_terms': terms}))
    candidates = search_all_terms(terms, wikimedia)
    if not candidates:
        raise EmptyResultError("No images found on Wikimedia for the given search terms")
    logger.info(f"[Pipeline] Found {len(candidates)} total image results")

    # STEP 3: Details (parallel)
    details = fetch_all_details(candidates, wikimedia)
    emit(ProgressEvent(
        stage='details',
        message=f"Retrieved details for {len(details)} images",
        data={'candidates': len(candidates), 'details': len(details)},
    ))

    # STEP 4: Admission (sequential)
    processed, stats = admit_images(details, processor=processor, on_event=emit)
    if not processed:
        raise EmptyResultError("No usable images found on Wikimedia for the given search terms")

    # STEP 5: Vision model
    emit(ProgressEvent(
        stage='analyzing',
        message='Creating response...',
        data={'images': len(processed), 'admission': stats.to_dict()},
    ))
    request = ModelRequest(
        model=model_name or config.answer_model,
        instruction=IMAGE_ANALYSIS_INSTRUCTION,
        prompt=build_answer_prompt(question, processed),
        images=processed,
        temperature=config.answer_temperature,
        max_output_tokens=config.answer_max_output_tokens,
    )
    logger.info(f"[Model] Analyzing {len(processed)} images with {request.model}")
    raw_answer = gateway.generate(request, api_key=api_key, use_relay=use_relay)

    # STEP 6: Compose
    composed = compose_response(raw_answer, processed)
    emit(ProgressEvent(
        stage='complete',
        message='Question processing completed successfully!',
        data={'unresolved_tokens': composed.unresolved_tokens},
    ))

    logger.info("=== [Pipeline] Complete ===")
    return Answer(
        question=question,
        html=composed.html,
        markdown=composed.markdown,
        search_terms=terms,
        images=processed,
        unresolved_tokens=composed.unresolved_tokens,
        events=events,
    )


def answer_question_json(question: str, **kwargs) -> dict:
    """
    Answer a question and return a JSON-serializable dict.

    See answer_question for arguments.
    """
    return answer_to_dict(answer_question(question, **kwargs))
