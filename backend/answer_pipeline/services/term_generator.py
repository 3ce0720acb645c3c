"""
Search term generation - asks Gemini for comma-separated image search phrases.
"""
import logging
from typing import List, Optional

from answer_pipeline.config import config
from answer_pipeline.errors import ModelCallError
from answer_pipeline.prompts import build_search_terms_prompt
from answer_pipeline.services.gemini import GeminiGateway, get_gemini_gateway
from answer_pipeline.types import ModelRequest

logger = logging.getLogger(__name__)


def parse_search_terms(text: str) -> List[str]:
    """Split a comma-separated reply into trimmed, non-empty terms (order kept, no dedupe)."""
    return [term.strip() for term in (text or '').strip().split(',') if term.strip()]


def generate_search_terms(
    question: str,
    api_key: Optional[str] = None,
    use_relay: bool = True,
    gateway: Optional[GeminiGateway] = None,
) -> List[str]:
    """
    Turn a question into 3-5 image search phrases.

    Raises:
        ModelCallError: Model call failed or the reply held no terms
    """
    logger.info(f"[Terms] Getting search terms for question: {question}")
    gateway = gateway or get_gemini_gateway()

    request = ModelRequest(
        model=config.terms_model,
        prompt=build_search_terms_prompt(question),
    )
    reply = gateway.generate(request, api_key=api_key, use_relay=use_relay)

    terms = parse_search_terms(reply)
    if not terms:
        raise ModelCallError("Model returned no usable search terms")

    logger.info(f"[Terms] Received search terms: {', '.join(terms)}")
    return terms
