"""
Response composition.

Resolves image placeholders in the model answer and hands the result to the
markup renderer.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from answer_pipeline.services.markup import render_markdown
from answer_pipeline.types import ProcessedImage
from answer_pipeline.utils.image_tags import resolve_placeholders

logger = logging.getLogger(__name__)


@dataclass
class ComposedResponse:
    html: str
    markdown: str
    unresolved_tokens: List[str] = field(default_factory=list)


def compose_response(
    raw_answer: str,
    images: Sequence[ProcessedImage],
    renderer: Optional[Callable[[str], str]] = None,
) -> ComposedResponse:
    """
    Turn raw model text into the final document.

    Args:
        raw_answer: Model output with [[[filename]]] placeholders
        images: Admitted images, in admission order
        renderer: Markdown renderer (defaults to render_markdown)

    Returns:
        ComposedResponse with rendered HTML, the substituted markdown and
        any placeholder tokens that stayed unresolved
    """
    renderer = renderer or render_markdown
    substituted, unresolved = resolve_placeholders(raw_answer, images)
    if unresolved:
        logger.warning(f"[Resolver] {len(unresolved)} placeholder(s) left unresolved")
    return ComposedResponse(
        html=renderer(substituted),
        markdown=substituted,
        unresolved_tokens=unresolved,
    )
