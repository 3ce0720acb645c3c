"""
Utilities for resolving [[[filename]]] image placeholders in model output.
"""
import html
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from answer_pipeline.types import ProcessedImage, UNKNOWN_LICENSE

logger = logging.getLogger(__name__)


# Regex to match [[[filename]]] placeholders
PLACEHOLDER_PATTERN = re.compile(r'\[\[\[(.*?)\]\]\]')
EXTENSION_PATTERN = re.compile(r'\.\w+$')
NEWLINE_PATTERN = re.compile(r'\r?\n|\r')

# Match kinds, in priority order
MATCH_EXACT = 'exact'
MATCH_CONTAINS = 'contains'
MATCH_STEM = 'stem'

SOURCE_LABEL = 'Wikimedia Commons'
DEFAULT_ALT_TEXT = 'Image from Wikimedia Commons'


def extract_placeholders(content: str) -> Dict[str, str]:
    """
    Map each distinct placeholder token to the filename it references.

    Example:
        Input: "See [[[cell.png]]] and [[[cell.png]]]"
        Output: {"[[[cell.png]]]": "cell.png"}
    """
    placeholders: Dict[str, str] = {}
    for match in PLACEHOLDER_PATTERN.finditer(content or ''):
        placeholders[match.group(0)] = match.group(1)
        logger.debug(f"[Resolver] Found image placeholder: {match.group(0)} -> {match.group(1)}")
    return placeholders


def _strip_extension(name: str) -> str:
    return EXTENSION_PATTERN.sub('', name)


def match_title(filename: str, title: str) -> Optional[str]:
    """
    Compare a referenced filename with an image title.

    Returns:
        The first matching strategy (exact, contains, stem) or None
    """
    wanted = filename.lower().strip()
    actual = title.lower()
    # An empty filename would be "contained" in every title; leave [[[]]] unresolved.
    if not wanted:
        return None
    if actual == wanted:
        return MATCH_EXACT
    if wanted in actual or actual in wanted:
        return MATCH_CONTAINS
    if _strip_extension(actual) == _strip_extension(wanted):
        return MATCH_STEM
    return None


def find_image(
    filename: str,
    images: Sequence[ProcessedImage],
) -> Tuple[Optional[ProcessedImage], Optional[str]]:
    """First image in admission order that matches the filename by any strategy."""
    for image in images:
        kind = match_title(filename, image.title)
        if kind:
            return image, kind
    return None, None


def clean_alt_text(text: str) -> str:
    """Single-line alt text, safe inside a double-quoted attribute"""
    return html.escape(NEWLINE_PATTERN.sub(' ', text), quote=True)


def build_caption(image: ProcessedImage) -> str:
    """License line, plus an attribution line only when there is one"""
    if image.license and image.license != UNKNOWN_LICENSE:
        lines = [f"<small>Source: {SOURCE_LABEL} - {html.escape(image.license, quote=False)}</small>"]
    else:
        lines = [f"<small>Source: {SOURCE_LABEL}</small>"]

    if image.attribution and image.attribution.strip():
        lines.append(f"<small>Attribution: {html.escape(image.attribution.strip(), quote=False)}</small>")

    return '<br>'.join(lines)


def build_media_block(image: ProcessedImage) -> str:
    """
    Self-contained figure for one image.

    Emitted as a block-level HTML chunk surrounded by blank lines so the
    markdown renderer passes it through untouched.
    """
    alt_text = clean_alt_text(image.alt_text or DEFAULT_ALT_TEXT)
    src = html.escape(image.url, quote=True)
    return (
        '\n\n<figure class="answer-image">\n'
        f'<img src="{src}" alt="{alt_text}" loading="lazy">\n'
        f'<figcaption>{build_caption(image)}</figcaption>\n'
        '</figure>\n\n'
    )


def resolve_placeholders(
    content: str,
    images: Sequence[ProcessedImage],
) -> Tuple[str, List[str]]:
    """
    Replace placeholders with media blocks for the images they reference.

    Each distinct token is replaced at its first occurrence. Tokens that match
    no image stay in the text verbatim.

    Args:
        content: Raw model answer
        images: Admitted images in admission order

    Returns:
        Tuple of (substituted_content, unresolved_tokens)
    """
    placeholders = extract_placeholders(content)
    logger.info(f"[Resolver] Extracted {len(placeholders)} image placeholders")

    result = content
    unresolved: List[str] = []

    for token, filename in placeholders.items():
        image, kind = find_image(filename, images)
        if image is None:
            logger.warning(
                f"[Resolver] Could not find image for placeholder {token} with filename {filename}"
            )
            unresolved.append(token)
            continue

        logger.info(f"[Resolver] {token} -> {image.title} ({kind} match)")
        result = result.replace(token, build_media_block(image), 1)

    return result, unresolved
