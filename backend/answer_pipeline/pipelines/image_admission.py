"""
Image admission pipeline.

Decides, image by image and strictly in order, which candidates are sent to
the vision model, and builds their inline payloads.

Pipeline flow (per image):
1. Reject GIFs
2. HEAD size check against the per-image ceiling (unknown size passes)
3. Rasterize SVGs to PNG, otherwise download as-is
4. Estimate the decoded payload size
5. Greedy admit if the running total stays within the budget

The running total is a single read-modify-write accumulator, so this stage
must not run concurrently.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from answer_pipeline.config import config
from answer_pipeline.services.image_processor import (
    ImageProcessor,
    estimate_base64_size,
    get_image_processor,
    is_gif_url,
    is_svg_url,
)
from answer_pipeline.types import ImageDetail, ProcessedImage, ProgressEvent

logger = logging.getLogger(__name__)

WHITESPACE_PATTERN = re.compile(r'\s+')

EventCallback = Callable[[ProgressEvent], None]


@dataclass
class AdmissionStats:
    """Statistics from the admission pass."""
    evaluated: int = 0
    admitted: int = 0
    skipped_gif: int = 0
    skipped_oversized: int = 0
    skipped_budget: int = 0
    failed: int = 0
    truncated: int = 0
    total_payload_bytes: int = 0
    errors: List[str] = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluated": self.evaluated,
            "admitted": self.admitted,
            "skipped_gif": self.skipped_gif,
            "skipped_oversized": self.skipped_oversized,
            "skipped_budget": self.skipped_budget,
            "failed": self.failed,
            "truncated": self.truncated,
            "total_payload_bytes": self.total_payload_bytes,
            "errors": self.errors,
        }


class SkipImage(Exception):
    """Policy rejection for a single image (not an error)."""

    def __init__(self, reason: str, counter: str):
        super().__init__(reason)
        self.counter = counter


def normalize_filename(title: str) -> str:
    """Filesystem-safe lowercase name: whitespace runs become underscores."""
    return WHITESPACE_PATTERN.sub('_', title.strip()).lower()


def png_filename(name: str) -> str:
    root = name[:-4] if name.endswith('.svg') else name
    return f"{root}.png"


def _mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}MB"


def _prepare_image(
    detail: ImageDetail,
    processor: ImageProcessor,
    max_image_bytes: int,
) -> ProcessedImage:
    """
    Build the payload for one image, or raise SkipImage on a policy rejection.

    Network and decode errors propagate to the caller.
    """
    if is_gif_url(detail.url):
        raise SkipImage(f"Skipping GIF file: {detail.title}", 'skipped_gif')

    reported = processor.check_image_size(detail.url)
    if reported is not None and reported > max_image_bytes:
        raise SkipImage(
            f"Skipping oversized image: {detail.title} ({_mb(reported)} > {_mb(max_image_bytes)})",
            'skipped_oversized',
        )

    file_name = normalize_filename(detail.title)
    if is_svg_url(detail.url):
        data_url, mime_type = processor.fetch_svg_as_png(detail.url)
        file_name = png_filename(file_name)
    else:
        data_url, mime_type = processor.fetch_data_url(detail.url)

    if mime_type == 'image/gif':
        raise SkipImage(f"Skipping GIF content: {detail.title}", 'skipped_gif')

    estimate = estimate_base64_size(data_url)
    if estimate > max_image_bytes:
        raise SkipImage(
            f"Skipping oversized payload: {file_name} ({_mb(estimate)} > {_mb(max_image_bytes)})",
            'skipped_oversized',
        )

    return ProcessedImage(
        url=detail.url,
        title=file_name,
        alt_text=detail.alt_text,
        license=detail.license,
        attribution=detail.attribution,
        payload_data=data_url,
        payload_bytes=estimate,
        mime_type=mime_type,
    )


def admit_images(
    details: Iterable[ImageDetail],
    processor: Optional[ImageProcessor] = None,
    on_event: Optional[EventCallback] = None,
    max_image_bytes: Optional[int] = None,
    max_total_bytes: Optional[int] = None,
    max_images: Optional[int] = None,
) -> Tuple[List[ProcessedImage], AdmissionStats]:
    """
    Evaluate images in order and admit those that fit the payload budget.

    Greedy in order: an image that would overflow the budget is skipped but
    later, smaller images are still considered. The result is cut to
    max_images afterwards, keeping the prefix.

    Args:
        details: Candidate images, in evaluation order
        processor: Network helper (defaults to the global ImageProcessor)
        on_event: Receives an 'image_admitted' ProgressEvent per admission
        max_image_bytes: Per-image ceiling
        max_total_bytes: Total payload budget
        max_images: Maximum admitted count

    Returns:
        Tuple of (processed_images, stats)
    """
    processor = processor or get_image_processor()
    if max_image_bytes is None:
        max_image_bytes = config.max_image_bytes
    if max_total_bytes is None:
        max_total_bytes = config.max_total_payload_bytes
    if max_images is None:
        max_images = config.max_processed_images

    stats = AdmissionStats()
    processed: List[ProcessedImage] = []
    total_payload = 0

    for detail in details:
        stats.evaluated += 1
        try:
            image = _prepare_image(detail, processor, max_image_bytes)
        except SkipImage as skip:
            logger.info(f"[Admission] {skip}")
            setattr(stats, skip.counter, getattr(stats, skip.counter) + 1)
            continue
        except Exception as e:
            error_msg = f"Error processing image {detail.title}: {e}"
            logger.warning(f"[Admission] {error_msg}")
            stats.failed += 1
            stats.errors.append(error_msg)
            continue

        if total_payload + image.payload_bytes > max_total_bytes:
            logger.info(f"[Admission] Skipping image {image.title}: would exceed total payload limit")
            stats.skipped_budget += 1
            continue

        total_payload += image.payload_bytes
        processed.append(image)
        logger.info(
            f"[Admission] Added image {image.title}, size: {_mb(image.payload_bytes)}, "
            f"total: {_mb(total_payload)}"
        )

        if on_event:
            on_event(ProgressEvent(
                stage='image_admitted',
                message=f"Added image {image.title}",
                data={
                    'title': image.title,
                    'alt_text': image.alt_text,
                    'url': image.url,
                    'payload_bytes': image.payload_bytes,
                    'total_payload_bytes': total_payload,
                },
            ))

    if len(processed) > max_images:
        logger.info(f"[Admission] Limiting from {len(processed)} to {max_images} images")
        stats.truncated = len(processed) - max_images
        processed = processed[:max_images]

    stats.admitted = len(processed)
    stats.total_payload_bytes = sum(img.payload_bytes for img in processed)

    logger.info(
        f"[Admission] Processed {stats.admitted} images with total payload size: "
        f"{_mb(stats.total_payload_bytes)}"
    )
    return processed, stats
