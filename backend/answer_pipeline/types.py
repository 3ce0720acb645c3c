"""
Shared types for the illustrated answer pipeline.
"""
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime, timezone


UNKNOWN_LICENSE = "Unknown license"


@dataclass
class CandidateRef:
    """Search hit from the media repository, consumed by the detail fetcher"""
    title: str
    page_id: Optional[int] = None


@dataclass
class ImageDetail:
    """Resolved metadata for a candidate image"""
    url: str
    title: str
    alt_text: str = ""
    license: str = UNKNOWN_LICENSE
    attribution: str = ""


@dataclass
class ProcessedImage(ImageDetail):
    """Image admitted into the model request, with its inline payload"""
    payload_data: str = ""     # data:<mime>;base64,<...>
    payload_bytes: int = 0     # estimated decoded size
    mime_type: str = "image/jpeg"

    @property
    def base64_data(self) -> str:
        """Payload without the data URL prefix"""
        return self.payload_data.split(',', 1)[-1]


@dataclass
class ProgressEvent:
    """Structured progress notification for the presentation layer"""
    stage: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass
class ModelRequest:
    """Provider-neutral generateContent request"""
    model: str
    prompt: str
    instruction: Optional[str] = None
    images: List[ProcessedImage] = field(default_factory=list)
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None


@dataclass
class Answer:
    """Final composed document"""
    question: str
    html: str
    markdown: str = ""
    search_terms: List[str] = field(default_factory=list)
    images: List[ProcessedImage] = field(default_factory=list)
    unresolved_tokens: List[str] = field(default_factory=list)
    events: List[ProgressEvent] = field(default_factory=list)


# Helper functions for type conversions
def progress_event_to_dict(event: ProgressEvent) -> Dict[str, Any]:
    """Convert ProgressEvent to dict for serialization"""
    return {
        'stage': event.stage,
        'message': event.message,
        'data': event.data,
        'created_at': event.created_at,
    }


def processed_image_to_dict(image: ProcessedImage) -> Dict[str, Any]:
    """Convert ProcessedImage to dict for serialization (payload omitted)"""
    return {
        'url': image.url,
        'title': image.title,
        'alt_text': image.alt_text,
        'license': image.license,
        'attribution': image.attribution,
        'mime_type': image.mime_type,
        'payload_bytes': image.payload_bytes,
    }


def answer_to_dict(answer: Answer) -> Dict[str, Any]:
    """Convert Answer to dict for serialization"""
    return {
        'question': answer.question,
        'html': answer.html,
        'markdown': answer.markdown,
        'search_terms': answer.search_terms,
        'images': [processed_image_to_dict(img) for img in answer.images],
        'unresolved_tokens': answer.unresolved_tokens,
        'events': [progress_event_to_dict(ev) for ev in answer.events],
    }
