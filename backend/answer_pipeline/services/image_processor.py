"""
Image fetching and encoding helpers used by the admission pipeline.

- HEAD size check
- download to a base64 data URL
- SVG -> PNG rasterization on an opaque white canvas
- decoded-size estimate for a data URL
"""
import base64
import io
import logging
import math
import mimetypes
import re
from typing import Optional, Tuple
from urllib.parse import urlparse

import cairosvg
import requests
from PIL import Image

from answer_pipeline.config import config

logger = logging.getLogger(__name__)

SVG_ROOT_PATTERN = re.compile(rb'<svg\b[^>]*>', re.IGNORECASE | re.DOTALL)
SVG_LENGTH_PATTERN = re.compile(r'^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$')
DEFAULT_MIME_TYPE = 'image/jpeg'


class ImageProcessingError(Exception):
    """Raised when an image cannot be downloaded, decoded or converted."""
    pass


def url_extension(url: str) -> str:
    """Lowercase file extension of a URL path, without the dot."""
    path = urlparse(url).path
    if '.' not in path.rsplit('/', 1)[-1]:
        return ''
    return path.rsplit('.', 1)[-1].lower()


def is_gif_url(url: str) -> bool:
    return url_extension(url) == 'gif'


def is_svg_url(url: str) -> bool:
    return url_extension(url) == 'svg'


def to_data_url(data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(data).decode('ascii')
    return f"data:{mime_type};base64,{encoded}"


def estimate_base64_size(payload: str) -> int:
    """
    Estimate the decoded byte size of a base64 string or data URL.

    Base64 inflates binary by 4/3, so the decoded size is about 3/4 of the
    encoded length.
    """
    encoded = payload.split(',', 1)[1] if ',' in payload else payload
    return math.ceil(len(encoded) * 3 / 4)


def _parse_svg_length(value: Optional[str]) -> Optional[int]:
    """Absolute px (or unitless) length; None for %, em and friends."""
    if not value:
        return None
    match = SVG_LENGTH_PATTERN.match(value)
    if not match:
        return None
    length = int(round(float(match.group(1))))
    return length if length > 0 else None


def svg_intrinsic_size(svg_bytes: bytes) -> Optional[Tuple[int, int]]:
    """Read width/height from the root <svg> element, if both are absolute."""
    match = SVG_ROOT_PATTERN.search(svg_bytes)
    if not match:
        return None
    root = match.group(0).decode('utf-8', errors='ignore')
    width = re.search(r'\swidth\s*=\s*["\']([^"\']*)["\']', root)
    height = re.search(r'\sheight\s*=\s*["\']([^"\']*)["\']', root)
    w = _parse_svg_length(width.group(1)) if width else None
    h = _parse_svg_length(height.group(1)) if height else None
    if w and h:
        return w, h
    return None


def rasterize_svg(svg_bytes: bytes, default_size: Optional[int] = None) -> bytes:
    """
    Render SVG bytes to PNG on a white background.

    The canvas uses the SVG's intrinsic size, or default_size x default_size
    when the document does not declare one.

    Raises:
        ImageProcessingError: If the SVG cannot be decoded or rendered
    """
    if default_size is None:
        default_size = config.svg_default_size
    intrinsic = svg_intrinsic_size(svg_bytes)

    render_kwargs = {}
    if intrinsic is None:
        render_kwargs = {'output_width': default_size, 'output_height': default_size}

    try:
        png_bytes = cairosvg.svg2png(bytestring=svg_bytes, **render_kwargs)
        rendered = Image.open(io.BytesIO(png_bytes)).convert('RGBA')
    except Exception as e:
        raise ImageProcessingError(f"Failed to rasterize SVG: {e}") from e

    canvas = Image.new('RGB', rendered.size, (255, 255, 255))
    canvas.paste(rendered, mask=rendered.getchannel('A'))

    buffer = io.BytesIO()
    canvas.save(buffer, format='PNG')
    return buffer.getvalue()


class ImageProcessor:
    """Network side of image admission"""

    def __init__(self, session: Optional[requests.Session] = None):
        self.timeout = config.http_timeout
        self.svg_default_size = config.svg_default_size
        self.session = session or requests.Session()
        self.session.headers['User-Agent'] = config.user_agent

    def check_image_size(self, url: str) -> Optional[int]:
        """
        Probe the image size with a HEAD request.

        Returns:
            Content-Length in bytes, or None when the server does not report it

        Raises:
            requests.RequestException: On transport errors or non-2xx status
        """
        logger.debug(f"[Admission] Checking size for image: {url}")
        response = self.session.head(url, timeout=self.timeout, allow_redirects=True)
        response.raise_for_status()

        content_length = response.headers.get('Content-Length')
        if not content_length:
            logger.info("[Admission] Content-Length header not available, proceeding with caution")
            return None
        try:
            return int(content_length)
        except ValueError:
            logger.info(f"[Admission] Unparsable Content-Length '{content_length}', proceeding")
            return None

    def _download(self, url: str) -> Tuple[bytes, str]:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ImageProcessingError(f"Failed to fetch image: {e}") from e

        content_type = (response.headers.get('Content-Type') or '').split(';')[0].strip().lower()
        return response.content, content_type

    def fetch_data_url(self, url: str) -> Tuple[str, str]:
        """
        Download an image and encode it as a data URL.

        Returns:
            (data_url, mime_type)
        """
        logger.debug(f"[Admission] Getting base64 for image: {url}")
        data, mime_type = self._download(url)

        if not mime_type.startswith('image/'):
            guessed, _ = mimetypes.guess_type(urlparse(url).path)
            mime_type = guessed if guessed and guessed.startswith('image/') else DEFAULT_MIME_TYPE
        return to_data_url(data, mime_type), mime_type

    def fetch_svg_as_png(self, url: str) -> Tuple[str, str]:
        """Download an SVG and return it rasterized as a PNG data URL."""
        logger.info(f"[Admission] Converting SVG to PNG: {url}")
        data, _ = self._download(url)
        png_bytes = rasterize_svg(data, self.svg_default_size)
        return to_data_url(png_bytes, 'image/png'), 'image/png'


# Global singleton
_image_processor: ImageProcessor = None


def get_image_processor() -> ImageProcessor:
    """Get or create the global image processor"""
    global _image_processor
    if _image_processor is None:
        _image_processor = ImageProcessor()
    return _image_processor
