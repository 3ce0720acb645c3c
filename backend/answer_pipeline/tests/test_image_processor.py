"""
Unit tests for answer_pipeline/services/image_processor.py

Network calls go through a mocked session. SVG rasterization runs for real
through cairosvg and Pillow on tiny documents.

Run with: python -m pytest answer_pipeline/tests/test_image_processor.py -v
"""
import base64
import io
import unittest
from unittest.mock import MagicMock

import requests
from PIL import Image

from answer_pipeline.config import config
from answer_pipeline.services.image_processor import (
    ImageProcessingError,
    ImageProcessor,
    estimate_base64_size,
    is_gif_url,
    is_svg_url,
    rasterize_svg,
    svg_intrinsic_size,
    to_data_url,
    url_extension,
)


SIZED_SVG = (
    b'<svg xmlns="http://www.w3.org/2000/svg" width="40" height="20">'
    b'<rect width="40" height="20" fill="#ff0000"/></svg>'
)
UNSIZED_SVG = b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10"></svg>'


# =============================================================================
# Test Fixtures
# =============================================================================

def make_response(content=b'', headers=None, status_code=200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.headers = headers or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    return response


def make_processor(head=None, get=None) -> ImageProcessor:
    session = MagicMock()
    session.headers = {}
    if head is not None:
        session.head.return_value = head
    if get is not None:
        session.get.return_value = get
    return ImageProcessor(session=session)


def decode_png(data_url: str) -> Image.Image:
    return Image.open(io.BytesIO(base64.b64decode(data_url.split(',', 1)[1])))


# =============================================================================
# Pure helpers
# =============================================================================

class TestUrlHelpers(unittest.TestCase):

    def test_url_extension_ignores_query_string(self):
        self.assertEqual(url_extension('https://x.org/a/Cell.SVG?width=300'), 'svg')
        self.assertEqual(url_extension('https://x.org/a/noext'), '')

    def test_gif_and_svg_detection(self):
        self.assertTrue(is_gif_url('https://x.org/anim.gif'))
        self.assertFalse(is_gif_url('https://x.org/gif_diagram.png'))
        self.assertTrue(is_svg_url('https://x.org/plot.svg'))


class TestEstimate(unittest.TestCase):

    def test_estimate_is_three_quarters_of_encoded_length(self):
        data_url = to_data_url(b'\x00' * 300, 'image/png')
        # 300 bytes -> 400 base64 chars -> 300 estimated
        self.assertEqual(estimate_base64_size(data_url), 300)

    def test_estimate_accepts_bare_base64(self):
        self.assertEqual(estimate_base64_size('QUJD'), 3)

    def test_estimate_rounds_up(self):
        self.assertEqual(estimate_base64_size('data:image/png;base64,QUJDRA=='), 6)


# =============================================================================
# SVG rasterization
# =============================================================================

class TestSvgRasterization(unittest.TestCase):

    def test_intrinsic_size_read_from_root(self):
        self.assertEqual(svg_intrinsic_size(SIZED_SVG), (40, 20))

    def test_intrinsic_size_accepts_px_units(self):
        svg = b'<svg width="120px" height="80.4px"></svg>'
        self.assertEqual(svg_intrinsic_size(svg), (120, 80))

    def test_relative_sizes_are_ignored(self):
        self.assertIsNone(svg_intrinsic_size(b'<svg width="100%" height="100%"></svg>'))
        self.assertIsNone(svg_intrinsic_size(UNSIZED_SVG))

    def test_rasterize_uses_intrinsic_size(self):
        png = Image.open(io.BytesIO(rasterize_svg(SIZED_SVG)))
        self.assertEqual(png.format, 'PNG')
        self.assertEqual(png.size, (40, 20))

    def test_rasterize_defaults_to_square_canvas(self):
        png = Image.open(io.BytesIO(rasterize_svg(UNSIZED_SVG, default_size=300)))
        self.assertEqual(png.size, (300, 300))

    def test_transparent_areas_become_white(self):
        png = Image.open(io.BytesIO(rasterize_svg(UNSIZED_SVG, default_size=16))).convert('RGB')
        self.assertEqual(png.getpixel((8, 8)), (255, 255, 255))

    def test_invalid_svg_raises(self):
        with self.assertRaises(ImageProcessingError):
            rasterize_svg(b'this is not svg')


# =============================================================================
# Network helpers
# =============================================================================

class TestImageProcessor(unittest.TestCase):

    def test_session_identifies_with_configured_user_agent(self):
        processor = ImageProcessor(session=requests.Session())

        self.assertEqual(processor.session.headers['User-Agent'], config.user_agent)

    def test_check_image_size_reads_content_length(self):
        processor = make_processor(head=make_response(headers={'Content-Length': '2048'}))
        self.assertEqual(processor.check_image_size('https://x.org/a.png'), 2048)

    def test_check_image_size_without_header_returns_none(self):
        processor = make_processor(head=make_response(headers={}))
        self.assertIsNone(processor.check_image_size('https://x.org/a.png'))

    def test_check_image_size_with_garbage_header_returns_none(self):
        processor = make_processor(head=make_response(headers={'Content-Length': 'lots'}))
        self.assertIsNone(processor.check_image_size('https://x.org/a.png'))

    def test_check_image_size_propagates_http_errors(self):
        processor = make_processor(head=make_response(status_code=404))
        with self.assertRaises(requests.HTTPError):
            processor.check_image_size('https://x.org/a.png')

    def test_fetch_data_url_uses_response_mime(self):
        processor = make_processor(get=make_response(b'abc', {'Content-Type': 'image/png; charset=binary'}))

        data_url, mime_type = processor.fetch_data_url('https://x.org/a.png')

        self.assertEqual(mime_type, 'image/png')
        self.assertEqual(data_url, 'data:image/png;base64,YWJj')

    def test_fetch_data_url_guesses_mime_from_extension(self):
        processor = make_processor(get=make_response(b'abc', {'Content-Type': 'application/octet-stream'}))

        _, mime_type = processor.fetch_data_url('https://x.org/photo.jpg')

        self.assertEqual(mime_type, 'image/jpeg')

    def test_fetch_data_url_wraps_http_errors(self):
        processor = make_processor(get=make_response(status_code=500))
        with self.assertRaises(ImageProcessingError):
            processor.fetch_data_url('https://x.org/a.png')

    def test_fetch_svg_as_png(self):
        processor = make_processor(get=make_response(SIZED_SVG, {'Content-Type': 'image/svg+xml'}))

        data_url, mime_type = processor.fetch_svg_as_png('https://x.org/a.svg')

        self.assertEqual(mime_type, 'image/png')
        self.assertTrue(data_url.startswith('data:image/png;base64,'))
        self.assertEqual(decode_png(data_url).size, (40, 20))


if __name__ == '__main__':
    unittest.main()
