"""
Wikimedia Commons service - image search and metadata lookup.

Both calls are per-item best effort: a failed search yields an empty list
and a failed detail lookup yields None, so one bad term or file never aborts
the run.
"""
import html
import logging
import re
from typing import Any, Dict, List, Optional

import requests

from answer_pipeline.types import CandidateRef, ImageDetail, UNKNOWN_LICENSE
from answer_pipeline.config import config

logger = logging.getLogger(__name__)

HTML_TAG_PATTERN = re.compile(r'<.*?>', re.DOTALL)
FILE_NAMESPACE = 6
MAX_ALT_TEXT_CHARS = 200


def strip_html(value: str) -> str:
    """Remove markup and decode entities from an extmetadata value."""
    return html.unescape(HTML_TAG_PATTERN.sub('', value or '')).strip()


def _meta_value(metadata: Dict[str, Any], key: str) -> str:
    entry = metadata.get(key)
    if isinstance(entry, dict):
        value = entry.get('value')
        if value:
            return str(value)
    return ''


def derive_alt_text(metadata: Dict[str, Any], title: str) -> str:
    """
    Pick the best description for an image.

    Priority: ImageDescription -> ObjectName -> Categories -> file title.
    The result is capped at 200 characters with a trailing ellipsis.
    """
    alt_text = (
        strip_html(_meta_value(metadata, 'ImageDescription'))
        or strip_html(_meta_value(metadata, 'ObjectName'))
        or strip_html(_meta_value(metadata, 'Categories'))
        or title
    )
    alt_text = alt_text.strip()
    if len(alt_text) > MAX_ALT_TEXT_CHARS:
        alt_text = alt_text[:MAX_ALT_TEXT_CHARS] + '...'
    return alt_text


def derive_license(metadata: Dict[str, Any]) -> str:
    return (
        strip_html(_meta_value(metadata, 'LicenseShortName'))
        or strip_html(_meta_value(metadata, 'License'))
        or UNKNOWN_LICENSE
    )


def strip_file_prefix(title: str) -> str:
    return title.replace('File:', '', 1)


class WikimediaService:
    """Client for the Commons search and imageinfo APIs"""

    def __init__(self, session: Optional[requests.Session] = None):
        self.api_url = config.wikimedia_api_url
        self.results_per_term = config.search_results_per_term
        self.timeout = config.http_timeout
        self.session = session or requests.Session()
        self.session.headers['User-Agent'] = config.user_agent

    def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.get(
            self.api_url,
            params={**params, 'format': 'json'},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def search_images(self, term: str, limit: Optional[int] = None) -> List[CandidateRef]:
        """
        Search the File namespace for bitmaps and drawings, excluding GIFs.

        Args:
            term: Search phrase
            limit: Maximum hits (defaults to SEARCH_RESULTS_PER_TERM)

        Returns:
            Ordered CandidateRef list, empty on any failure
        """
        if limit is None:
            limit = self.results_per_term
        logger.info(f"[Search] Searching Wikimedia for: '{term}'")

        params = {
            'action': 'query',
            'list': 'search',
            'srsearch': f"{term} filetype:bitmap|drawing -filetype:gif",
            'srnamespace': FILE_NAMESPACE,
            'srlimit': limit,
        }

        try:
            data = self._get(params)
            hits = data['query']['search']
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning(f"[Search] Error searching Wikimedia for '{term}': {e}")
            return []

        logger.info(f"[Search] Received {len(hits)} results for '{term}'")
        return [
            CandidateRef(title=hit['title'], page_id=hit.get('pageid'))
            for hit in hits
            if hit.get('title')
        ]

    def get_image_details(self, image_title: str) -> Optional[ImageDetail]:
        """
        Resolve a File: title to its URL, description, license and artist.

        Returns:
            ImageDetail, or None when the file is missing or malformed
        """
        logger.debug(f"[Details] Getting details for image: {image_title}")

        params = {
            'action': 'query',
            'titles': image_title,
            'prop': 'imageinfo',
            'iiprop': 'url|extmetadata',
        }

        try:
            data = self._get(params)
            pages = data['query']['pages']
            page_id, page = next(iter(pages.items()))
            if page_id == '-1' or 'missing' in page:
                logger.warning(f"[Details] Image not found: {image_title}")
                return None

            image_info = page['imageinfo'][0]
            metadata = image_info.get('extmetadata') or {}
            url = image_info['url']
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError, StopIteration) as e:
            logger.warning(f"[Details] Error getting image details for {image_title}: {e}")
            return None

        title = strip_file_prefix(image_title)
        return ImageDetail(
            url=url,
            title=title,
            alt_text=derive_alt_text(metadata, title),
            license=derive_license(metadata),
            attribution=strip_html(_meta_value(metadata, 'Artist')),
        )


# Global singleton
_wikimedia_service: WikimediaService = None


def get_wikimedia_service() -> WikimediaService:
    """Get or create the global Wikimedia service"""
    global _wikimedia_service
    if _wikimedia_service is None:
        _wikimedia_service = WikimediaService()
    return _wikimedia_service
