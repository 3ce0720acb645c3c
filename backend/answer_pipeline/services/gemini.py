"""
Gemini gateway with a two-path calling strategy.

Relay path: POST {model, data} to a credential-free relay that forwards the
raw generateContent payload. Direct path: the google-genai SDK with the
caller's API key.

With use_relay=True the relay is tried first and any failure (RelayError or
otherwise) falls through to the direct path. With use_relay=False only the direct path runs and a key
is mandatory up front. The choice is made per call.
"""
import base64
import logging
from typing import Any, Callable, Dict, List, Optional

import requests
from google import genai
from google.genai import types

from answer_pipeline.config import config
from answer_pipeline.errors import CredentialRequiredError, ModelCallError
from answer_pipeline.types import ModelRequest

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Relay returned a non-success status or an unusable envelope."""
    pass


def build_rest_payload(request: ModelRequest) -> Dict[str, Any]:
    """Encode a ModelRequest as a REST generateContent body."""
    parts: List[Dict[str, Any]] = []
    if request.instruction:
        parts.append({'text': request.instruction})
    for img in request.images:
        parts.append({
            'inline_data': {
                'mime_type': img.mime_type,
                'data': img.base64_data,
            }
        })
    parts.append({'text': request.prompt})

    payload: Dict[str, Any] = {'contents': [{'parts': parts}]}

    generation_config = {}
    if request.temperature is not None:
        generation_config['temperature'] = request.temperature
    if request.max_output_tokens is not None:
        generation_config['maxOutputTokens'] = request.max_output_tokens
    if generation_config:
        payload['generationConfig'] = generation_config
    return payload


def build_sdk_contents(request: ModelRequest) -> List[types.Content]:
    """Encode a ModelRequest as google-genai Content objects."""
    parts: List[types.Part] = []
    if request.instruction:
        parts.append(types.Part.from_text(text=request.instruction))
    for img in request.images:
        parts.append(types.Part.from_bytes(
            data=base64.b64decode(img.base64_data),
            mime_type=img.mime_type,
        ))
    parts.append(types.Part.from_text(text=request.prompt))
    return [types.Content(role='user', parts=parts)]


def build_sdk_config(request: ModelRequest) -> Optional[types.GenerateContentConfig]:
    if request.temperature is None and request.max_output_tokens is None:
        return None
    return types.GenerateContentConfig(
        temperature=request.temperature,
        max_output_tokens=request.max_output_tokens,
    )


def extract_envelope_text(data: Dict[str, Any]) -> str:
    """Pull candidates[0].content.parts[*].text out of a response envelope."""
    try:
        parts = data['candidates'][0]['content']['parts']
    except (KeyError, IndexError, TypeError) as e:
        raise RelayError(f"Malformed response envelope: {e}") from e
    text = ''.join(part.get('text') or '' for part in parts if isinstance(part, dict))
    if not text.strip():
        raise RelayError("Response envelope contained no text")
    return text


class GeminiGateway:
    """Sends ModelRequests to Gemini via the relay and/or the direct API"""

    def __init__(
        self,
        relay_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        self.relay_url = relay_url if relay_url is not None else config.gemini_relay_url
        self.timeout = config.model_timeout
        self.session = session or requests.Session()
        self.client_factory = client_factory

    def _call_relay(self, request: ModelRequest) -> str:
        if not self.relay_url:
            raise RelayError("Relay URL is not configured")

        try:
            response = self.session.post(
                self.relay_url,
                json={'model': request.model, 'data': build_rest_payload(request)},
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RelayError(f"Relay transport error: {e}") from e

        if not response.ok:
            raise RelayError(f"Relay error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise RelayError(f"Relay returned invalid JSON: {e}") from e
        return extract_envelope_text(data)

    def _make_client(self, api_key: str):
        factory = self.client_factory or genai.Client
        return factory(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
        )

    def _call_direct(self, request: ModelRequest, api_key: str) -> str:
        client = self._make_client(api_key)
        response = client.models.generate_content(
            model=request.model,
            contents=build_sdk_contents(request),
            config=build_sdk_config(request),
        )
        text = response.text or ''
        if not text.strip():
            raise ModelCallError("Gemini API returned an empty response")
        return text

    def generate(
        self,
        request: ModelRequest,
        api_key: Optional[str] = None,
        use_relay: bool = True,
    ) -> str:
        """
        Run a generateContent call with relay-then-direct fallback.

        Args:
            request: Provider-neutral request
            api_key: Caller credential for the direct path
            use_relay: Try the relay first; False means direct only

        Returns:
            Raw model text

        Raises:
            CredentialRequiredError: Direct path needed without an api_key
            ModelCallError: Every attempted path failed
        """
        api_key = api_key or None

        if not use_relay and not api_key:
            raise CredentialRequiredError("API key is required when the relay is disabled")

        if use_relay:
            try:
                logger.info(f"[Model] Attempting relay for {request.model}...")
                text = self._call_relay(request)
                logger.info("[Model] Successfully used relay")
                return text
            except Exception as e:
                logger.warning(f"[Model] Relay request failed: {e}")
                logger.info("[Model] Falling back to direct API call")

        if not api_key:
            raise CredentialRequiredError("API key is required when the relay is unavailable")

        try:
            text = self._call_direct(request, api_key)
        except ModelCallError:
            raise
        except Exception as e:
            logger.error(f"[Model] Direct Gemini call failed: {e}")
            raise ModelCallError(f"Gemini API error: {e}") from e

        logger.info("[Model] Received response from Gemini API directly")
        return text


# Global singleton
_gemini_gateway: GeminiGateway = None


def get_gemini_gateway() -> GeminiGateway:
    """Get or create the global Gemini gateway"""
    global _gemini_gateway
    if _gemini_gateway is None:
        _gemini_gateway = GeminiGateway()
    return _gemini_gateway
