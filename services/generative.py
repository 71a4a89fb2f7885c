"""Client for the Gemini ``generateContent`` REST endpoint."""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

import requests

from services.errors import EnrichmentError

logger = logging.getLogger(__name__)


def _candidate_part_text(data: dict) -> Any:
    return data['candidates'][0]['content']['parts'][0]['text']


def _candidate_output(data: dict) -> Any:
    return data['candidates'][0]['output']


def _output_content_text(data: dict) -> Any:
    return data['output'][0]['content'][0]['text']


# Response shapes the provider has used, in priority order.
TEXT_EXTRACTORS: List[Callable[[dict], Any]] = [
    _candidate_part_text,
    _candidate_output,
    _output_content_text,
]


def extract_text(data: Any) -> Optional[str]:
    """Return the first non-empty text found in ``data``, or None."""
    if not isinstance(data, dict):
        return None
    for extractor in TEXT_EXTRACTORS:
        try:
            value = extractor(data)
        except (KeyError, IndexError, TypeError):
            continue
        if isinstance(value, str) and value.strip():
            return value
    return None


class GeminiClient:
    def __init__(self, api_key: str, model: str = 'gemini-2.0-flash',
                 base_url: str = 'https://generativelanguage.googleapis.com/v1beta',
                 timeout: float = 20.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests

    @property
    def endpoint(self) -> str:
        return f'{self.base_url}/models/{self.model}:generateContent'

    def generate(self, prompt: str) -> str:
        """Send one prompt and return the generated text.

        Raises ``EnrichmentError`` for transport failures, non-success
        statuses and bodies that carry no usable text. No retries.
        """
        try:
            resp = self.session.post(
                self.endpoint,
                params={'key': self.api_key},
                json={'contents': [{'parts': [{'text': prompt}]}]},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise EnrichmentError(f'Gemini request failed: {exc}') from exc

        if not resp.ok:
            raise EnrichmentError(
                f'Gemini API error: {resp.status_code}',
                status=resp.status_code,
                body=resp.text[:500],
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise EnrichmentError('Gemini returned a non-JSON body') from exc

        text = extract_text(data)
        if text is None:
            raise EnrichmentError('Gemini response contained no text')
        logger.debug('Gemini generated %s characters', len(text))
        return text
