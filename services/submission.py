"""Client side of entry submission: HTTP client plus the form flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from services.entries import DOMAIN_CATEGORIES, Entry

logger = logging.getLogger(__name__)


class TrackerClient:
    """Talks to the tracker service on behalf of one signed-in user."""

    def __init__(self, base_url: str, user_id: str, access_token: Optional[str] = None,
                 timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.user_id = user_id
        self.timeout = timeout
        self.session = session or requests.Session()
        if access_token:
            self.session.headers['Authorization'] = f'Bearer {access_token}'

    def submit(self, domain: str, category: str, text: str) -> dict:
        """POST an entry. Returns ``{'feedback': ...}`` or ``{'error': ...}``."""
        try:
            resp = self.session.post(
                f'{self.base_url}/functions/v1/{domain}-feedback',
                json={'category': category, 'entry': text, 'user_id': self.user_id},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning('Feedback request failed: %s', exc)
            return {'error': 'Could not reach the feedback service'}

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.ok and isinstance(body, dict) and body.get('feedback'):
            return {'feedback': body['feedback']}
        message = body.get('error') if isinstance(body, dict) else None
        return {'error': message or f'Feedback service returned HTTP {resp.status_code}'}

    def list_entries(self, domain: Optional[str] = None, search: Optional[str] = None) -> List[Entry]:
        params = {'user_id': self.user_id}
        if domain:
            params['domain'] = domain
        if search:
            params['q'] = search
        resp = self.session.get(f'{self.base_url}/entries', params=params, timeout=self.timeout)
        resp.raise_for_status()
        return [Entry.from_row(row) for row in resp.json().get('entries', [])]

    def analytics(self, domain: Optional[str] = None) -> dict:
        params = {'user_id': self.user_id}
        if domain:
            params['domain'] = domain
        resp = self.session.get(f'{self.base_url}/analytics', params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()


@dataclass
class SubmissionFlow:
    """State behind one domain's logging form.

    A successful submit clears the draft and refreshes ``entries``; a failed
    one keeps the draft and sets ``notice`` so the user can retry.
    """

    client: TrackerClient
    domain: str
    category: Optional[str] = None
    text: str = ''
    entries: List[Entry] = field(default_factory=list)
    latest_feedback: Optional[str] = None
    notice: Optional[str] = None

    def __post_init__(self):
        if self.domain not in DOMAIN_CATEGORIES:
            raise ValueError(f'Unknown domain: {self.domain}')

    @property
    def categories(self):
        return DOMAIN_CATEGORIES[self.domain]

    def set_draft(self, category: Optional[str], text: str) -> None:
        self.category = category
        self.text = text

    def refresh(self) -> List[Entry]:
        try:
            self.entries = self.client.list_entries(self.domain)
        except requests.RequestException as exc:
            logger.warning('Could not refresh %s entries: %s', self.domain, exc)
            self.notice = 'Could not load your entries. Please try again.'
        return self.entries

    def submit(self) -> dict:
        if self.category not in self.categories or not self.text.strip():
            self.notice = 'Choose a category and describe your entry first.'
            return {'error': self.notice}

        result = self.client.submit(self.domain, self.category, self.text)
        if 'error' in result:
            self.notice = result['error']
            return result

        self.latest_feedback = result['feedback']
        self.notice = None
        self.set_draft(None, '')
        self.refresh()
        return result
