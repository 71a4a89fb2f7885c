"""Entry submission with best-effort feedback enrichment.

A submission is handled in two strictly sequential steps:

1. the entry is inserted with ``feedback = NULL``;
2. the entry text is sent to the generative provider and, when text comes
   back, written onto the entry.

A failure in step 1 fails the request. A failure in step 2 is logged and
answered with ``FALLBACK_FEEDBACK``; the saved entry is left untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from services.entries import DOMAIN_CATEGORIES, Entry, domain_for
from services.entry_store import build_store
from services.errors import (
    EnrichmentError,
    MalformedRequestError,
    PersistenceError,
    ValidationError,
)
from services.generative import GeminiClient

logger = logging.getLogger(__name__)

FALLBACK_FEEDBACK = (
    'Entry saved! The tailored feedback engine is currently overloaded. '
    'Please check back later.'
)
MISSING_FIELDS_MESSAGE = 'Missing category, entry, or user_id'

DOMAIN_FOCUS = {
    'energy': ('an energy efficiency advisor', 'energy management'),
    'water': ('a water stewardship advisor', 'water conservation'),
    'waste': ('a circular economy advisor', 'waste reduction'),
}

PROMPT_TEMPLATE = """
You are {role}.
Reflect on the user's {category} entry: "{entry}"

Respond with:
1) A brief encouragement regarding their {topic} efforts.
2) One simple tip for improvement or consistency.
"""


def build_prompt(domain: str, category: str, entry_text: str) -> str:
    role, topic = DOMAIN_FOCUS[domain]
    return PROMPT_TEMPLATE.format(role=role, category=category, entry=entry_text, topic=topic)


@dataclass
class Submission:
    category: str
    entry: str
    user_id: str


@dataclass
class FeedbackResult:
    entry: Entry
    feedback: str
    enriched: bool

    def to_dict(self) -> dict:
        return {'feedback': self.feedback}


def parse_submission(payload: Any, domain: Optional[str] = None) -> Submission:
    """Validate a decoded request body."""
    if not isinstance(payload, dict):
        raise MalformedRequestError('Invalid or missing JSON body')

    values = {}
    for field in ('category', 'entry', 'user_id'):
        value = payload.get(field)
        if value is None or value == '':
            raise ValidationError(MISSING_FIELDS_MESSAGE)
        if not isinstance(value, str):
            raise ValidationError(f'{field} must be a string')
        if not value.strip():
            raise ValidationError(MISSING_FIELDS_MESSAGE)
        values[field] = value

    category = values['category'].strip().lower()
    category_domain = domain_for(category)
    if category_domain is None or (domain is not None and category_domain != domain):
        label = domain or 'entry'
        raise ValidationError(f'Unknown {label} category: {values["category"]}')

    return Submission(category=category, entry=values['entry'], user_id=values['user_id'])


class FeedbackService:
    """Submission handling bound to one configuration.

    ``store`` and ``generator`` may be injected; otherwise they are built from
    ``settings`` on first use, after the configuration has been checked.
    """

    def __init__(self, settings, store=None, generator=None):
        self.settings = settings
        self._store = store
        self._generator = generator

    @property
    def store(self):
        if self._store is None:
            self._store = build_store(self.settings)
        return self._store

    @property
    def generator(self):
        if self._generator is None:
            self._generator = GeminiClient(
                self.settings.gemini_api_key,
                model=self.settings.gemini_model,
                base_url=self.settings.gemini_base_url,
                timeout=self.settings.gemini_timeout,
            )
        return self._generator

    def submit(self, payload: Any, domain: Optional[str] = None) -> FeedbackResult:
        submission = parse_submission(payload, domain)
        self.settings.require()

        try:
            entry = self.store.insert_entry(submission.user_id, submission.category, submission.entry)
        except PersistenceError:
            logger.exception('DB error saving %s entry for user %s', submission.category, submission.user_id)
            raise

        try:
            text = self._generate(entry)
        except EnrichmentError as exc:
            logger.warning('AI error for entry %s: %s', entry.id, exc)
            return FeedbackResult(entry=entry, feedback=FALLBACK_FEEDBACK, enriched=False)
        except Exception:  # noqa: BLE001
            logger.exception('Unexpected AI error for entry %s', entry.id)
            return FeedbackResult(entry=entry, feedback=FALLBACK_FEEDBACK, enriched=False)

        try:
            if self.store.set_feedback(entry.id, text):
                entry.feedback = text
            else:
                logger.warning('Entry %s already had feedback; generated text not stored', entry.id)
        except PersistenceError:
            logger.exception('DB error storing feedback for entry %s', entry.id)
        return FeedbackResult(entry=entry, feedback=text, enriched=True)

    def retry_enrichment(self, entry_id: str) -> Optional[Entry]:
        """Generate feedback for a saved entry that has none yet.

        Returns the updated entry, or None when no such entry exists.
        Enrichment failures propagate so the operator can see them.
        """
        self.settings.require()
        entry = self.store.get_entry(entry_id)
        if entry is None:
            return None
        if entry.feedback:
            return entry
        text = self._generate(entry)
        if self.store.set_feedback(entry.id, text):
            entry.feedback = text
            return entry
        return self.store.get_entry(entry_id)

    def _generate(self, entry: Entry) -> str:
        domain = entry.domain
        if domain not in DOMAIN_CATEGORIES:
            raise EnrichmentError(f'No prompt for category {entry.category}')
        prompt = build_prompt(domain, entry.category, entry.entry_text)
        return self.generator.generate(prompt)
