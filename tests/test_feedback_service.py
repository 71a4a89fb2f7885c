import pytest

from config import FeedbackSettings
from services.entry_store import SqliteEntryStore
from services.errors import (
    ConfigurationError,
    EnrichmentError,
    MalformedRequestError,
    PersistenceError,
    ValidationError,
)
from services.feedback_service import (
    FALLBACK_FEEDBACK,
    FeedbackService,
    build_prompt,
    parse_submission,
)


class StubGenerator:
    def __init__(self, text='Keep it up.', error=None):
        self.text = text
        self.error = error
        self.calls = 0

    def generate(self, prompt):
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


class FailingUpdateStore(SqliteEntryStore):
    def set_feedback(self, entry_id, feedback):
        raise PersistenceError('Failed to update entry feedback')


@pytest.fixture
def settings(tmp_path):
    return FeedbackSettings(
        store_backend='sqlite',
        database_path=str(tmp_path / 'entries.db'),
        gemini_api_key='test-key',
    )


@pytest.fixture
def store(settings):
    store = SqliteEntryStore(settings.database_path)
    store.init_db()
    return store


def test_parse_submission_normalises_category():
    sub = parse_submission({'category': ' Solar ', 'entry': 'Panel output', 'user_id': 'u1'}, domain='energy')
    assert sub.category == 'solar'
    assert sub.entry == 'Panel output'


def test_parse_submission_keeps_user_id_verbatim():
    sub = parse_submission({'category': 'grid', 'entry': 'x', 'user_id': ' u1 '})
    assert sub.user_id == ' u1 '


@pytest.mark.parametrize('payload', [
    {'entry': 'x', 'user_id': 'u1'},
    {'category': 'grid', 'user_id': 'u1'},
    {'category': 'grid', 'entry': 'x'},
    {'category': 'grid', 'entry': '   ', 'user_id': 'u1'},
    {'category': 'grid', 'entry': None, 'user_id': 'u1'},
])
def test_parse_submission_missing_fields(payload):
    with pytest.raises(ValidationError) as exc:
        parse_submission(payload)
    assert exc.value.message == 'Missing category, entry, or user_id'
    assert exc.value.status_code == 400


@pytest.mark.parametrize('payload', [None, [], 'text', 3])
def test_parse_submission_malformed(payload):
    with pytest.raises(MalformedRequestError):
        parse_submission(payload)


def test_parse_submission_rejects_non_string_and_unknown_category():
    with pytest.raises(ValidationError):
        parse_submission({'category': 'grid', 'entry': 42, 'user_id': 'u1'})
    with pytest.raises(ValidationError):
        parse_submission({'category': 'nuclear', 'entry': 'x', 'user_id': 'u1'})


def test_build_prompt_embeds_category_and_text():
    prompt = build_prompt('waste', 'composting', 'Turned the compost pile')
    assert 'composting' in prompt
    assert '"Turned the compost pile"' in prompt
    assert 'waste reduction' in prompt


def test_submit_persists_then_enriches(settings, store):
    service = FeedbackService(settings, store=store, generator=StubGenerator('Great composting habit.'))

    result = service.submit({'category': 'composting', 'entry': 'Turned the pile', 'user_id': 'u1'}, domain='waste')

    assert result.enriched is True
    assert result.to_dict() == {'feedback': 'Great composting habit.'}
    saved = store.get_entry(result.entry.id)
    assert saved.entry_text == 'Turned the pile'
    assert saved.feedback == 'Great composting habit.'


def test_submit_degrades_when_enrichment_fails(settings, store):
    service = FeedbackService(settings, store=store, generator=StubGenerator(error=EnrichmentError('boom')))

    result = service.submit({'category': 'grid', 'entry': 'Used 12kWh', 'user_id': 'u1'})

    assert result.enriched is False
    assert result.feedback == FALLBACK_FEEDBACK
    assert store.get_entry(result.entry.id).feedback is None


def test_submit_returns_text_when_feedback_update_fails(settings, tmp_path):
    store = FailingUpdateStore(settings.database_path)
    store.init_db()
    service = FeedbackService(settings, store=store, generator=StubGenerator('Nice.'))

    result = service.submit({'category': 'grid', 'entry': 'Used 12kWh', 'user_id': 'u1'})

    assert result.feedback == 'Nice.'
    assert store.get_entry(result.entry.id).feedback is None


def test_submit_checks_configuration_before_writing(settings, store):
    generator = StubGenerator()
    service = FeedbackService(
        FeedbackSettings(store_backend='sqlite', database_path=settings.database_path),
        store=store,
        generator=generator,
    )

    with pytest.raises(ConfigurationError):
        service.submit({'category': 'grid', 'entry': 'x', 'user_id': 'u1'})

    assert store.list_entries('u1') == []
    assert generator.calls == 0


def test_supabase_settings_are_required():
    settings = FeedbackSettings(store_backend='supabase', gemini_api_key='k')
    assert settings.missing() == ['SUPABASE_URL', 'SUPABASE_SERVICE_ROLE_KEY']
    with pytest.raises(ConfigurationError):
        settings.require()


def test_settings_from_config_mapping():
    settings = FeedbackSettings.from_config({
        'STORE_BACKEND': 'sqlite',
        'DATABASE_PATH': 'x.db',
        'GEMINI_API_KEY': 'k',
        'GEMINI_TIMEOUT_SECONDS': '5',
    })
    assert settings.gemini_timeout == 5.0
    assert settings.gemini_model == 'gemini-2.0-flash'
    assert settings.missing() == []


def test_retry_enrichment_fills_pending_entry_once(settings, store):
    entry = store.insert_entry('u1', 'irrigation', 'Drip lines ran 40 minutes')
    generator = StubGenerator('Water early in the morning.')
    service = FeedbackService(settings, store=store, generator=generator)

    updated = service.retry_enrichment(entry.id)
    again = service.retry_enrichment(entry.id)

    assert updated.feedback == 'Water early in the morning.'
    assert again.feedback == 'Water early in the morning.'
    assert generator.calls == 1


def test_retry_enrichment_surfaces_failures(settings, store):
    entry = store.insert_entry('u1', 'grid', 'x')
    service = FeedbackService(settings, store=store, generator=StubGenerator(error=EnrichmentError('down')))

    with pytest.raises(EnrichmentError):
        service.retry_enrichment(entry.id)
    assert service.retry_enrichment('missing-id') is None
