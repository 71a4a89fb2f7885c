import pytest

from services.entry_store import SqliteEntryStore, SupabaseEntryStore, build_store
from config import FeedbackSettings
from services.errors import ConfigurationError, PersistenceError


class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Records the PostgREST builder chain and returns canned rows."""

    def __init__(self, log, data=None, error=None):
        self.log = log
        self.data = data if data is not None else []
        self.error = error

    def __getattr__(self, name):
        def step(*args, **kwargs):
            self.log.append((name, args, kwargs))
            return self
        return step

    def execute(self):
        if self.error:
            raise self.error
        return FakeResult(self.data)


class FakeSupabase:
    def __init__(self, data=None, error=None):
        self.log = []
        self.data = data
        self.error = error

    def table(self, name):
        self.log.append(('table', (name,), {}))
        return FakeQuery(self.log, self.data, self.error)


ROW = {
    'id': 'e1',
    'user_id': 'u1',
    'category': 'solar',
    'entry_text': 'Panel output at 4.2kWh',
    'feedback': None,
    'created_at': '2026-01-01T00:00:00+00:00',
}


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteEntryStore(str(tmp_path / 'entries.db'))
    store.init_db()
    return store


def test_sqlite_insert_assigns_id_and_timestamp(sqlite_store):
    entry = sqlite_store.insert_entry('u1', 'solar', 'Panel output')
    assert entry.id
    assert entry.created_at
    assert entry.feedback is None
    assert sqlite_store.get_entry(entry.id) == entry


def test_sqlite_feedback_is_written_at_most_once(sqlite_store):
    entry = sqlite_store.insert_entry('u1', 'grid', 'x')
    assert sqlite_store.set_feedback(entry.id, 'first') is True
    assert sqlite_store.set_feedback(entry.id, 'second') is False
    assert sqlite_store.get_entry(entry.id).feedback == 'first'


def test_sqlite_lists_by_user_and_category(sqlite_store):
    sqlite_store.insert_entry('u1', 'grid', 'a')
    sqlite_store.insert_entry('u1', 'domestic', 'b')
    sqlite_store.insert_entry('u2', 'grid', 'c')

    assert [e.entry_text for e in sqlite_store.list_entries('u1')] == ['b', 'a']
    assert [e.entry_text for e in sqlite_store.list_entries('u1', ['grid', 'solar'])] == ['a']
    assert sqlite_store.list_entries('u1', []) == []


def test_sqlite_lists_pending(sqlite_store):
    done = sqlite_store.insert_entry('u1', 'grid', 'a')
    sqlite_store.set_feedback(done.id, 'ok')
    pending = sqlite_store.insert_entry('u2', 'landfill', 'b')
    assert [e.id for e in sqlite_store.list_pending()] == [pending.id]


def test_sqlite_errors_become_persistence_errors(tmp_path):
    store = SqliteEntryStore(str(tmp_path / 'missing-table.db'))
    with pytest.raises(PersistenceError):
        store.insert_entry('u1', 'grid', 'x')


def test_supabase_insert_returns_row():
    client = FakeSupabase(data=[ROW])
    store = SupabaseEntryStore('https://x.supabase.co', 'key', client=client)

    entry = store.insert_entry('u1', 'solar', 'Panel output at 4.2kWh')

    assert entry.id == 'e1'
    assert ('table', ('entries',), {}) in client.log
    assert ('insert', ({'user_id': 'u1', 'category': 'solar',
                        'entry_text': 'Panel output at 4.2kWh', 'feedback': None},), {}) in client.log


def test_supabase_update_only_touches_null_feedback():
    client = FakeSupabase(data=[dict(ROW, feedback='tip')])
    store = SupabaseEntryStore('https://x.supabase.co', 'key', client=client)

    assert store.set_feedback('e1', 'tip') is True
    assert ('eq', ('id', 'e1'), {}) in client.log
    assert ('is_', ('feedback', 'null'), {}) in client.log


def test_supabase_list_orders_newest_first():
    client = FakeSupabase(data=[ROW])
    store = SupabaseEntryStore('https://x.supabase.co', 'key', client=client)

    entries = store.list_entries('u1', ('grid', 'solar', 'battery'))

    assert [e.id for e in entries] == ['e1']
    assert ('in_', ('category', ['grid', 'solar', 'battery']), {}) in client.log
    assert ('order', ('created_at',), {'desc': True}) in client.log


def test_supabase_failures_become_persistence_errors():
    store = SupabaseEntryStore('https://x.supabase.co', 'key', client=FakeSupabase(error=RuntimeError('down')))
    with pytest.raises(PersistenceError):
        store.insert_entry('u1', 'grid', 'x')

    empty = SupabaseEntryStore('https://x.supabase.co', 'key', client=FakeSupabase(data=[]))
    with pytest.raises(PersistenceError):
        empty.insert_entry('u1', 'grid', 'x')


def test_build_store_selects_backend(tmp_path):
    store = build_store(FeedbackSettings(store_backend='sqlite', database_path=str(tmp_path / 'e.db')))
    assert isinstance(store, SqliteEntryStore)
    with pytest.raises(ConfigurationError):
        build_store(FeedbackSettings(store_backend='supabase'))
    with pytest.raises(ConfigurationError):
        build_store(FeedbackSettings(store_backend='mongo'))
