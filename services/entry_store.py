"""Entry persistence backends.

Two implementations share one small interface:

- ``SupabaseEntryStore`` talks to the hosted ``entries`` table through the
  Supabase client using the service-role key.
- ``SqliteEntryStore`` keeps the same table in a local SQLite file, used for
  development, operator scripts and tests.

Every storage failure is re-raised as ``PersistenceError`` so callers only
deal with one exception type.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from supabase import create_client

from services.entries import Entry
from services.errors import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)

ENTRIES_TABLE = 'entries'


class SupabaseEntryStore:
    def __init__(self, url: str, service_key: str, client=None):
        if client is None:
            try:
                client = create_client(url, service_key)
            except Exception as exc:  # noqa: BLE001
                raise ConfigurationError('Invalid Supabase configuration') from exc
        self.client = client

    def _table(self):
        return self.client.table(ENTRIES_TABLE)

    def insert_entry(self, user_id: str, category: str, entry_text: str) -> Entry:
        try:
            resp = self._table().insert({
                'user_id': user_id,
                'category': category,
                'entry_text': entry_text,
                'feedback': None,
            }).execute()
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError('Failed to save entry') from exc
        if not resp.data:
            raise PersistenceError('Failed to save entry')
        return Entry.from_row(resp.data[0])

    def set_feedback(self, entry_id: str, feedback: str) -> bool:
        try:
            resp = (
                self._table()
                .update({'feedback': feedback})
                .eq('id', entry_id)
                .is_('feedback', 'null')
                .execute()
            )
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError('Failed to update entry feedback') from exc
        return bool(resp.data)

    def get_entry(self, entry_id: str) -> Optional[Entry]:
        try:
            resp = self._table().select('*').eq('id', entry_id).limit(1).execute()
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError('Failed to load entry') from exc
        return Entry.from_row(resp.data[0]) if resp.data else None

    def list_entries(self, user_id: str, categories: Optional[Iterable[str]] = None) -> List[Entry]:
        try:
            query = self._table().select('*').eq('user_id', user_id)
            if categories is not None:
                query = query.in_('category', list(categories))
            resp = query.order('created_at', desc=True).execute()
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError('Failed to load entries') from exc
        return [Entry.from_row(row) for row in resp.data or []]

    def list_pending(self, limit: int = 50) -> List[Entry]:
        try:
            resp = (
                self._table()
                .select('*')
                .is_('feedback', 'null')
                .order('created_at', desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError('Failed to load entries') from exc
        return [Entry.from_row(row) for row in resp.data or []]


class SqliteEntryStore:
    def __init__(self, database_path: str):
        self.database_path = database_path

    def connect(self):
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """Create the entries table if it does not exist yet."""
        conn = self.connect()
        c = conn.cursor()
        c.execute('''
            CREATE TABLE IF NOT EXISTS entries (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                category TEXT NOT NULL,
                entry_text TEXT NOT NULL,
                feedback TEXT,
                created_at TEXT NOT NULL
            )
        ''')
        c.execute('CREATE INDEX IF NOT EXISTS idx_entries_user_created ON entries (user_id, created_at)')
        conn.commit()
        conn.close()

    def _fetch(self, sql, params=()) -> List[Entry]:
        try:
            conn = self.connect()
            try:
                rows = conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError('Failed to load entries') from exc
        return [Entry.from_row(dict(row)) for row in rows]

    def insert_entry(self, user_id: str, category: str, entry_text: str) -> Entry:
        entry = Entry(
            id=str(uuid.uuid4()),
            user_id=user_id,
            category=category,
            entry_text=entry_text,
            feedback=None,
            created_at=datetime.now(timezone.utc).isoformat(timespec='microseconds'),
        )
        try:
            conn = self.connect()
            try:
                conn.execute(
                    '''
                    INSERT INTO entries (id, user_id, category, entry_text, feedback, created_at)
                    VALUES (?, ?, ?, ?, NULL, ?)
                    ''',
                    (entry.id, entry.user_id, entry.category, entry.entry_text, entry.created_at),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError('Failed to save entry') from exc
        return entry

    def set_feedback(self, entry_id: str, feedback: str) -> bool:
        try:
            conn = self.connect()
            try:
                cur = conn.execute(
                    'UPDATE entries SET feedback = ? WHERE id = ? AND feedback IS NULL',
                    (feedback, entry_id),
                )
                conn.commit()
                changed = cur.rowcount
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError('Failed to update entry feedback') from exc
        return changed == 1

    def get_entry(self, entry_id: str) -> Optional[Entry]:
        rows = self._fetch('SELECT * FROM entries WHERE id = ?', (entry_id,))
        return rows[0] if rows else None

    def list_entries(self, user_id: str, categories: Optional[Iterable[str]] = None) -> List[Entry]:
        if categories is None:
            return self._fetch(
                'SELECT * FROM entries WHERE user_id = ? ORDER BY created_at DESC, rowid DESC',
                (user_id,),
            )
        categories = list(categories)
        if not categories:
            return []
        placeholders = ', '.join('?' for _ in categories)
        return self._fetch(
            f'SELECT * FROM entries WHERE user_id = ? AND category IN ({placeholders}) '
            'ORDER BY created_at DESC, rowid DESC',
            (user_id, *categories),
        )

    def list_pending(self, limit: int = 50) -> List[Entry]:
        return self._fetch(
            'SELECT * FROM entries WHERE feedback IS NULL ORDER BY created_at DESC, rowid DESC LIMIT ?',
            (limit,),
        )


def build_store(settings):
    """Create the entry store selected by ``settings.store_backend``."""
    logger.info('Using %s entry store', settings.store_backend)
    if settings.store_backend == 'sqlite':
        store = SqliteEntryStore(settings.database_path)
        store.init_db()
        return store
    if settings.store_backend == 'supabase':
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ConfigurationError('Missing environment variables')
        return SupabaseEntryStore(settings.supabase_url, settings.supabase_service_key)
    raise ConfigurationError(f'Unknown store backend: {settings.store_backend}')
