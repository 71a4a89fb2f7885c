#!/usr/bin/env python3
"""Operator CLI for inspecting entries and retrying feedback enrichment."""

from __future__ import annotations

import argparse
import json

from config import FeedbackSettings
from services.analytics import summarize
from services.entries import DOMAIN_CATEGORIES
from services.entry_store import SqliteEntryStore
from services.errors import FeedbackError
from services.feedback_service import FeedbackService


def build_service():
    return FeedbackService(FeedbackSettings.from_env())


def init_db(service):
    if service.settings.store_backend != 'sqlite':
        print("skipped: STORE_BACKEND is not sqlite")
        return
    SqliteEntryStore(service.settings.database_path).init_db()
    print(f"initialized={service.settings.database_path}")


def list_entries(service, user_id: str, domain: str | None):
    categories = DOMAIN_CATEGORIES[domain] if domain else None
    for entry in service.store.list_entries(user_id, categories):
        status = 'enriched' if entry.feedback else 'pending'
        print(f"{entry.created_at} {entry.id} {entry.category:<10} {status:<8} {entry.entry_text[:60]}")


def show_stats(service, user_id: str):
    print(json.dumps(summarize(service.store.list_entries(user_id)), indent=2))


def retry_feedback(service, entry_id: str | None, limit: int):
    if entry_id:
        entry_ids = [entry_id]
    else:
        entry_ids = [e.id for e in service.store.list_pending(limit)]

    updated = failed = 0
    for eid in entry_ids:
        try:
            entry = service.retry_enrichment(eid)
        except FeedbackError as exc:
            failed += 1
            print(f"failed {eid}: {exc}")
            continue
        if entry is None:
            print(f"entry_not_found {eid}")
        elif entry.feedback:
            updated += 1
    print(f"updated_rows={updated} failed={failed}")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Sustainability Tracker admin utility')
    sub = parser.add_subparsers(dest='cmd', required=True)

    sub.add_parser('init-db')

    p1 = sub.add_parser('list-entries')
    p1.add_argument('--user-id', required=True)
    p1.add_argument('--domain', choices=sorted(DOMAIN_CATEGORIES))

    p2 = sub.add_parser('stats')
    p2.add_argument('--user-id', required=True)

    p3 = sub.add_parser('retry-feedback')
    p3.add_argument('--entry-id')
    p3.add_argument('--limit', type=int, default=50)

    args = parser.parse_args(argv)
    service = build_service()

    if args.cmd == 'init-db':
        init_db(service)
    elif args.cmd == 'list-entries':
        list_entries(service, args.user_id, args.domain)
    elif args.cmd == 'stats':
        show_stats(service, args.user_id)
    elif args.cmd == 'retry-feedback':
        retry_feedback(service, args.entry_id, args.limit)


if __name__ == '__main__':
    main()
