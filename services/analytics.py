"""
Entry filtering, search and aggregate counts.
All of it works on lists already fetched from the entry store.
"""

import csv
from io import StringIO

from services.entries import DOMAIN_CATEGORIES

EXPORT_COLUMNS = ['id', 'created_at', 'domain', 'category', 'entry_text', 'feedback']


def filter_entries(entries, domain=None):
    """Keep entries of one domain; ``None`` or ``'all'`` keeps everything."""
    if domain in (None, '', 'all'):
        return list(entries)
    return [e for e in entries if e.domain == domain]


def search_entries(entries, term):
    """Case-insensitive match against title, entry text and category."""
    query = (term or '').strip().lower()
    if not query:
        return list(entries)
    return [
        e for e in entries
        if query in e.title.lower()
        or query in e.entry_text.lower()
        or query in e.category.lower()
    ]


def diversion_rate(entries):
    """Share of waste entries that did not go to landfill, as a percentage."""
    waste = [e for e in entries if e.domain == 'waste']
    if not waste:
        return 0.0
    diverted = sum(1 for e in waste if e.category != 'landfill')
    return round(diverted * 100.0 / len(waste), 1)


def summarize(entries):
    entries = list(entries)
    by_domain = {domain: 0 for domain in DOMAIN_CATEGORIES}
    by_category = {}
    for entry in entries:
        if entry.domain in by_domain:
            by_domain[entry.domain] += 1
        by_category[entry.category] = by_category.get(entry.category, 0) + 1

    return {
        'total_entries': len(entries),
        'by_domain': by_domain,
        'by_category': by_category,
        'with_feedback': sum(1 for e in entries if e.feedback),
        'pending_feedback': sum(1 for e in entries if not e.feedback),
        'waste_diversion_rate': diversion_rate(entries),
    }


def entries_to_csv(entries):
    csv_buffer = StringIO()
    writer = csv.writer(csv_buffer)
    writer.writerow(EXPORT_COLUMNS)
    for e in entries:
        writer.writerow([e.id, e.created_at, e.domain, e.category, e.entry_text, e.feedback or ''])
    return csv_buffer.getvalue()
