"""Entry record and the fixed category/domain vocabulary."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

DOMAIN_CATEGORIES = {
    'energy': ('grid', 'solar', 'battery'),
    'water': ('domestic', 'industrial', 'irrigation'),
    'waste': ('recycling', 'composting', 'landfill'),
}

DOMAIN_TITLES = {
    'energy': 'Energy Grid Output',
    'water': 'Hydraulic System Audit',
    'waste': 'Circular Mass Balance',
}

CATEGORY_DOMAINS = {
    category: domain
    for domain, categories in DOMAIN_CATEGORIES.items()
    for category in categories
}


def domain_for(category: str) -> Optional[str]:
    return CATEGORY_DOMAINS.get((category or '').lower())


@dataclass
class Entry:
    id: str
    user_id: str
    category: str
    entry_text: str
    feedback: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def domain(self) -> Optional[str]:
        return domain_for(self.category)

    @property
    def title(self) -> str:
        return DOMAIN_TITLES.get(self.domain, '')

    @classmethod
    def from_row(cls, row: dict) -> 'Entry':
        return cls(
            id=str(row['id']),
            user_id=str(row['user_id']),
            category=row['category'],
            entry_text=row['entry_text'],
            feedback=row.get('feedback'),
            created_at=str(row['created_at']) if row.get('created_at') is not None else None,
        )

    def to_dict(self) -> dict:
        return asdict(self)
