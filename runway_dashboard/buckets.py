"""Spending buckets and the category -> bucket policy.

Expenses are partitioned into four coarse classes in the spirit of a
Conscious Spending Plan.  Which provider category lands in which bucket
is a policy decision, so it lives in :class:`BucketPolicy` and is passed
into the monthly aggregator rather than being hard-wired there.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

FIXED_COSTS = 'fixedCosts'
INVESTMENTS = 'investments'
SAVINGS = 'savings'
GUILT_FREE = 'guiltFree'

BUCKET_KEYS: Tuple[str, ...] = (FIXED_COSTS, INVESTMENTS, SAVINGS, GUILT_FREE)

BUCKET_LABELS = {
    FIXED_COSTS: 'Fixed Costs',
    INVESTMENTS: 'Investments',
    SAVINGS: 'Savings',
    GUILT_FREE: 'Guilt-Free',
}

BUCKET_DESCRIPTIONS = {
    FIXED_COSTS: 'Rent, utilities, insurance',
    INVESTMENTS: '401k, IRA, brokerage',
    SAVINGS: 'Emergency fund, goals',
    GUILT_FREE: 'Discretionary spending',
}

# Common budget group names and the bucket they belong to
DEFAULT_GROUP_BUCKETS: Dict[str, str] = {
    'fixed costs': FIXED_COSTS,
    'fixed': FIXED_COSTS,
    'bills': FIXED_COSTS,
    'monthly bills': FIXED_COSTS,
    'investments': INVESTMENTS,
    'investing': INVESTMENTS,
    'post tax investments': INVESTMENTS,
    'post-tax investments': INVESTMENTS,
    'savings': SAVINGS,
    'saving': SAVINGS,
    'savings goals': SAVINGS,
    'true expenses': GUILT_FREE,
    'guilt-free': GUILT_FREE,
    'guilt free': GUILT_FREE,
    'guilt-free spending': GUILT_FREE,
    'discretionary': GUILT_FREE,
    'fun money': GUILT_FREE,
    'spending': GUILT_FREE,
    'variable expenses': GUILT_FREE,
}

DEFAULT_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    FIXED_COSTS: (
        'rent', 'mortgage', 'utilities', 'electric', 'gas', 'water', 'internet',
        'phone', 'insurance', 'car payment', 'auto', 'transportation', 'groceries',
        'subscription', 'netflix', 'spotify', 'gym', 'membership',
        'loan', 'debt', 'payment', 'cable', 'trash', 'sewer', 'hoa',
    ),
    INVESTMENTS: (
        'investment', 'retirement', '401k', 'ira', 'roth', 'stock', 'etf',
        'mutual fund', 'brokerage', 'investing',
    ),
    SAVINGS: (
        'savings', 'emergency', 'vacation', 'travel', 'gift', 'holiday',
        'christmas', 'birthday', 'wedding', 'fund', 'goal', 'reserve',
        'house', 'down payment', 'sinking',
    ),
}


def is_bucket_key(key: object) -> bool:
    return key in BUCKET_KEYS


def empty_buckets() -> Dict[str, int]:
    return {key: 0 for key in BUCKET_KEYS}


def _normalise_name(name: Optional[str]) -> str:
    return str(name or '').strip().lower()


def _validated(table: Mapping[str, str], label: str) -> Dict[str, str]:
    cleaned: Dict[str, str] = {}
    for name, bucket in table.items():
        if not is_bucket_key(bucket):
            raise ValueError(f"Unknown bucket {bucket!r} for {label} {name!r}")
        cleaned[_normalise_name(name)] = bucket
    return cleaned


@dataclass(frozen=True)
class BucketPolicy:
    """Maps provider categories to spending buckets.

    Resolution order is exact category name, then the category's group
    name, then (optionally) keyword inference on the category name, and
    finally ``default_bucket``.  All lookups are case-insensitive.
    """

    category_buckets: Mapping[str, str] = field(default_factory=dict)
    group_buckets: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_GROUP_BUCKETS))
    default_bucket: str = GUILT_FREE
    use_keyword_fallback: bool = False

    def __post_init__(self) -> None:
        if not is_bucket_key(self.default_bucket):
            raise ValueError(f"Unknown default bucket {self.default_bucket!r}")
        # frozen dataclass: normalise tables in place via object.__setattr__
        object.__setattr__(self, 'category_buckets', _validated(self.category_buckets, 'category'))
        object.__setattr__(self, 'group_buckets', _validated(self.group_buckets, 'group'))

    def bucket_of(self, category_name: Optional[str], group_name: Optional[str] = None) -> str:
        category = _normalise_name(category_name)
        if category in self.category_buckets:
            return self.category_buckets[category]
        group = _normalise_name(group_name)
        if group in self.group_buckets:
            return self.group_buckets[group]
        if self.use_keyword_fallback and category:
            for bucket, keywords in DEFAULT_KEYWORDS.items():
                if any(keyword in category for keyword in keywords):
                    return bucket
        return self.default_bucket

    @classmethod
    def from_file(cls, path: Path) -> 'BucketPolicy':
        """Load a policy from JSON with ``categories``/``groups`` tables."""
        with Path(path).open('r', encoding='utf-8') as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Bucket policy file {path} must contain a JSON object")
        return cls(
            category_buckets=data.get('categories') or {},
            group_buckets=data.get('groups') or dict(DEFAULT_GROUP_BUCKETS),
            default_bucket=data.get('default', GUILT_FREE),
            use_keyword_fallback=bool(data.get('use_keyword_fallback', False)),
        )


DEFAULT_POLICY = BucketPolicy()
