"""Income scenario model.

A scenario is a user-authored "what if": projected annual salary, bonus
and stock income plus a switch per spending bucket saying whether that
bucket's historical spending should count.  Values are immutable; the
:class:`~runway_dashboard.scenario_store.ScenarioStore` swaps whole
scenarios when the user edits one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping

from .buckets import BUCKET_KEYS
from .money import round_half_up

logger = logging.getLogger(__name__)

BONUS_FREQUENCIES = ('annual', 'semiannual', 'quarterly')
DEFAULT_BONUS_FREQUENCY = 'annual'


def default_expense_buckets() -> Mapping[str, bool]:
    return MappingProxyType({key: True for key in BUCKET_KEYS})


def clamp_amount(value: Any) -> int:
    """Coerce a user-entered amount to non-negative integer cents."""
    try:
        amount = round_half_up(value)
    except ValueError:
        return 0
    return max(0, amount)


@dataclass(frozen=True)
class Scenario:
    """Projected income and bucket filters.  Money is annual cents."""

    enabled: bool = False
    salary_annual: int = 0
    bonus_annual: int = 0
    bonus_frequency: str = DEFAULT_BONUS_FREQUENCY
    stock_annual_value: int = 0
    expense_buckets: Mapping[str, bool] = field(default_factory=default_expense_buckets)

    @property
    def monthly_income(self) -> float:
        return (self.salary_annual + self.bonus_annual + self.stock_annual_value) / 12

    @property
    def has_values(self) -> bool:
        return self.salary_annual > 0 or self.bonus_annual > 0 or self.stock_annual_value > 0

    @property
    def has_expense_filters(self) -> bool:
        return any(included is False for included in self.expense_buckets.values())

    def includes_bucket(self, key: str) -> bool:
        return self.expense_buckets.get(key, True)

    def with_buckets(self, buckets: Mapping[str, bool]) -> 'Scenario':
        merged = {key: bool(buckets.get(key, True)) for key in BUCKET_KEYS}
        return replace(self, expense_buckets=MappingProxyType(merged))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the nested document shape shared with other clients."""
        return {
            'enabled': self.enabled,
            'salary': {'annual': self.salary_annual},
            'bonus': {'annual': self.bonus_annual, 'frequency': self.bonus_frequency},
            'stock': {'annualValue': self.stock_annual_value},
            'expenseBuckets': {key: self.includes_bucket(key) for key in BUCKET_KEYS},
        }


DEFAULT_SCENARIO = Scenario()


def _nested(data: Mapping[str, Any], section: str, key: str) -> Any:
    value = data.get(section)
    if isinstance(value, Mapping):
        return value.get(key)
    return None


def scenario_from_dict(data: Any) -> Scenario:
    """Merge a stored scenario with the defaults, field by field.

    Anything unusable falls back to its default: negative or non-numeric
    money becomes 0, an unknown bonus frequency becomes ``annual`` and
    bucket flags with unknown keys are dropped.
    """
    if not isinstance(data, Mapping):
        if data is not None:
            logger.warning("Ignoring stored scenario that is not an object: %r", data)
        return DEFAULT_SCENARIO

    frequency = _nested(data, 'bonus', 'frequency')
    if frequency not in BONUS_FREQUENCIES:
        if frequency is not None:
            logger.warning("Unknown bonus frequency %r, using %s", frequency, DEFAULT_BONUS_FREQUENCY)
        frequency = DEFAULT_BONUS_FREQUENCY

    buckets: Dict[str, bool] = {key: True for key in BUCKET_KEYS}
    stored_buckets = data.get('expenseBuckets')
    if isinstance(stored_buckets, Mapping):
        for key, included in stored_buckets.items():
            if key not in buckets:
                logger.warning("Dropping unknown expense bucket %r from stored scenario", key)
                continue
            buckets[key] = included is not False

    return Scenario(
        enabled=data.get('enabled') is True,
        salary_annual=clamp_amount(_nested(data, 'salary', 'annual')),
        bonus_annual=clamp_amount(_nested(data, 'bonus', 'annual')),
        bonus_frequency=frequency,
        stock_annual_value=clamp_amount(_nested(data, 'stock', 'annualValue')),
        expense_buckets=MappingProxyType(buckets),
    )
