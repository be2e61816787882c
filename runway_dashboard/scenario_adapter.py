"""Glue between the stored scenario and the runway engine.

The calculator knows nothing about buckets or scenarios; it only accepts
optional income/expense overrides.  This module is the one place where
bucket filters turn into numbers.
"""

from __future__ import annotations

from typing import Callable, Dict, Sequence

from .buckets import BUCKET_KEYS
from .monthly import MonthlyBucket
from .runway import RunwayOptions, active_months, recent_window
from .scenario import Scenario


def bucket_filter(scenario: Scenario) -> Callable[[str], bool]:
    """Predicate for the monthly aggregator's ``include_bucket`` hook.

    The page and the report keep the unfiltered series, since the
    historical averages must stay unfiltered, and apply bucket filters
    through :func:`filtered_monthly_expenses`.  Pass this to
    :func:`~runway_dashboard.monthly.aggregate_monthly` to get a series
    that already leaves the excluded buckets out.
    """
    return scenario.includes_bucket


def filtered_monthly_expenses(monthly: Sequence[MonthlyBucket], scenario: Scenario, period_months: int) -> float:
    """Average monthly spending over the window counting only included buckets.

    Uses the same active months (and the same divisor) as the historical
    averages so the filtered figure is directly comparable to them.
    """
    active = active_months(recent_window(monthly, period_months))
    months = max(len(active), 1)
    total = 0
    for bucket in active:
        total += sum(
            amount
            for key, amount in bucket.per_bucket_expenses.items()
            if scenario.includes_bucket(key)
        )
    return total / months


def average_bucket_expenses(monthly: Sequence[MonthlyBucket], period_months: int) -> Dict[str, float]:
    """Per-bucket monthly averages over the window, shown beside the toggles."""
    active = active_months(recent_window(monthly, period_months))
    months = max(len(active), 1)
    return {
        key: sum(bucket.per_bucket_expenses.get(key, 0) for bucket in active) / months
        for key in BUCKET_KEYS
    }


def runway_options_for(scenario: Scenario, monthly: Sequence[MonthlyBucket], period_months: int) -> RunwayOptions:
    """Translate the scenario into calculator overrides.

    An override is only produced when the scenario is enabled and actually
    says something about that side of the ledger; otherwise the calculator
    falls back to the historical average.
    """
    if not scenario.enabled:
        return RunwayOptions()
    income = scenario.monthly_income if scenario.has_values else None
    expenses = None
    if scenario.has_expense_filters:
        expenses = filtered_monthly_expenses(monthly, scenario, period_months)
    return RunwayOptions(scenario_income=income, scenario_expenses=expenses)
