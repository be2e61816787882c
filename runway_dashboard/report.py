"""End-to-end runway computation from budgeting-service exports.

Ties the normalizers, the scenario adapter and the calculator together so
the Streamlit page and the command-line report run the same pipeline.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from . import config
from .accounts import INVESTMENT, Account, account_totals, normalize_accounts
from .buckets import BUCKET_KEYS, BUCKET_LABELS, BucketPolicy
from .formatting import format_currency, format_runway
from .monthly import MonthlyBucket, aggregate_monthly
from .runway import RunwayResult, calculate_runway
from .scenario import DEFAULT_SCENARIO, Scenario
from .scenario_adapter import average_bucket_expenses, runway_options_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunwayView:
    accounts: List[Account]
    monthly: List[MonthlyBucket]
    result: RunwayResult
    bucket_averages: Dict[str, float]
    scenario: Scenario


def _unwrap(value: Any, key: str) -> List[Mapping[str, Any]]:
    # Budgeting-service API responses wrap lists as {"data": {"<key>": [...]}}
    if isinstance(value, Mapping) and isinstance(value.get('data'), Mapping):
        value = value['data'].get(key)
    return list(value or [])


def load_export(path: Union[str, Path]) -> Dict[str, List[Mapping[str, Any]]]:
    """Read an export file with ``accounts``, ``manual_accounts`` and ``transactions``."""
    with Path(path).open('r', encoding='utf-8') as handle:
        data = json.load(handle)
    return parse_export(data)


def parse_export(data: Any) -> Dict[str, List[Mapping[str, Any]]]:
    if not isinstance(data, Mapping):
        raise ValueError("Export must be a JSON object")
    return {
        'accounts': _unwrap(data.get('accounts'), 'accounts'),
        'manual_accounts': _unwrap(data.get('manual_accounts'), 'manual_accounts'),
        'transactions': _unwrap(data.get('transactions'), 'transactions'),
    }


def build_runway(
    export: Mapping[str, List[Mapping[str, Any]]],
    now: Union[date, datetime],
    scenario: Optional[Scenario] = None,
    period_months: int = config.DEFAULT_PERIOD_MONTHS,
    policy: Optional[BucketPolicy] = None,
    settings: Optional[config.RunwaySettings] = None,
) -> RunwayView:
    scenario = scenario or DEFAULT_SCENARIO
    accounts = normalize_accounts(export.get('accounts'), export.get('manual_accounts'))
    investment_ids = {account.id for account in accounts if account.normalized_type == INVESTMENT}
    monthly = aggregate_monthly(
        export.get('transactions') or [],
        now,
        policy,
        investment_account_ids=investment_ids,
    )
    options = runway_options_for(scenario, monthly, period_months)
    result = calculate_runway(accounts, monthly, period_months, now=now, options=options, settings=settings)
    logger.info(
        "Runway computed from %d accounts and %d months: health=%s",
        len(accounts), len(monthly), result.runway_health,
    )
    return RunwayView(
        accounts=accounts,
        monthly=monthly,
        result=result,
        bucket_averages=average_bucket_expenses(monthly, period_months),
        scenario=scenario,
    )


def format_report(view: RunwayView) -> str:
    """Plain-text summary of a runway view."""
    result = view.result
    totals = account_totals(view.accounts)
    pure = format_runway(result.pure_runway_months)
    net = format_runway(result.net_runway_months)
    lines = [
        f"Cash reserves:      {format_currency(result.cash_reserves)}",
        f"  checking:         {format_currency(result.cash_breakdown.checking)}",
        f"  savings:          {format_currency(result.cash_breakdown.savings)}",
        f"  manual cash:      {format_currency(result.cash_breakdown.manual_cash)}",
        f"Net worth:          {format_currency(totals['net_worth'])}",
        "",
        f"Avg monthly income:   {format_currency(result.avg_monthly_income)}"
        + (" (scenario)" if result.is_using_scenario_income else ""),
        f"Avg monthly expenses: {format_currency(result.avg_monthly_expenses)}"
        + (" (scenario)" if result.is_using_scenario_expenses else ""),
        f"Avg monthly net:      {format_currency(result.avg_monthly_net)}",
        "",
        f"Pure runway: {pure['value']} {pure['label']}",
        f"Net runway:  {net['value']} {net['label']}",
        f"Health:      {result.runway_health}",
        "",
        "Spending by bucket (monthly average):",
    ]
    for key in BUCKET_KEYS:
        marker = '' if view.scenario.includes_bucket(key) else ' (excluded)'
        lines.append(f"  {BUCKET_LABELS[key]:<12} {format_currency(view.bucket_averages.get(key, 0))}{marker}")
    lines.append("")
    lines.append("Projection:")
    for point in result.projection:
        lines.append(
            f"  {point.month}  pure {format_currency(point.pure_balance):>14}  net {format_currency(point.net_balance):>14}"
        )
    return "\n".join(lines)
