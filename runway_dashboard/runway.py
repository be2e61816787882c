"""Cash runway calculation.

:func:`calculate_runway` is a pure function of normalized accounts, a
monthly income/expense series, the size of the averaging window and an
injected ``now``.  It answers two questions:

* *pure runway* - how many months liquid cash lasts with no income at all
  (the worst case, which also drives the health classification), and
* *net runway* - how many months it lasts when average income keeps
  arriving; infinite whenever income covers expenses.

Scenario planning plugs in through :class:`RunwayOptions`, which can
replace the historical income and/or expense averages.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple, Union

import pandas as pd

from . import config
from .accounts import CASH, CHECKING, CREDIT, INVESTMENT, LOAN, SAVINGS, SOURCE_MANUAL, Account
from .monthly import MonthlyBucket

logger = logging.getLogger(__name__)

CRITICAL = 'critical'
CAUTION = 'caution'
HEALTHY = 'healthy'
EXCELLENT = 'excellent'

# Upper bounds (exclusive) in months of pure runway
HEALTH_THRESHOLDS = ((3, CRITICAL), (6, CAUTION), (12, HEALTHY))

NON_CASH_MANUAL_TYPES = {INVESTMENT, CREDIT, LOAN}


@dataclass(frozen=True)
class RunwayOptions:
    """Monthly overrides for the historical averages, in cents."""

    scenario_income: Optional[float] = None
    scenario_expenses: Optional[float] = None


@dataclass(frozen=True)
class CashBreakdown:
    checking: int = 0
    savings: int = 0
    manual_cash: int = 0

    @property
    def total(self) -> int:
        return self.checking + self.savings + self.manual_cash


@dataclass(frozen=True)
class ProjectionPoint:
    month: str
    pure_balance: float
    net_balance: float


@dataclass(frozen=True)
class HistoricalMonth:
    month: str
    income: int
    expenses: int


def _finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class RunwayResult:
    cash_reserves: int
    cash_breakdown: CashBreakdown
    avg_monthly_income: float
    avg_monthly_expenses: float
    avg_monthly_net: float
    historical_avg_monthly_income: float
    historical_avg_monthly_expenses: float
    pure_runway_months: float
    net_runway_months: float
    projection: Tuple[ProjectionPoint, ...] = field(default_factory=tuple)
    historical_spending: Tuple[HistoricalMonth, ...] = field(default_factory=tuple)
    runway_health: str = CRITICAL
    is_using_scenario_income: bool = False
    is_using_scenario_expenses: bool = False

    def projection_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(p.month, p.pure_balance, p.net_balance) for p in self.projection],
            columns=['Month', 'Pure Balance', 'Net Balance'],
        )

    def history_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(h.month, h.income, h.expenses) for h in self.historical_spending],
            columns=['Month', 'Income', 'Expenses'],
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view using the dashboard's camelCase field names.

        Unbounded runway is reported as ``None`` (JSON ``null``).
        """
        return {
            'cashReserves': self.cash_reserves,
            'cashBreakdown': {
                'checking': self.cash_breakdown.checking,
                'savings': self.cash_breakdown.savings,
                'manualCash': self.cash_breakdown.manual_cash,
            },
            'avgMonthlyIncome': self.avg_monthly_income,
            'avgMonthlyExpenses': self.avg_monthly_expenses,
            'avgMonthlyNet': self.avg_monthly_net,
            'historicalAvgMonthlyIncome': self.historical_avg_monthly_income,
            'historicalAvgMonthlyExpenses': self.historical_avg_monthly_expenses,
            'pureRunwayMonths': _finite_or_none(self.pure_runway_months),
            'netRunwayMonths': _finite_or_none(self.net_runway_months),
            'projection': [
                {'month': p.month, 'pureBalance': p.pure_balance, 'netBalance': p.net_balance}
                for p in self.projection
            ],
            'historicalSpending': [
                {'month': h.month, 'income': h.income, 'expenses': h.expenses}
                for h in self.historical_spending
            ],
            'runwayHealth': self.runway_health,
            'isUsingScenarioIncome': self.is_using_scenario_income,
            'isUsingScenarioExpenses': self.is_using_scenario_expenses,
        }


def cash_breakdown(accounts: Iterable[Account]) -> CashBreakdown:
    """Sum liquid cash by kind, skipping closed accounts.

    Investments are not liquid for runway purposes and credit/loan balances
    are liabilities, so neither counts.  Manually tracked accounts count as
    cash unless they are one of those kinds.
    """
    checking = savings = manual_cash = 0
    for account in accounts:
        if account.is_closed:
            continue
        kind = account.normalized_type
        if kind == CHECKING:
            checking += account.balance
        elif kind == SAVINGS:
            savings += account.balance
        elif kind == CASH or (account.source == SOURCE_MANUAL and kind not in NON_CASH_MANUAL_TYPES):
            manual_cash += account.balance
    return CashBreakdown(checking=checking, savings=savings, manual_cash=manual_cash)


def resolve_period(period_months: Any, settings: config.RunwaySettings = config.DEFAULT_SETTINGS) -> int:
    if period_months in config.PERIOD_CHOICES:
        return int(period_months)
    logger.warning(
        "Unsupported averaging period %r, using %s months", period_months, settings.period_months
    )
    return settings.period_months


def recent_window(monthly: Sequence[MonthlyBucket], period_months: int) -> list:
    """The most recent ``period_months`` buckets, oldest first."""
    ordered = sorted(monthly, key=lambda bucket: bucket.month_key)
    return ordered[-period_months:] if period_months > 0 else []


def active_months(window: Iterable[MonthlyBucket]) -> list:
    """Months in the window that saw any income or spending."""
    return [bucket for bucket in window if bucket.has_activity]


def historical_averages(monthly: Sequence[MonthlyBucket], period_months: int) -> Tuple[float, float]:
    """Average monthly (income, expenses) over the active months of the window."""
    active = active_months(recent_window(monthly, period_months))
    months = max(len(active), 1)
    return (
        sum(bucket.income for bucket in active) / months,
        sum(bucket.expenses for bucket in active) / months,
    )


def classify_health(pure_runway_months: float) -> str:
    for upper_bound, label in HEALTH_THRESHOLDS:
        if pure_runway_months < upper_bound:
            return label
    return EXCELLENT


def projection_length(pure_runway_months: float, cap_months: int) -> int:
    horizon = max(pure_runway_months, config.MIN_PROJECTION_MONTHS)
    if math.isinf(horizon):
        return cap_months
    return min(math.ceil(horizon) + config.PROJECTION_PADDING_MONTHS, cap_months)


def _month_label(now: Union[date, datetime], offset: int) -> str:
    return (pd.Period(pd.Timestamp(now), freq='M') + offset).strftime('%b %y')


def build_projection(
    cash_reserves: int,
    avg_monthly_expenses: float,
    avg_monthly_net: float,
    months: int,
    now: Union[date, datetime],
    growth_cap_multiplier: float,
) -> Tuple[ProjectionPoint, ...]:
    """Month-by-month balances for ``i = 0..months`` under both burn models.

    When the net is non-negative the net balance is held at
    ``growth_cap_multiplier`` times today's cash.  That ceiling only keeps
    the chart's y-axis bounded; it is not a statement about growth.
    """
    ceiling = growth_cap_multiplier * max(cash_reserves, 0)
    points = []
    for i in range(months + 1):
        pure_balance = max(0.0, cash_reserves - avg_monthly_expenses * i)
        if avg_monthly_net >= 0:
            net_balance = min(cash_reserves + avg_monthly_net * i, ceiling)
        else:
            net_balance = max(0.0, cash_reserves - abs(avg_monthly_net) * i)
        points.append(ProjectionPoint(month=_month_label(now, i), pure_balance=pure_balance, net_balance=net_balance))
    return tuple(points)


def empty_result(now: Union[date, datetime]) -> RunwayResult:
    """All-zero result for a user with no accounts: ``critical``, no history."""
    projection = tuple(
        ProjectionPoint(month=_month_label(now, i), pure_balance=0.0, net_balance=0.0)
        for i in range(config.MIN_PROJECTION_MONTHS + 1)
    )
    return RunwayResult(
        cash_reserves=0,
        cash_breakdown=CashBreakdown(),
        avg_monthly_income=0.0,
        avg_monthly_expenses=0.0,
        avg_monthly_net=0.0,
        historical_avg_monthly_income=0.0,
        historical_avg_monthly_expenses=0.0,
        pure_runway_months=math.inf,
        net_runway_months=math.inf,
        projection=projection,
        runway_health=CRITICAL,
    )


def calculate_runway(
    accounts: Sequence[Account],
    monthly: Sequence[MonthlyBucket],
    period_months: int = config.DEFAULT_PERIOD_MONTHS,
    *,
    now: Union[date, datetime],
    options: Optional[RunwayOptions] = None,
    settings: Optional[config.RunwaySettings] = None,
) -> RunwayResult:
    """Compute cash reserves, averages, runway and a projection.

    Never raises for well-typed input: an empty account list yields
    :func:`empty_result` and an empty series yields zero averages with
    infinite pure runway.
    """
    settings = settings or config.DEFAULT_SETTINGS
    options = options or RunwayOptions()
    if not accounts:
        return empty_result(now)
    period_months = resolve_period(period_months, settings)

    breakdown = cash_breakdown(accounts)
    cash_reserves = breakdown.total

    window = recent_window(monthly, period_months)
    hist_income, hist_expenses = historical_averages(monthly, period_months)

    using_income = options.scenario_income is not None
    using_expenses = options.scenario_expenses is not None
    avg_income = max(0.0, float(options.scenario_income)) if using_income else hist_income
    avg_expenses = max(0.0, float(options.scenario_expenses)) if using_expenses else hist_expenses
    avg_net = avg_income - avg_expenses

    liquid = max(cash_reserves, 0)
    pure_runway = liquid / avg_expenses if avg_expenses > 0 else math.inf
    net_runway = math.inf if avg_net >= 0 else liquid / abs(avg_net)

    months = projection_length(pure_runway, settings.projection_cap_months)
    health = classify_health(pure_runway)

    projection = build_projection(
        cash_reserves, avg_expenses, avg_net, months, now, settings.growth_cap_multiplier
    )
    history = tuple(
        HistoricalMonth(month=bucket.month_name, income=bucket.income, expenses=bucket.expenses)
        for bucket in window
    )

    return RunwayResult(
        cash_reserves=cash_reserves,
        cash_breakdown=breakdown,
        avg_monthly_income=avg_income,
        avg_monthly_expenses=avg_expenses,
        avg_monthly_net=avg_net,
        historical_avg_monthly_income=hist_income,
        historical_avg_monthly_expenses=hist_expenses,
        pure_runway_months=pure_runway,
        net_runway_months=net_runway,
        projection=projection,
        historical_spending=history,
        runway_health=health,
        is_using_scenario_income=using_income,
        is_using_scenario_expenses=using_expenses,
    )
