"""Monthly income/expense aggregation.

Turns a categorized transaction stream from the budgeting service into an
ordered series of :class:`MonthlyBucket` values.  Everything stays in
integer cents; the runway calculator is the first place where division
(and therefore floats) happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .buckets import BUCKET_KEYS, DEFAULT_POLICY, BucketPolicy, empty_buckets
from .money import major_to_cents, milliunits_to_cents

logger = logging.getLogger(__name__)

SKIPPED_PAYEES = {'Reconciliation Balance Adjustment', 'Starting Balance'}
DEFAULT_HISTORY_MONTHS = 12

DateLike = Union[date, datetime, str, pd.Timestamp]


@dataclass(frozen=True)
class MonthlyBucket:
    """Income and expenses for one calendar month, in cents."""

    month_key: str
    month_name: str
    income: int = 0
    expenses: int = 0
    per_bucket_expenses: Mapping[str, int] = field(default_factory=empty_buckets)

    @property
    def net(self) -> int:
        return self.income - self.expenses

    @property
    def has_activity(self) -> bool:
        return self.income > 0 or self.expenses > 0

    @classmethod
    def from_breakdown(
        cls,
        month_key: str,
        per_bucket_expenses: Optional[Mapping[str, int]] = None,
        income: int = 0,
    ) -> 'MonthlyBucket':
        """Build a bucket whose ``expenses`` is the sum of its breakdown."""
        breakdown = empty_buckets()
        for key, amount in (per_bucket_expenses or {}).items():
            if key not in breakdown:
                raise ValueError(f"Unknown bucket {key!r}")
            breakdown[key] = int(amount)
        period = pd.Period(month_key, freq='M')
        return cls(
            month_key=str(period),
            month_name=period.strftime('%b %Y'),
            income=int(income),
            expenses=sum(breakdown.values()),
            per_bucket_expenses=breakdown,
        )


def _is_internal_transfer(txn: Mapping[str, Any], investment_account_ids: set) -> bool:
    transfer_id = txn.get('transfer_account_id')
    if not transfer_id or transfer_id == 'null':
        return False
    # Moving money into a tracking/investment account is spending for runway purposes
    return transfer_id not in investment_account_ids


def _flatten(transactions: Iterable[Mapping[str, Any]]) -> Iterator[Mapping[str, Any]]:
    """Yield plain transactions, expanding splits into their subtransactions."""
    for txn in transactions:
        if not isinstance(txn, Mapping):
            logger.warning("Skipping transaction record that is not a mapping: %r", txn)
            continue
        subtransactions = txn.get('subtransactions') or []
        if not subtransactions:
            yield txn
            continue
        for sub in subtransactions:
            yield {
                **sub,
                'date': txn.get('date'),
                'account_id': txn.get('account_id'),
                'payee_name': sub.get('payee_name') or txn.get('payee_name'),
                'category_name': sub.get('category_name') or txn.get('category_name'),
                'category_group_name': sub.get('category_group_name') or txn.get('category_group_name'),
                'transfer_account_id': sub.get('transfer_account_id') or txn.get('transfer_account_id'),
            }


def _month_window(first: Optional[pd.Period], now_period: pd.Period, history_months: int) -> pd.PeriodIndex:
    start = now_period - history_months
    if first is not None and first < start:
        start = first
    return pd.period_range(start=start, end=now_period, freq='M')


def aggregate_monthly(
    transactions: Iterable[Mapping[str, Any]],
    now: DateLike,
    policy: Optional[BucketPolicy] = None,
    *,
    investment_account_ids: Iterable[str] = (),
    include_bucket: Optional[Callable[[str], bool]] = None,
    history_months: int = DEFAULT_HISTORY_MONTHS,
    amounts_in_milliunits: bool = True,
) -> List[MonthlyBucket]:
    """Aggregate transactions into an ascending monthly series.

    The series runs from the earlier of the first transaction month and
    ``history_months`` before ``now`` through the month containing ``now``;
    months without activity are zero-filled.  Positive amounts are income,
    negative amounts are expenses attributed to ``policy.bucket_of``.

    Args:
        transactions: Budgeting-service transaction records.
        now: Reference date; transactions after its month are ignored.
        policy: Category -> bucket table.  Defaults to the group-name table.
        investment_account_ids: Tracking accounts.  Their own transactions
            are skipped, transfers into them are kept as spending.
        include_bucket: Optional filter; expenses of rejected buckets are
            dropped from both ``expenses`` and ``per_bucket_expenses``.
        history_months: Minimum number of completed months to cover.
        amounts_in_milliunits: ``False`` when amounts are major units.
    """
    policy = policy or DEFAULT_POLICY
    excluded = set(investment_account_ids)
    to_cents = milliunits_to_cents if amounts_in_milliunits else major_to_cents
    now_period = pd.Period(pd.Timestamp(now), freq='M')

    rows: List[Dict[str, Any]] = []
    for txn in _flatten(transactions):
        if txn.get('account_id') in excluded:
            continue
        if txn.get('payee_name') in SKIPPED_PAYEES:
            continue
        if _is_internal_transfer(txn, excluded):
            continue
        when = pd.to_datetime(txn.get('date'), errors='coerce')
        if pd.isna(when):
            logger.warning("Skipping transaction %s with unusable date %r", txn.get('id'), txn.get('date'))
            continue
        try:
            amount = to_cents(txn.get('amount'))
        except ValueError:
            logger.warning("Skipping transaction %s with unusable amount %r", txn.get('id'), txn.get('amount'))
            continue
        if amount == 0:
            continue
        period = pd.Period(when, freq='M')
        if period > now_period:
            continue
        bucket = policy.bucket_of(txn.get('category_name'), txn.get('category_group_name'))
        if amount < 0 and include_bucket is not None and not include_bucket(bucket):
            continue
        rows.append({'Period': period, 'Amount': amount, 'Bucket': bucket})

    df = pd.DataFrame(rows, columns=['Period', 'Amount', 'Bucket'])
    first_period = df['Period'].min() if not df.empty else None
    months = _month_window(first_period, now_period, history_months)

    income = pd.Series(0, index=months, dtype='int64')
    expenses = pd.DataFrame(0, index=months, columns=list(BUCKET_KEYS), dtype='int64')
    if not df.empty:
        df['Amount'] = df['Amount'].astype('int64')
        df['Income'] = np.where(df['Amount'] > 0, df['Amount'], 0)
        df['Expense'] = np.where(df['Amount'] < 0, -df['Amount'], 0)
        income = df.groupby('Period')['Income'].sum().reindex(months, fill_value=0)
        spent = df[df['Expense'] > 0]
        if not spent.empty:
            expenses = (
                spent.groupby(['Period', 'Bucket'])['Expense'].sum()
                .unstack('Bucket', fill_value=0)
                .reindex(index=months, columns=list(BUCKET_KEYS), fill_value=0)
            )

    series: List[MonthlyBucket] = []
    for period in months:
        breakdown = {key: int(expenses.at[period, key]) for key in BUCKET_KEYS}
        series.append(
            MonthlyBucket(
                month_key=str(period),
                month_name=period.strftime('%b %Y'),
                income=int(income.loc[period]),
                expenses=sum(breakdown.values()),
                per_bucket_expenses=breakdown,
            )
        )
    return series


def monthly_frame(series: Iterable[MonthlyBucket]) -> pd.DataFrame:
    """Tabular view of a monthly series, one row per month."""
    rows = []
    for bucket in series:
        row = {
            'Month': bucket.month_key,
            'Month Name': bucket.month_name,
            'Income': bucket.income,
            'Expenses': bucket.expenses,
            'Net': bucket.net,
        }
        row.update({key: bucket.per_bucket_expenses.get(key, 0) for key in BUCKET_KEYS})
        rows.append(row)
    columns = ['Month', 'Month Name', 'Income', 'Expenses', 'Net', *BUCKET_KEYS]
    return pd.DataFrame(rows, columns=columns)
