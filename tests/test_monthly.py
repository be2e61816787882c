from datetime import date

import pytest

from runway_dashboard.buckets import BUCKET_KEYS, BucketPolicy
from runway_dashboard.monthly import MonthlyBucket, aggregate_monthly, monthly_frame

NOW = date(2024, 6, 15)

POLICY = BucketPolicy(
    category_buckets={
        'Rent': 'fixedCosts',
        'Brokerage': 'investments',
        'Emergency Fund': 'savings',
        'Dining': 'guiltFree',
    }
)


def _txn(txn_date, amount, category='Dining', **extra):
    return {'id': f'{txn_date}-{amount}', 'date': txn_date, 'amount': amount, 'category_name': category, **extra}


def _by_month(series):
    return {bucket.month_key: bucket for bucket in series}


def test_series_covers_last_twelve_months_plus_current():
    series = aggregate_monthly([], NOW, POLICY)
    assert len(series) == 13
    assert series[0].month_key == '2023-06'
    assert series[-1].month_key == '2024-06'
    assert [b.month_key for b in series] == sorted(b.month_key for b in series)
    assert all(b.income == 0 and b.expenses == 0 for b in series)


def test_series_extends_back_to_first_transaction():
    series = aggregate_monthly([_txn('2022-01-10', -10000)], NOW, POLICY)
    assert series[0].month_key == '2022-01'
    assert series[-1].month_key == '2024-06'


def test_income_and_bucketed_expenses_in_cents():
    series = aggregate_monthly(
        [
            _txn('2024-05-01', 5000000, 'Inflow: Ready to Assign'),
            _txn('2024-05-02', -2000000, 'Rent'),
            _txn('2024-05-03', -500000, 'Brokerage'),
            _txn('2024-05-04', -123450, 'Dining'),
        ],
        NOW,
        POLICY,
    )
    may = _by_month(series)['2024-05']
    assert may.income == 500000
    assert may.per_bucket_expenses == {
        'fixedCosts': 200000,
        'investments': 50000,
        'savings': 0,
        'guiltFree': 12345,
    }
    assert may.expenses == sum(may.per_bucket_expenses.values())
    assert may.month_name == 'May 2024'


def test_transfers_between_budget_accounts_are_excluded():
    series = aggregate_monthly(
        [
            _txn('2024-05-01', -100000, 'Dining', transfer_account_id='savings-1'),
            _txn('2024-05-01', 100000, None, transfer_account_id='checking-1'),
            _txn('2024-05-02', -50000, 'Brokerage', transfer_account_id='invest-1'),
        ],
        NOW,
        POLICY,
        investment_account_ids={'invest-1'},
    )
    may = _by_month(series)['2024-05']
    assert may.income == 0
    assert may.expenses == 5000
    assert may.per_bucket_expenses['investments'] == 5000


def test_investment_account_activity_and_adjustments_are_skipped():
    series = aggregate_monthly(
        [
            _txn('2024-05-01', -100000, account_id='invest-1'),
            _txn('2024-05-01', 900000, payee_name='Starting Balance'),
            _txn('2024-05-01', -5000, payee_name='Reconciliation Balance Adjustment'),
        ],
        NOW,
        POLICY,
        investment_account_ids={'invest-1'},
    )
    may = _by_month(series)['2024-05']
    assert may.income == 0
    assert may.expenses == 0


def test_split_transactions_are_expanded():
    split = {
        'id': 'split',
        'date': '2024-04-20',
        'amount': -300000,
        'category_name': 'Split (Multiple Categories)...',
        'subtransactions': [
            {'amount': -200000, 'category_name': 'Rent'},
            {'amount': -100000, 'category_name': 'Emergency Fund'},
        ],
    }
    april = _by_month(aggregate_monthly([split], NOW, POLICY))['2024-04']
    assert april.per_bucket_expenses['fixedCosts'] == 20000
    assert april.per_bucket_expenses['savings'] == 10000
    assert april.expenses == 30000


def test_future_transactions_and_bad_records_are_ignored():
    series = aggregate_monthly(
        [
            _txn('2024-07-01', -100000),
            _txn('not a date', -100000),
            _txn('2024-05-01', 'abc'),
            _txn('2024-05-02', -1000),
        ],
        NOW,
        POLICY,
    )
    assert series[-1].month_key == '2024-06'
    assert _by_month(series)['2024-05'].expenses == 100


def test_include_bucket_filter_drops_excluded_spending():
    series = aggregate_monthly(
        [_txn('2024-05-02', -2000000, 'Rent'), _txn('2024-05-04', -100000, 'Dining')],
        NOW,
        POLICY,
        include_bucket=lambda key: key != 'guiltFree',
    )
    may = _by_month(series)['2024-05']
    assert may.expenses == 200000
    assert may.per_bucket_expenses['guiltFree'] == 0


def test_major_unit_amounts():
    series = aggregate_monthly([_txn('2024-05-02', -12.34)], NOW, POLICY, amounts_in_milliunits=False)
    assert _by_month(series)['2024-05'].expenses == 1234


def test_unmapped_category_uses_group_then_default():
    policy = BucketPolicy()
    assert policy.bucket_of('Electric', 'Monthly Bills') == 'fixedCosts'
    assert policy.bucket_of('Whatever', None) == 'guiltFree'
    keyword_policy = BucketPolicy(use_keyword_fallback=True)
    assert keyword_policy.bucket_of('Roth IRA contribution') == 'investments'


def test_policy_rejects_unknown_bucket():
    with pytest.raises(ValueError):
        BucketPolicy(category_buckets={'Rent': 'housing'})


def test_policy_from_file(tmp_path):
    path = tmp_path / 'policy.json'
    path.write_text('{"categories": {"Groceries": "fixedCosts"}, "default": "savings"}', encoding='utf-8')
    policy = BucketPolicy.from_file(path)
    assert policy.bucket_of('groceries') == 'fixedCosts'
    assert policy.bucket_of('Concert') == 'savings'


def test_from_breakdown_keeps_expense_invariant():
    bucket = MonthlyBucket.from_breakdown('2024-01', {'fixedCosts': 2000, 'guiltFree': 500}, income=4000)
    assert bucket.expenses == 2500
    assert bucket.net == 1500
    assert set(bucket.per_bucket_expenses) == set(BUCKET_KEYS)


def test_monthly_frame_columns():
    frame = monthly_frame([MonthlyBucket.from_breakdown('2024-01', {'savings': 10}, income=20)])
    assert list(frame.columns[:5]) == ['Month', 'Month Name', 'Income', 'Expenses', 'Net']
    assert frame.loc[0, 'savings'] == 10
