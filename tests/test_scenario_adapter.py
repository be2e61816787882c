from datetime import date

import pytest

from runway_dashboard.accounts import Account
from runway_dashboard.monthly import MonthlyBucket, aggregate_monthly
from runway_dashboard.runway import calculate_runway
from runway_dashboard.scenario import Scenario
from runway_dashboard.scenario_adapter import (
    average_bucket_expenses,
    bucket_filter,
    filtered_monthly_expenses,
    runway_options_for,
)

NOW = date(2024, 7, 1)
BREAKDOWN = {'fixedCosts': 2000, 'investments': 1000, 'savings': 500, 'guiltFree': 500}
KEYS = ['2024-01', '2024-02', '2024-03', '2024-04', '2024-05', '2024-06']


@pytest.fixture
def monthly():
    return [MonthlyBucket.from_breakdown(key, BREAKDOWN, income=4500) for key in KEYS]


@pytest.fixture
def accounts():
    return [Account(id='chk', name='Checking', source='budgetService', normalized_type='checking', balance=20000)]


def test_disabled_scenario_produces_no_overrides(monthly):
    scenario = Scenario(enabled=False, salary_annual=120000).with_buckets({'guiltFree': False})
    options = runway_options_for(scenario, monthly, 6)
    assert options.scenario_income is None
    assert options.scenario_expenses is None


def test_enabled_salary_overrides_income(monthly, accounts):
    scenario = Scenario(enabled=True, salary_annual=120000)
    options = runway_options_for(scenario, monthly, 6)
    assert options.scenario_income == 10000
    assert options.scenario_expenses is None

    result = calculate_runway(accounts, monthly, 6, now=NOW, options=options)
    assert result.is_using_scenario_income
    assert result.avg_monthly_income == 10000
    assert result.historical_avg_monthly_income == 4500


def test_enabled_without_values_keeps_historical_income(monthly):
    options = runway_options_for(Scenario(enabled=True), monthly, 6)
    assert options.scenario_income is None


def test_bucket_filters_override_expenses(monthly, accounts):
    scenario = Scenario(enabled=True).with_buckets({'guiltFree': False, 'investments': False})
    options = runway_options_for(scenario, monthly, 6)
    assert options.scenario_expenses == 2500

    result = calculate_runway(accounts, monthly, 6, now=NOW, options=options)
    assert result.is_using_scenario_expenses
    assert result.avg_monthly_expenses == 2500
    assert result.historical_avg_monthly_expenses == 4000
    assert not result.is_using_scenario_income


def test_filtered_expenses_skip_inactive_months():
    monthly = [
        MonthlyBucket.from_breakdown('2024-04', {}),
        MonthlyBucket.from_breakdown('2024-05', {'fixedCosts': 300, 'guiltFree': 100}),
        MonthlyBucket.from_breakdown('2024-06', {'fixedCosts': 100}),
    ]
    scenario = Scenario(enabled=True).with_buckets({'guiltFree': False})
    assert filtered_monthly_expenses(monthly, scenario, 3) == 200


def test_average_bucket_expenses(monthly):
    assert average_bucket_expenses(monthly, 3) == BREAKDOWN
    assert average_bucket_expenses([], 6) == {key: 0 for key in BREAKDOWN}


def test_bucket_filter_predicate():
    include = bucket_filter(Scenario().with_buckets({'savings': False}))
    assert include('fixedCosts')
    assert not include('savings')


def test_bucket_filter_drives_aggregation():
    transactions = [
        {'id': 'rent', 'date': '2024-06-02', 'amount': -2000000, 'category_name': 'Rent',
         'category_group_name': 'Bills'},
        {'id': 'fun', 'date': '2024-06-03', 'amount': -500000, 'category_name': 'Dining',
         'category_group_name': 'Fun Money'},
    ]
    scenario = Scenario(enabled=True).with_buckets({'guiltFree': False})
    series = aggregate_monthly(transactions, NOW, include_bucket=bucket_filter(scenario))
    june = next(bucket for bucket in series if bucket.month_key == '2024-06')
    assert june.expenses == 200000
    assert june.per_bucket_expenses['guiltFree'] == 0
