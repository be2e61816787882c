import pytest

from runway_dashboard.buckets import BUCKET_KEYS
from runway_dashboard.scenario import DEFAULT_SCENARIO, Scenario, clamp_amount, scenario_from_dict


def test_defaults():
    assert DEFAULT_SCENARIO.enabled is False
    assert DEFAULT_SCENARIO.monthly_income == 0
    assert not DEFAULT_SCENARIO.has_values
    assert not DEFAULT_SCENARIO.has_expense_filters
    assert dict(DEFAULT_SCENARIO.expense_buckets) == {key: True for key in BUCKET_KEYS}


def test_monthly_income_sums_annual_sources():
    scenario = Scenario(salary_annual=12000000, bonus_annual=1200000, stock_annual_value=2400000)
    assert scenario.monthly_income == pytest.approx(1300000)
    assert scenario.has_values


def test_stored_document_round_trips():
    scenario = Scenario(enabled=True, salary_annual=9000000, bonus_frequency='quarterly').with_buckets(
        {'guiltFree': False}
    )
    assert scenario_from_dict(scenario.to_dict()) == scenario


def test_partial_document_is_merged_with_defaults():
    scenario = scenario_from_dict({'enabled': True, 'salary': {'annual': 5000}})
    assert scenario.enabled
    assert scenario.salary_annual == 5000
    assert scenario.bonus_annual == 0
    assert scenario.bonus_frequency == 'annual'
    assert all(scenario.expense_buckets.values())


def test_invalid_values_fall_back_to_defaults():
    scenario = scenario_from_dict(
        {
            'enabled': 'yes',
            'salary': {'annual': -100},
            'bonus': {'annual': 'lots', 'frequency': 'weekly'},
            'stock': 'not a section',
            'expenseBuckets': {'housing': False, 'savings': False},
        }
    )
    assert scenario.enabled is False
    assert scenario.salary_annual == 0
    assert scenario.bonus_annual == 0
    assert scenario.bonus_frequency == 'annual'
    assert scenario.stock_annual_value == 0
    assert 'housing' not in scenario.expense_buckets
    assert scenario.expense_buckets['savings'] is False
    assert scenario.has_expense_filters


def test_non_mapping_document_gives_defaults():
    assert scenario_from_dict(None) == DEFAULT_SCENARIO
    assert scenario_from_dict(['salary']) == DEFAULT_SCENARIO


def test_clamp_amount():
    assert clamp_amount(12.6) == 13
    assert clamp_amount(2.5) == 3
    assert clamp_amount(0.5) == 1
    assert clamp_amount('250') == 250
    assert clamp_amount(-5) == 0
    assert clamp_amount(True) == 0
    assert clamp_amount(None) == 0
    assert clamp_amount(float('inf')) == 0
