import importlib.util
import json
import math
from datetime import date
from pathlib import Path

import pytest

from runway_dashboard import report
from runway_dashboard.scenario import Scenario

SCRIPT_PATH = Path(__file__).resolve().parents[1] / 'scripts' / 'runway_report.py'
NOW = date(2024, 6, 15)


def _monthly_transactions(month):
    return [
        {'id': f'{month}-pay', 'date': f'{month}-01', 'amount': 4000000, 'category_name': 'Inflow: Ready to Assign'},
        {'id': f'{month}-rent', 'date': f'{month}-02', 'amount': -2000000, 'category_name': 'Rent',
         'category_group_name': 'Bills'},
        {'id': f'{month}-fun', 'date': f'{month}-03', 'amount': -1000000, 'category_name': 'Dining',
         'category_group_name': 'Fun Money'},
        {'id': f'{month}-inv', 'date': f'{month}-04', 'amount': -1000000, 'account_id': 'inv',
         'category_name': 'Fees'},
    ]


@pytest.fixture
def export():
    transactions = []
    for month in ['2024-01', '2024-02', '2024-03', '2024-04', '2024-05', '2024-06']:
        transactions.extend(_monthly_transactions(month))
    return {
        'accounts': {
            'data': {
                'accounts': [
                    {'id': 'chk', 'name': 'Everyday Checking', 'type': 'checking', 'balance': 6000000},
                    {'id': 'old', 'name': 'Old Savings', 'type': 'savings', 'balance': 900000, 'closed': True},
                    {'id': 'inv', 'name': 'Brokerage', 'type': 'otherAsset', 'balance': 5000000},
                ]
            }
        },
        'manual_accounts': [{'id': 'm1', 'name': 'Wallet', 'type': 'cash', 'balance': '250.00'}],
        'transactions': transactions,
    }


def test_parse_export_unwraps_api_envelopes(export):
    parsed = report.parse_export(export)
    assert [a['id'] for a in parsed['accounts']] == ['chk', 'old', 'inv']
    assert len(parsed['manual_accounts']) == 1
    assert report.parse_export({})['transactions'] == []


def test_parse_export_rejects_non_objects():
    with pytest.raises(ValueError):
        report.parse_export(['accounts'])


def test_build_runway_end_to_end(export):
    view = report.build_runway(report.parse_export(export), NOW)
    result = view.result
    assert result.cash_reserves == 625000
    assert result.cash_breakdown.manual_cash == 25000
    assert result.avg_monthly_income == 400000
    assert result.avg_monthly_expenses == 300000
    assert result.net_runway_months == math.inf
    assert result.runway_health == 'critical'
    assert view.bucket_averages['fixedCosts'] == 200000
    assert view.bucket_averages['guiltFree'] == 100000


def test_build_runway_with_scenario(export):
    scenario = Scenario(enabled=True, salary_annual=6000000).with_buckets({'guiltFree': False})
    view = report.build_runway(report.parse_export(export), NOW, scenario=scenario)
    result = view.result
    assert result.avg_monthly_income == 500000
    assert result.avg_monthly_expenses == 200000
    assert result.historical_avg_monthly_expenses == 300000
    assert result.runway_health == 'caution'

    text = report.format_report(view)
    assert 'Cash reserves:      $6,250.00' in text
    assert '(scenario)' in text
    assert '(excluded)' in text
    assert 'Health:      caution' in text


def test_load_export_reads_file(tmp_path, export):
    path = tmp_path / 'export.json'
    path.write_text(json.dumps(export), encoding='utf-8')
    assert report.load_export(path)['accounts'][0]['id'] == 'chk'


def _load_script():
    spec = importlib.util.spec_from_file_location('runway_report_script', SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_cli_saves_scenario_and_prints_json(tmp_path, export, capsys):
    export_path = tmp_path / 'export.json'
    export_path.write_text(json.dumps(export), encoding='utf-8')
    storage = tmp_path / 'storage.json'
    script = _load_script()

    code = script.main([
        str(export_path), '--now', '2024-06-15', '--storage', str(storage),
        '--use-scenario', '--salary', '120000', '--exclude-bucket', 'guiltFree', '--json',
    ])
    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data['isUsingScenarioIncome'] is True
    assert data['avgMonthlyIncome'] == 1000000
    assert data['avgMonthlyExpenses'] == 200000
    assert data['netRunwayMonths'] is None

    saved = json.loads(storage.read_text(encoding='utf-8'))['income_scenario']
    assert saved['enabled'] is True
    assert saved['salary'] == {'annual': 12000000}
    assert saved['expenseBuckets']['guiltFree'] is False


def test_cli_reports_unreadable_export(tmp_path, capsys):
    script = _load_script()
    code = script.main([str(tmp_path / 'missing.json'), '--storage', str(tmp_path / 's.json')])
    assert code == 1
    assert 'Could not read export' in capsys.readouterr().err
