from datetime import date

import plotly.graph_objects as go

from runway_dashboard import visualization
from runway_dashboard.accounts import Account
from runway_dashboard.formatting import escape_dollar_for_markdown, format_currency, format_runway
from runway_dashboard.monthly import MonthlyBucket
from runway_dashboard.runway import calculate_runway


def test_format_currency():
    assert format_currency(123456) == '$1,234.56'
    assert format_currency(-5) == '-$0.05'
    assert format_currency(-123456, include_sign=False) == '-1,234.56'
    assert format_currency(0) == '$0.00'


def test_format_runway():
    assert format_runway(float('inf')) == {'value': '∞', 'label': 'Unlimited'}
    assert format_runway(30) == {'value': '24+', 'label': 'months'}
    assert format_runway(1.9) == {'value': '1', 'label': 'month'}
    assert format_runway(0) == {'value': '0', 'label': 'months'}


def test_escape_dollar_for_markdown():
    assert escape_dollar_for_markdown('$5 and $6') == '\\$5 and \\$6'


def test_charts_build_from_result():
    accounts = [Account(id='chk', name='Checking', source='budgetService', normalized_type='checking', balance=5000)]
    monthly = [MonthlyBucket.from_breakdown('2024-05', {'fixedCosts': 1000}, income=500)]
    result = calculate_runway(accounts, monthly, 3, now=date(2024, 6, 1))

    projection = visualization.create_projection_chart(result)
    assert isinstance(projection, go.Figure)
    assert len(projection.data) == 2

    history = visualization.create_history_chart(result)
    assert [trace.name for trace in history.data] == ['Income', 'Expenses']

    gauge = visualization.create_health_gauge(result)
    assert gauge.data[0].value == 5

    buckets = visualization.create_bucket_chart({'fixedCosts': 1000}, {'fixedCosts': False})
    assert isinstance(buckets, go.Figure)


def test_empty_inputs_give_placeholder_figures():
    result = calculate_runway([], [], now=date(2024, 6, 1))
    assert visualization.create_history_chart(result).layout.title.text == 'No data to display'
    assert visualization.create_bucket_chart({}).layout.title.text == 'No data to display'
