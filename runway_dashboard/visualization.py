"""Plotly visualisation helpers for the runway dashboard.

Each function accepts the value objects produced by :mod:`runway` (or the
DataFrames they expose) and returns a ``plotly.graph_objects.Figure`` that
Streamlit can render via ``st.plotly_chart``.  Amounts are stored in cents
and converted to major units here, at presentation time.
"""

from __future__ import annotations

from typing import Mapping

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .buckets import BUCKET_KEYS, BUCKET_LABELS
from .money import CENTS_PER_UNIT
from .runway import RunwayResult

HEALTH_COLOURS = {
    'critical': '#EF4444',
    'caution': '#F59E0B',
    'healthy': '#10B981',
    'excellent': '#6366F1',
}


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def create_projection_chart(result: RunwayResult, title: str | None = None) -> go.Figure:
    """Line chart of projected balances under pure and net burn.

    Parameters
    ----------
    result : RunwayResult
        Output of :func:`runway.calculate_runway`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Two lines, one per burn model, over the projection horizon.
    """
    df = result.projection_frame()
    if df.empty:
        return _empty_figure()
    df[['Pure Balance', 'Net Balance']] = df[['Pure Balance', 'Net Balance']] / CENTS_PER_UNIT
    long_df = df.melt(id_vars='Month', var_name='Scenario', value_name='Balance')
    long_df['Scenario'] = long_df['Scenario'].map(
        {'Pure Balance': 'No income (pure burn)', 'Net Balance': 'With income (net burn)'}
    )
    fig = px.line(long_df, x='Month', y='Balance', color='Scenario', markers=True)
    fig.update_layout(
        title=title or "Cash runway projection",
        xaxis_title="Month",
        yaxis_title="Balance",
        yaxis_tickprefix="$",
        legend_title_text="",
    )
    return fig


def create_history_chart(result: RunwayResult, title: str | None = None) -> go.Figure:
    """Grouped bar chart of income vs expenses over the averaging window."""
    df = result.history_frame()
    if df.empty:
        return _empty_figure()
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df['Month'], y=df['Income'] / CENTS_PER_UNIT, name='Income', marker_color='#10B981'))
    fig.add_trace(go.Bar(x=df['Month'], y=df['Expenses'] / CENTS_PER_UNIT, name='Expenses', marker_color='#EF4444'))
    fig.add_hline(
        y=result.avg_monthly_expenses / CENTS_PER_UNIT,
        line_dash='dash',
        annotation_text='Average expenses',
    )
    fig.update_layout(
        title=title or "Income vs expenses",
        barmode='group',
        xaxis_title="Month",
        yaxis_title="Amount",
        yaxis_tickprefix="$",
    )
    return fig


def create_bucket_chart(bucket_averages: Mapping[str, float], included: Mapping[str, bool] | None = None) -> go.Figure:
    """Bar chart of average monthly spending per bucket, dimming excluded ones."""
    if not bucket_averages or not any(bucket_averages.values()):
        return _empty_figure()
    included = included or {}
    df = pd.DataFrame(
        {
            'Bucket': [BUCKET_LABELS[key] for key in BUCKET_KEYS],
            'Amount': [bucket_averages.get(key, 0) / CENTS_PER_UNIT for key in BUCKET_KEYS],
            'Included': ['Included' if included.get(key, True) else 'Excluded' for key in BUCKET_KEYS],
        }
    )
    fig = px.bar(
        df,
        x='Bucket',
        y='Amount',
        color='Included',
        color_discrete_map={'Included': '#6366F1', 'Excluded': '#D1D5DB'},
    )
    fig.update_layout(
        title="Average monthly spending by bucket",
        xaxis_title="Bucket",
        yaxis_title="Amount",
        yaxis_tickprefix="$",
        legend_title_text="",
    )
    return fig


def create_health_gauge(result: RunwayResult) -> go.Figure:
    """Gauge of pure runway months coloured by health band."""
    value = min(result.pure_runway_months, 24)
    fig = go.Figure(
        go.Indicator(
            mode='gauge+number',
            value=value,
            number={'suffix': ' mo'},
            gauge={
                'axis': {'range': [0, 24]},
                'bar': {'color': HEALTH_COLOURS.get(result.runway_health, '#6B7280')},
                'steps': [
                    {'range': [0, 3], 'color': '#FEE2E2'},
                    {'range': [3, 6], 'color': '#FEF3C7'},
                    {'range': [6, 12], 'color': '#D1FAE5'},
                    {'range': [12, 24], 'color': '#E0E7FF'},
                ],
            },
            title={'text': f"Runway health: {result.runway_health}"},
        )
    )
    return fig
