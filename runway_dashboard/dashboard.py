"""Streamlit page for the cash runway dashboard.

Upload a JSON export of budgeting-service accounts and transactions (plus
any manual accounts) to see cash reserves, runway and a projection.  The
scenario panel in the sidebar overlays projected income and bucket
filters; edits are kept in a :class:`ScenarioStore` that lives in the
session state and persists to local storage.

To run the dashboard from the command line::

    streamlit run runway_dashboard/dashboard.py
"""

from __future__ import annotations

import json
import os
import sys
from datetime import date

import streamlit as st

if __package__:
    from . import config
    from . import report
    from . import visualization as viz
    from .accounts import accounts_frame
    from .buckets import BUCKET_DESCRIPTIONS, BUCKET_KEYS, BUCKET_LABELS
    from .formatting import escape_dollar_for_markdown, format_currency, format_runway
    from .logging_config import logger, setup_logging
    from .money import CENTS_PER_UNIT
    from .scenario import BONUS_FREQUENCIES
    from .scenario_storage import LocalScenarioStorage
    from .scenario_store import ScenarioStore
else:
    # Allow ``streamlit run runway_dashboard/dashboard.py`` without installation
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from runway_dashboard import config  # type: ignore
    from runway_dashboard import report  # type: ignore
    from runway_dashboard import visualization as viz  # type: ignore
    from runway_dashboard.accounts import accounts_frame  # type: ignore
    from runway_dashboard.buckets import BUCKET_DESCRIPTIONS, BUCKET_KEYS, BUCKET_LABELS  # type: ignore
    from runway_dashboard.formatting import escape_dollar_for_markdown, format_currency, format_runway  # type: ignore
    from runway_dashboard.logging_config import logger, setup_logging  # type: ignore
    from runway_dashboard.money import CENTS_PER_UNIT  # type: ignore
    from runway_dashboard.scenario import BONUS_FREQUENCIES  # type: ignore
    from runway_dashboard.scenario_storage import LocalScenarioStorage  # type: ignore
    from runway_dashboard.scenario_store import ScenarioStore  # type: ignore

STORE_KEY = 'scenario_store'


def get_scenario_store() -> ScenarioStore:
    """The session's scenario store, created and loaded on first use."""
    store = st.session_state.get(STORE_KEY)
    if store is None:
        store = ScenarioStore(LocalScenarioStorage()).start()
        st.session_state[STORE_KEY] = store
    return store


def _dollars(cents: float) -> float:
    return round(cents / CENTS_PER_UNIT, 2)


def _cents(dollars: float) -> int:
    return round(dollars * CENTS_PER_UNIT)


def render_scenario_panel(store: ScenarioStore, historical_avg_income: float, bucket_averages) -> None:
    """Sidebar controls bound to the scenario store's setters."""
    st.sidebar.header("Income scenario")
    store.set_enabled(st.sidebar.toggle("Use scenario", value=store.is_enabled))

    store.set_salary(_cents(st.sidebar.number_input(
        "Annual salary", min_value=0.0, value=_dollars(store.salary), step=1000.0
    )))
    bonus = st.sidebar.number_input("Annual bonus", min_value=0.0, value=_dollars(store.bonus), step=500.0)
    frequency = st.sidebar.selectbox(
        "Bonus frequency", BONUS_FREQUENCIES, index=BONUS_FREQUENCIES.index(store.bonus_frequency)
    )
    store.set_bonus(_cents(bonus), frequency)
    store.set_stock(_cents(st.sidebar.number_input(
        "Annual stock value", min_value=0.0, value=_dollars(store.stock), step=1000.0
    )))

    st.sidebar.caption(
        escape_dollar_for_markdown(
            f"Scenario income: {format_currency(store.scenario_monthly_income)}/mo "
            f"({format_currency(store.income_delta(historical_avg_income))} vs history)"
        )
    )

    st.sidebar.subheader("Count spending from")
    current = store.expense_buckets
    for key in BUCKET_KEYS:
        label = f"{BUCKET_LABELS[key]} ({format_currency(bucket_averages.get(key, 0))}/mo)"
        checked = st.sidebar.checkbox(label, value=current[key], help=BUCKET_DESCRIPTIONS[key])
        if checked != current[key]:
            store.toggle_expense_bucket(key)

    left, right = st.sidebar.columns(2)
    if left.button("Use history"):
        store.reset_to_current(historical_avg_income)
    if right.button("Clear"):
        store.clear_scenario()
    if store.has_expense_filters and st.sidebar.button("Include all buckets"):
        store.reset_expense_buckets()

    if store.error:
        st.sidebar.error(store.error)


def render_summary(view: report.RunwayView) -> None:
    result = view.result
    pure = format_runway(result.pure_runway_months)
    net = format_runway(result.net_runway_months)
    cols = st.columns(4)
    cols[0].metric("Cash reserves", format_currency(result.cash_reserves))
    cols[1].metric("Avg monthly expenses", format_currency(result.avg_monthly_expenses))
    cols[2].metric("Runway (no income)", f"{pure['value']} {pure['label']}")
    cols[3].metric("Runway (with income)", f"{net['value']} {net['label']}")
    if result.is_using_scenario_income or result.is_using_scenario_expenses:
        st.info("Scenario values are applied to this projection.")


def main() -> None:
    """Entry point for the Streamlit app."""
    setup_logging()
    config.ensure_data_directories()
    st.set_page_config(page_title="Cash Runway", layout="wide", initial_sidebar_state="expanded")
    st.title("Cash Runway")

    store = get_scenario_store()
    store.tick()

    uploaded = st.sidebar.file_uploader("Budget export (JSON)", type=["json"])
    period = st.sidebar.selectbox(
        "Average over", config.PERIOD_CHOICES,
        index=config.PERIOD_CHOICES.index(config.DEFAULT_PERIOD_MONTHS),
        format_func=lambda months: f"{months} months",
    )
    if uploaded is None:
        st.info("Upload a budget export to begin.")
        st.stop()

    try:
        export = report.parse_export(json.load(uploaded))
    except (ValueError, UnicodeDecodeError) as exc:
        logger.warning("Rejected uploaded export: %s", exc)
        st.error(f"Failed to read export: {exc}")
        st.stop()

    baseline = report.build_runway(export, date.today(), period_months=period)
    render_scenario_panel(store, baseline.result.historical_avg_monthly_income, baseline.bucket_averages)
    view = report.build_runway(export, date.today(), scenario=store.scenario, period_months=period)

    render_summary(view)
    left, right = st.columns([2, 1])
    left.plotly_chart(viz.create_projection_chart(view.result), use_container_width=True)
    right.plotly_chart(viz.create_health_gauge(view.result), use_container_width=True)
    left, right = st.columns(2)
    left.plotly_chart(viz.create_history_chart(view.result), use_container_width=True)
    right.plotly_chart(
        viz.create_bucket_chart(view.bucket_averages, store.expense_buckets), use_container_width=True
    )

    with st.expander("Accounts"):
        st.dataframe(accounts_frame(view.accounts), use_container_width=True)

    # Each rerun already coalesces a user interaction, so persist right away
    store.flush()


if __name__ == "__main__":
    main()
