#!/usr/bin/env python3
"""Print a cash runway report for a budget export.

Scenario edits given on the command line (``--salary``, ``--exclude-bucket``
and friends) are applied through the scenario store and saved to local
storage, so later runs and the dashboard pick them up.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from runway_dashboard import config, report
from runway_dashboard.buckets import BUCKET_KEYS
from runway_dashboard.logging_config import setup_logging
from runway_dashboard.money import major_to_cents
from runway_dashboard.scenario import BONUS_FREQUENCIES
from runway_dashboard.scenario_storage import LocalScenarioStorage
from runway_dashboard.scenario_store import ScenarioStore


def apply_scenario_args(store: ScenarioStore, args: argparse.Namespace, historical_income: float) -> None:
    if args.reset_to_current:
        store.reset_to_current(historical_income)
    if args.salary is not None:
        store.set_salary(major_to_cents(args.salary))
    if args.bonus is not None:
        store.set_bonus(major_to_cents(args.bonus), args.bonus_frequency)
    if args.stock is not None:
        store.set_stock(major_to_cents(args.stock))
    if args.exclude_bucket:
        store.set_expense_buckets({key: key not in args.exclude_bucket for key in BUCKET_KEYS})
    if args.use_scenario is not None:
        store.set_enabled(args.use_scenario)
    if args.clear_scenario:
        store.clear_scenario()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Cash runway report for a budget export.')
    parser.add_argument('export', type=Path, help='JSON file with accounts, manual_accounts and transactions')
    parser.add_argument('--period', type=int, choices=config.PERIOD_CHOICES, default=config.DEFAULT_PERIOD_MONTHS,
                        help='Months of history to average')
    parser.add_argument('--now', type=date.fromisoformat, default=date.today(), help='Reference date (YYYY-MM-DD)')
    parser.add_argument('--storage', type=Path, default=config.LOCAL_STORAGE_PATH, help='Local scenario storage file')
    parser.add_argument('--use-scenario', dest='use_scenario', action='store_true', default=None)
    parser.add_argument('--no-scenario', dest='use_scenario', action='store_false')
    parser.add_argument('--salary', type=float, help='Projected annual salary')
    parser.add_argument('--bonus', type=float, help='Projected annual bonus')
    parser.add_argument('--bonus-frequency', choices=BONUS_FREQUENCIES, default='annual')
    parser.add_argument('--stock', type=float, help='Projected annual stock value')
    parser.add_argument('--exclude-bucket', action='append', choices=BUCKET_KEYS, default=[],
                        help='Leave this bucket out of scenario expenses (repeatable)')
    parser.add_argument('--reset-to-current', action='store_true', help='Pre-fill salary from history')
    parser.add_argument('--clear-scenario', action='store_true')
    parser.add_argument('--json', action='store_true', help='Print the raw result as JSON')
    parser.add_argument('--log-level', default=None)
    args = parser.parse_args(argv)

    setup_logging(args.log_level, stream=sys.stderr)
    try:
        export = report.load_export(args.export)
    except (OSError, ValueError) as exc:
        print(f"Could not read export {args.export}: {exc}", file=sys.stderr)
        return 1

    store = ScenarioStore(LocalScenarioStorage(args.storage)).start()
    baseline = report.build_runway(export, args.now, period_months=args.period)
    apply_scenario_args(store, args, baseline.result.historical_avg_monthly_income)
    store.flush()
    if store.error:
        print(f"Warning: {store.error}", file=sys.stderr)

    view = report.build_runway(export, args.now, scenario=store.scenario, period_months=args.period)
    if args.json:
        print(json.dumps(view.result.to_dict(), indent=2, allow_nan=False))
    else:
        print(report.format_report(view))
    return 0


if __name__ == '__main__':
    sys.exit(main())
