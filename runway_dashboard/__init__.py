"""Top‑level package for the Cash Runway Dashboard.

This file makes the directory a Python package and exposes
convenient names.  The primary modules are:

* ``accounts`` – normalization of budgeting-service and manual accounts
* ``monthly`` – aggregation of transactions into a monthly series
* ``runway`` – the pure runway calculator
* ``scenario_store`` – the persisted, live-synced income scenario
* ``visualization`` – functions that generate Plotly figures
* ``dashboard`` – a Streamlit app that ties everything together

To run the dashboard from the command line you can execute:

```bash
streamlit run runway_dashboard/dashboard.py
```
"""

from . import accounts  # noqa: F401  # re-exported for convenience
from . import monthly  # noqa: F401  # re-exported for convenience
from . import runway  # noqa: F401  # re-exported for convenience
from . import scenario_store  # noqa: F401  # re-exported for convenience
from . import visualization  # noqa: F401  # re-exported for convenience
# Import dashboard lazily.  Streamlit may not be installed in all
# environments (e.g. during unit testing).  If the import fails,
# assign ``None``.
try:
    from . import dashboard  # type: ignore  # noqa: F401
except ModuleNotFoundError:
    dashboard = None  # type: ignore


__all__ = ["accounts", "monthly", "runway", "scenario_store", "visualization", "dashboard"]
