"""Logging setup shared by the dashboard, the CLI and the scenario store."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from . import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """Configure console logging for the whole application.

    Existing root handlers are removed first so repeated calls (Streamlit
    reruns the script on every interaction) do not duplicate output.
    Logs go to stdout unless another ``stream`` is given.
    """
    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        handlers=[console_handler],
    )

    # Streamlit's file watcher is chatty at INFO
    logging.getLogger("watchdog").setLevel(logging.WARNING)


logger = logging.getLogger("runway_dashboard")
