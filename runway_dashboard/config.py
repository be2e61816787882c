"""Configuration management for the runway dashboard.

This module centralizes all configuration values including paths,
tunables for the runway engine and scenario store, and environment
variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Base project root - assumes this file is in runway_dashboard/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("RUNWAY_DATA_DIR", _PROJECT_ROOT / "data"))

# Durable key/value file standing in for browser local storage (demo mode)
LOCAL_STORAGE_PATH = Path(
    os.getenv("RUNWAY_LOCAL_STORAGE_PATH", DATA_DIR / "local_storage.json")
).resolve()

LOG_LEVEL = os.getenv("RUNWAY_LOG_LEVEL", "INFO")

# Persisted state layout
INCOME_SCENARIO_KEY = "income_scenario"
SCENARIO_COLLECTION = "income_scenarios"

PERIOD_CHOICES = (3, 6, 12)
DEFAULT_PERIOD_MONTHS = 6
MIN_PROJECTION_MONTHS = 6
PROJECTION_PADDING_MONTHS = 3


@dataclass(frozen=True)
class RunwaySettings:
    """Tunables shared by the runway calculator and the scenario store."""

    period_months: int = DEFAULT_PERIOD_MONTHS
    debounce_ms: int = 500
    echo_suppress_ms: int = 100
    projection_cap_months: int = 24
    growth_cap_multiplier: float = 2


DEFAULT_SETTINGS = RunwaySettings()


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, LOCAL_STORAGE_PATH.parent]:
        directory.mkdir(parents=True, exist_ok=True)
