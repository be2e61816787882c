"""Scenario store with debounced write-behind and live sync.

The store owns the user's :class:`~runway_dashboard.scenario.Scenario`.
Setters change the in-memory value immediately; persistence happens
``debounce_ms`` after the last edit so a burst of edits becomes one write
carrying the latest state.

The store is a small state machine driven by explicit events so that it
can be exercised deterministically with an injected clock::

    loading --snapshot/load--> idle --setter--> dirty --tick (quiet)--> flushing
    flushing --write done--> settling --tick (grace over)--> idle | dirty

While ``flushing`` or ``settling`` the store is *saving* and inbound
snapshots are dropped: the remote document echoes our own write back, and
applying that echo could clobber edits made after the write was issued.
Outside that window a snapshot is authoritative and replaces the local
scenario.

Everything runs on one thread.  Backend callbacks (snapshots, write
futures) must be delivered on the thread that owns the store.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional

from . import config
from .buckets import BUCKET_KEYS
from .scenario import BONUS_FREQUENCIES, DEFAULT_SCENARIO, Scenario, clamp_amount, scenario_from_dict
from .scenario_storage import ScenarioPersistenceError

logger = logging.getLogger(__name__)

LOADING = 'loading'
IDLE = 'idle'
DIRTY = 'dirty'
FLUSHING = 'flushing'
SETTLING = 'settling'

LOAD_ERROR = 'Failed to load scenario'
SAVE_ERROR = 'Failed to save scenario'

Listener = Callable[['ScenarioStore'], None]


class ScenarioStore:
    """Holds the scenario for one user session and keeps it persisted."""

    def __init__(
        self,
        backend: Any,
        *,
        clock: Callable[[], float] = time.monotonic,
        settings: Optional[config.RunwaySettings] = None,
    ):
        settings = settings or config.DEFAULT_SETTINGS
        self.backend = backend
        self._clock = clock
        self._debounce = settings.debounce_ms / 1000
        self._echo_grace = settings.echo_suppress_ms / 1000

        self._scenario: Scenario = DEFAULT_SCENARIO
        self._state = LOADING
        self.error: Optional[str] = None
        self._flush_at: Optional[float] = None
        self._settle_until: Optional[float] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._listeners: List[Listener] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> 'ScenarioStore':
        """Load the stored scenario, subscribing to live updates if available."""
        if self.backend.live:
            self._unsubscribe = self.backend.subscribe(self.receive_snapshot, self._on_load_error)
            return self
        try:
            payload = self.backend.load()
        except ScenarioPersistenceError as exc:
            self._on_load_error(exc)
            return self
        self._apply_remote(payload)
        return self

    def teardown(self) -> None:
        """Cancel the pending write and stop listening for remote changes."""
        self._flush_at = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._closed = True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def scenario(self) -> Scenario:
        return self._scenario

    @property
    def is_loading(self) -> bool:
        return self._state == LOADING

    @property
    def is_saving(self) -> bool:
        if self._state == FLUSHING:
            return True
        return self._state == SETTLING and self._clock() < self._settle_until

    @property
    def is_enabled(self) -> bool:
        return self._scenario.enabled

    @property
    def salary(self) -> int:
        return self._scenario.salary_annual

    @property
    def bonus(self) -> int:
        return self._scenario.bonus_annual

    @property
    def bonus_frequency(self) -> str:
        return self._scenario.bonus_frequency

    @property
    def stock(self) -> int:
        return self._scenario.stock_annual_value

    @property
    def expense_buckets(self) -> Dict[str, bool]:
        return {key: self._scenario.includes_bucket(key) for key in BUCKET_KEYS}

    @property
    def scenario_monthly_income(self) -> float:
        return self._scenario.monthly_income

    @property
    def has_scenario_values(self) -> bool:
        return self._scenario.has_values

    @property
    def has_expense_filters(self) -> bool:
        return self._scenario.has_expense_filters

    def effective_monthly_income(self, historical_avg_monthly_income: float) -> float:
        if self._scenario.enabled:
            return self.scenario_monthly_income
        return historical_avg_monthly_income

    def income_delta(self, historical_avg_monthly_income: float) -> float:
        return self.scenario_monthly_income - historical_avg_monthly_income

    def seconds_until_due(self) -> Optional[float]:
        """Time until :meth:`tick` has work to do, or ``None`` if nothing is scheduled."""
        deadlines = [t for t in (self._flush_at, self._settle_until) if t is not None]
        if not deadlines:
            return None
        return max(0.0, min(deadlines) - self._clock())

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every change; returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def clear_error(self) -> None:
        self.error = None
        self._notify()

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_enabled(self, enabled: bool) -> None:
        self._update(replace(self._scenario, enabled=bool(enabled)))

    def set_salary(self, annual: Any) -> None:
        self._update(replace(self._scenario, salary_annual=clamp_amount(annual)))

    def set_bonus(self, annual: Any, frequency: str = 'annual') -> None:
        if frequency not in BONUS_FREQUENCIES:
            raise ValueError(f"Unknown bonus frequency {frequency!r}")
        self._update(replace(self._scenario, bonus_annual=clamp_amount(annual), bonus_frequency=frequency))

    def set_stock(self, annual_value: Any) -> None:
        self._update(replace(self._scenario, stock_annual_value=clamp_amount(annual_value)))

    def toggle_expense_bucket(self, key: str) -> None:
        if key not in BUCKET_KEYS:
            raise ValueError(f"Unknown expense bucket {key!r}")
        buckets = self.expense_buckets
        buckets[key] = not buckets[key]
        self._update(self._scenario.with_buckets(buckets))

    def set_expense_buckets(self, buckets: Mapping[str, bool]) -> None:
        unknown = set(buckets) - set(BUCKET_KEYS)
        if unknown:
            raise ValueError(f"Unknown expense buckets {sorted(unknown)}")
        self._update(self._scenario.with_buckets(buckets))

    def reset_expense_buckets(self) -> None:
        self._update(self._scenario.with_buckets({}))

    def reset_to_current(self, historical_avg_monthly_income: float) -> None:
        """Pre-fill salary from the historical average; bonus and stock go to zero."""
        self._update(
            replace(
                self._scenario,
                salary_annual=clamp_amount(historical_avg_monthly_income * 12),
                bonus_annual=0,
                bonus_frequency='annual',
                stock_annual_value=0,
            )
        )

    def clear_scenario(self) -> None:
        self._update(DEFAULT_SCENARIO)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """Advance timers: end the echo grace window and flush when quiet."""
        if self._closed:
            return
        now = self._clock()
        self._end_grace(now)
        if self._state == DIRTY and self._flush_at is not None and now >= self._flush_at:
            self._flush()

    def flush(self) -> bool:
        """Write pending edits now instead of waiting for the debounce."""
        if self._closed or self._flush_at is None or self._state in (LOADING, FLUSHING):
            return False
        self._flush()
        return True

    def receive_snapshot(self, payload: Optional[Dict[str, Any]]) -> None:
        """Inbound scenario from the live feed (``None`` means no document)."""
        if self._closed:
            return
        self._end_grace(self._clock())
        if self.is_saving:
            logger.debug("Ignoring scenario snapshot received while saving")
            return
        self._apply_remote(payload)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update(self, scenario: Scenario) -> None:
        if self._closed:
            logger.warning("Ignoring scenario edit after teardown")
            return
        if scenario == self._scenario:
            return
        self._scenario = scenario
        # Edits made before the first load are not persisted; the load replaces them
        if self._state != LOADING:
            self._flush_at = self._clock() + self._debounce
            if self._state == IDLE:
                self._state = DIRTY
        self._notify()

    def _apply_remote(self, payload: Optional[Dict[str, Any]]) -> None:
        self._scenario = scenario_from_dict(payload) if payload is not None else DEFAULT_SCENARIO
        self._flush_at = None
        self._state = IDLE
        self._notify()

    def _end_grace(self, now: float) -> None:
        if self._state == SETTLING and now >= self._settle_until:
            self._settle_until = None
            self._state = DIRTY if self._flush_at is not None else IDLE
            self._notify()

    def _flush(self) -> None:
        payload = self._scenario.to_dict()
        self._flush_at = None
        self._settle_until = None
        self._state = FLUSHING
        self._notify()
        logger.debug("Persisting income scenario")
        future: Future = self.backend.write(payload)
        future.add_done_callback(self._on_write_done)

    def _on_write_done(self, future: Future) -> None:
        if self._closed:
            return
        now = self._clock()
        exc = future.exception()
        if exc is not None:
            logger.error("Failed to save income scenario: %s", exc)
            self.error = SAVE_ERROR
            if self._flush_at is None:
                self._flush_at = now + self._debounce
        elif self.error == SAVE_ERROR:
            self.error = None
        self._settle_until = now + self._echo_grace
        self._state = SETTLING
        self._notify()

    def _on_load_error(self, exc: Exception) -> None:
        logger.error("Error loading income scenario: %s", exc)
        self.error = LOAD_ERROR
        if self._state == LOADING:
            self._scenario = DEFAULT_SCENARIO
            self._state = IDLE
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
