"""Persistence backends for the income scenario.

Two backends share one small interface (``live``, ``load``, ``write``,
``subscribe``):

* :class:`LocalScenarioStorage` keeps the scenario in a durable JSON
  key/value file.  It is used in demo/anonymous mode and has no live feed.
* :class:`RemoteScenarioBackend` stores ``{scenario, updatedAt}`` in a
  document store keyed by user id, writes with merge semantics and
  subscribes to the document so edits made on another device show up.

Writes always return a :class:`concurrent.futures.Future`; the scenario
store treats its completion as the write acknowledgement.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from concurrent.futures import Future
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import config

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Optional[Dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class ScenarioPersistenceError(Exception):
    """Raised when the scenario cannot be read from or written to storage."""


def _completed(result: Any = None, error: Optional[BaseException] = None) -> Future:
    future: Future = Future()
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)
    return future


class LocalScenarioStorage:
    """Durable local key/value file, the stand-in for browser storage."""

    live = False

    def __init__(self, path: Optional[Path] = None, key: str = config.INCOME_SCENARIO_KEY):
        self.path = Path(path or config.LOCAL_STORAGE_PATH)
        self.key = key

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as exc:
            raise ScenarioPersistenceError(f"Could not read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ScenarioPersistenceError(f"{self.path} does not contain a JSON object")
        return data

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with tmp_path.open('w', encoding='utf-8') as handle:
            json.dump(data, handle, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored scenario payload, or ``None`` if nothing is saved."""
        return self._read_all().get(self.key)

    def write(self, payload: Dict[str, Any]) -> Future:
        try:
            try:
                data = self._read_all()
            except ScenarioPersistenceError:
                logger.warning("Overwriting unreadable local storage at %s", self.path)
                data = {}
            data[self.key] = payload
            self._write_all(data)
        except OSError as exc:
            logger.error("Failed to save income scenario to %s: %s", self.path, exc)
            return _completed(error=ScenarioPersistenceError(str(exc)))
        return _completed()

    def subscribe(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Optional[Unsubscribe]:
        return None

    def clear(self) -> None:
        """Forget the stored scenario (demo exit)."""
        data = self._read_all()
        if data.pop(self.key, None) is not None:
            self._write_all(data)


def _deep_merge(base: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class InMemoryDocumentStore:
    """Process-local document store with live watchers.

    Documents are addressed by ``(collection, key)``.  Every committed write
    is delivered to all watchers of that document, including the writer,
    exactly like a hosted realtime database echoes a client's own writes.

    With ``auto_ack=False`` writes stay pending until
    :meth:`acknowledge_pending` commits them, which lets callers observe the
    window between issuing a write and its acknowledgement.
    """

    def __init__(self, auto_ack: bool = True):
        self.auto_ack = auto_ack
        self.write_error: Optional[Exception] = None
        self.watch_error: Optional[Exception] = None
        self.write_count = 0
        self._documents: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._watchers: Dict[Tuple[str, str], List[Tuple[SnapshotCallback, ErrorCallback]]] = {}
        self._pending: List[Tuple[Future, Tuple[str, str], Dict[str, Any], bool]] = []

    def get_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        document = self._documents.get((collection, key))
        return copy.deepcopy(document) if document is not None else None

    def set_document(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> Future:
        future: Future = Future()
        self._pending.append((future, (collection, key), copy.deepcopy(data), merge))
        if self.auto_ack:
            self.acknowledge_pending()
        return future

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def acknowledge_pending(self) -> int:
        """Commit queued writes in order; returns how many were processed."""
        pending, self._pending = self._pending, []
        for future, address, data, merge in pending:
            self.write_count += 1
            if self.write_error is not None:
                future.set_exception(self.write_error)
                continue
            existing = self._documents.get(address, {})
            self._documents[address] = _deep_merge(existing, data) if merge else data
            self._notify(address)
            future.set_result(None)
        return len(pending)

    def watch_document(
        self,
        collection: str,
        key: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        address = (collection, key)
        if self.watch_error is not None:
            on_error(self.watch_error)
            return lambda: None
        watcher = (on_snapshot, on_error)
        self._watchers.setdefault(address, []).append(watcher)
        on_snapshot(self.get_document(collection, key))

        def unsubscribe() -> None:
            watchers = self._watchers.get(address, [])
            if watcher in watchers:
                watchers.remove(watcher)

        return unsubscribe

    def watcher_count(self, collection: str, key: str) -> int:
        return len(self._watchers.get((collection, key), []))

    def _notify(self, address: Tuple[str, str]) -> None:
        for on_snapshot, _ in list(self._watchers.get(address, [])):
            on_snapshot(self.get_document(*address))


class RemoteScenarioBackend:
    """Scenario persistence in a per-user document with live updates."""

    live = True

    def __init__(
        self,
        document_store: Any,
        user_id: str,
        collection: str = config.SCENARIO_COLLECTION,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if not user_id:
            raise ValueError("A user id is required for remote scenario storage")
        self.document_store = document_store
        self.user_id = user_id
        self.collection = collection
        self._now = now

    def load(self) -> Optional[Dict[str, Any]]:
        document = self.document_store.get_document(self.collection, self.user_id)
        return (document or {}).get('scenario')

    def write(self, payload: Dict[str, Any]) -> Future:
        document = {'scenario': payload, 'updatedAt': self._now().isoformat()}
        try:
            return self.document_store.set_document(self.collection, self.user_id, document, merge=True)
        except Exception as exc:  # store clients raise transport errors directly
            logger.error("Failed to save income scenario for %s: %s", self.user_id, exc)
            return _completed(error=ScenarioPersistenceError(str(exc)))

    def subscribe(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        def handle(document: Optional[Dict[str, Any]]) -> None:
            on_snapshot((document or {}).get('scenario') if document else None)

        return self.document_store.watch_document(self.collection, self.user_id, handle, on_error)


def open_scenario_backend(
    user_id: Optional[str] = None,
    demo_mode: bool = False,
    document_store: Any = None,
    local_path: Optional[Path] = None,
):
    """Pick the backend for the session: local in demo/anonymous mode, remote otherwise."""
    if demo_mode or not user_id or document_store is None:
        return LocalScenarioStorage(local_path)
    return RemoteScenarioBackend(document_store, user_id)
