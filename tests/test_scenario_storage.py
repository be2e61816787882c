import json
from datetime import datetime, timezone

import pytest

from runway_dashboard.scenario_storage import (
    InMemoryDocumentStore,
    LocalScenarioStorage,
    RemoteScenarioBackend,
    ScenarioPersistenceError,
    open_scenario_backend,
)


def test_local_storage_uses_income_scenario_key(tmp_path):
    path = tmp_path / 'local_storage.json'
    storage = LocalScenarioStorage(path)
    assert storage.load() is None

    future = storage.write({'enabled': True})
    assert future.done()
    assert future.exception() is None

    on_disk = json.loads(path.read_text(encoding='utf-8'))
    assert on_disk == {'income_scenario': {'enabled': True}}
    assert storage.load() == {'enabled': True}


def test_local_storage_keeps_other_keys(tmp_path):
    path = tmp_path / 'local_storage.json'
    path.write_text(json.dumps({'theme': 'dark'}), encoding='utf-8')
    storage = LocalScenarioStorage(path)
    storage.write({'enabled': False})
    storage.clear()
    assert json.loads(path.read_text(encoding='utf-8')) == {'theme': 'dark'}
    assert storage.load() is None


def test_corrupt_local_storage_raises_on_load(tmp_path):
    path = tmp_path / 'local_storage.json'
    path.write_text('{broken', encoding='utf-8')
    with pytest.raises(ScenarioPersistenceError):
        LocalScenarioStorage(path).load()


def test_local_storage_has_no_live_feed(tmp_path):
    storage = LocalScenarioStorage(tmp_path / 'x.json')
    assert storage.live is False
    assert storage.subscribe(lambda payload: None, lambda exc: None) is None


def test_remote_backend_writes_scenario_with_timestamp():
    docs = InMemoryDocumentStore()
    stamp = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    backend = RemoteScenarioBackend(docs, 'user-1', now=lambda: stamp)
    backend.write({'enabled': True, 'salary': {'annual': 100}})
    backend.write({'salary': {'annual': 200}})

    document = docs.get_document('income_scenarios', 'user-1')
    assert document['updatedAt'] == stamp.isoformat()
    assert document['scenario'] == {'enabled': True, 'salary': {'annual': 200}}
    assert backend.load() == document['scenario']


def test_remote_backend_requires_user_id():
    with pytest.raises(ValueError):
        RemoteScenarioBackend(InMemoryDocumentStore(), '')


def test_remote_subscription_delivers_scenario_only():
    docs = InMemoryDocumentStore()
    backend = RemoteScenarioBackend(docs, 'user-1')
    seen = []
    unsubscribe = backend.subscribe(seen.append, lambda exc: None)
    backend.write({'enabled': True})
    unsubscribe()
    backend.write({'enabled': False})
    assert seen == [None, {'enabled': True}]


def test_pending_writes_wait_for_acknowledgement():
    docs = InMemoryDocumentStore(auto_ack=False)
    future = docs.set_document('c', 'k', {'a': 1})
    assert not future.done()
    assert docs.get_document('c', 'k') is None
    assert docs.acknowledge_pending() == 1
    assert future.done()
    assert docs.get_document('c', 'k') == {'a': 1}


def test_open_scenario_backend_selection(tmp_path):
    docs = InMemoryDocumentStore()
    assert isinstance(open_scenario_backend('user-1', document_store=docs), RemoteScenarioBackend)
    local = open_scenario_backend('user-1', demo_mode=True, document_store=docs, local_path=tmp_path / 'a.json')
    assert isinstance(local, LocalScenarioStorage)
    assert isinstance(open_scenario_backend(None, local_path=tmp_path / 'b.json'), LocalScenarioStorage)
