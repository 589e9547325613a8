"""
Facade wiring: backend chosen once from configuration, calls dispatched as-is.
"""
import json
import logging

import pytest

from manabee.identity_access.domain import IdentityRecord, Role
from manabee.storage.config import StorageConfig
from manabee.storage.errors import ConfigurationError, UnsupportedOperation
from manabee.storage.facade import Storage, build_storage
from manabee.storage.local_adapter import LocalBackendAdapter
from manabee.storage.remote_supabase import SupabaseBackendAdapter


def test_build_local_uses_given_store(store):
    storage = build_storage(StorageConfig(backend="local"), local_store=store)
    assert isinstance(storage._adapter, LocalBackendAdapter)


def test_build_local_from_path(tmp_path, caplog):
    caplog.set_level(logging.INFO, logger="manabee.storage")
    storage = build_storage(StorageConfig(backend="local", local_store_path=str(tmp_path / "s.json")))
    assert isinstance(storage, Storage)
    assert "Storage backend wired: local (file)" in caplog.text


def test_build_remote_with_injected_client(fake_client):
    storage = build_storage(StorageConfig(backend="remote"), remote_client=fake_client)
    assert isinstance(storage._adapter, SupabaseBackendAdapter)


def test_build_remote_without_parameters_fails_at_startup():
    with pytest.raises(ConfigurationError):
        build_storage(StorageConfig(backend="remote"))


def test_build_unknown_backend_fails():
    with pytest.raises(ConfigurationError):
        build_storage(StorageConfig(backend="sqlite"))


def test_facade_does_not_expose_backend_choice(store):
    storage = build_storage(StorageConfig(backend="local"), local_store=store)
    assert not hasattr(storage, "backend")
    assert not hasattr(storage, "mode")


@pytest.mark.anyio
async def test_same_calls_work_on_both_backends(store, fake_client):
    local = build_storage(StorageConfig(backend="local"), local_store=store)
    remote = build_storage(StorageConfig(backend="remote"), remote_client=fake_client)
    for storage in (local, remote):
        await storage.save_lesson({"id": "l1", "transcript": "x"})
        assert (await storage.load_lesson())["transcript"] == "x"
        await storage.save_schools([{"id": "sc1", "studentId": "s1"}])
        assert [s["id"] for s in await storage.load_schools("s1")] == ["sc1"]
        assert isinstance(await storage.generate_id(), str)


@pytest.mark.anyio
async def test_adapter_errors_propagate(fake_client):
    storage = build_storage(StorageConfig(backend="remote"), remote_client=fake_client)
    with pytest.raises(UnsupportedOperation):
        await storage.reset_data()


@pytest.mark.anyio
async def test_local_dispatch_round_trip(seeded_store):
    storage = Storage(LocalBackendAdapter(seeded_store))
    admin = IdentityRecord(id="a1", name="Admin", role=Role.ADMIN, email="admin@x.com")
    record = await storage.add_log(admin, "login", "ok")
    assert (await storage.load_logs())[0] == record
    exported = json.loads(await storage.export_data())
    assert exported["logs"][0]["userId"] == "a1"
    assert await storage.import_data(exported) is True
    await storage.reset_data()
    assert seeded_store.keys() == []


@pytest.mark.anyio
async def test_save_schools_replaces_on_both_backends(store, fake_client):
    local = build_storage(StorageConfig(backend="local"), local_store=store)
    remote = build_storage(StorageConfig(backend="remote"), remote_client=fake_client)
    for storage in (local, remote):
        await storage.save_schools([{"id": "a"}, {"id": "b"}])
        await storage.save_schools([{"id": "b"}])
        assert await storage.load_schools() == [{"id": "b"}]
