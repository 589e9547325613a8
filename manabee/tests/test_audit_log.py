import pytest

from manabee.identity_access.domain import IdentityRecord, Role
from manabee.storage.audit import AuditLogWriter
from manabee.storage.facade import Storage
from manabee.storage.local_adapter import LOCAL_LOG_LIMIT, LocalBackendAdapter
from manabee.storage.local_store import LocalStore


def _writer(store: LocalStore) -> AuditLogWriter:
    return AuditLogWriter(Storage(LocalBackendAdapter(store)))


@pytest.mark.anyio
async def test_record_returns_nothing_and_is_durable(tmp_path, tutor):
    path = tmp_path / "store.json"
    writer = _writer(LocalStore(path))
    assert await writer.record(tutor, "edit_lesson", "Edited lesson l1") is None
    # A fresh store on the same file sees the entry.
    reopened = _writer(LocalStore(path))
    logs = await reopened.recent()
    assert len(logs) == 1
    assert (logs[0].actor_id, logs[0].actor_name, logs[0].actor_role) == ("t1", "Tutor", "TUTOR")
    assert logs[0].action == "edit_lesson"
    assert logs[0].timestamp.endswith("Z")


@pytest.mark.anyio
async def test_recent_is_newest_first_and_limited(store, tutor):
    writer = _writer(store)
    admin = IdentityRecord(id="a1", name="Admin", role=Role.ADMIN, email="admin@x.com")
    await writer.record(tutor, "a", "first")
    await writer.record(admin, "b", "second")
    await writer.record(tutor, "c", "third")
    assert [r.summary for r in await writer.recent()] == ["third", "second", "first"]
    assert [r.summary for r in await writer.recent(limit=2)] == ["third", "second"]


@pytest.mark.anyio
async def test_local_writer_keeps_the_newest_hundred(store, tutor):
    writer = _writer(store)
    for i in range(LOCAL_LOG_LIMIT + 5):
        await writer.record(tutor, "tick", str(i))
    logs = await writer.recent()
    assert len(logs) == LOCAL_LOG_LIMIT
    assert logs[0].summary == str(LOCAL_LOG_LIMIT + 4)
    assert logs[-1].summary == "5"


@pytest.mark.anyio
async def test_remote_writer_sends_one_insert_per_record(fake_client, remote, tutor):
    writer = AuditLogWriter(Storage(remote))
    await writer.record(tutor, "login", "ok")
    assert fake_client.calls == [("audit_logs", "insert")]
    row = fake_client.tables["audit_logs"][0]
    assert (row["user_id"], row["action"]) == ("t1", "login")
