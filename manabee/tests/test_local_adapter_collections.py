"""Local adapter: aggregates, audit log cap, id generation."""
import string

import pytest

from manabee.storage.local_adapter import LOCAL_LOG_LIMIT
from manabee.storage.ports import empty_lesson


@pytest.mark.anyio
async def test_generate_id_is_base36_and_unique(local):
    ids = {await local.generate_id() for _ in range(500)}
    assert len(ids) == 500
    alphabet = set(string.digits + string.ascii_lowercase)
    assert all(len(i) == 7 and set(i) <= alphabet for i in ids)


@pytest.mark.anyio
async def test_defaults_when_nothing_stored(local):
    assert await local.load_schools() == []
    assert await local.load_questions() == []
    assert await local.load_logs() == []
    assert await local.load_lesson() == empty_lesson()


@pytest.mark.anyio
async def test_unreadable_collection_falls_back_to_default(local, store):
    store.set_raw("manabee_schools_v2", "{broken")
    store.set("manabee_lessons_v2", ["not", "a", "dict"])
    assert await local.load_schools() == []
    assert await local.load_lesson() == empty_lesson()


@pytest.mark.anyio
async def test_schools_are_whole_collection_last_write_wins(local):
    await local.save_schools([{"id": "a", "studentId": "s1"}, {"id": "b", "studentId": "s2"}])
    await local.save_schools([{"id": "c", "studentId": "s1"}])
    assert await local.load_schools() == [{"id": "c", "studentId": "s1"}]


@pytest.mark.anyio
async def test_school_filter_and_delete(local):
    await local.save_schools([{"id": "a", "studentId": "s1"}, {"id": "b", "studentId": "s2"}])
    assert await local.load_schools("s2") == [{"id": "b", "studentId": "s2"}]
    assert await local.delete_school("a") is True
    assert await local.delete_school("a") is False
    assert [s["id"] for s in await local.load_schools()] == ["b"]


@pytest.mark.anyio
async def test_lesson_overwrite(local):
    await local.save_lesson({"id": "l1", "transcript": "first"})
    await local.save_lesson({"id": "l1", "transcript": "second"})
    assert await local.load_lesson() == {"id": "l1", "transcript": "second"}


@pytest.mark.anyio
async def test_save_question_upserts_in_place_and_prepends_new(local):
    await local.save_question({"id": "q1", "studentId": "s1", "status": "queued"})
    await local.save_question({"id": "q2", "studentId": "s2", "status": "queued"})
    await local.save_question({"id": "q1", "studentId": "s1", "status": "done"})
    questions = await local.load_questions()
    assert [q["id"] for q in questions] == ["q2", "q1"]
    assert questions[1]["status"] == "done"
    assert [q["id"] for q in await local.load_questions("s1")] == ["q1"]


@pytest.mark.anyio
async def test_add_log_caps_at_limit_newest_first(local, tutor):
    for i in range(LOCAL_LOG_LIMIT + 1):
        await local.add_log(tutor, "edit", f"entry {i}")
    logs = await local.load_logs()
    assert len(logs) == LOCAL_LOG_LIMIT == 100
    assert logs[0].summary == "entry 100"
    assert logs[-1].summary == "entry 1"
    assert all(log.summary != "entry 0" for log in logs)


@pytest.mark.anyio
async def test_add_log_record_fields(local, tutor, store):
    record = await local.add_log(tutor, "lesson_saved", "Saved lesson l1")
    assert record.actor_id == "t1"
    assert record.actor_role == "TUTOR"
    stored = store.get("manabee_logs_v2")[0]
    assert stored["userId"] == "t1"
    assert stored["userName"] == "Tutor"
    assert stored["at"] == record.timestamp
