from __future__ import annotations

import json
from datetime import date

import pytest

from core.errors import EventNotFoundError, PersistenceError, SubjectNotFoundError
from datamodel import Event, Subject
from storage.reminder import ReminderStore


def _names(store: ReminderStore, user_id: str) -> dict[str, list[str]]:
    return {s.name: [e.name for e in s.events] for s in store.list_subjects(user_id)}


def test_add_creates_subject_and_keeps_insertion_order(store: ReminderStore) -> None:
    store.add_event("42", "Math", "HW1", date(2026, 11, 1))
    store.add_event("42", "Math", "HW2", date(2026, 10, 25))
    store.add_event("42", "Physics", "Lab", date(2026, 11, 3))

    assert _names(store, "42") == {"Math": ["HW1", "HW2"], "Physics": ["Lab"]}
    assert store.list_subjects("7") == []
    assert store.counts() == {"users": 1, "subjects": 2, "events": 3}


def test_add_with_existing_name_replaces_deadline(store: ReminderStore) -> None:
    store.add_event("42", "Math", "HW1", date(2026, 11, 1))
    store.add_event("42", "Math", "HW1", date(2026, 11, 5))

    subject = store.get_subject("42", "Math")
    assert [(e.name, e.deadline) for e in subject.events] == [("HW1", date(2026, 11, 5))]


def test_delete_last_event_prunes_subject_and_user(store: ReminderStore) -> None:
    store.add_event("42", "Math", "HW1", date(2026, 11, 1))
    removed = store.delete_event("42", "Math", "HW1")

    assert isinstance(removed, Event)
    assert store.list_subjects("42") == []
    assert store.users() == []
    with pytest.raises(SubjectNotFoundError):
        store.get_subject("42", "Math")


def test_delete_whole_subject(store: ReminderStore) -> None:
    store.add_event("42", "Math", "HW1", date(2026, 11, 1))
    store.add_event("42", "Math", "HW2", date(2026, 11, 2))
    store.add_event("42", "Art", "Sketch", date(2026, 11, 2))

    removed = store.delete_event("42", "Math")

    assert isinstance(removed, Subject)
    assert _names(store, "42") == {"Art": ["Sketch"]}


def test_delete_distinguishes_missing_subject_and_event(store: ReminderStore) -> None:
    store.add_event("42", "Math", "HW1", date(2026, 11, 1))

    with pytest.raises(SubjectNotFoundError):
        store.delete_event("42", "Chemistry", "HW1")
    with pytest.raises(EventNotFoundError):
        store.delete_event("42", "Math", "HW9")
    assert _names(store, "42") == {"Math": ["HW1"]}


def test_edit_rename_moves_due_marker(store: ReminderStore) -> None:
    store.add_event("42", "Math", "HW1", date(2026, 11, 1))
    subject = store.get_subject("42", "Math")
    subject.sent_markers["HW1"] = date(2026, 10, 19)

    event = store.edit_event("42", "Math", "HW1", new_name="Homework 1")

    assert event.name == "Homework 1"
    assert subject.sent_markers == {"Homework 1": date(2026, 10, 19)}


def test_edit_deadline_clears_markers(store: ReminderStore) -> None:
    event = store.add_event("42", "Math", "HW1", date(2026, 11, 1))
    event.ping_sent_date = date(2026, 10, 19)
    subject = store.get_subject("42", "Math")
    subject.sent_markers["HW1"] = date(2026, 10, 19)

    store.edit_event("42", "Math", "HW1", new_deadline=date(2026, 11, 8))

    assert event.deadline == date(2026, 11, 8)
    assert event.ping_sent_date is None
    assert "HW1" not in subject.sent_markers


def test_edit_missing_event(store: ReminderStore) -> None:
    store.add_event("42", "Math", "HW1", date(2026, 11, 1))
    with pytest.raises(EventNotFoundError):
        store.edit_event("42", "Math", "HW2", new_name="x")
    with pytest.raises(SubjectNotFoundError):
        store.edit_event("42", "Bio", "HW1", new_name="x")


def test_remove_expired(store: ReminderStore) -> None:
    store.add_event("1", "Math", "Old", date(2026, 10, 18))
    store.add_event("1", "Math", "Today", date(2026, 10, 19))
    store.add_event("2", "Bio", "Older", date(2025, 1, 1))

    removed = store.remove_expired(date(2026, 10, 19))

    assert sorted((u, s, e.name) for u, s, e in removed) == [("1", "Math", "Old"), ("2", "Bio", "Older")]
    assert _names(store, "1") == {"Math": ["Today"]}
    assert store.users() == ["1"]


async def test_save_writes_documented_format(store: ReminderStore) -> None:
    event = store.add_event("42", "Math", "HW1", date(2026, 11, 1))
    store.add_event("42", "Math", "HW2", date(2026, 10, 19))
    event.ping_sent_date = date(2026, 10, 19)
    store.get_subject("42", "Math").sent_markers["HW2"] = date(2026, 10, 19)

    await store.save()

    document = json.loads(store.path.read_text(encoding="utf-8"))
    assert document == {
        "42": {
            "Math": {
                "events": [
                    {"event": "HW1", "deadline": "01-11-2026", "reminderSentDate": "2026-10-19"},
                    {"event": "HW2", "deadline": "19-10-2026"},
                ],
                "reminderSentDate": {"HW2": "2026-10-19"},
            }
        }
    }


async def test_save_then_load_is_a_fixed_point(tmp_path) -> None:
    path = tmp_path / "db.json"
    path.write_text(json.dumps({
        "42": {
            "Math": {
                "events": [
                    {"event": "HW1", "deadline": "01-11-2026"},
                    {"event": "Exam", "deadline": "20-12-2026", "reminderSentDate": "2026-10-19"},
                ],
                "reminderSentDate": {"HW1": "2026-10-18"},
            },
            "Art": {"events": [{"event": "Sketch", "deadline": "05-11-2026"}]},
        },
    }), encoding="utf-8")

    first = ReminderStore.load(path)
    await first.save()
    second = ReminderStore.load(path)

    assert second.to_document() == first.to_document()
    assert list(second.list_subjects("42")) == list(first.list_subjects("42"))


def test_load_missing_file_is_empty(tmp_path) -> None:
    store = ReminderStore.load(tmp_path / "absent.json")
    assert store.users() == []


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", ""])
def test_load_corrupt_file_is_empty(tmp_path, content: str) -> None:
    path = tmp_path / "db.json"
    path.write_text(content, encoding="utf-8")
    assert ReminderStore.load(path).users() == []


def test_load_skips_malformed_entries(tmp_path) -> None:
    path = tmp_path / "db.json"
    path.write_text(json.dumps({
        "42": {
            "Math": {"events": [
                {"event": "Good", "deadline": "01-11-2026"},
                {"event": "BadDate", "deadline": "31-02-2026"},
                {"deadline": "01-11-2026"},
            ]},
            "Empty": {"events": [{"event": "Bad", "deadline": "yesterday"}]},
            "Broken": "nope",
        },
        "7": [],
    }), encoding="utf-8")

    store = ReminderStore.load(path)

    assert _names(store, "42") == {"Math": ["Good"]}
    assert store.users() == ["42"]


async def test_save_failure_raises_and_keeps_memory(tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    store = ReminderStore(blocker / "db.json")
    store.add_event("42", "Math", "HW1", date(2026, 11, 1))

    with pytest.raises(PersistenceError):
        await store.save()
    assert _names(store, "42") == {"Math": ["HW1"]}
