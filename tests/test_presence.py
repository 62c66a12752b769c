"""Tests for presence tracking."""

from uuid import uuid4

import pytest

from photo_reveal.domain.errors import ParticipantNotFound, SessionFull, ValidationError
from photo_reveal.services.presence import PresenceTracker, clean_participant_name
from tests.conftest import Store, build_registry


def test_join_creates_participant(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants)

    participant = tracker.join(session, "Alice", "conn-1")

    assert participant is not None
    assert participant.name == "Alice"
    assert participant.connection_id == "conn-1"
    assert tracker.list_participants(session) == [participant]


def test_admin_join_creates_no_row(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants)

    assert tracker.join(session, "Host", "conn-admin", is_admin=True) is None
    assert tracker.list_participants(session) == []


def test_rejoin_under_same_name_reuses_participant(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants)
    first = tracker.join(session, "Alice", "conn-1")

    again = tracker.join(session, "Alice", "conn-2")

    assert again is not None and first is not None
    assert again.id == first.id
    assert again.connection_id == "conn-2"
    participants = tracker.list_participants(session)
    assert len(participants) == 1
    assert participants[0].connection_id == "conn-2"


def test_same_name_in_other_session_is_separate(store: Store) -> None:
    registry = build_registry(store)
    first_session = registry.create_session("one")
    second_session = registry.create_session("two")
    tracker = PresenceTracker(store.participants)

    a = tracker.join(first_session, "Alice", "conn-1")
    b = tracker.join(second_session, "Alice", "conn-2")

    assert a is not None and b is not None
    assert a.id != b.id


def test_join_beyond_capacity_fails_without_creating_row(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants, max_participants=2)
    tracker.join(session, "Alice", "conn-1")
    tracker.join(session, "Bob", "conn-2")

    with pytest.raises(SessionFull):
        tracker.join(session, "Carol", "conn-3")

    assert len(tracker.list_participants(session)) == 2


def test_reconnect_allowed_when_full(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants, max_participants=1)
    tracker.join(session, "Alice", "conn-1")

    again = tracker.join(session, "Alice", "conn-9")

    assert again is not None
    assert again.connection_id == "conn-9"


def test_admin_bypasses_capacity(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants, max_participants=1)
    tracker.join(session, "Alice", "conn-1")

    assert tracker.join(session, "Host", "conn-admin", is_admin=True) is None


def test_disconnect_removes_bound_participants(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants)
    tracker.join(session, "Alice", "conn-1")
    bob = tracker.join(session, "Bob", "conn-2")

    removed = tracker.disconnect(session, "conn-1")

    assert [p.name for p in removed] == ["Alice"]
    assert tracker.list_participants(session) == [bob]


def test_disconnect_after_rebind_keeps_participant(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants)
    tracker.join(session, "Alice", "conn-1")
    tracker.join(session, "Alice", "conn-2")

    assert tracker.bound_session_ids("conn-1") == []
    assert tracker.disconnect(session, "conn-1") == []
    assert len(tracker.list_participants(session)) == 1


def test_bound_session_ids_lists_each_session_once(store: Store) -> None:
    registry = build_registry(store)
    one = registry.create_session("one")
    two = registry.create_session("two")
    tracker = PresenceTracker(store.participants)
    tracker.join(one, "Alice", "conn-1")
    tracker.join(one, "Alicia", "conn-1")
    tracker.join(two, "Alice", "conn-1")

    assert tracker.bound_session_ids("conn-1") == [one.id, two.id]


def test_leave_removes_participant(store: Store) -> None:
    session = build_registry(store).create_session("party")
    tracker = PresenceTracker(store.participants)
    alice = tracker.join(session, "Alice", "conn-1")
    assert alice is not None

    left = tracker.leave(session, alice.id)

    assert left.id == alice.id
    assert tracker.list_participants(session) == []


def test_leave_rejects_participant_of_other_session(store: Store) -> None:
    registry = build_registry(store)
    one = registry.create_session("one")
    two = registry.create_session("two")
    tracker = PresenceTracker(store.participants)
    alice = tracker.join(one, "Alice", "conn-1")
    assert alice is not None

    with pytest.raises(ParticipantNotFound):
        tracker.leave(two, alice.id)
    with pytest.raises(ParticipantNotFound):
        tracker.leave(one, uuid4())
    assert len(tracker.list_participants(one)) == 1


@pytest.mark.parametrize("name", ["", "   ", None, 42, "x" * 51])
def test_clean_participant_name_rejects(name: object) -> None:
    with pytest.raises(ValidationError):
        clean_participant_name(name)


def test_clean_participant_name_trims() -> None:
    assert clean_participant_name("  Alice ") == "Alice"
