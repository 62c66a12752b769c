"""Domain models for photo reveal sessions."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted reveal session."""

    id: UUID
    code: str
    name: str
    created_at: datetime
    active: bool


@dataclass(frozen=True)
class ParticipantRecord:
    """Represents a participant joined to a session.

    ``connection_id`` is a mutable attribute of the row, never part of its
    identity; ``None`` means the participant is currently disconnected.
    """

    id: UUID
    session_id: UUID
    name: str
    connection_id: str | None
    photo_assigned: UUID | None
    created_at: datetime


@dataclass(frozen=True)
class PhotoRecord:
    """Represents an uploaded photo."""

    id: UUID
    session_id: UUID
    url: str
    title: str | None
    uploaded_at: datetime


@dataclass(frozen=True)
class NewPhoto:
    """Photo data supplied by an upload, before the store assigns an id."""

    url: str
    title: str | None = None


def session_payload(session: SessionRecord) -> dict[str, object]:
    """Serialize a session for outbound events."""
    return {
        "id": str(session.id),
        "code": session.code,
        "name": session.name,
        "created_at": session.created_at.isoformat(),
        "active": session.active,
    }


def participant_payload(participant: ParticipantRecord) -> dict[str, object]:
    """Serialize a participant for outbound events."""
    return {
        "id": str(participant.id),
        "session_id": str(participant.session_id),
        "name": participant.name,
        "socket_id": participant.connection_id,
        "photo_assigned": (
            str(participant.photo_assigned) if participant.photo_assigned else None
        ),
        "created_at": participant.created_at.isoformat(),
    }


def photo_payload(photo: PhotoRecord) -> dict[str, object]:
    """Serialize a photo for outbound events."""
    return {
        "id": str(photo.id),
        "session_id": str(photo.session_id),
        "url": photo.url,
        "title": photo.title,
        "uploaded_at": photo.uploaded_at.isoformat(),
    }
