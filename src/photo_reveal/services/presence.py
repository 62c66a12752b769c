"""Presence tracking for participants joined to a session."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from photo_reveal.domain.errors import (
    ParticipantNotFound,
    SessionFull,
    ValidationError,
)
from photo_reveal.domain.models import ParticipantRecord, SessionRecord

logger = logging.getLogger(__name__)

MAX_PARTICIPANT_NAME_LENGTH = 50


class ParticipantRepository(Protocol):
    """Persistence interface for participants."""

    def add_participant(
        self, session_id: UUID, name: str, connection_id: str | None
    ) -> ParticipantRecord:
        """Create a participant row and return it."""

    def list_participants(self, session_id: UUID) -> list[ParticipantRecord]:
        """Return the participants of a session, oldest first."""

    def get_participant(self, participant_id: UUID) -> ParticipantRecord | None:
        """Return a participant by id, if present."""

    def find_participants_by_connection(
        self, connection_id: str
    ) -> list[ParticipantRecord]:
        """Return every participant bound to a connection."""

    def update_participant_connection(
        self, participant_id: UUID, connection_id: str | None
    ) -> None:
        """Rebind a participant to a connection."""

    def remove_participant(self, participant_id: UUID) -> None:
        """Delete a participant row."""

    def delete_session_participants(self, session_id: UUID) -> int:
        """Delete every participant of a session and return how many went."""

    def set_photo_assignment(
        self, participant_id: UUID, photo_id: UUID | None
    ) -> None:
        """Set or clear the photo held by a participant."""

    def clear_photo_assignments(self, session_id: UUID) -> None:
        """Clear the photo held by every participant of a session."""

    def find_participants_by_photo(self, photo_id: UUID) -> list[ParticipantRecord]:
        """Return the participants currently holding a photo."""


def clean_participant_name(name: object) -> str:
    """Return a trimmed participant name or raise ValidationError."""
    cleaned = name.strip() if isinstance(name, str) else ""
    if not cleaned or len(cleaned) > MAX_PARTICIPANT_NAME_LENGTH:
        raise ValidationError("Invalid name")
    return cleaned


@dataclass
class PresenceTracker:
    """Maps live connections to participants of a session.

    A participant moves from absent to joined, may be reconnected under the
    same name any number of times, and leaves either explicitly or when its
    connection drops. A dropped connection removes the participant at once.
    """

    repository: ParticipantRepository
    max_participants: int = 50

    def join(
        self,
        session: SessionRecord,
        name: str,
        connection_id: str,
        is_admin: bool = False,
    ) -> ParticipantRecord | None:
        """Bind a connection to a participant of the session.

        Admins are tracked by room membership only and get no row, so None is
        returned for them.
        """
        if is_admin:
            return None
        participants = self.repository.list_participants(session.id)
        existing = next((p for p in participants if p.name == name), None)
        if existing is not None:
            self.repository.update_participant_connection(existing.id, connection_id)
            logger.info(
                "Participant reconnected",
                extra={"participant_id": str(existing.id), "session": session.code},
            )
            return ParticipantRecord(
                id=existing.id,
                session_id=existing.session_id,
                name=existing.name,
                connection_id=connection_id,
                photo_assigned=existing.photo_assigned,
                created_at=existing.created_at,
            )
        if len(participants) >= self.max_participants:
            raise SessionFull()
        participant = self.repository.add_participant(session.id, name, connection_id)
        logger.info(
            "Participant joined",
            extra={"participant_id": str(participant.id), "session": session.code},
        )
        return participant

    def bound_session_ids(self, connection_id: str) -> list[UUID]:
        """Return the sessions holding a participant bound to a connection."""
        session_ids: list[UUID] = []
        for participant in self.repository.find_participants_by_connection(
            connection_id
        ):
            if participant.session_id not in session_ids:
                session_ids.append(participant.session_id)
        return session_ids

    def disconnect(
        self, session: SessionRecord, connection_id: str
    ) -> list[ParticipantRecord]:
        """Remove the participants of a session bound to a dropped connection."""
        removed = [
            participant
            for participant in self.repository.find_participants_by_connection(
                connection_id
            )
            if participant.session_id == session.id
        ]
        for participant in removed:
            self.repository.remove_participant(participant.id)
            logger.info(
                "Removed participant on disconnect",
                extra={"participant_id": str(participant.id)},
            )
        return removed

    def leave(self, session: SessionRecord, participant_id: UUID) -> ParticipantRecord:
        """Remove a participant that explicitly left the session."""
        participant = self.repository.get_participant(participant_id)
        if participant is None or participant.session_id != session.id:
            raise ParticipantNotFound()
        self.repository.remove_participant(participant.id)
        logger.info(
            "Participant left",
            extra={"participant_id": str(participant.id), "session": session.code},
        )
        return participant

    def list_participants(self, session: SessionRecord) -> list[ParticipantRecord]:
        """Return the authoritative participant list for a session."""
        return self.repository.list_participants(session.id)
