"""Session registry: room codes, lookup, end and expiry."""

import logging
import re
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from photo_reveal.domain.errors import (
    DuplicateSessionCode,
    StoreError,
    ValidationError,
)
from photo_reveal.domain.models import SessionRecord
from photo_reveal.services.assignment import PhotoRepository
from photo_reveal.services.presence import ParticipantRepository

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_SESSION_NAME_LENGTH = 50
_MAX_CODE_ATTEMPTS = 8


class SessionRepository(Protocol):
    """Persistence interface for sessions."""

    def create_session(self, name: str, code: str) -> SessionRecord:
        """Create an active session; raise DuplicateSessionCode on a taken code."""

    def get_session_by_code(self, code: str) -> SessionRecord | None:
        """Return the session for a code, preferring the active one."""

    def get_session_by_id(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def list_active_sessions(self) -> list[SessionRecord]:
        """Return every active session."""

    def deactivate_session(self, session_id: UUID) -> None:
        """Mark a session inactive."""

    def delete_session(self, session_id: UUID) -> None:
        """Delete a session row."""

    def ping(self) -> None:
        """Make a cheap round-trip to the store; raise StoreError if it fails."""


def generate_session_code(length: int = 6) -> str:
    """Draw a code uniformly from uppercase letters and digits."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def is_valid_session_code(code: object, length: int = 6) -> bool:
    """Return true when the code matches the fixed lexical pattern."""
    return isinstance(code, str) and bool(
        re.fullmatch(rf"[A-Z0-9]{{{length}}}", code)
    )


@dataclass
class EndedSession:
    """A session the sweep moved to inactive."""

    session: SessionRecord
    removed_participants: int
    removed_photos: int


@dataclass
class SessionRegistry:
    """Creates, resolves and ends sessions by their human-entered code."""

    session_repository: SessionRepository
    participant_repository: ParticipantRepository
    photo_repository: PhotoRepository
    code_length: int = 6
    expiry: timedelta = timedelta(hours=24)

    def validate_code(self, code: object) -> str:
        """Return the code if well formed, else raise ValidationError."""
        if not is_valid_session_code(code, self.code_length):
            raise ValidationError("Invalid session code")
        return code  # type: ignore[return-value]

    def create_session(self, name: object) -> SessionRecord:
        """Create a session under a freshly generated code.

        Collisions with an active session are retried with a new code and are
        never surfaced to the caller.
        """
        cleaned = name.strip() if isinstance(name, str) else ""
        if not cleaned or len(cleaned) > MAX_SESSION_NAME_LENGTH:
            raise ValidationError("Invalid name")
        for attempt in range(1, _MAX_CODE_ATTEMPTS + 1):
            code = generate_session_code(self.code_length)
            existing = self.session_repository.get_session_by_code(code)
            if existing is not None and existing.active:
                logger.info("Generated code already active, retrying")
                continue
            try:
                session = self.session_repository.create_session(cleaned, code)
            except DuplicateSessionCode:
                logger.warning(
                    "Session code collision on insert",
                    extra={"attempt": attempt},
                )
                continue
            logger.info("Created session %s", session.code)
            return session
        raise StoreError("Could not allocate a unique session code")

    def get_session_by_code(self, code: object) -> SessionRecord | None:
        """Return the session for a well-formed code, or None."""
        valid = self.validate_code(code)
        return self.session_repository.get_session_by_code(valid)

    def get_session_by_id(self, session_id: UUID) -> SessionRecord | None:
        """Return the session with this id, or None."""
        return self.session_repository.get_session_by_id(session_id)

    def check_store(self) -> None:
        """Raise StoreError when the session store cannot be reached."""
        self.session_repository.ping()

    def end_session(self, code: object) -> SessionRecord | None:
        """End the active session for a code and delete everything it owns.

        Children go before the parent row so a failure part way never leaves a
        session pointing at missing rows. Ending an absent or inactive session
        is a no-op that returns None.
        """
        session = self.get_session_by_code(code)
        if session is None or not session.active:
            return None
        self._delete_children(session.id)
        self.session_repository.delete_session(session.id)
        logger.info("Ended session %s", session.code)
        return session

    def expired_sessions(self, now: datetime | None = None) -> list[SessionRecord]:
        """Return active sessions older than the expiry age."""
        current = now or datetime.now(tz=UTC)
        return [
            session
            for session in self.session_repository.list_active_sessions()
            if current - session.created_at > self.expiry
        ]

    def expire_session(self, session: SessionRecord) -> EndedSession:
        """Empty a session and mark it inactive, keeping its row."""
        participants, photos = self._delete_children(session.id)
        self.session_repository.deactivate_session(session.id)
        logger.info("Cleaned up inactive session %s", session.id)
        return EndedSession(
            session=session,
            removed_participants=participants,
            removed_photos=photos,
        )

    def expire_sessions(self, now: datetime | None = None) -> list[EndedSession]:
        """Deactivate every session past the expiry age.

        Failures on one session are logged and the sweep moves on.
        """
        ended: list[EndedSession] = []
        for session in self.expired_sessions(now):
            try:
                ended.append(self.expire_session(session))
            except Exception:
                logger.exception(
                    "Failed to expire session", extra={"session_id": str(session.id)}
                )
        return ended

    def _delete_children(self, session_id: UUID) -> tuple[int, int]:
        photos = self.photo_repository.delete_session_photos(session_id)
        participants = self.participant_repository.delete_session_participants(
            session_id
        )
        return participants, photos
