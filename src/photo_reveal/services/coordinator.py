"""Event coordinator tying registry, presence, assignment and rooms together."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

import pydantic

from photo_reveal.domain import events
from photo_reveal.domain.errors import (
    PhotoRevealError,
    SessionEnded,
    SessionNotFound,
    StoreError,
    ValidationError,
)
from photo_reveal.domain.models import (
    ParticipantRecord,
    PhotoRecord,
    SessionRecord,
    participant_payload,
    photo_payload,
    session_payload,
)
from photo_reveal.services.assignment import AssignmentEngine, parse_new_photos
from photo_reveal.services.presence import PresenceTracker, clean_participant_name
from photo_reveal.services.registry import SessionRegistry
from photo_reveal.services.rooms import Connection, RoomBroadcaster

logger = logging.getLogger(__name__)

PARTICIPANTS_UPDATED = "participants_updated"
PHOTOS_UPDATED = "photos_updated"
SESSION_JOINED = "session_joined"
SESSION_ENDED = "session_ended"
ERROR = "error"

INTERNAL_ERROR_MESSAGE = "Internal server error"

_T = TypeVar("_T")
_M = TypeVar("_M", bound=pydantic.BaseModel)


@dataclass(frozen=True)
class EventResult:
    """Outcome of one handled event, for callers and tests to inspect."""

    ok: bool
    error: str | None = None
    data: dict[str, object] = field(default_factory=dict)


@dataclass
class SessionLocks:
    """Per-session exclusive sections, created on demand and dropped when idle."""

    _locks: dict[str, asyncio.Lock] = field(default_factory=dict)
    _waiters: dict[str, int] = field(default_factory=dict)

    @asynccontextmanager
    async def hold(self, code: str) -> AsyncIterator[None]:
        """Hold the exclusive section for a session code."""
        lock = self._locks.setdefault(code, asyncio.Lock())
        self._waiters[code] = self._waiters.get(code, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[code] -= 1
            if not self._waiters[code]:
                del self._waiters[code]
                self._locks.pop(code, None)

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class Coordinator:
    """Handles client intents one at a time per session.

    Each intent runs validate, resolve, mutate, re-read and broadcast while
    holding its session's lock, so observers never see a torn state. Sessions
    do not block one another. Errors go back to the originating connection
    only and committed steps are not rolled back.
    """

    registry: SessionRegistry
    presence: PresenceTracker
    assignment: AssignmentEngine
    rooms: RoomBroadcaster
    locks: SessionLocks = field(default_factory=SessionLocks)

    def __post_init__(self) -> None:
        self._handlers: dict[
            str, Callable[[Connection, dict[str, Any]], Awaitable[dict[str, object]]]
        ] = {
            "join_session": self._join_session,
            "get_participants": self._get_participants,
            "upload_photos": self._upload_photos,
            "assign_photos": self._assign_photos,
            "assign_photo_manually": self._assign_photo_manually,
            "unassign_photo": self._unassign_photo,
            "end_session": self._end_session,
            "participant_left": self._participant_left,
            "remove_photo": self._remove_photo,
        }

    @property
    def event_names(self) -> list[str]:
        """Names of the intents this coordinator understands."""
        return list(self._handlers)

    async def handle(
        self, connection: Connection, event: str, data: object | None = None
    ) -> EventResult:
        """Handle one inbound intent from a connection."""
        handler = self._handlers.get(event)
        if handler is None:
            return await self._reject(connection, event, f"Unknown event: {event}")
        payload = data if isinstance(data, dict) else {}
        try:
            result = await handler(connection, payload)
        except StoreError:
            logger.exception(
                "Store failure while handling %s",
                event,
                extra={"connection_id": connection.id},
            )
            return await self._reject(connection, event, INTERNAL_ERROR_MESSAGE)
        except PhotoRevealError as exc:
            return await self._reject(connection, event, exc.message)
        except Exception:
            logger.exception(
                "Unexpected failure while handling %s",
                event,
                extra={"connection_id": connection.id},
            )
            return await self._reject(connection, event, INTERNAL_ERROR_MESSAGE)
        return EventResult(ok=True, data=result)

    async def disconnect(self, connection_id: str) -> EventResult:
        """Handle a closed connection: leave its room, drop its participants."""
        self.rooms.leave(connection_id)
        removed = 0
        try:
            session_ids = await self._call(
                self.presence.bound_session_ids, connection_id
            )
            for session_id in session_ids:
                session = await self._call(self.registry.get_session_by_id, session_id)
                if session is None:
                    continue
                async with self.locks.hold(session.code):
                    gone = await self._call(
                        self.presence.disconnect, session, connection_id
                    )
                    if gone:
                        removed += len(gone)
                        await self._broadcast_participants(session)
        except Exception:
            logger.exception(
                "Error handling disconnect", extra={"connection_id": connection_id}
            )
            return EventResult(ok=False, error=INTERNAL_ERROR_MESSAGE)
        return EventResult(ok=True, data={"removed": removed})

    async def create_session(self, name: object) -> SessionRecord:
        """Create a session for an admin."""
        return await self._call(self.registry.create_session, name)

    async def get_session(self, code: str) -> SessionRecord:
        """Return the session for a code or raise SessionNotFound."""
        session = await self._call(self.registry.get_session_by_code, code)
        if session is None:
            raise SessionNotFound()
        return session

    async def check_store(self) -> None:
        """Raise StoreError when the record store cannot be reached."""
        await self._call(self.registry.check_store)

    async def sweep_expired(self) -> int:
        """Expire old sessions and tell their rooms the session is over."""
        try:
            candidates = await self._call(self.registry.expired_sessions)
        except Exception:
            logger.exception("Error listing sessions for cleanup")
            return 0
        expired = 0
        for candidate in candidates:
            try:
                async with self.locks.hold(candidate.code):
                    current = await self._call(
                        self.registry.get_session_by_id, candidate.id
                    )
                    if current is None or not current.active:
                        continue
                    await self._call(self.registry.expire_session, current)
                    await self.rooms.broadcast(candidate.code, SESSION_ENDED)
                    self.rooms.close_room(candidate.code)
            except Exception:
                logger.exception(
                    "Error cleaning up session",
                    extra={"session_id": str(candidate.id)},
                )
                continue
            expired += 1
        return expired

    async def _join_session(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(events.JoinSession, data, "Invalid join request")
        code = self.registry.validate_code(intent.code)
        name = clean_participant_name(intent.name)
        async with self.locks.hold(code):
            session = await self._active_session(code)
            participant = await self._call(
                self.presence.join, session, name, connection.id, intent.is_admin
            )
            self.rooms.join(code, connection)
            await self._broadcast_participants(session)
            await self.rooms.unicast(
                connection, SESSION_JOINED, session_payload(session)
            )
            photos = await self._call(self.assignment.list_photos, session.id)
            await self.rooms.unicast(
                connection, PHOTOS_UPDATED, [photo_payload(photo) for photo in photos]
            )
        return {"session": session, "participant": participant}

    async def _get_participants(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(events.SessionCode, data, "Invalid session code")
        code = self.registry.validate_code(intent.code)
        async with self.locks.hold(code):
            session = await self._session(code)
            participants = await self._call(self.presence.list_participants, session)
            await self.rooms.unicast(
                connection,
                PARTICIPANTS_UPDATED,
                [participant_payload(p) for p in participants],
            )
        return {"participants": participants}

    async def _upload_photos(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(events.UploadPhotos, data, "Invalid photos array")
        code = self.registry.validate_code(intent.code)
        photos = parse_new_photos(intent.photos)
        async with self.locks.hold(code):
            session = await self._active_session(code)
            existing = await self._call(self.assignment.list_photos, session.id)
            added = await self._call(self.assignment.upload_photos, session.id, photos)
            current = await self._broadcast_photos(session)
            if len(current) != len(existing) + len(added):
                logger.warning(
                    "Photo count mismatch after upload",
                    extra={
                        "session": code,
                        "expected": len(existing) + len(added),
                        "actual": len(current),
                    },
                )
        return {"added": added}

    async def _assign_photos(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(events.SessionCode, data, "Invalid session code")
        code = self.registry.validate_code(intent.code)
        async with self.locks.hold(code):
            session = await self._active_session(code)
            assignments = await self._call(self.assignment.auto_assign, session.id)
            if assignments:
                await self._broadcast_participants(session)
                await self._broadcast_photos(session)
        return {"assignments": assignments}

    async def _assign_photo_manually(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(
            events.AssignPhotoManually, data, "Invalid assignment request"
        )
        session = await self._session_by_id(intent.session_id)
        async with self.locks.hold(session.code):
            session = await self._session_by_id(intent.session_id)
            participant = await self._call(
                self.assignment.manual_assign,
                session.id,
                intent.participant_id,
                intent.photo_id,
            )
            await self._broadcast_participants(session)
            await self._broadcast_photos(session)
        return {"participant": participant}

    async def _unassign_photo(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(events.UnassignPhoto, data, "Invalid unassign request")
        session = await self._session_by_id(intent.session_id)
        async with self.locks.hold(session.code):
            session = await self._session_by_id(intent.session_id)
            participant = await self._call(
                self.assignment.manual_unassign, session.id, intent.participant_id
            )
            await self._broadcast_participants(session)
            await self._broadcast_photos(session)
        return {"participant": participant}

    async def _end_session(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(events.SessionCode, data, "Invalid session code")
        code = self.registry.validate_code(intent.code)
        async with self.locks.hold(code):
            ended = await self._call(self.registry.end_session, code)
            await self.rooms.broadcast(code, SESSION_ENDED)
            self.rooms.close_room(code)
        return {"ended": ended}

    async def _participant_left(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(events.ParticipantLeft, data, "Invalid leave request")
        code = self.registry.validate_code(intent.code)
        async with self.locks.hold(code):
            session = await self._active_session(code)
            participant = await self._call(
                self.presence.leave, session, intent.participant_id
            )
            if (
                participant.connection_id is not None
                and self.rooms.room_of(participant.connection_id) == code
            ):
                self.rooms.leave(participant.connection_id)
            await self._broadcast_participants(session)
        return {"participant": participant}

    async def _remove_photo(
        self, connection: Connection, data: dict[str, Any]
    ) -> dict[str, object]:
        intent = _parse(events.RemovePhoto, data, "Invalid remove request")
        code = self.registry.validate_code(intent.code)
        async with self.locks.hold(code):
            session = await self._active_session(code)
            released = await self._call(
                self.assignment.remove_photo, session.id, intent.photo_id
            )
            await self._broadcast_photos(session)
            await self._broadcast_participants(session)
        return {"released": released}

    async def _session(self, code: str) -> SessionRecord:
        session = await self._call(self.registry.get_session_by_code, code)
        if session is None:
            raise SessionNotFound()
        return session

    async def _active_session(self, code: str) -> SessionRecord:
        session = await self._session(code)
        if not session.active:
            raise SessionEnded()
        return session

    async def _session_by_id(self, session_id: Any) -> SessionRecord:
        session = await self._call(self.registry.get_session_by_id, session_id)
        if session is None:
            raise SessionNotFound()
        if not session.active:
            raise SessionEnded()
        return session

    async def _broadcast_participants(
        self, session: SessionRecord
    ) -> list[ParticipantRecord]:
        participants = await self._call(self.presence.list_participants, session)
        await self.rooms.broadcast(
            session.code,
            PARTICIPANTS_UPDATED,
            [participant_payload(p) for p in participants],
        )
        return participants

    async def _broadcast_photos(self, session: SessionRecord) -> list[PhotoRecord]:
        photos = await self._call(self.assignment.list_photos, session.id)
        await self.rooms.broadcast(
            session.code, PHOTOS_UPDATED, [photo_payload(photo) for photo in photos]
        )
        return photos

    async def _reject(
        self, connection: Connection, event: str, message: str
    ) -> EventResult:
        logger.info(
            "Rejected %s: %s", event, message, extra={"connection_id": connection.id}
        )
        await self.rooms.unicast(connection, ERROR, {"message": message})
        return EventResult(ok=False, error=message)

    async def _call(self, func: Callable[..., _T], *args: Any) -> _T:
        return await asyncio.to_thread(func, *args)


def _parse(model: type[_M], data: dict[str, Any], message: str) -> _M:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(message) from exc
