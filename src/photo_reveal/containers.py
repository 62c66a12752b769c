"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from photo_reveal.adapters.supabase_participant_repository import (
    SupabaseParticipantRepository,
)
from photo_reveal.adapters.supabase_photo_repository import SupabasePhotoRepository
from photo_reveal.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from photo_reveal.config import Settings
from photo_reveal.services.assignment import AssignmentEngine
from photo_reveal.services.coordinator import Coordinator
from photo_reveal.services.presence import PresenceTracker
from photo_reveal.services.registry import SessionRegistry
from photo_reveal.services.rooms import RoomBroadcaster


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    registry: SessionRegistry
    presence: PresenceTracker
    assignment: AssignmentEngine
    rooms: RoomBroadcaster
    coordinator: Coordinator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    participant_repository = SupabaseParticipantRepository(supabase_client)
    photo_repository = SupabasePhotoRepository(supabase_client)
    registry = SessionRegistry(
        session_repository=session_repository,
        participant_repository=participant_repository,
        photo_repository=photo_repository,
        code_length=resolved_settings.session_code_length,
        expiry=timedelta(seconds=resolved_settings.session_expiry_seconds),
    )
    presence = PresenceTracker(
        repository=participant_repository,
        max_participants=resolved_settings.max_participants,
    )
    assignment = AssignmentEngine(
        participant_repository=participant_repository,
        photo_repository=photo_repository,
    )
    rooms = RoomBroadcaster(send_timeout=resolved_settings.broadcast_timeout_seconds)
    coordinator = Coordinator(
        registry=registry,
        presence=presence,
        assignment=assignment,
        rooms=rooms,
    )

    async def close_resources() -> None:
        for code in rooms.codes():
            rooms.close_room(code)

    return AppContainer(
        settings=resolved_settings,
        registry=registry,
        presence=presence,
        assignment=assignment,
        rooms=rooms,
        coordinator=coordinator,
        close_resources=close_resources,
    )
