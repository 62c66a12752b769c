"""Supabase-backed participant repository."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from photo_reveal.adapters.supabase_support import (
    execute,
    optional_uuid,
    parse_timestamp,
)
from photo_reveal.domain.errors import StoreError
from photo_reveal.domain.models import ParticipantRecord
from photo_reveal.services.presence import ParticipantRepository

_COLUMNS = "id, session_id, name, socket_id, photo_assigned, created_at"


@dataclass
class SupabaseParticipantRepository(ParticipantRepository):
    """Supabase implementation for participants and their assignments."""

    client: Client

    def add_participant(
        self, session_id: UUID, name: str, connection_id: str | None
    ) -> ParticipantRecord:
        """Insert a participant row and return it."""
        response = execute(
            self.client.table("participants").insert(
                {
                    "session_id": str(session_id),
                    "name": name,
                    "socket_id": connection_id,
                }
            ),
            "add participant",
        )
        if not response.data:
            raise StoreError("Failed to add participant")
        return _parse_row(response.data[0])

    def list_participants(self, session_id: UUID) -> list[ParticipantRecord]:
        """Return the participants of a session in join order."""
        response = execute(
            self.client.table("participants")
            .select(_COLUMNS)
            .eq("session_id", str(session_id))
            .order("created_at", desc=False),
            "list participants",
        )
        return [_parse_row(row) for row in response.data or []]

    def get_participant(self, participant_id: UUID) -> ParticipantRecord | None:
        """Return a participant by id, if present."""
        response = execute(
            self.client.table("participants")
            .select(_COLUMNS)
            .eq("id", str(participant_id))
            .limit(1),
            "get participant",
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def find_participants_by_connection(
        self, connection_id: str
    ) -> list[ParticipantRecord]:
        """Return participants bound to a connection."""
        response = execute(
            self.client.table("participants")
            .select(_COLUMNS)
            .eq("socket_id", connection_id),
            "find participants by connection",
        )
        return [_parse_row(row) for row in response.data or []]

    def update_participant_connection(
        self, participant_id: UUID, connection_id: str | None
    ) -> None:
        """Rebind a participant to a connection."""
        execute(
            self.client.table("participants")
            .update({"socket_id": connection_id})
            .eq("id", str(participant_id)),
            "update participant connection",
        )

    def remove_participant(self, participant_id: UUID) -> None:
        """Delete a participant row."""
        execute(
            self.client.table("participants").delete().eq("id", str(participant_id)),
            "remove participant",
        )

    def delete_session_participants(self, session_id: UUID) -> int:
        """Delete all participants of a session."""
        response = execute(
            self.client.table("participants")
            .delete()
            .eq("session_id", str(session_id)),
            "delete session participants",
        )
        return len(response.data or [])

    def set_photo_assignment(
        self, participant_id: UUID, photo_id: UUID | None
    ) -> None:
        """Set or clear the photo held by a participant."""
        execute(
            self.client.table("participants")
            .update({"photo_assigned": str(photo_id) if photo_id else None})
            .eq("id", str(participant_id)),
            "set photo assignment",
        )

    def clear_photo_assignments(self, session_id: UUID) -> None:
        """Clear every assignment in a session."""
        execute(
            self.client.table("participants")
            .update({"photo_assigned": None})
            .eq("session_id", str(session_id)),
            "clear photo assignments",
        )

    def find_participants_by_photo(self, photo_id: UUID) -> list[ParticipantRecord]:
        """Return participants holding a photo."""
        response = execute(
            self.client.table("participants")
            .select(_COLUMNS)
            .eq("photo_assigned", str(photo_id)),
            "find participants by photo",
        )
        return [_parse_row(row) for row in response.data or []]


def _parse_row(row: dict[str, object]) -> ParticipantRecord:
    socket_id = row.get("socket_id")
    return ParticipantRecord(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        name=str(row["name"]),
        connection_id=str(socket_id) if socket_id else None,
        photo_assigned=optional_uuid(row.get("photo_assigned")),
        created_at=parse_timestamp(row.get("created_at")),
    )
