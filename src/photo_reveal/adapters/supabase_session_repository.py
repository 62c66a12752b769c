"""Supabase-backed session repository."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from photo_reveal.adapters.supabase_support import execute, parse_timestamp
from photo_reveal.domain.errors import DuplicateSessionCode, StoreError
from photo_reveal.domain.models import SessionRecord
from photo_reveal.services.registry import SessionRepository

_COLUMNS = "id, code, name, created_at, active"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for reveal sessions."""

    client: Client

    def create_session(self, name: str, code: str) -> SessionRecord:
        """Insert an active session row and return it."""
        response = execute(
            self.client.table("sessions").insert(
                {"name": name, "code": code, "active": True}
            ),
            "create session",
            on_unique_violation=DuplicateSessionCode,
        )
        if not response.data:
            raise StoreError("Failed to create session")
        return _parse_row(response.data[0])

    def get_session_by_code(self, code: str) -> SessionRecord | None:
        """Return the session for a code, active rows first."""
        response = execute(
            self.client.table("sessions")
            .select(_COLUMNS)
            .eq("code", code)
            .order("active", desc=True)
            .order("created_at", desc=True)
            .limit(1),
            "get session",
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def get_session_by_id(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = execute(
            self.client.table("sessions")
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .limit(1),
            "get session",
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def list_active_sessions(self) -> list[SessionRecord]:
        """Return every active session."""
        response = execute(
            self.client.table("sessions").select(_COLUMNS).eq("active", True),
            "list active sessions",
        )
        return [_parse_row(row) for row in response.data or []]

    def deactivate_session(self, session_id: UUID) -> None:
        """Mark a session inactive."""
        execute(
            self.client.table("sessions")
            .update({"active": False})
            .eq("id", str(session_id)),
            "deactivate session",
        )

    def delete_session(self, session_id: UUID) -> None:
        """Delete a session row."""
        execute(
            self.client.table("sessions").delete().eq("id", str(session_id)),
            "delete session",
        )

    def ping(self) -> None:
        """Read at most one session id to prove the store answers."""
        execute(
            self.client.table("sessions").select("id").limit(1),
            "reach session store",
        )


def _parse_row(row: dict[str, object]) -> SessionRecord:
    return SessionRecord(
        id=UUID(str(row["id"])),
        code=str(row["code"]),
        name=str(row["name"]),
        created_at=parse_timestamp(row.get("created_at")),
        active=bool(row.get("active", True)),
    )
