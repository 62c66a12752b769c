"""Supabase-backed photo repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from photo_reveal.adapters.supabase_support import execute, parse_timestamp
from photo_reveal.domain.errors import StoreError
from photo_reveal.domain.models import NewPhoto, PhotoRecord
from photo_reveal.services.assignment import PhotoRepository

_COLUMNS = "id, session_id, url, title, uploaded_at"


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation for session photos."""

    client: Client

    def add_photos(
        self, session_id: UUID, photos: list[NewPhoto]
    ) -> list[PhotoRecord]:
        """Insert a batch of photo rows and return them."""
        uploaded_at = datetime.now(tz=UTC).isoformat()
        response = execute(
            self.client.table("photos").insert(
                [
                    {
                        "session_id": str(session_id),
                        "url": photo.url,
                        "title": photo.title,
                        "uploaded_at": uploaded_at,
                    }
                    for photo in photos
                ]
            ),
            "add photos",
        )
        if response.data is None:
            raise StoreError("Failed to add photos")
        return [_parse_row(row) for row in response.data]

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        """Return the photos of a session, newest first."""
        response = execute(
            self.client.table("photos")
            .select(_COLUMNS)
            .eq("session_id", str(session_id))
            .order("uploaded_at", desc=True),
            "list photos",
        )
        return [_parse_row(row) for row in response.data or []]

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""
        response = execute(
            self.client.table("photos")
            .select(_COLUMNS)
            .eq("id", str(photo_id))
            .limit(1),
            "get photo",
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def remove_photo(self, photo_id: UUID) -> None:
        """Delete a photo row."""
        execute(
            self.client.table("photos").delete().eq("id", str(photo_id)),
            "remove photo",
        )

    def delete_session_photos(self, session_id: UUID) -> int:
        """Delete all photos of a session."""
        response = execute(
            self.client.table("photos").delete().eq("session_id", str(session_id)),
            "delete session photos",
        )
        return len(response.data or [])


def _parse_row(row: dict[str, object]) -> PhotoRecord:
    title = row.get("title")
    return PhotoRecord(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        url=str(row["url"]),
        title=str(title) if title is not None else None,
        uploaded_at=parse_timestamp(row.get("uploaded_at")),
    )
