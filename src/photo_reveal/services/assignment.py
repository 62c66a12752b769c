"""Photo uploads and photo-to-participant assignment."""

import logging
import random
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from photo_reveal.domain.errors import (
    ParticipantNotFound,
    PhotoAlreadyAssigned,
    PhotoNotFound,
    ValidationError,
)
from photo_reveal.domain.models import NewPhoto, ParticipantRecord, PhotoRecord
from photo_reveal.services.presence import ParticipantRepository

logger = logging.getLogger(__name__)


class PhotoRepository(Protocol):
    """Persistence interface for photos."""

    def add_photos(
        self, session_id: UUID, photos: list[NewPhoto]
    ) -> list[PhotoRecord]:
        """Insert a batch of photos and return the stored rows."""

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        """Return the photos of a session, newest first."""

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""

    def remove_photo(self, photo_id: UUID) -> None:
        """Delete a photo row."""

    def delete_session_photos(self, session_id: UUID) -> int:
        """Delete every photo of a session and return how many went."""


def parse_new_photos(raw: object) -> list[NewPhoto]:
    """Turn an upload payload into photos, dropping entries without a url."""
    if not isinstance(raw, list) or not raw:
        raise ValidationError("Invalid photos array")
    photos = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        url = item.get("url")
        if not isinstance(url, str) or not url:
            continue
        title = item.get("title")
        if not isinstance(title, str):
            title = None
        photos.append(NewPhoto(url=url, title=title))
    if not photos:
        raise ValidationError("No valid photos to upload")
    if len(photos) != len(raw):
        logger.warning(
            "Dropped invalid photos from upload",
            extra={"dropped": len(raw) - len(photos)},
        )
    return photos


@dataclass
class AssignmentEngine:
    """Owns the photo set of a session and who holds which photo.

    Auto assignment lets a photo repeat once participants outnumber photos.
    Manual assignment is stricter: a photo held by anyone cannot be given to
    someone else until it is released.
    """

    participant_repository: ParticipantRepository
    photo_repository: PhotoRepository
    rng: random.Random = field(default_factory=random.SystemRandom)

    def upload_photos(
        self, session_id: UUID, photos: list[NewPhoto]
    ) -> list[PhotoRecord]:
        """Store a batch of photos for a session."""
        added = self.photo_repository.add_photos(session_id, photos)
        logger.info(
            "Added photos", extra={"session_id": str(session_id), "count": len(added)}
        )
        return added

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        """Return the authoritative photo list for a session."""
        return self.photo_repository.list_photos(session_id)

    def auto_assign(self, session_id: UUID) -> dict[UUID, UUID]:
        """Give every participant one photo drawn from a shuffled photo list.

        Returns the participant to photo mapping; empty when there is nothing
        to assign.
        """
        participants = self.participant_repository.list_participants(session_id)
        photos = self.photo_repository.list_photos(session_id)
        if not participants or not photos:
            return {}

        self.participant_repository.clear_photo_assignments(session_id)
        shuffled = list(photos)
        self.rng.shuffle(shuffled)
        assignments = {
            participant.id: shuffled[index % len(shuffled)].id
            for index, participant in enumerate(participants)
        }
        for participant_id, photo_id in assignments.items():
            self.participant_repository.set_photo_assignment(participant_id, photo_id)
        logger.info(
            "Assigned photos",
            extra={"session_id": str(session_id), "count": len(assignments)},
        )
        return assignments

    def manual_assign(
        self, session_id: UUID, participant_id: UUID, photo_id: UUID
    ) -> ParticipantRecord:
        """Give one photo to one participant, refusing photos already held."""
        participant = self._participant_in_session(session_id, participant_id)
        photo = self.photo_repository.get_photo(photo_id)
        if photo is None or photo.session_id != session_id:
            raise PhotoNotFound()
        if self.participant_repository.find_participants_by_photo(photo_id):
            raise PhotoAlreadyAssigned()
        self.participant_repository.set_photo_assignment(participant.id, photo.id)
        return participant

    def manual_unassign(
        self, session_id: UUID, participant_id: UUID
    ) -> ParticipantRecord:
        """Release whatever photo a participant holds."""
        participant = self._participant_in_session(session_id, participant_id)
        self.participant_repository.set_photo_assignment(participant.id, None)
        return participant

    def remove_photo(self, session_id: UUID, photo_id: UUID) -> list[ParticipantRecord]:
        """Delete a photo after releasing it from everyone holding it."""
        photo = self.photo_repository.get_photo(photo_id)
        if photo is None or photo.session_id != session_id:
            raise PhotoNotFound()
        holders = self.participant_repository.find_participants_by_photo(photo_id)
        for holder in holders:
            self.participant_repository.set_photo_assignment(holder.id, None)
        self.photo_repository.remove_photo(photo_id)
        logger.info(
            "Removed photo",
            extra={"photo_id": str(photo_id), "released": len(holders)},
        )
        return holders

    def _participant_in_session(
        self, session_id: UUID, participant_id: UUID
    ) -> ParticipantRecord:
        participant = self.participant_repository.get_participant(participant_id)
        if participant is None or participant.session_id != session_id:
            raise ParticipantNotFound()
        return participant
