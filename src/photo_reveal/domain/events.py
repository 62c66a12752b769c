"""Inbound intent payloads sent by connected clients."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class _Intent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinSession(_Intent):
    """join_session payload."""

    code: str
    name: str
    is_admin: StrictBool = Field(alias="isAdmin")


class SessionCode(_Intent):
    """Payload carrying only a session code."""

    code: str


class UploadPhotos(_Intent):
    """upload_photos payload. Entries are checked one by one later."""

    code: str
    photos: list[Any]


class AssignPhotoManually(_Intent):
    """assign_photo_manually payload."""

    session_id: UUID = Field(alias="sessionId")
    participant_id: UUID = Field(alias="participantId")
    photo_id: UUID = Field(alias="photoId")


class UnassignPhoto(_Intent):
    """unassign_photo payload."""

    session_id: UUID = Field(alias="sessionId")
    participant_id: UUID = Field(alias="participantId")


class ParticipantLeft(_Intent):
    """participant_left payload."""

    code: str
    participant_id: UUID = Field(alias="participantId")


class RemovePhoto(_Intent):
    """remove_photo payload."""

    code: str
    photo_id: UUID = Field(alias="photoId")
