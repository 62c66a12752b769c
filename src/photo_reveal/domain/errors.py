"""Errors raised by session coordination."""


class PhotoRevealError(Exception):
    """Base class for errors reported back to the originating connection."""

    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(PhotoRevealError):
    """Malformed code, name or payload; raised before any store access."""

    message = "Invalid request"


class SessionNotFound(PhotoRevealError):
    message = "Session not found"


class SessionEnded(PhotoRevealError):
    message = "Session has ended"


class SessionFull(PhotoRevealError):
    message = "Session is full"


class ParticipantNotFound(PhotoRevealError):
    message = "Participant not found"


class PhotoNotFound(PhotoRevealError):
    message = "Photo not found"


class PhotoAlreadyAssigned(PhotoRevealError):
    message = "Photo is already assigned"


class StoreError(PhotoRevealError):
    """Wraps a durable-store failure.

    The detail is kept for logs only; ``message`` stays generic so nothing
    internal reaches a client.
    """

    message = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__()
        self.detail = detail
        if detail is not None:
            self.args = (detail,)


class DuplicateSessionCode(StoreError):
    """The store rejected a session insert because the code is taken."""
