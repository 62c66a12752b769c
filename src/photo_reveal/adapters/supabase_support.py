"""Helpers shared by the Supabase repositories."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import httpx
from supabase import PostgrestAPIError

from photo_reveal.domain.errors import StoreError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def execute(
    query: Any,
    action: str,
    on_unique_violation: type[StoreError] = StoreError,
) -> Any:
    """Run a query builder, turning client failures into StoreError."""
    try:
        return query.execute()
    except PostgrestAPIError as exc:
        logger.error("Supabase rejected %s: %s", action, exc.message)
        if exc.code == UNIQUE_VIOLATION:
            raise on_unique_violation(f"Failed to {action}") from exc
        raise StoreError(f"Failed to {action}") from exc
    except httpx.HTTPError as exc:
        logger.error("Supabase unreachable during %s", action)
        raise StoreError(f"Failed to {action}") from exc


def parse_timestamp(raw: object) -> datetime:
    """Parse a timestamptz column, falling back to the epoch."""
    if isinstance(raw, str) and raw:
        parsed = datetime.fromisoformat(raw)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return datetime.fromtimestamp(0, tz=UTC)


def optional_uuid(raw: object) -> UUID | None:
    return UUID(str(raw)) if raw else None
