"""Room membership and fan-out of state-change events."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """A live client connection able to receive events."""

    id: str

    async def send(self, event: str, payload: object | None = None) -> None:
        """Deliver one event to the client."""


@dataclass
class RoomBroadcaster:
    """Tracks which live connections are in which session room.

    One instance is owned by one coordinator; nothing here is process-global.
    A connection sits in at most one room at a time.
    """

    send_timeout: float = 5.0
    _rooms: dict[str, dict[str, Connection]] = field(default_factory=dict)
    _membership: dict[str, str] = field(default_factory=dict)

    def join(self, code: str, connection: Connection) -> None:
        """Add a connection to a room, leaving any room it was in before."""
        previous = self._membership.get(connection.id)
        if previous is not None and previous != code:
            self.leave(connection.id)
        self._rooms.setdefault(code, {})[connection.id] = connection
        self._membership[connection.id] = code

    def leave(self, connection_id: str) -> str | None:
        """Remove a connection from its room and return that room's code."""
        code = self._membership.pop(connection_id, None)
        if code is None:
            return None
        members = self._rooms.get(code)
        if members is not None:
            members.pop(connection_id, None)
            if not members:
                self._rooms.pop(code, None)
        return code

    def close_room(self, code: str) -> list[str]:
        """Drop every connection from a room."""
        members = self._rooms.pop(code, {})
        for connection_id in members:
            self._membership.pop(connection_id, None)
        return list(members)

    def room_of(self, connection_id: str) -> str | None:
        """Return the room a connection is in, if any."""
        return self._membership.get(connection_id)

    def codes(self) -> list[str]:
        """Return the codes of rooms with at least one connection."""
        return list(self._rooms)

    def members(self, code: str) -> list[str]:
        """Return the connection ids currently in a room."""
        return list(self._rooms.get(code, {}))

    async def broadcast(
        self, code: str, event: str, payload: object | None = None
    ) -> None:
        """Deliver an event to every connection in a room.

        Deliveries run side by side so a slow or dead connection never holds
        up its siblings. A failed or timed out delivery is logged and skipped;
        membership only changes through join, leave and close_room.
        """
        targets = list(self._rooms.get(code, {}).values())
        if not targets:
            return
        await asyncio.gather(
            *(self._deliver(connection, event, payload) for connection in targets)
        )

    async def unicast(
        self, connection: Connection, event: str, payload: object | None = None
    ) -> bool:
        """Deliver an event to a single connection."""
        return await self._deliver(connection, event, payload)

    async def _deliver(
        self, connection: Connection, event: str, payload: object | None
    ) -> bool:
        try:
            await asyncio.wait_for(
                connection.send(event, payload), timeout=self.send_timeout
            )
        except Exception:
            logger.warning(
                "Dropped %s delivery",
                event,
                exc_info=True,
                extra={"connection_id": connection.id},
            )
            return False
        return True
