"""FastAPI application factory."""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from photo_reveal.api.errors import register_exception_handlers
from photo_reveal.app_logging import configure_logging
from photo_reveal.config import parse_cors_origins
from photo_reveal.containers import AppContainer
from photo_reveal.domain.errors import StoreError
from photo_reveal.domain.models import session_payload
from photo_reveal.services.coordinator import ERROR, Coordinator, EventResult


class CreateSessionRequest(BaseModel):
    """Body of a session creation request.

    The name is checked by the registry so a missing or non-string name gets
    the same "Invalid name" answer as a blank one.
    """

    name: Any = None


@dataclass
class WebSocketConnection:
    """A websocket client, addressed by a server-issued connection id."""

    websocket: WebSocket
    id: str = field(default_factory=lambda: str(uuid4()))

    async def send(self, event: str, payload: object | None = None) -> None:
        """Send one event frame to the client."""
        await self.websocket.send_json({"event": event, "data": payload})


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)
    origins = parse_cors_origins(container.settings.cors_origins)
    pending_cleanups: set[asyncio.Task[EventResult]] = set()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        sweeper = asyncio.create_task(
            _sweep_forever(
                state_container.coordinator,
                state_container.settings.cleanup_interval_seconds,
            )
        )
        yield
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        if pending_cleanups:
            await asyncio.gather(*pending_cleanups, return_exceptions=True)
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        allow_credentials=origins != ["*"],
    )
    register_exception_handlers(app)

    @app.get("/health", response_model=None)
    async def health(request: Request) -> dict[str, str] | JSONResponse:
        """Report whether the record store answers."""
        state_container: AppContainer = request.app.state.container
        try:
            await state_container.coordinator.check_store()
        except StoreError as exc:
            logger.error("Health check failed", exc_info=exc)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"status": "unhealthy", "store": "disconnected"},
            )
        return {"status": "ok", "store": "connected"}

    @app.post("/api/sessions")
    async def create_session(
        body: CreateSessionRequest, request: Request
    ) -> dict[str, object]:
        """Create a session and return its code."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.coordinator.create_session(body.name)
        return {"code": session.code, "session": session_payload(session)}

    @app.get("/api/sessions/{code}")
    async def get_session(code: str, request: Request) -> dict[str, object]:
        """Look up a session by its code."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.coordinator.get_session(code)
        return session_payload(session)

    @app.websocket("/ws")
    async def session_socket(websocket: WebSocket) -> None:
        """Carry intent events in and room events out for one client."""
        state_container: AppContainer = websocket.app.state.container
        coordinator = state_container.coordinator
        await websocket.accept()
        connection = WebSocketConnection(websocket)
        logger.info("Client connected", extra={"connection_id": connection.id})
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    logger.info(
                        "Client disconnected", extra={"connection_id": connection.id}
                    )
                    break
                raw = frame.get("text")
                message = _parse_frame(raw) if raw is not None else None
                if message is None:
                    await coordinator.rooms.unicast(
                        connection, ERROR, {"message": "Invalid message"}
                    )
                    continue
                event, data = message
                await coordinator.handle(connection, event, data)
        finally:
            # Runs to completion even if this handler is cancelled on close.
            cleanup = asyncio.create_task(coordinator.disconnect(connection.id))
            pending_cleanups.add(cleanup)
            cleanup.add_done_callback(pending_cleanups.discard)
            await asyncio.shield(cleanup)

    return app


async def _sweep_forever(coordinator: Coordinator, interval_seconds: int) -> None:
    """Expire old sessions every interval until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        await coordinator.sweep_expired()


def _parse_frame(raw: str) -> tuple[str, object] | None:
    """Parse an inbound frame of the form {"event": ..., "data": ...}."""
    try:
        message = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(message, dict):
        return None
    event = message.get("event")
    if not isinstance(event, str) or not event:
        return None
    return event, message.get("data")
