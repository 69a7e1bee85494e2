"""FastAPI server for the terminal relay.

Accepts browser WebSocket connections on the configured terminal path and
gives each one its own ``SessionController``. Also exposes a trivial
health check for load balancers.

    GET       /health    -> {"ok": true, "timestamp": "...", "connections": 0}
    WEBSOCKET /terminal  <-> JSON control / status / output frames
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.websockets import WebSocketState

from termrelay.config.settings import Settings
from termrelay.relay.controller import SessionController
from termrelay.relay.registry import ConnectionRegistry
from termrelay.remote.base import AdapterFactory

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    ok: bool = True
    timestamp: str
    connections: int = 0


def create_app(
    settings: Settings | None = None,
    adapter_factory: AdapterFactory | None = None,
    registry: ConnectionRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Server and SSH configuration. Defaults to ``Settings()``.
        adapter_factory: Builds remote backends; defaults to paramiko
                         configured from ``settings.ssh`` (injectable for testing).
        registry: Registry of live sessions (injectable for testing).
    """
    if settings is None:
        settings = Settings()
    if adapter_factory is None:
        from termrelay.remote.ssh_backend import adapter_factory as ssh_adapter_factory
        adapter_factory = ssh_adapter_factory(settings.ssh)
    if registry is None:
        registry = ConnectionRegistry()

    allowed_origin = settings.server.allowed_origin

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Terminal relay listening on %s (origin: %s)",
            settings.server.path, allowed_origin or "any",
        )
        yield
        live = len(app.state.registry)
        app.state.registry.close_all()
        logger.info("Terminal relay stopped (%d session(s) closed)", live)

    app = FastAPI(
        title="termrelay",
        description="WebSocket to SSH terminal relay",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.adapter_factory = adapter_factory
    app.state.registry = registry

    if allowed_origin:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[allowed_origin],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse(
            ok=True,
            timestamp=datetime.now(timezone.utc).isoformat(),
            connections=len(app.state.registry),
        )

    @app.websocket(settings.server.path)
    async def terminal_session(websocket: WebSocket) -> None:
        origin = websocket.headers.get("origin")
        if allowed_origin and origin and origin != allowed_origin:
            logger.warning("Rejected WebSocket from origin %s", origin)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()

        async def send(frame: str) -> None:
            if websocket.application_state == WebSocketState.CONNECTED:
                await websocket.send_text(frame)

        controller = SessionController(send=send, adapter_factory=app.state.adapter_factory)
        app.state.registry.add(controller)
        runner = asyncio.create_task(controller.run())
        try:
            await _pump_frames(websocket, controller)
        except Exception:
            logger.exception("WebSocket error in session %s", controller.session_id)
        finally:
            controller.post_transport_closed()
            await runner
            app.state.registry.remove(controller)

    return app


async def _pump_frames(websocket: WebSocket, controller: SessionController) -> None:
    """Feed inbound frames to the controller until the client goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            logger.info("WebSocket disconnected for session %s", controller.session_id)
            return
        frame = message.get("text")
        if frame is None:
            frame = (message.get("bytes") or b"").decode("utf-8", errors="replace")
        controller.post_frame(frame)


def main(host: str = "0.0.0.0", port: int = 4000) -> None:
    """Entry point for running the relay standalone with default settings."""
    app = create_app()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
