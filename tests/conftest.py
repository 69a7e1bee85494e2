"""Shared test fixtures for the termrelay test suite.

Provides a scripted in-memory remote backend, a factory that records the
backends it builds, and a session controller wired to a list that
collects every frame sent to the client.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from termrelay.domain.errors import RemoteError
from termrelay.domain.models import RemoteTarget, TerminalSize
from termrelay.relay.controller import SessionController
from termrelay.remote.base import EventSink, RemoteSessionAdapter


# ---------------------------------------------------------------------------
# Fake remote backend
# ---------------------------------------------------------------------------


class FakeAdapter(RemoteSessionAdapter):
    """In-memory backend that records every call made to it.

    ``connect_error`` / ``shell_error`` make the corresponding step fail with
    a ``RemoteError``; ``connect_exception`` raises an arbitrary exception
    instead. ``connect_gate`` / ``shell_gate`` hold that step until the test
    sets them.
    """

    def __init__(
        self,
        sink: EventSink,
        connect_error: str | None = None,
        shell_error: str | None = None,
        connect_gate: asyncio.Event | None = None,
        shell_gate: asyncio.Event | None = None,
        connect_exception: Exception | None = None,
    ) -> None:
        super().__init__(sink)
        self.connect_error = connect_error
        self.shell_error = shell_error
        self.connect_gate = connect_gate
        self.shell_gate = shell_gate
        self.connect_exception = connect_exception
        self.stream = object()
        self.targets: list[RemoteTarget] = []
        self.shell_sizes: list[TerminalSize] = []
        self.writes: list[str] = []
        self.resizes: list[TerminalSize] = []
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    async def connect(self, target: RemoteTarget) -> None:
        self.targets.append(target)
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_exception is not None:
            raise self.connect_exception
        if self.connect_error:
            raise RemoteError(self.connect_error)

    async def open_shell(self, size: TerminalSize) -> Any:
        self.shell_sizes.append(size)
        if self.shell_gate is not None:
            await self.shell_gate.wait()
        if self.shell_error:
            raise RemoteError(self.shell_error)
        return self.stream

    async def write(self, stream: Any, data: str) -> None:
        assert stream is self.stream
        self.writes.append(data)

    def resize(self, stream: Any, size: TerminalSize) -> None:
        assert stream is self.stream
        self.resizes.append(size)

    def close(self) -> None:
        self.close_count += 1


class FakeAdapterFactory:
    """Builds FakeAdapters with shared options and keeps them for inspection."""

    def __init__(self, **options: Any) -> None:
        self.options = options
        self.adapters: list[FakeAdapter] = []

    def __call__(self, sink: EventSink) -> FakeAdapter:
        adapter = FakeAdapter(sink, **self.options)
        self.adapters.append(adapter)
        return adapter

    @property
    def last(self) -> FakeAdapter:
        return self.adapters[-1]


# ---------------------------------------------------------------------------
# Frame helpers
# ---------------------------------------------------------------------------


CONNECT_FRAME = {
    "type": "connect",
    "host": "10.0.0.5",
    "username": "root",
    "password": "x",
    "port": 22,
    "cols": 80,
    "rows": 24,
}


def frame(payload: dict[str, Any]) -> str:
    return json.dumps(payload)


async def pump(controller: SessionController, count: int = 1) -> None:
    """Process ``count`` mailbox events, failing fast if one never arrives."""
    for _ in range(count):
        await asyncio.wait_for(controller.step(), timeout=2.0)


# ---------------------------------------------------------------------------
# Controller fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def adapter_factory() -> FakeAdapterFactory:
    return FakeAdapterFactory()


@pytest.fixture
def sent() -> list[dict[str, Any]]:
    """Decoded frames sent to the client, in order."""
    return []


@pytest.fixture
def controller(adapter_factory: FakeAdapterFactory, sent: list[dict[str, Any]]) -> SessionController:
    async def send(raw: str) -> None:
        sent.append(json.loads(raw))

    return SessionController(send=send, adapter_factory=adapter_factory, session_id="test")


@pytest.fixture
def connect_frame() -> str:
    return frame(CONNECT_FRAME)


@pytest.fixture
def step():
    """Helper that processes mailbox events: ``await step(controller, n)``."""
    return pump
