"""Per-connection relay session state machine.

A ``SessionController`` owns everything about one browser connection:
its state, the single remote connection it may hold, and a resize that
arrived before the shell was ready. Inbound frames, asynchronous remote
outcomes and remote stream events all go through one mailbox and are
handled one at a time by ``step()``, so transitions never interleave.

States::

    IDLE --connect--> CONNECTING --shell opened--> ACTIVE
      ^                   |                          |
      +--- failure / disconnect / stream closed -----+

    any --transport closed--> CLOSED
"""

from __future__ import annotations

import asyncio
import codecs
import functools
import logging
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Coroutine, Union

from termrelay.domain.errors import (
    ProtocolError,
    RelayError,
    RemoteError,
    StateError,
    StreamError,
    ValidationError,
)
from termrelay.domain.models import (
    ConnectMessage,
    DisconnectMessage,
    InputMessage,
    OutboundMessage,
    RemoteEvent,
    RemoteFailure,
    RemoteOutput,
    RemoteSessionEnded,
    RemoteStreamClosed,
    RemoteTarget,
    ResizeMessage,
    SessionState,
    StatusPhase,
    TerminalSize,
)
from termrelay.protocol.codec import ControlCodec
from termrelay.remote.base import AdapterFactory, RemoteSessionAdapter, StreamHandle

logger = logging.getLogger(__name__)

MISSING_CREDENTIALS = "Missing required credentials"
ALREADY_CONNECTED = "Already connected"
NO_ACTIVE_CONNECTION = "No active connection"
DISCONNECTED_BY_CLIENT = "Disconnected by client"
REMOTE_STREAM_CLOSED = "Remote stream closed"
SSH_SESSION_ENDED = "SSH session ended"
FAILED_TO_OPEN_SHELL = "Failed to open shell"

SendFrame = Callable[[str], Awaitable[None]]


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass(eq=False)
class RemoteConnection:
    """One authenticate-then-shell attempt against one remote host."""

    target: RemoteTarget
    size: TerminalSize
    attempt: int
    adapter: RemoteSessionAdapter | None = None
    stream: StreamHandle | None = None
    decoder: codecs.IncrementalDecoder = field(default_factory=_utf8_decoder)

    def release(self) -> None:
        self.stream = None
        if self.adapter is not None:
            self.adapter.close()


# ---------------------------------------------------------------------------
# Mailbox events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FrameReceived:
    frame: str


@dataclass(frozen=True)
class ConnectSucceeded:
    connection: RemoteConnection


@dataclass(frozen=True)
class ConnectFailed:
    connection: RemoteConnection
    reason: str


@dataclass(frozen=True)
class ShellOpened:
    connection: RemoteConnection
    stream: StreamHandle


@dataclass(frozen=True)
class ShellFailed:
    connection: RemoteConnection
    reason: str


@dataclass(frozen=True)
class RemoteEventReceived:
    connection: RemoteConnection
    event: RemoteEvent


@dataclass(frozen=True)
class TransportClosed:
    pass


SessionEvent = Union[
    FrameReceived,
    ConnectSucceeded,
    ConnectFailed,
    ShellOpened,
    ShellFailed,
    RemoteEventReceived,
    TransportClosed,
]


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class SessionController:
    """Relays one browser terminal to at most one remote shell.

    Args:
        send: Coroutine function that writes one encoded frame to the
              client transport.
        adapter_factory: Builds a fresh ``RemoteSessionAdapter`` for each
              connect attempt, given the sink it should report events to.
        session_id: Identifier used in logs and by the registry.
    """

    def __init__(
        self,
        send: SendFrame,
        adapter_factory: AdapterFactory,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._send = send
        self._adapter_factory = adapter_factory
        self._state = SessionState.IDLE
        self._pending_resize: TerminalSize | None = None
        self._connection: RemoteConnection | None = None
        self._attempts = 0
        self._mailbox: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._tasks: set[asyncio.Task[None]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pending_resize(self) -> TerminalSize | None:
        return self._pending_resize

    @property
    def connection(self) -> RemoteConnection | None:
        return self._connection

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.CLOSED

    # -- mailbox ------------------------------------------------------------

    def post_frame(self, frame: str) -> None:
        """Queue an inbound transport frame."""
        self._post(FrameReceived(frame))

    def post_transport_closed(self) -> None:
        """Queue the end of the transport; ``run()`` returns once it is handled."""
        self._post(TransportClosed())

    def _post(self, event: SessionEvent) -> None:
        self._mailbox.put_nowait(event)

    def _post_remote_event(self, connection: RemoteConnection, event: RemoteEvent) -> None:
        # Called from backend reader threads
        assert self._loop is not None
        self._loop.call_soon_threadsafe(self._post, RemoteEventReceived(connection, event))

    async def run(self) -> None:
        """Process mailbox events until the transport closes."""
        self._loop = asyncio.get_running_loop()
        while not self.is_closed:
            await self.step()
        logger.debug("Session %s finished", self.session_id)

    async def step(self) -> None:
        """Take one event from the mailbox and apply it."""
        event = await self._mailbox.get()
        try:
            await self.dispatch(event)
        finally:
            self._mailbox.task_done()

    # -- transitions --------------------------------------------------------

    async def dispatch(self, event: SessionEvent) -> None:
        """Apply a single event to the state machine."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        if self.is_closed:
            self._discard(event)
            return

        try:
            if isinstance(event, FrameReceived):
                await self._on_frame(event.frame)
            elif isinstance(event, ConnectSucceeded):
                await self._on_connect_succeeded(event)
            elif isinstance(event, ConnectFailed):
                await self._on_attempt_failed(event.connection, event.reason)
            elif isinstance(event, ShellOpened):
                await self._on_shell_opened(event)
            elif isinstance(event, ShellFailed):
                await self._on_attempt_failed(event.connection, event.reason)
            elif isinstance(event, RemoteEventReceived):
                await self._on_remote_event(event)
            elif isinstance(event, TransportClosed):
                self._on_transport_closed()
            else:
                raise TypeError(f"Unhandled session event: {event!r}")
        except Exception:
            logger.exception("Session %s failed handling %s", self.session_id, type(event).__name__)
            self._release()

    async def _on_frame(self, frame: str) -> None:
        try:
            message = ControlCodec.decode(frame)
            if isinstance(message, ConnectMessage):
                await self._on_connect(message)
            elif isinstance(message, InputMessage):
                await self._on_input(message)
            elif isinstance(message, ResizeMessage):
                self._on_resize(message)
            elif isinstance(message, DisconnectMessage):
                await self._on_disconnect()
        except (ProtocolError, ValidationError, StateError) as e:
            logger.debug("Session %s rejected frame (%s): %s", self.session_id, e.kind, e.message)
            await self._status(StatusPhase.ERROR, e.message)

    async def _on_connect(self, message: ConnectMessage) -> None:
        if self._state is not SessionState.IDLE:
            raise StateError(ALREADY_CONNECTED)
        if not message.has_credentials:
            raise ValidationError(MISSING_CREDENTIALS)

        await self._status(StatusPhase.CONNECTING)

        self._attempts += 1
        connection = RemoteConnection(
            target=message.target(),
            size=message.size(),
            attempt=self._attempts,
        )
        connection.adapter = self._adapter_factory(
            functools.partial(self._post_remote_event, connection)
        )
        self._connection = connection
        self._state = SessionState.CONNECTING
        logger.info(
            "Session %s connecting to %s (attempt %d)",
            self.session_id, connection.target.label, connection.attempt,
        )
        self._spawn(self._connect(connection))

    async def _connect(self, connection: RemoteConnection) -> None:
        assert connection.adapter is not None
        try:
            await connection.adapter.connect(connection.target)
        except RemoteError as e:
            self._post(ConnectFailed(connection, e.message))
            return
        except Exception as e:
            logger.exception("Session %s connect to %s crashed", self.session_id, connection.target.label)
            self._post(ConnectFailed(connection, str(e) or type(e).__name__))
            return
        self._post(ConnectSucceeded(connection))

    async def _open_shell(self, connection: RemoteConnection) -> None:
        assert connection.adapter is not None
        try:
            stream = await connection.adapter.open_shell(connection.size)
        except RemoteError as e:
            self._post(ShellFailed(connection, e.message or FAILED_TO_OPEN_SHELL))
            return
        except Exception as e:
            logger.exception("Session %s shell on %s crashed", self.session_id, connection.target.label)
            self._post(ShellFailed(connection, str(e) or FAILED_TO_OPEN_SHELL))
            return
        # Queued synchronously, so it lands ahead of any output the
        # backend's reader hands over through call_soon_threadsafe.
        self._post(ShellOpened(connection, stream))

    async def _on_connect_succeeded(self, event: ConnectSucceeded) -> None:
        if not self._is_current(event.connection, SessionState.CONNECTING):
            self._discard(event)
            return
        self._spawn(self._open_shell(event.connection))

    async def _on_shell_opened(self, event: ShellOpened) -> None:
        connection = event.connection
        if not self._is_current(connection, SessionState.CONNECTING):
            self._discard(event)
            return

        connection.stream = event.stream
        if self._pending_resize is not None:
            assert connection.adapter is not None
            connection.adapter.resize(connection.stream, self._pending_resize)
            self._pending_resize = None
        self._state = SessionState.ACTIVE
        logger.info("Session %s active on %s", self.session_id, connection.target.label)
        await self._status(StatusPhase.CONNECTED)

    async def _on_attempt_failed(self, connection: RemoteConnection, reason: str) -> None:
        if not self._is_current(connection, SessionState.CONNECTING):
            logger.debug("Session %s ignoring stale failure: %s", self.session_id, reason)
            return
        await self._fail(RemoteError(reason))

    async def _on_input(self, message: InputMessage) -> None:
        if self._state is not SessionState.ACTIVE:
            raise StateError(NO_ACTIVE_CONNECTION)
        connection = self._connection
        assert connection is not None and connection.adapter is not None
        try:
            await connection.adapter.write(connection.stream, message.data)
        except RemoteError as e:
            await self._fail(e)

    def _on_resize(self, message: ResizeMessage) -> None:
        size = message.size()
        if self._state is SessionState.ACTIVE:
            connection = self._connection
            assert connection is not None and connection.adapter is not None
            connection.adapter.resize(connection.stream, size)
        else:
            self._pending_resize = size

    async def _on_disconnect(self) -> None:
        if self._connection is not None:
            await self._status(StatusPhase.DISCONNECTED, DISCONNECTED_BY_CLIENT)
        self._release()

    async def _on_remote_event(self, event: RemoteEventReceived) -> None:
        connection = event.connection
        if connection is not self._connection:
            logger.debug("Session %s dropping stale %s", self.session_id, type(event.event).__name__)
            return

        remote = event.event
        if isinstance(remote, RemoteOutput):
            if self._state is not SessionState.ACTIVE:
                return
            text = connection.decoder.decode(remote.data)
            if text:
                await self._emit(ControlCodec.output(text))
        elif isinstance(remote, RemoteStreamClosed):
            await self._flush_output(connection)
            await self._fail(StreamError(REMOTE_STREAM_CLOSED))
        elif isinstance(remote, RemoteSessionEnded):
            await self._flush_output(connection)
            await self._fail(StreamError(SSH_SESSION_ENDED))
        elif isinstance(remote, RemoteFailure):
            await self._fail(RemoteError(remote.reason))

    async def _flush_output(self, connection: RemoteConnection) -> None:
        if self._state is not SessionState.ACTIVE:
            return
        tail = connection.decoder.decode(b"", final=True)
        if tail:
            await self._emit(ControlCodec.output(tail))

    def _on_transport_closed(self) -> None:
        self._release()
        self._state = SessionState.CLOSED
        logger.info("Session %s transport closed", self.session_id)

    # -- helpers ------------------------------------------------------------

    def _is_current(self, connection: RemoteConnection, state: SessionState) -> bool:
        return connection is self._connection and self._state is state

    def _discard(self, event: SessionEvent) -> None:
        """Drop an outcome for a connection that is no longer wanted."""
        if isinstance(event, (ConnectSucceeded, ShellOpened)):
            logger.debug(
                "Session %s discarding stale %s for attempt %d",
                self.session_id, type(event).__name__, event.connection.attempt,
            )
            event.connection.release()

    async def _fail(self, error: RelayError) -> None:
        phase = StatusPhase.DISCONNECTED if isinstance(error, StreamError) else StatusPhase.ERROR
        logger.info("Session %s %s: %s", self.session_id, error.kind, error.message)
        await self._status(phase, error.message)
        self._release()

    def _release(self) -> None:
        connection = self._connection
        self._connection = None
        self._pending_resize = None
        if self._state is not SessionState.CLOSED:
            self._state = SessionState.IDLE
        if connection is not None:
            connection.release()

    def _spawn(self, coro: Coroutine[object, object, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _status(self, phase: StatusPhase, message: str | None = None) -> None:
        await self._emit(ControlCodec.status(phase, message))

    async def _emit(self, message: OutboundMessage) -> None:
        await self._send(ControlCodec.encode(message))
