"""Abstract base class for remote shell backends.

A backend wraps one network connection to one remote host: authenticate,
open a single interactive shell of a given size, exchange an ordered byte
stream with it, and resize its window. It has no state machine of its own;
sequencing is the session controller's job.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

from termrelay.domain.models import RemoteEvent, RemoteTarget, TerminalSize

logger = logging.getLogger(__name__)

# Opaque per-backend handle to an open shell stream.
StreamHandle = Any

# Callback through which a backend delivers remote events. It may be called
# from any thread; the receiver is responsible for marshalling.
EventSink = Callable[[RemoteEvent], None]


class RemoteSessionAdapter(ABC):
    """Capability boundary for a single remote shell connection.

    One instance serves exactly one connect + open_shell sequence. Remote
    output and stream lifecycle events are pushed to the ``sink`` passed
    at construction once the shell is open.

    Example usage::

        adapter = ParamikoSessionAdapter(sink=on_event)
        await adapter.connect(target)
        stream = await adapter.open_shell(TerminalSize(cols=80, rows=24))
        await adapter.write(stream, "ls\\n")
        adapter.resize(stream, TerminalSize(cols=120, rows=40))
        adapter.close()
    """

    def __init__(self, sink: EventSink) -> None:
        self._sink = sink

    @abstractmethod
    async def connect(self, target: RemoteTarget) -> None:
        """Open the network connection and authenticate.

        Raises:
            RemoteError: On authentication failure, network failure or
                timeout. The message is suitable for showing to the user.
        """
        ...

    @abstractmethod
    async def open_shell(self, size: TerminalSize) -> StreamHandle:
        """Request a pty of ``size`` and start an interactive shell.

        Only valid after a successful ``connect``. Once this returns, output
        chunks and the eventual closed/ended event flow to the sink.

        Raises:
            RemoteError: If the shell cannot be opened.
        """
        ...

    @abstractmethod
    async def write(self, stream: StreamHandle, data: str) -> None:
        """Forward ``data`` verbatim to the shell's input."""
        ...

    @abstractmethod
    def resize(self, stream: StreamHandle, size: TerminalSize) -> None:
        """Change the shell's window size. Never raises."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the stream and the connection. Safe to call repeatedly."""
        ...

    def emit(self, event: RemoteEvent) -> None:
        """Deliver an event to the sink."""
        self._sink(event)


AdapterFactory = Callable[[EventSink], RemoteSessionAdapter]
