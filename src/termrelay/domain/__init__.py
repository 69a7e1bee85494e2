"""Domain models for termrelay.

This package contains the message types, value objects, enumerations and
error taxonomy used throughout the relay. Message models use Pydantic v2
for validation and serialization.
"""

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
    ControlMessage,
    DisconnectMessage,
    InputMessage,
    OutboundMessage,
    OutputMessage,
    RemoteEvent,
    RemoteFailure,
    RemoteOutput,
    RemoteSessionEnded,
    RemoteStreamClosed,
    RemoteTarget,
    ResizeMessage,
    SessionState,
    StatusMessage,
    StatusPhase,
    TerminalSize,
)

__all__ = [
    "ConnectMessage",
    "ControlMessage",
    "DisconnectMessage",
    "InputMessage",
    "OutboundMessage",
    "OutputMessage",
    "ProtocolError",
    "RelayError",
    "RemoteError",
    "RemoteEvent",
    "RemoteFailure",
    "RemoteOutput",
    "RemoteSessionEnded",
    "RemoteStreamClosed",
    "RemoteTarget",
    "ResizeMessage",
    "SessionState",
    "StateError",
    "StatusMessage",
    "StatusPhase",
    "StreamError",
    "TerminalSize",
    "ValidationError",
]
