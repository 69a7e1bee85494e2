"""Core domain models for the termrelay system.

These models represent the data flowing through a relay session: control
messages sent by the browser terminal, status and output messages sent
back to it, the remote target being connected to, and the events the
remote shell produces while a session is live.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SessionState(str, enum.Enum):
    """Lifecycle state of a relay session."""

    IDLE = "idle"  # No remote connection, ready for a connect
    CONNECTING = "connecting"  # Authenticating or opening the shell
    ACTIVE = "active"  # Shell stream open, relaying in both directions
    CLOSED = "closed"  # Transport gone, nothing more will be processed


class StatusPhase(str, enum.Enum):
    """Phase reported to the client in a status message."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


class TerminalSize(BaseModel):
    """Terminal window dimensions in character cells."""

    model_config = ConfigDict(frozen=True)

    cols: int = Field(gt=0, description="Width in columns")
    rows: int = Field(gt=0, description="Height in rows")


class RemoteTarget(BaseModel):
    """Where and as whom to open a remote shell."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(default=22, ge=1, le=65535)
    username: str
    password: str = Field(repr=False)

    @property
    def label(self) -> str:
        """Loggable ``user@host:port`` form (never includes the password)."""
        return f"{self.username}@{self.host}:{self.port}"


# ---------------------------------------------------------------------------
# Inbound control messages (discriminated union)
# ---------------------------------------------------------------------------


class ConnectMessage(BaseModel):
    """Open a remote shell.

    Credentials are optional here so that an incomplete request still
    decodes and can be reported as a validation failure.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["connect"] = "connect"
    host: str | None = None
    username: str | None = None
    password: str | None = Field(default=None, repr=False)
    port: int = Field(default=22, ge=1, le=65535)
    cols: int = Field(default=80, gt=0)
    rows: int = Field(default=24, gt=0)

    @property
    def has_credentials(self) -> bool:
        return bool(self.host and self.username and self.password)

    def target(self) -> RemoteTarget:
        return RemoteTarget(
            host=self.host, port=self.port, username=self.username, password=self.password
        )

    def size(self) -> TerminalSize:
        return TerminalSize(cols=self.cols, rows=self.rows)


class InputMessage(BaseModel):
    """Keystrokes typed in the browser terminal."""

    model_config = ConfigDict(frozen=True)

    type: Literal["input"] = "input"
    data: str


class ResizeMessage(BaseModel):
    """The browser terminal changed its dimensions."""

    model_config = ConfigDict(frozen=True)

    type: Literal["resize"] = "resize"
    cols: int = Field(gt=0)
    rows: int = Field(gt=0)

    def size(self) -> TerminalSize:
        return TerminalSize(cols=self.cols, rows=self.rows)


class DisconnectMessage(BaseModel):
    """Close the remote shell but keep the transport open."""

    model_config = ConfigDict(frozen=True)

    type: Literal["disconnect"] = "disconnect"


ControlMessage = Annotated[
    Union[ConnectMessage, InputMessage, ResizeMessage, DisconnectMessage],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Outbound messages
# ---------------------------------------------------------------------------


class StatusMessage(BaseModel):
    """Session status update sent to the client."""

    model_config = ConfigDict(frozen=True)

    type: Literal["status"] = "status"
    status: StatusPhase
    message: str | None = None


class OutputMessage(BaseModel):
    """Text produced by the remote shell."""

    model_config = ConfigDict(frozen=True)

    type: Literal["output"] = "output"
    data: str


OutboundMessage = Union[StatusMessage, OutputMessage]


# ---------------------------------------------------------------------------
# Remote events (produced by a RemoteSessionAdapter)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RemoteOutput:
    """A chunk of bytes read from the shell stream."""

    data: bytes


@dataclass(frozen=True)
class RemoteStreamClosed:
    """The shell channel closed while the SSH transport stayed up."""


@dataclass(frozen=True)
class RemoteSessionEnded:
    """The SSH transport itself ended."""


@dataclass(frozen=True)
class RemoteFailure:
    """The remote side failed hard (socket error, protocol error)."""

    reason: str


RemoteEvent = Union[RemoteOutput, RemoteStreamClosed, RemoteSessionEnded, RemoteFailure]
