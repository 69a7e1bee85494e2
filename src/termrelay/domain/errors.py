"""Error taxonomy for relay sessions.

Every error a session can hit is reported to the client as a status
message. Only remote and stream errors tear the session down; the others
leave it exactly as it was.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors surfaced to the client."""

    kind = "relay"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProtocolError(RelayError):
    """An inbound frame could not be decoded."""

    kind = "protocol"


class ValidationError(RelayError):
    """A connect request is missing required fields."""

    kind = "validation"


class StateError(RelayError):
    """The requested operation is not valid in the current state."""

    kind = "state"


class RemoteError(RelayError):
    """Authentication, network or timeout failure on the remote side."""

    kind = "remote"


class StreamError(RelayError):
    """The remote byte stream closed or ended unexpectedly."""

    kind = "stream"
