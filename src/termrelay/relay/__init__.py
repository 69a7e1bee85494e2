"""Relay core for termrelay.

Public API:
    SessionController -- per-connection state machine
    ConnectionRegistry -- process-wide set of live sessions
"""

from termrelay.relay.controller import RemoteConnection, SessionController
from termrelay.relay.registry import ConnectionRegistry

__all__ = ["ConnectionRegistry", "RemoteConnection", "SessionController"]
