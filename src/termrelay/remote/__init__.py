"""Remote shell backends for termrelay.

Public API:
    RemoteSessionAdapter -- Abstract base class
    ParamikoSessionAdapter -- SSH backend built on paramiko
"""

from termrelay.remote.base import (
    AdapterFactory,
    EventSink,
    RemoteSessionAdapter,
    StreamHandle,
)

__all__ = [
    "AdapterFactory",
    "EventSink",
    "ParamikoSessionAdapter",
    "RemoteSessionAdapter",
    "StreamHandle",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "ParamikoSessionAdapter":
        from termrelay.remote.ssh_backend import ParamikoSessionAdapter
        return ParamikoSessionAdapter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
