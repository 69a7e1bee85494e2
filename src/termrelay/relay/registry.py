"""Process-wide registry of live relay sessions.

Membership only: each open WebSocket maps to exactly one
``SessionController`` for its lifetime. The registry never reaches into a
session's state; it is used for health reporting and for closing every
session on shutdown.
"""

from __future__ import annotations

import logging
from typing import Iterator

from termrelay.relay.controller import SessionController

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Set of controllers keyed by session id.

    Mutated only from the event loop thread, at connection accept and
    teardown.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, SessionController] = {}

    def add(self, controller: SessionController) -> None:
        if controller.session_id in self._sessions:
            raise ValueError(f"Session {controller.session_id} is already registered")
        self._sessions[controller.session_id] = controller
        logger.info("Session %s registered (%d live)", controller.session_id, len(self))

    def remove(self, controller: SessionController) -> None:
        """Forget ``controller``. Removing an unknown session is a no-op."""
        if self._sessions.pop(controller.session_id, None) is not None:
            logger.info("Session %s removed (%d live)", controller.session_id, len(self))

    def close_all(self) -> None:
        """Ask every live session to shut down as if its transport closed."""
        for controller in self:
            controller.post_transport_closed()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, controller: object) -> bool:
        return (
            isinstance(controller, SessionController)
            and self._sessions.get(controller.session_id) is controller
        )

    def __iter__(self) -> Iterator[SessionController]:
        return iter(list(self._sessions.values()))
