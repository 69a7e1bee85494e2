"""JSON wire codec for the terminal control protocol.

Every transport frame is a single UTF-8 JSON object. Inbound frames are
decoded into the ``ControlMessage`` tagged union; outbound status and
output messages are encoded with ``None`` fields omitted, so a status
without a message serializes as ``{"type":"status","status":"connecting"}``.
"""

from __future__ import annotations

import json
import logging

import pydantic
from pydantic import TypeAdapter

from termrelay.domain.errors import ProtocolError
from termrelay.domain.models import (
    ControlMessage,
    OutboundMessage,
    OutputMessage,
    StatusMessage,
    StatusPhase,
)

logger = logging.getLogger(__name__)

INVALID_MESSAGE_FORMAT = "Invalid message format"

_control_adapter = TypeAdapter(ControlMessage)


class ControlCodec:
    """Stateless translation between wire frames and message models."""

    @staticmethod
    def decode(frame: str | bytes) -> ControlMessage:
        """Decode one inbound frame.

        Raises:
            ProtocolError: If the frame is not a JSON object, carries an
                unknown ``type``, or has fields of the wrong shape.
        """
        try:
            payload = json.loads(frame)
        except (ValueError, TypeError) as e:
            logger.debug("Undecodable frame: %s", e)
            raise ProtocolError(INVALID_MESSAGE_FORMAT) from e

        if not isinstance(payload, dict):
            raise ProtocolError(INVALID_MESSAGE_FORMAT)

        try:
            return _control_adapter.validate_python(payload)
        except pydantic.ValidationError as e:
            logger.debug("Rejected %r frame: %d error(s)", payload.get("type"), e.error_count())
            raise ProtocolError(INVALID_MESSAGE_FORMAT) from e

    @staticmethod
    def encode(message: OutboundMessage) -> str:
        """Encode an outbound message as a compact JSON frame."""
        return message.model_dump_json(exclude_none=True)

    # Convenience constructors used by the session controller

    @staticmethod
    def status(phase: StatusPhase, message: str | None = None) -> StatusMessage:
        return StatusMessage(status=phase, message=message)

    @staticmethod
    def output(data: str) -> OutputMessage:
        return OutputMessage(data=data)
