"""Wire protocol for termrelay.

Translates the browser terminal's JSON frames to and from the message
models in ``termrelay.domain``.
"""

from termrelay.protocol.codec import INVALID_MESSAGE_FORMAT, ControlCodec

__all__ = ["ControlCodec", "INVALID_MESSAGE_FORMAT"]
