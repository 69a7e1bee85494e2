"""Tests for the JSON control codec."""

from __future__ import annotations

import json

import pytest

from termrelay.domain.errors import ProtocolError
from termrelay.domain.models import (
    ConnectMessage,
    DisconnectMessage,
    InputMessage,
    ResizeMessage,
    StatusPhase,
)
from termrelay.protocol.codec import INVALID_MESSAGE_FORMAT, ControlCodec


class TestDecode:
    def test_connect_full(self) -> None:
        msg = ControlCodec.decode(
            '{"type":"connect","host":"10.0.0.5","username":"root","password":"x",'
            '"port":2222,"cols":120,"rows":40}'
        )
        assert isinstance(msg, ConnectMessage)
        assert msg.host == "10.0.0.5"
        assert msg.port == 2222
        assert (msg.cols, msg.rows) == (120, 40)
        assert msg.has_credentials

    def test_connect_defaults(self) -> None:
        msg = ControlCodec.decode('{"type":"connect","host":"h","username":"u","password":"p"}')
        assert isinstance(msg, ConnectMessage)
        assert msg.port == 22
        assert (msg.cols, msg.rows) == (80, 24)

    def test_connect_missing_credentials_still_decodes(self) -> None:
        msg = ControlCodec.decode('{"type":"connect","host":"h","password":""}')
        assert isinstance(msg, ConnectMessage)
        assert not msg.has_credentials

    def test_connect_target_hides_password(self) -> None:
        msg = ControlCodec.decode('{"type":"connect","host":"h","username":"u","password":"hunter2"}')
        assert isinstance(msg, ConnectMessage)
        target = msg.target()
        assert target.label == "u@h:22"
        assert "hunter2" not in repr(target)
        assert "hunter2" not in repr(msg)

    def test_input_preserves_data(self) -> None:
        msg = ControlCodec.decode(json.dumps({"type": "input", "data": "echo \"hi\"\r\x03"}))
        assert isinstance(msg, InputMessage)
        assert msg.data == "echo \"hi\"\r\x03"

    def test_resize(self) -> None:
        msg = ControlCodec.decode(b'{"type":"resize","cols":132,"rows":43}')
        assert isinstance(msg, ResizeMessage)
        assert msg.size().cols == 132

    def test_disconnect(self) -> None:
        assert isinstance(ControlCodec.decode('{"type":"disconnect"}'), DisconnectMessage)

    @pytest.mark.parametrize(
        "frame",
        [
            "",
            "{",
            "null",
            '"connect"',
            "[]",
            "{}",
            '{"type":"shutdown"}',
            '{"type":"input"}',
            '{"type":"input","data":42}',
            '{"type":"resize","cols":0,"rows":24}',
            '{"type":"connect","host":"h","username":"u","password":"p","port":70000}',
        ],
    )
    def test_malformed_frames(self, frame: str) -> None:
        with pytest.raises(ProtocolError, match=INVALID_MESSAGE_FORMAT):
            ControlCodec.decode(frame)


class TestEncode:
    def test_status_without_message_omits_field(self) -> None:
        frame = ControlCodec.encode(ControlCodec.status(StatusPhase.CONNECTING))
        assert json.loads(frame) == {"type": "status", "status": "connecting"}

    def test_status_with_message(self) -> None:
        frame = ControlCodec.encode(
            ControlCodec.status(StatusPhase.DISCONNECTED, "Remote stream closed")
        )
        assert json.loads(frame) == {
            "type": "status",
            "status": "disconnected",
            "message": "Remote stream closed",
        }

    def test_output_passes_text_through(self) -> None:
        data = "\x1b[1;32muser@host\x1b[0m:~$ é"
        frame = ControlCodec.encode(ControlCodec.output(data))
        assert json.loads(frame) == {"type": "output", "data": data}
