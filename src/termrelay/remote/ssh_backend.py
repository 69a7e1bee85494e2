"""Paramiko-backed remote shell.

Opens one SSH connection with password authentication, starts an
interactive shell on a pty, and pumps its output from a background reader
thread into the event sink. Blocking paramiko calls are pushed off the
event loop with ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import socket
import threading

import paramiko

from termrelay.config.settings import SshConfig
from termrelay.domain.errors import RemoteError
from termrelay.domain.models import (
    RemoteFailure,
    RemoteOutput,
    RemoteSessionEnded,
    RemoteStreamClosed,
    RemoteTarget,
    TerminalSize,
)
from termrelay.remote.base import AdapterFactory, EventSink, RemoteSessionAdapter

logger = logging.getLogger(__name__)

BUFFER_SIZE = 4096
DEFAULT_POLL_INTERVAL = 0.05


class ParamikoSessionAdapter(RemoteSessionAdapter):
    """One SSH client plus one interactive shell channel."""

    def __init__(
        self,
        sink: EventSink,
        ready_timeout: float = 20.0,
        term: str = "xterm-color",
        keepalive_interval: int = 30,
        look_for_keys: bool = False,
        allow_agent: bool = False,
        auto_add_host_keys: bool = True,
        known_hosts_file: str | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        super().__init__(sink)
        self._ready_timeout = ready_timeout
        self._term = term
        self._keepalive_interval = keepalive_interval
        self._look_for_keys = look_for_keys
        self._allow_agent = allow_agent
        self._auto_add_host_keys = auto_add_host_keys
        self._known_hosts_file = known_hosts_file
        self._poll_interval = poll_interval
        self._client: paramiko.SSHClient | None = None
        self._channel: paramiko.Channel | None = None
        self._reader: threading.Thread | None = None
        self._closing = threading.Event()
        self._label = ""

    @property
    def is_closed(self) -> bool:
        return self._closing.is_set()

    async def connect(self, target: RemoteTarget) -> None:
        """Connect and authenticate with the target's password."""
        if self._client is not None:
            raise RemoteError("Connection already initiated")
        self._label = target.label

        client = paramiko.SSHClient()
        self._client = client

        logger.info("Connecting to %s", self._label)
        try:
            if self._known_hosts_file:
                client.load_host_keys(os.path.expanduser(self._known_hosts_file))
            else:
                client.load_system_host_keys()
            if self._auto_add_host_keys:
                client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            else:
                client.set_missing_host_key_policy(paramiko.RejectPolicy())
            await asyncio.to_thread(
                client.connect,
                hostname=target.host,
                port=target.port,
                username=target.username,
                password=target.password,
                timeout=self._ready_timeout,
                auth_timeout=self._ready_timeout,
                banner_timeout=self._ready_timeout,
                look_for_keys=self._look_for_keys,
                allow_agent=self._allow_agent,
            )
        except paramiko.AuthenticationException as e:
            self.close()
            raise RemoteError(str(e) or "Authentication failed") from e
        except (paramiko.SSHException, OSError, ValueError) as e:
            # ValueError covers the UnicodeError idna raises for labels over 63 chars
            self.close()
            raise RemoteError(str(e) or type(e).__name__) from e

        if self.is_closed:
            # Torn down while the handshake was in flight
            client.close()
            raise RemoteError("Connection closed")

        transport = client.get_transport()
        if transport is not None and self._keepalive_interval:
            transport.set_keepalive(self._keepalive_interval)
        logger.info("Authenticated to %s", self._label)

    async def open_shell(self, size: TerminalSize) -> paramiko.Channel:
        """Invoke an interactive shell and start the reader thread."""
        if self._client is None or self.is_closed:
            raise RemoteError("Not connected")
        try:
            channel = await asyncio.to_thread(
                self._client.invoke_shell,
                term=self._term,
                width=size.cols,
                height=size.rows,
            )
        except (paramiko.SSHException, OSError) as e:
            raise RemoteError(str(e) or "Failed to open shell") from e

        if self.is_closed:
            channel.close()
            raise RemoteError("Connection closed")

        channel.settimeout(self._poll_interval)
        self._channel = channel
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(channel,),
            daemon=True,
            name=f"ssh-reader-{self._label}",
        )
        self._reader.start()
        logger.info("Shell opened on %s (%dx%d)", self._label, size.cols, size.rows)
        return channel

    async def write(self, stream: paramiko.Channel, data: str) -> None:
        try:
            await asyncio.to_thread(stream.sendall, data.encode("utf-8"))
        except (paramiko.SSHException, OSError) as e:
            raise RemoteError(f"Failed to write to shell: {e}") from e

    def resize(self, stream: paramiko.Channel, size: TerminalSize) -> None:
        try:
            stream.resize_pty(
                width=size.cols,
                height=size.rows,
                width_pixels=size.cols * 8,
                height_pixels=size.rows * 8,
            )
            logger.debug("Resized %s to %dx%d", self._label, size.cols, size.rows)
        except (paramiko.SSHException, OSError) as e:
            logger.warning("Resize of %s failed: %s", self._label, e)

    def close(self) -> None:
        """Close the channel and the client; the reader thread exits on its own."""
        already_closing = self.is_closed
        self._closing.set()
        if self._channel is not None:
            self._channel.close()
        if self._client is not None:
            self._client.close()
        if not already_closing and self._label:
            logger.info("Closed connection to %s", self._label)

    def _read_loop(self, channel: paramiko.Channel) -> None:
        """Pump stdout/stderr chunks to the sink until EOF or close."""
        while not self._closing.is_set():
            try:
                chunk = channel.recv(BUFFER_SIZE)
            except socket.timeout:
                chunk = None
            except (paramiko.SSHException, OSError) as e:
                if not self._closing.is_set():
                    logger.warning("Read from %s failed: %s", self._label, e)
                    self.emit(RemoteFailure(reason=str(e) or type(e).__name__))
                return

            if chunk == b"":
                break
            if chunk:
                self.emit(RemoteOutput(data=chunk))
            self._drain_stderr(channel)

        if self._closing.is_set():
            return
        self._drain_stderr(channel)

        transport = self._client.get_transport() if self._client else None
        if transport is not None and transport.is_active():
            logger.info("Shell stream on %s closed", self._label)
            self.emit(RemoteStreamClosed())
        else:
            logger.info("SSH session to %s ended", self._label)
            self.emit(RemoteSessionEnded())

    def _drain_stderr(self, channel: paramiko.Channel) -> None:
        while channel.recv_stderr_ready():
            data = channel.recv_stderr(BUFFER_SIZE)
            if not data:
                break
            self.emit(RemoteOutput(data=data))


def adapter_factory(config: SshConfig) -> AdapterFactory:
    """Build a factory producing adapters configured from ``config``."""
    return functools.partial(
        ParamikoSessionAdapter,
        ready_timeout=config.ready_timeout,
        term=config.term,
        keepalive_interval=config.keepalive_interval,
        look_for_keys=config.look_for_keys,
        allow_agent=config.allow_agent,
        auto_add_host_keys=config.auto_add_host_keys,
        known_hosts_file=config.known_hosts_file,
    )
