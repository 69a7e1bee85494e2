"""termrelay -- WebSocket to SSH terminal relay.

This package bridges a browser terminal against a remote interactive
shell. Each WebSocket connection gets its own session controller that
drives one SSH connection through connect, shell, relay, resize and
teardown, translating between the JSON control protocol and the shell's
byte stream.
"""

__version__ = "0.1.0"
