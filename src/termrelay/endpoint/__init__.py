"""HTTP/WebSocket endpoint module for termrelay.

Serves the browser-facing WebSocket that carries the terminal control
protocol, plus a health check.
"""
