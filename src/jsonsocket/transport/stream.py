from __future__ import annotations

import asyncio
import logging
from typing import Any

from jsonsocket.errors import ClosedSocketError
from jsonsocket.transport.base import Address, Transport, TransportListener, WriteCallback

logger = logging.getLogger(__name__)


def parse_address(text: str) -> Address:
    """Parse ``host:port``, ``:port`` or a Unix socket path (``unix:/path`` or ``/path``)."""
    if text.startswith("unix:"):
        return text[len("unix:") :]
    if "/" in text:
        return text
    host, sep, port = text.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid address {text!r}, expected host:port or a socket path")
    return (host.strip("[]") or "127.0.0.1", int(port))


class StreamTransport(asyncio.Protocol, Transport):
    """
    Asyncio protocol adapter over a TCP or Unix-domain stream.

    One instance serves one connection at a time; after the connection is
    lost, ``connect`` may be called again to open a fresh one. Writes issued
    before the connection is made are queued and written on connect.
    """

    def __init__(self) -> None:
        self._listener: TransportListener | None = None
        self._transport: asyncio.Transport | None = None
        self._backlog: list[tuple[bytes, WriteCallback | None]] = []
        self._eof = False
        self._closed = False

    def bind(self, listener: TransportListener) -> None:
        self._listener = listener

    @property
    def connected(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        if self._transport is None:
            return default
        return self._transport.get_extra_info(name, default)

    async def connect(self, address: Address) -> None:
        loop = asyncio.get_running_loop()
        self._closed = False
        self._eof = False
        if isinstance(address, str):
            logger.debug("Connecting to unix socket %s", address)
            await loop.create_unix_connection(lambda: self, address)
        else:
            host, port = address
            logger.debug("Connecting to %s:%s", host, port)
            await loop.create_connection(lambda: self, host, port)

    # asyncio.Protocol

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]
        self._closed = False
        self._eof = False
        backlog, self._backlog = self._backlog, []
        for data, callback in backlog:
            self.write(data, callback)
        if self._listener is not None:
            self._listener.on_transport_connect()

    def data_received(self, data: bytes) -> None:
        if self._listener is not None:
            self._listener.on_transport_data(data)

    def eof_received(self) -> bool:
        # No half-open connections: the peer finishing means we finish too.
        return False

    def connection_lost(self, exc: Exception | None) -> None:
        self._transport = None
        self._closed = True
        self._fail_backlog()
        if self._listener is None:
            return
        if exc is not None:
            self._listener.on_transport_error(exc)
        self._listener.on_transport_close()

    def pause_writing(self) -> None:
        if self._listener is not None:
            self._listener.on_transport_pause()

    def resume_writing(self) -> None:
        if self._listener is not None:
            self._listener.on_transport_resume()

    # Transport

    def write(self, data: bytes, callback: WriteCallback | None = None) -> None:
        if self._closed or self._eof or (self._transport is not None and self._transport.is_closing()):
            if callback is not None:
                callback(ClosedSocketError())
            return
        if self._transport is None:
            self._backlog.append((data, callback))
            return
        self._transport.write(data)
        if callback is not None:
            asyncio.get_running_loop().call_soon(callback, None)

    def end(self) -> None:
        if self._transport is None:
            if not self._closed:
                # Never connected: nothing to half-close, just finish.
                self._closed = True
                self._fail_backlog()
                if self._listener is not None:
                    self._listener.on_transport_close()
            return
        if self._eof:
            return
        self._eof = True
        if self._transport.can_write_eof():
            self._transport.write_eof()
        else:
            self._transport.close()

    def abort(self) -> None:
        if self._transport is not None:
            self._transport.abort()
        else:
            self._closed = True
            self._fail_backlog()

    def _fail_backlog(self) -> None:
        backlog, self._backlog = self._backlog, []
        for _, callback in backlog:
            if callback is not None:
                callback(ClosedSocketError())
