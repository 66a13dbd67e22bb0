from __future__ import annotations

import asyncio
import socket
from typing import Any

from jsonsocket.config import SocketOptions
from jsonsocket.message_socket import MessageSocket
from jsonsocket.server import serve
from jsonsocket.transport.base import Address, Transport, TransportListener


class FakeTransport(Transport):
    """In-memory transport recording every write."""

    def __init__(self, close_on_end: bool = True) -> None:
        self.writes: list[bytes] = []
        self.ended = False
        self.aborted = False
        self.close_on_end = close_on_end
        self.listener: TransportListener | None = None

    def bind(self, listener: TransportListener) -> None:
        self.listener = listener

    async def connect(self, address: Address) -> None:
        assert self.listener is not None
        self.listener.on_transport_connect()

    def write(self, data: bytes, callback: Any = None) -> None:
        self.writes.append(data)
        if callback is not None:
            callback(None)

    def end(self) -> None:
        self.ended = True
        if self.close_on_end and self.listener is not None:
            self.listener.on_transport_close()

    def abort(self) -> None:
        self.aborted = True

    @property
    def data(self) -> bytes:
        return b"".join(self.writes)


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def create_server(handler: Any, options: SocketOptions | None = None):
    server = await serve(("127.0.0.1", 0), handler, options=options)
    port = server.sockets[0].getsockname()[1]
    return server, ("127.0.0.1", port)


async def create_server_and_client(
    client_options: SocketOptions | None = None,
    server_options: SocketOptions | None = None,
) -> tuple[asyncio.AbstractServer, MessageSocket, MessageSocket]:
    accepted: asyncio.Future[MessageSocket] = asyncio.get_running_loop().create_future()
    server, address = await create_server(accepted.set_result, server_options)
    client = MessageSocket(options=client_options)
    await client.connect(address)
    server_socket = await asyncio.wait_for(accepted, timeout=2)
    return server, client, server_socket


async def close_all(server: asyncio.AbstractServer, *sockets: MessageSocket) -> None:
    for sock in sockets:
        sock.abort()
    server.close()
    await asyncio.sleep(0)
