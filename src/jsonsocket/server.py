from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from jsonsocket.config import SocketOptions
from jsonsocket.message_socket import MessageSocket
from jsonsocket.transport.base import Address
from jsonsocket.transport.stream import StreamTransport

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[[MessageSocket], Any]


async def serve(
    address: Address,
    handler: ConnectionHandler,
    *,
    options: SocketOptions | None = None,
) -> asyncio.AbstractServer:
    """Listen on ``address`` and pass every accepted connection to ``handler``.

    ``handler`` receives an open MessageSocket. A coroutine handler is run as
    a task; its failure is logged.
    """
    loop = asyncio.get_running_loop()
    tasks: set[asyncio.Task[Any]] = set()

    def _on_done(task: asyncio.Task[Any]) -> None:
        tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Connection handler failed: %s", task.exception())

    def _accept(sock: MessageSocket) -> None:
        result = handler(sock)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            tasks.add(task)
            task.add_done_callback(_on_done)

    def _factory() -> StreamTransport:
        transport = StreamTransport()
        sock = MessageSocket(transport, options)
        sock.once("connect", lambda: _accept(sock))
        return transport

    if isinstance(address, str):
        server = await loop.create_unix_server(_factory, address)
    else:
        host, port = address
        server = await loop.create_server(_factory, host, port)
    sockets = ", ".join(str(s.getsockname()) for s in server.sockets or [])
    logger.info("Listening on %s", sockets)
    return server
