import asyncio
import socket
import tempfile
from pathlib import Path

import pytest
from helpers import close_all, create_server_and_client, free_port

from jsonsocket.config import SocketOptions
from jsonsocket.errors import ClosedSocketError
from jsonsocket.message_socket import MessageSocket
from jsonsocket.server import serve


@pytest.mark.asyncio
async def test_connect_send_and_receive():
    server, client, peer = await create_server_and_client()
    try:
        assert client.is_closed() is False
        assert peer.is_closed() is False
        pong = asyncio.get_running_loop().create_future()

        def on_ping(message):
            assert message == {"type": "ping"}
            peer.send({"type": "pong"})

        peer.on("message", on_ping)
        client.on("message", pong.set_result)
        await client.send_message({"type": "ping"})

        assert await asyncio.wait_for(pong, timeout=2) == {"type": "pong"}
        assert client.is_closed() is False
        assert peer.is_closed() is False
    finally:
        await close_all(server, client, peer)


@pytest.mark.asyncio
async def test_send_multiple_messages_in_order():
    server, client, peer = await create_server_and_client()
    try:
        done = asyncio.get_running_loop().create_future()
        received = []
        sent = []

        def on_message(message):
            received.append(message["number"])
            if len(received) == 100:
                done.set_result(None)

        peer.on("message", on_message)
        for i in range(1, 101):
            client.send({"number": i}, sent.append)

        await asyncio.wait_for(done, timeout=5)
        assert received == list(range(1, 101))
        assert sent == [None] * 100
    finally:
        await close_all(server, client, peer)


@pytest.mark.asyncio
async def test_send_and_close():
    server, client, peer = await create_server_and_client()
    try:
        closed = asyncio.get_running_loop().create_future()
        received = []
        peer.on("message", received.append)

        client.send_and_close({"type": "ping"}, closed.set_result)

        assert await asyncio.wait_for(closed, timeout=2) is None
        await asyncio.wait_for(peer.wait_closed(), timeout=2)
        assert received == [{"type": "ping"}]
        assert client.is_closed() is True
        assert peer.is_closed() is True
    finally:
        await close_all(server, client, peer)


@pytest.mark.asyncio
async def test_closed_when_server_disconnects():
    server, client, peer = await create_server_and_client()
    try:
        peer.end()
        await asyncio.wait_for(client.wait_closed(), timeout=2)
        await asyncio.wait_for(peer.wait_closed(), timeout=2)
        assert client.is_closed() is True
        assert peer.is_closed() is True
    finally:
        await close_all(server, client, peer)


@pytest.mark.asyncio
async def test_closed_when_client_disconnects():
    server, client, peer = await create_server_and_client()
    try:
        client.end()
        await asyncio.wait_for(peer.wait_closed(), timeout=2)
        await asyncio.wait_for(client.wait_closed(), timeout=2)
        assert client.is_closed() is True
        assert peer.is_closed() is True

        results = []
        client.send("late", results.append)
        assert isinstance(results[0], ClosedSocketError)
    finally:
        await close_all(server, client, peer)


@pytest.mark.asyncio
async def test_batched_bulk_send_then_flush():
    options = SocketOptions(batching=True, buffer_size=4096, flush_interval=0)
    server, client, peer = await create_server_and_client(client_options=options)
    try:
        done = asyncio.get_running_loop().create_future()
        received = []

        def on_message(message):
            received.append(message["number"])
            if len(received) == 10000:
                done.set_result(None)

        peer.on("message", on_message)
        for i in range(10000):
            await client.send_message({"number": i})
        client.flush()

        await asyncio.wait_for(done, timeout=20)
        assert received == list(range(10000))
    finally:
        await close_all(server, client, peer)


@pytest.mark.asyncio
async def test_idle_batch_is_flushed_without_explicit_flush():
    options = SocketOptions(batching=True, flush_interval=0.01)
    server, client, peer = await create_server_and_client(client_options=options)
    try:
        got = asyncio.get_running_loop().create_future()
        peer.on("message", got.set_result)
        client.send({"lonely": True})
        assert await asyncio.wait_for(got, timeout=2) == {"lonely": True}
    finally:
        await close_all(server, client, peer)


@pytest.mark.asyncio
async def test_custom_delimiter_end_to_end():
    options = SocketOptions(delimiter="|")
    server, client, peer = await create_server_and_client(options, options)
    try:
        got = asyncio.get_running_loop().create_future()
        peer.on("message", got.set_result)
        client.send({"text": "a|b#c 日本"})
        assert await asyncio.wait_for(got, timeout=2) == {"text": "a|b#c 日本"}
    finally:
        await close_all(server, client, peer)


@pytest.mark.asyncio
async def test_connection_refused_latches_closed():
    sock = MessageSocket()
    errors = []
    closes = []
    sock.on("error", errors.append).on("close", lambda: closes.append(True))
    with pytest.raises(OSError):
        await sock.connect(("127.0.0.1", free_port()))
    assert sock.is_closed()
    assert len(errors) == 1 and isinstance(errors[0], OSError)
    assert closes == [True]


@pytest.mark.asyncio
@pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="Unix sockets unavailable")
async def test_unix_socket():
    with tempfile.TemporaryDirectory() as tmp:
        path = str(Path(tmp) / "s.sock")
        accepted = asyncio.get_running_loop().create_future()
        server = await serve(path, accepted.set_result)
        client = MessageSocket()
        try:
            await client.connect(path)
            peer = await asyncio.wait_for(accepted, timeout=2)
            got = asyncio.get_running_loop().create_future()
            peer.on("message", got.set_result)
            client.send({"over": "unix"})
            assert await asyncio.wait_for(got, timeout=2) == {"over": "unix"}
            peer.abort()
        finally:
            await close_all(server, client)
