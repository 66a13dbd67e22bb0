import asyncio
import json
import threading

import pytest
from helpers import free_port
from typer.testing import CliRunner

from jsonsocket.cli.commands import app
from jsonsocket.server import serve

runner = CliRunner()


@pytest.fixture
def echo_server():
    """Reply to every message with ``{"echo": message}`` on a background loop."""
    loop = asyncio.new_event_loop()
    ready = threading.Event()
    holder = {}

    def handler(sock):
        sock.on("message", lambda m: sock.send_and_close({"echo": m}))

    async def start():
        server = await serve(("127.0.0.1", 0), handler)
        holder["server"] = server
        holder["port"] = server.sockets[0].getsockname()[1]
        ready.set()

    def run():
        asyncio.set_event_loop(loop)
        loop.run_until_complete(start())
        loop.run_forever()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    assert ready.wait(timeout=5)
    yield f"127.0.0.1:{holder['port']}"
    loop.call_soon_threadsafe(holder["server"].close)
    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=5)
    loop.close()


def test_request_prints_reply(echo_server):
    result = runner.invoke(app, ["request", echo_server, '{"type": "ping"}', "--timeout", "5"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout.strip().splitlines()[-1]) == {"echo": {"type": "ping"}}


def test_send_succeeds(echo_server):
    result = runner.invoke(app, ["send", echo_server, "[1, 2, 3]"])
    assert result.exit_code == 0, result.output


def test_invalid_json_message():
    result = runner.invoke(app, ["send", "127.0.0.1:1", "{not json"])
    assert result.exit_code == 2


def test_invalid_address():
    result = runner.invoke(app, ["send", "nowhere", "1"])
    assert result.exit_code == 2


def test_invalid_delimiter_option():
    result = runner.invoke(app, ["send", "127.0.0.1:1", "1", "--delimiter", "9"])
    assert result.exit_code == 2


def test_connection_refused_exits_with_error():
    result = runner.invoke(app, ["send", f"127.0.0.1:{free_port()}", '"hi"'])
    assert result.exit_code == 1
