from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import typer
from pydantic import ValidationError

from jsonsocket.config import SocketOptions
from jsonsocket.errors import JsonSocketError
from jsonsocket.message_socket import MessageSocket
from jsonsocket.transport.base import Address
from jsonsocket.transport.stream import parse_address
from jsonsocket.utils.stdout_guard import StdoutGuard

app = typer.Typer(add_completion=False, help="Send JSON messages over length-prefixed sockets.")
logger = logging.getLogger(__name__)


def _options(config: str | None, delimiter: str | None, timeout: float | None) -> SocketOptions:
    from jsonsocket.config_loader import load_options

    try:
        opts = load_options(config)
        updates: dict[str, Any] = {}
        if delimiter:
            updates["delimiter"] = delimiter
        if timeout is not None:
            updates["connect_timeout"] = timeout
        if updates:
            opts = SocketOptions.model_validate({**opts.model_dump(), **updates})
    except (OSError, RuntimeError, ValidationError) as e:
        raise typer.BadParameter(str(e)) from e
    return opts


def _parse_message(message: str) -> Any:
    try:
        return json.loads(message)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"MESSAGE is not valid JSON: {e}") from e


def _address(text: str) -> Address:
    try:
        return parse_address(text)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.command("send")
def send(
    address: str = typer.Argument(..., help="host:port or Unix socket path"),
    message: str = typer.Argument(..., help="JSON value to send"),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to YAML/JSON config"),
    delimiter: str | None = typer.Option(None, help="Header delimiter (default '#')"),
    timeout: float | None = typer.Option(None, help="Connect timeout in seconds"),
) -> None:
    """Send one message and close the connection."""
    with StdoutGuard():
        opts = _options(config, delimiter, timeout)
        try:
            asyncio.run(MessageSocket.send_once(_address(address), _parse_message(message), options=opts))
        except (OSError, asyncio.TimeoutError, JsonSocketError) as e:
            logger.error("Send failed: %s", e)
            raise typer.Exit(code=1) from e


@app.command("request")
def request(
    address: str = typer.Argument(..., help="host:port or Unix socket path"),
    message: str = typer.Argument(..., help="JSON value to send"),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to YAML/JSON config"),
    delimiter: str | None = typer.Option(None, help="Header delimiter (default '#')"),
    timeout: float | None = typer.Option(None, help="Seconds to wait for connect and reply"),
) -> None:
    """Send one message, print the single reply as JSON, then close."""
    with StdoutGuard():
        opts = _options(config, delimiter, timeout)
        try:
            reply = asyncio.run(
                MessageSocket.send_once_and_receive(
                    _address(address), _parse_message(message), options=opts, timeout=timeout
                )
            )
        except (OSError, asyncio.TimeoutError, JsonSocketError) as e:
            logger.error("Request failed: %s", e)
            raise typer.Exit(code=1) from e
    typer.echo(json.dumps(reply, ensure_ascii=False))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
