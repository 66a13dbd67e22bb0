from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from typing import Any

from jsonsocket.config import SocketOptions
from jsonsocket.errors import (
    BufferFullError,
    ClosedSocketError,
    DecodeError,
    DecodeHeaderError,
    DecodePayloadError,
    EncodeError,
    JsonSocketError,
    OversizeFrameError,
    RemoteError,
    format_error,
)
from jsonsocket.events import EventRegistry, Listener
from jsonsocket.framing import FrameDecoder, FrameEncoder
from jsonsocket.scheduler import WriteScheduler
from jsonsocket.stats import ThroughputProbe
from jsonsocket.transport.base import Address, Transport, WriteCallback
from jsonsocket.transport.stream import StreamTransport

logger = logging.getLogger(__name__)

ReplyCallback = Callable[[BaseException | None, Any], None]


class SocketState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def _settle(fut: asyncio.Future[Any], err: BaseException | None, result: Any = None) -> None:
    if fut.done():
        return
    if err is not None:
        fut.set_exception(err)
    else:
        fut.set_result(result)


class MessageSocket:
    """
    JSON message socket over a byte-stream transport.

    Events (register with ``on``/``once``, both return the socket):
    - ``connect()``: the transport is connected
    - ``message(value)``: one decoded message, in arrival order
    - ``error(exc)``: decode, encode, buffer and transport errors alike
    - ``drain()``: the transport accepts writes again after backpressure
    - ``close()``: the connection is closed; emitted once per connection

    Errors never propagate out of the event loop callbacks. An ``error`` with
    no listener is logged as a warning.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        options: SocketOptions | None = None,
    ) -> None:
        self.options = options or SocketOptions()
        self._transport = transport if transport is not None else StreamTransport()
        self._transport.bind(self)
        self._events: EventRegistry[MessageSocket] = EventRegistry(self)
        self._encoder = FrameEncoder(self.options.delimiter)
        self._stats = (
            ThroughputProbe(window=self.options.stats_window) if self.options.collect_stats else None
        )
        self._reset()

    def _reset(self) -> None:
        self._state = SocketState.CONNECTING
        if self._stats is not None:
            self._stats.reset()
        self._decoder = FrameDecoder(self.options.delimiter)
        self._scheduler = WriteScheduler(
            self._transport,
            batching=self.options.batching,
            capacity=self.options.buffer_size,
            flush_interval=self.options.flush_interval,
            respect_backpressure=self.options.respect_backpressure,
        )
        self._closed_event = asyncio.Event()

    def __repr__(self) -> str:
        return f"<MessageSocket state={self._state.value}>"

    @property
    def state(self) -> SocketState:
        return self._state

    @property
    def stats(self) -> ThroughputProbe | None:
        return self._stats

    @property
    def transport(self) -> Transport:
        return self._transport

    def is_closed(self) -> bool:
        return self._state is SocketState.CLOSED

    # listeners

    def on(self, event: str, listener: Listener) -> MessageSocket:
        return self._events.on(event, listener)

    def once(self, event: str, listener: Listener) -> MessageSocket:
        return self._events.once(event, listener)

    def off(self, event: str, listener: Listener | None = None) -> MessageSocket:
        return self._events.off(event, listener)

    # connection

    async def connect(self, address: Address, *, timeout: float | None = None) -> MessageSocket:
        """Connect the transport; re-connecting a closed socket starts afresh."""
        if self._state in (SocketState.OPEN, SocketState.CLOSING):
            raise RuntimeError(f"Socket is {self._state.value}, cannot connect")
        if self._state is SocketState.CLOSED:
            self._reset()
        timeout = timeout if timeout is not None else self.options.connect_timeout
        try:
            if timeout is not None:
                await asyncio.wait_for(self._transport.connect(address), timeout=timeout)
            else:
                await self._transport.connect(address)
        except (OSError, asyncio.TimeoutError) as e:
            logger.info("Connection to %s failed: %s", address, e)
            self._transport.abort()
            self.on_transport_error(e)
            raise
        return self

    def end(self) -> None:
        """Flush buffered frames, then half-close the write side."""
        if self._state in (SocketState.CLOSING, SocketState.CLOSED):
            return
        self._state = SocketState.CLOSING
        self._scheduler.flush()
        self._scheduler.stop()
        self._transport.end()

    def abort(self) -> None:
        """Close immediately; buffered frames are dropped."""
        if self._state is SocketState.CLOSED:
            return
        self._scheduler.discard(ClosedSocketError("Socket aborted before the data was written"))
        self._transport.abort()
        self._latch_closed()

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    # sending

    def send(self, value: Any, callback: WriteCallback | None = None) -> None:
        """Queue one message.

        ``callback(None)`` runs once the bytes are handed to the transport.
        On a closed socket ``callback(ClosedSocketError)`` runs before this
        method returns and nothing is written.
        """
        if self._state in (SocketState.CLOSING, SocketState.CLOSED):
            self._reject(callback, ClosedSocketError())
            return
        try:
            frame = self._encoder.encode(value)
            self._scheduler.enqueue(frame, callback)
        except (EncodeError, OversizeFrameError, BufferFullError) as e:
            self._reject(callback, e)

    async def send_message(self, value: Any, callback: WriteCallback | None = None) -> None:
        """Queue one message, waiting out transport backpressure.

        Returns once the frame is accepted by the write scheduler (written,
        or buffered when batching). Raises on any other send failure.
        """
        while True:
            failure: list[BaseException] = []
            in_send = True

            def done(err: BaseException | None) -> None:
                # Rejections arrive synchronously, before send() returns.
                if in_send and err is not None:
                    failure.append(err)
                elif callback is not None:
                    callback(err)

            self.send(value, done)
            in_send = False
            if not failure:
                return
            if not isinstance(failure[0], BufferFullError):
                raise failure[0]
            logger.debug("Write buffer full, waiting for transport to drain")
            await self._scheduler.wait_writable()

    def send_and_close(self, value: Any, callback: WriteCallback | None = None) -> None:
        """Send one message, then close; ``callback`` runs once closed."""

        def finish(err: BaseException | None) -> None:
            if callback is not None:
                callback(err)
            elif err is not None and not isinstance(err, ClosedSocketError):
                self._report_error(err)

        def sent(err: BaseException | None) -> None:
            if self._state is SocketState.CLOSED:
                finish(err)
                return
            self.once("close", lambda: finish(err))
            self.end()

        self.send(value, sent)
        if self.options.batching:
            self._scheduler.flush()

    def flush(self) -> int:
        return self._scheduler.flush()

    def send_error(self, err: BaseException, callback: WriteCallback | None = None) -> None:
        self.send(format_error(err), callback)

    def send_end_error(self, err: BaseException, callback: WriteCallback | None = None) -> None:
        self.send_and_close(format_error(err), callback)

    def _reject(self, callback: WriteCallback | None, err: JsonSocketError) -> None:
        if callback is not None:
            callback(err)
        elif isinstance(err, ClosedSocketError):
            logger.debug("Dropping message sent on closed socket")
        else:
            self._report_error(err)

    # transport notifications

    def on_transport_connect(self) -> None:
        self._state = SocketState.OPEN
        self._scheduler.start()
        logger.debug("Socket connected")
        self._events.emit("connect")

    def on_transport_data(self, data: bytes) -> None:
        if self._state is SocketState.CLOSED or self._decoder.failed:
            return
        if self._stats is not None:
            self._stats.record(len(data))
        self._decoder.feed(data)
        self._drain_decoder()

    def _drain_decoder(self) -> None:
        while self._state is not SocketState.CLOSED:
            try:
                for message in self._decoder.messages():
                    if self._stats is not None:
                        self._stats.record_message()
                    self._events.emit("message", message)
                    if self._state is SocketState.CLOSED:
                        return
            except DecodePayloadError as e:
                self._report_error(e)
                continue
            except DecodeHeaderError as e:
                self._report_error(e)
            return

    def on_transport_close(self) -> None:
        self._latch_closed()

    def on_transport_error(self, exc: BaseException) -> None:
        logger.debug("Transport error: %s", exc)
        self._report_error(exc)
        self._latch_closed()

    def on_transport_pause(self) -> None:
        self._scheduler.pause()

    def on_transport_resume(self) -> None:
        self._scheduler.resume()
        self._events.emit("drain")

    def _latch_closed(self) -> None:
        if self._state is SocketState.CLOSED:
            return
        self._state = SocketState.CLOSED
        self._scheduler.stop()
        self._scheduler.discard(ClosedSocketError("Socket closed before the data was written"))
        self._scheduler.resume()
        self._closed_event.set()
        logger.debug("Socket closed")
        self._events.emit("close")

    def _report_error(self, err: BaseException) -> None:
        if (
            isinstance(err, DecodeError)
            and self.options.reply_errors
            and self._state is SocketState.OPEN
        ):
            self.send_error(err)
        if not self._events.emit("error", err):
            logger.warning("Unhandled error on %r: %s", self, err)

    # one-shot helpers

    @classmethod
    async def send_once(
        cls,
        address: Address,
        value: Any,
        callback: WriteCallback | None = None,
        *,
        options: SocketOptions | None = None,
    ) -> None:
        """Connect, send ``value``, close.

        Reports through ``callback(err)`` when given, otherwise raises.
        """
        sock = cls(options=options)
        errors: list[BaseException] = []
        sock.on("error", errors.append)
        try:
            await sock.connect(address)
            done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            sock.send_and_close(value, lambda err: _settle(done, err))
            await done
            if errors:
                raise errors[0]
        except (OSError, asyncio.TimeoutError, JsonSocketError) as e:
            sock.abort()
            if callback is None:
                raise
            callback(e)
            return
        if callback is not None:
            callback(None)

    @classmethod
    async def send_once_and_receive(
        cls,
        address: Address,
        value: Any,
        callback: ReplyCallback | None = None,
        *,
        options: SocketOptions | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Connect, send ``value``, wait for exactly one reply, close.

        A reply of the form ``{"success": false, ...}`` is turned into a
        RemoteError. Reports through ``callback(err, reply)`` when given,
        otherwise returns the reply or raises.
        """
        sock = cls(options=options)
        errors: list[BaseException] = []
        sock.on("error", errors.append)
        try:
            await sock.connect(address)
            reply: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

            def on_message(message: Any) -> None:
                sock.end()
                if isinstance(message, dict) and message.get("success") is False:
                    text = message.get("error") or message.get("message") or "Remote error"
                    _settle(reply, RemoteError(str(text), message))
                else:
                    _settle(reply, None, message)

            def on_close() -> None:
                err = errors[0] if errors else ClosedSocketError("Connection closed before a reply arrived")
                _settle(reply, err)

            def on_sent(err: BaseException | None) -> None:
                if err is not None:
                    _settle(reply, err)
                    sock.end()

            sock.once("message", on_message)
            sock.once("close", on_close)
            sock.send(value, on_sent)
            if sock.options.batching:
                sock.flush()
            if timeout is not None:
                message = await asyncio.wait_for(reply, timeout=timeout)
            else:
                message = await reply
        except (OSError, asyncio.TimeoutError, JsonSocketError) as e:
            sock.abort()
            if callback is None:
                raise
            callback(e, None)
            return None
        if callback is not None:
            callback(None, message)
        return message
