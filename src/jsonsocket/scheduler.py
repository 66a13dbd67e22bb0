from __future__ import annotations

import asyncio
import logging

from jsonsocket.errors import BufferFullError, OversizeFrameError
from jsonsocket.transport.base import Transport, WriteCallback

logger = logging.getLogger(__name__)


class OutboundBuffer:
    """Fixed-capacity byte region with a write cursor."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._data = bytearray(capacity)
        self._cursor = 0
        self._callbacks: list[WriteCallback] = []

    def __len__(self) -> int:
        return self._cursor

    def fits(self, size: int) -> bool:
        return self._cursor + size <= self.capacity

    def append(self, frame: bytes, callback: WriteCallback | None = None) -> None:
        end = self._cursor + len(frame)
        if len(frame) > self.capacity:
            raise OversizeFrameError(len(frame), self.capacity)
        if end > self.capacity:
            raise BufferFullError(f"No room for {len(frame)} bytes, {self.capacity - self._cursor} left")
        self._data[self._cursor : end] = frame
        self._cursor = end
        if callback is not None:
            self._callbacks.append(callback)

    def take(self) -> tuple[bytes, list[WriteCallback]]:
        data = bytes(self._data[: self._cursor])
        callbacks = self._callbacks
        self._cursor = 0
        self._callbacks = []
        return data, callbacks


def _fan_out(callbacks: list[WriteCallback]) -> WriteCallback:
    def done(err: BaseException | None) -> None:
        for callback in callbacks:
            callback(err)

    return done


class WriteScheduler:
    """
    Decide when encoded frames reach the transport.

    Immediate mode writes every frame as it is enqueued. Batched mode collects
    frames in an OutboundBuffer and writes the whole buffer when the next
    frame would not fit, when flush() is called, or when the idle check finds
    the buffer non-empty and unchanged for a full ``flush_interval``. The idle
    check only bounds latency; callers that need the bytes out call flush().

    Everything runs on the event loop thread, so a flush cannot interleave
    with an enqueue and bytes leave in exactly the order they were enqueued.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        batching: bool = False,
        capacity: int = 64 * 1024,
        flush_interval: float = 0.05,
        respect_backpressure: bool = True,
    ) -> None:
        self._transport = transport
        self.batching = batching
        self.flush_interval = flush_interval
        self.respect_backpressure = respect_backpressure
        self._buffer = OutboundBuffer(capacity)
        self._timer: asyncio.TimerHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._last_seen = 0
        self._paused = False
        self._writable = asyncio.Event()
        self._writable.set()
        self.writes = 0

    @property
    def capacity(self) -> int:
        return self._buffer.capacity

    @property
    def pending(self) -> int:
        """Bytes buffered but not yet handed to the transport."""
        return len(self._buffer)

    @property
    def paused(self) -> bool:
        return self._paused

    def enqueue(self, frame: bytes, callback: WriteCallback | None = None) -> None:
        blocked = self._paused and self.respect_backpressure
        if not self.batching:
            if blocked:
                raise BufferFullError("Transport is not accepting writes")
            self._write(frame, callback)
            return
        if len(frame) > self._buffer.capacity:
            raise OversizeFrameError(len(frame), self._buffer.capacity)
        if not self._buffer.fits(len(frame)):
            if blocked:
                raise BufferFullError(
                    f"Write buffer full ({self.pending} of {self.capacity} bytes) "
                    "and transport is not accepting writes"
                )
            self.flush()
        self._buffer.append(frame, callback)

    def flush(self) -> int:
        """Hand all buffered bytes to the transport; returns how many."""
        if not self._buffer:
            return 0
        data, callbacks = self._buffer.take()
        self._last_seen = 0
        self._write(data, _fan_out(callbacks) if callbacks else None)
        return len(data)

    def _write(self, data: bytes, callback: WriteCallback | None) -> None:
        self.writes += 1
        self._transport.write(data, callback)

    def discard(self, exc: BaseException) -> None:
        """Drop buffered bytes, failing their callbacks with ``exc``."""
        data, callbacks = self._buffer.take()
        if data:
            logger.debug("Discarding %d buffered bytes", len(data))
        for callback in callbacks:
            callback(exc)

    # idle flush

    def start(self) -> None:
        if not self.batching or self.flush_interval <= 0 or self._timer is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._last_seen = len(self._buffer)
        self._timer = self._loop.call_later(self.flush_interval, self._tick)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self) -> None:
        occupancy = len(self._buffer)
        if occupancy and occupancy == self._last_seen and not self._paused:
            logger.debug("Write buffer idle at %d bytes, flushing", occupancy)
            self.flush()
            occupancy = 0
        self._last_seen = occupancy
        assert self._loop is not None
        self._timer = self._loop.call_later(self.flush_interval, self._tick)

    # backpressure

    def pause(self) -> None:
        self._paused = True
        self._writable.clear()

    def resume(self) -> None:
        self._paused = False
        self._writable.set()

    async def wait_writable(self) -> None:
        await self._writable.wait()
