from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

from jsonsocket.errors import DecodeHeaderError, DecodePayloadError

logger = logging.getLogger(__name__)

# Longest header accepted, with or without its delimiter.
MAX_HEADER_LENGTH = 20


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant {name}")


class FrameDecoder:
    """Incrementally rebuild messages from an arbitrarily chunked byte stream.

    Wire format: ASCII decimal byte length, one delimiter character, then that
    many bytes of UTF-8 JSON. Usage::

        decoder.feed(chunk)
        for message in decoder.messages():
            ...

    ``messages()`` raises :class:`DecodePayloadError` for a frame whose payload
    is not valid JSON. The frame has already been consumed at that point, so
    calling ``messages()`` again continues with the next one. A malformed
    header raises :class:`DecodeHeaderError` exactly once; the decoder then
    stays failed and ignores all further input, because the stream can no
    longer be resynchronised.
    """

    def __init__(self, delimiter: str = "#") -> None:
        self._delimiter = delimiter.encode("ascii")
        self._reset()
        self._failed = False

    def _reset(self) -> None:
        self._buffer = bytearray()
        self._cursor = 0
        self._expected: int | None = None

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def pending(self) -> int:
        """Number of received bytes not yet consumed by a complete frame."""
        return len(self._buffer) - self._cursor

    def feed(self, data: bytes) -> None:
        if self._failed or not data:
            return
        self._buffer.extend(data)

    def messages(self) -> Iterator[Any]:
        while not self._failed:
            payload = self._next_payload()
            if payload is None:
                return
            yield self._parse(payload)

    def decode(self, data: bytes) -> list[Any]:
        self.feed(data)
        return list(self.messages())

    def _next_payload(self) -> bytes | None:
        if self._expected is None:
            end = self._buffer.find(self._delimiter, self._cursor)
            if end == -1:
                # The header may still be arriving.
                if self.pending > MAX_HEADER_LENGTH:
                    self._fail(bytes(self._buffer[self._cursor :]))
                return None
            self._read_header(bytes(self._buffer[self._cursor : end]))
            self._cursor = end + 1

        assert self._expected is not None
        if self.pending < self._expected:
            self._compact()
            return None
        start = self._cursor
        self._cursor += self._expected
        self._expected = None
        payload = bytes(self._buffer[start : self._cursor])
        self._compact()
        return payload

    def _read_header(self, token: bytes) -> None:
        if not token.isdigit() or len(token) > MAX_HEADER_LENGTH:
            self._fail(token)
        self._expected = int(token)

    def _fail(self, token: bytes) -> None:
        # A fresh buffer, not a cleared one: nothing received so far is trusted.
        self._reset()
        self._failed = True
        logger.debug("Invalid frame header %r, decoding halted", token)
        raise DecodeHeaderError(token)

    def _parse(self, payload: bytes) -> Any:
        try:
            return json.loads(payload.decode("utf-8"), parse_constant=_reject_constant)
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            raise DecodePayloadError(payload, str(e)) from e

    def _compact(self) -> None:
        if self._cursor == len(self._buffer):
            del self._buffer[:]
            self._cursor = 0
        elif self._cursor and self._cursor * 2 >= len(self._buffer):
            del self._buffer[: self._cursor]
            self._cursor = 0
