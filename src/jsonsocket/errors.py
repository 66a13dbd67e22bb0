from __future__ import annotations

from typing import Any


class JsonSocketError(Exception):
    """Base class for every error raised or reported by jsonsocket."""

    code = "E_JSONSOCKET"


class DecodeError(JsonSocketError):
    """Raised by the frame decoder."""


class DecodeHeaderError(DecodeError):
    """Malformed length prefix. Fatal for the decode path of a connection."""

    code = "E_INVALID_CONTENT_LENGTH"

    def __init__(self, header: bytes) -> None:
        self.header = header
        shown = header.decode("utf-8", errors="replace")
        super().__init__(f"Invalid content length supplied ({shown!r})")


class DecodePayloadError(DecodeError):
    """An assembled frame did not contain valid UTF-8 JSON.

    Recoverable: the length prefix already delimits the bad payload, so the
    decoder resumes at the next frame.
    """

    code = "E_INVALID_JSON"

    def __init__(self, payload: bytes, reason: str) -> None:
        self.payload = payload
        self.reason = reason
        shown = payload.decode("utf-8", errors="replace")
        super().__init__(f"Could not parse JSON: {reason}\nRequest data: {shown}")


class EncodeError(JsonSocketError):
    code = "E_INVALID_MESSAGE"


class ClosedSocketError(JsonSocketError):
    code = "E_SOCKET_CLOSED"

    def __init__(self, message: str = "The socket is closed.") -> None:
        super().__init__(message)


class OversizeFrameError(JsonSocketError):
    code = "E_FRAME_TOO_LARGE"

    def __init__(self, size: int, capacity: int) -> None:
        self.size = size
        self.capacity = capacity
        super().__init__(f"Frame of {size} bytes exceeds write buffer capacity of {capacity} bytes")


class BufferFullError(JsonSocketError):
    """The transport asked us to stop writing; wait for it to drain and retry."""

    code = "E_BUFFER_FULL"


class RemoteError(JsonSocketError):
    """The peer answered with an error reply (``{"success": false, ...}``)."""

    code = "E_REMOTE"

    def __init__(self, message: str, reply: Any | None = None) -> None:
        self.reply = reply
        super().__init__(message)


def format_error(err: BaseException) -> dict[str, Any]:
    return {"success": False, "error": f"{type(err).__name__}: {err}"}


__all__ = [
    "JsonSocketError",
    "DecodeError",
    "DecodeHeaderError",
    "DecodePayloadError",
    "EncodeError",
    "ClosedSocketError",
    "OversizeFrameError",
    "BufferFullError",
    "RemoteError",
    "format_error",
]
