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
)
from jsonsocket.framing import FrameDecoder, FrameEncoder
from jsonsocket.message_socket import MessageSocket, SocketState
from jsonsocket.scheduler import WriteScheduler
from jsonsocket.server import serve
from jsonsocket.stats import ThroughputProbe

__all__ = [
    "SocketOptions",
    "MessageSocket",
    "SocketState",
    "FrameDecoder",
    "FrameEncoder",
    "WriteScheduler",
    "ThroughputProbe",
    "serve",
    "JsonSocketError",
    "DecodeError",
    "DecodeHeaderError",
    "DecodePayloadError",
    "EncodeError",
    "ClosedSocketError",
    "OversizeFrameError",
    "BufferFullError",
    "RemoteError",
]
