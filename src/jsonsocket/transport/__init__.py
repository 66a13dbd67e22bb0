from jsonsocket.transport.base import Address, Transport, TransportListener
from jsonsocket.transport.stream import StreamTransport, parse_address

__all__ = ["Address", "Transport", "TransportListener", "StreamTransport", "parse_address"]
