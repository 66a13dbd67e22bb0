from __future__ import annotations

import abc
from collections.abc import Callable
from typing import Protocol, Union

# (host, port) for TCP, a filesystem path for a Unix-domain socket.
Address = Union[tuple[str, int], str]
WriteCallback = Callable[[Union[BaseException, None]], None]


class TransportListener(Protocol):
    """Notifications a transport delivers to the socket bound to it."""

    def on_transport_connect(self) -> None: ...

    def on_transport_data(self, data: bytes) -> None: ...

    def on_transport_close(self) -> None: ...

    def on_transport_error(self, exc: BaseException) -> None: ...

    def on_transport_pause(self) -> None: ...

    def on_transport_resume(self) -> None: ...


class Transport(abc.ABC):
    """Duplex byte stream consumed by MessageSocket."""

    @abc.abstractmethod
    def bind(self, listener: TransportListener) -> None:
        """Route all notifications to ``listener``."""

    @abc.abstractmethod
    async def connect(self, address: Address) -> None:
        """Open a connection; raises OSError on failure."""

    @abc.abstractmethod
    def write(self, data: bytes, callback: WriteCallback | None = None) -> None:
        """Hand bytes to the stream; ``callback(None)`` once accepted."""

    @abc.abstractmethod
    def end(self) -> None:
        """Half-close the write side after pending bytes are sent."""

    @abc.abstractmethod
    def abort(self) -> None:
        """Close immediately, discarding unsent bytes."""

    @property
    def connected(self) -> bool:
        return False
