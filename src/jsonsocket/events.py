from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

OwnerT = TypeVar("OwnerT")
Listener = Callable[..., Any]


@dataclass
class _Registration:
    callback: Listener
    once: bool = False


class EventRegistry(Generic[OwnerT]):
    """
    Listener registry backing MessageSocket events.

    Return contract:
    - ``on``, ``once`` and ``off`` return the owner passed at construction so
      registrations can be chained
    - ``emit`` returns whether at least one listener was called

    Listeners run synchronously in registration order. An exception raised by
    a listener is logged and does not prevent the remaining listeners from
    running.
    """

    def __init__(self, owner: OwnerT) -> None:
        self._owner = owner
        self._listeners: dict[str, list[_Registration]] = {}

    def on(self, event: str, listener: Listener) -> OwnerT:
        self._listeners.setdefault(event, []).append(_Registration(listener))
        return self._owner

    def once(self, event: str, listener: Listener) -> OwnerT:
        self._listeners.setdefault(event, []).append(_Registration(listener, once=True))
        return self._owner

    def off(self, event: str, listener: Listener | None = None) -> OwnerT:
        if listener is None:
            self._listeners.pop(event, None)
            return self._owner
        registrations = self._listeners.get(event, [])
        for reg in registrations:
            if reg.callback == listener:
                registrations.remove(reg)
                break
        return self._owner

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        registrations = self._listeners.get(event)
        if not registrations:
            return False
        for reg in list(registrations):
            if reg.once:
                try:
                    registrations.remove(reg)
                except ValueError:
                    # removed by an earlier listener during this emit
                    continue
            try:
                reg.callback(*args)
            except Exception:
                logger.exception("Listener for %r event failed", event)
        return True
