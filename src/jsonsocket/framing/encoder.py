from __future__ import annotations

import json
from typing import Any

from jsonsocket.errors import EncodeError


class FrameEncoder:
    """Serialize one value into a ``<byte length><delimiter><json>`` frame."""

    def __init__(self, delimiter: str = "#") -> None:
        self._delimiter = delimiter.encode("ascii")

    def encode(self, value: Any) -> bytes:
        try:
            body = json.dumps(
                value, ensure_ascii=False, separators=(",", ":"), allow_nan=False
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodeError(f"Value is not JSON serializable: {e}") from e
        # Length counts encoded bytes, not characters.
        return str(len(body)).encode("ascii") + self._delimiter + body
