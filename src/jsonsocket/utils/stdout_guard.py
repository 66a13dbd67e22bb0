from __future__ import annotations

import contextlib
import logging
import os
import sys
from typing import TextIO


class StdoutGuard(contextlib.AbstractContextManager):
    """
    Divert print-style output to stderr while a network call is running.

    Replies are echoed by the CLI after the guard exits, so stdout only ever
    carries the reply. Logs go to stderr at JSONSOCKET_LOG_LEVEL (default WARNING).
    """

    def __init__(self, level: str | None = None) -> None:
        self._saved: TextIO | None = None
        if not logging.getLogger().handlers:
            logging.basicConfig(
                stream=sys.stderr,
                level=(level or os.environ.get("JSONSOCKET_LOG_LEVEL", "WARNING")).upper(),
                format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            )

    def __enter__(self) -> StdoutGuard:
        self._saved = sys.stdout
        sys.stdout = sys.stderr
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._saved is not None:
            sys.stdout = self._saved
            self._saved = None
        return False
