from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from jsonsocket.config import SocketOptions

_TRUE = {"1", "true", "yes", "on"}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    delimiter = os.environ.get("JSONSOCKET_DELIMITER")
    if delimiter:
        data["delimiter"] = delimiter
    batching = os.environ.get("JSONSOCKET_BATCHING")
    if batching:
        data["batching"] = batching.strip().lower() in _TRUE
    buffer_size = os.environ.get("JSONSOCKET_BUFFER_SIZE")
    if buffer_size:
        data["buffer_size"] = buffer_size
    flush_interval = os.environ.get("JSONSOCKET_FLUSH_INTERVAL")
    if flush_interval:
        data["flush_interval"] = flush_interval
    connect_timeout = os.environ.get("JSONSOCKET_CONNECT_TIMEOUT")
    if connect_timeout:
        data["connect_timeout"] = connect_timeout
    return data


def load_options(path: str | Path | None = None) -> SocketOptions:
    """Load socket options from a YAML or JSON file, then apply env overrides.

    The file may hold the options at top level or nested under ``socket:``.
    With no path only the environment is consulted.
    """
    data: Any = {}
    if path is not None:
        p = Path(path)
        text = p.read_text(encoding="utf-8")
        if p.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
        if not isinstance(data, dict):
            raise RuntimeError(f"Invalid configuration: root of {p} must be a mapping")
        if isinstance(data.get("socket"), dict):
            data = data["socket"]
    data = _apply_env_overrides(dict(data))
    try:
        return SocketOptions.model_validate(data)
    except ValidationError as e:
        raise RuntimeError(f"Invalid configuration: {e}") from e
