from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class SocketOptions(BaseModel):
    delimiter: str = Field("#", description="Single character ending the length header")
    batching: bool = False
    buffer_size: int = Field(64 * 1024, gt=0, description="Write buffer capacity in bytes")
    flush_interval: float = Field(
        0.05, ge=0, description="Idle check period in seconds for batched sends (0 disables)"
    )
    respect_backpressure: bool = True
    reply_errors: bool = False
    collect_stats: bool = False
    stats_window: float = Field(5.0, gt=0)
    connect_timeout: float | None = None

    @field_validator("delimiter")
    @classmethod
    def _check_delimiter(cls, value: str) -> str:
        # The header is ASCII digits, so the delimiter must not be one.
        if len(value) != 1 or not value.isascii() or value.isdigit():
            raise ValueError("delimiter must be a single non-digit ASCII character")
        return value


__all__ = [
    "SocketOptions",
]
