"""
Timestamp variant shared by events and tickets.

A stored timestamp is either *pending* (the store assigns it on commit) or
*resolved* to epoch seconds. Raw values arrive in several shapes (numbers,
ISO strings, ``{"_seconds": ...}`` maps exported from document stores), so
``Timestamp.parse`` is the only place that interprets them and
``format_timestamp`` is the only place that renders them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, model_validator

UNSPECIFIED = "To be defined"
DISPLAY_FORMAT = "%d/%m/%Y %H:%M"


class TimestampKind(str, Enum):
    """Tag of the timestamp variant."""

    PENDING = "pending"
    RESOLVED = "resolved"


class Timestamp(BaseModel):
    """Pending | Resolved(epoch_seconds)."""

    model_config = ConfigDict(frozen=True)

    kind: TimestampKind
    epoch_seconds: Optional[float] = None

    @model_validator(mode="after")
    def check_variant(self) -> "Timestamp":
        if self.kind is TimestampKind.RESOLVED and self.epoch_seconds is None:
            raise ValueError("resolved timestamp requires epoch_seconds")
        if self.kind is TimestampKind.PENDING and self.epoch_seconds is not None:
            raise ValueError("pending timestamp cannot carry epoch_seconds")
        return self

    @classmethod
    def pending(cls) -> "Timestamp":
        return cls(kind=TimestampKind.PENDING)

    @classmethod
    def resolved(cls, epoch_seconds: float) -> "Timestamp":
        return cls(kind=TimestampKind.RESOLVED, epoch_seconds=float(epoch_seconds))

    @classmethod
    def now(cls) -> "Timestamp":
        return cls.resolved(datetime.now(timezone.utc).timestamp())

    @property
    def is_pending(self) -> bool:
        return self.kind is TimestampKind.PENDING

    def to_datetime(self) -> Optional[datetime]:
        if self.is_pending:
            return None
        return datetime.fromtimestamp(self.epoch_seconds, tz=timezone.utc)

    @classmethod
    def parse(cls, raw: Any) -> Optional["Timestamp"]:
        """Interpret any stored timestamp shape; None/empty means unset."""
        if raw is None or raw == "":
            return None
        if isinstance(raw, Timestamp):
            return raw
        if isinstance(raw, bool):
            raise ValueError("boolean is not a timestamp")
        if isinstance(raw, datetime):
            if raw.tzinfo is None:
                raw = raw.replace(tzinfo=timezone.utc)
            return cls.resolved(raw.timestamp())
        if isinstance(raw, (int, float, Decimal)):
            return cls.resolved(float(raw))
        if isinstance(raw, str):
            return cls._parse_string(raw.strip())
        if isinstance(raw, dict):
            return cls._parse_mapping(raw)
        raise ValueError(f"unsupported timestamp value: {raw!r}")

    @classmethod
    def _parse_string(cls, raw: str) -> Optional["Timestamp"]:
        if not raw:
            return None
        try:
            return cls.resolved(float(raw))
        except ValueError:
            pass
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return cls.parse(datetime.fromisoformat(raw))

    @classmethod
    def _parse_mapping(cls, raw: dict) -> Optional["Timestamp"]:
        if "kind" in raw:
            return cls.model_validate(raw)
        seconds = raw.get("_seconds", raw.get("seconds"))
        if seconds is None:
            raise ValueError(f"unsupported timestamp mapping: {raw!r}")
        nanos = raw.get("_nanoseconds", raw.get("nanoseconds")) or 0
        return cls.resolved(float(seconds) + float(nanos) / 1_000_000_000)


def format_timestamp(ts: Optional[Timestamp], tz_name: str = "America/Sao_Paulo") -> str:
    """Render a timestamp for humans, or the unspecified sentinel."""
    if ts is None or ts.is_pending:
        return UNSPECIFIED
    try:
        return ts.to_datetime().astimezone(ZoneInfo(tz_name)).strftime(DISPLAY_FORMAT)
    except (ValueError, OverflowError, OSError):
        # Out of the platform datetime range, e.g. milliseconds stored as seconds.
        return UNSPECIFIED
