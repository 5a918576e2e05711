"""Base model and timestamp coercion shared by moneyboard models.

Models inherit from :class:`MoneyboardBaseModel`, which is frozen and maps
camelCase payload keys (as sent by the Firebase REST APIs) to snake_case
fields through ``alias_generator=to_camel``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a document timestamp to a UTC datetime.

    Accepts a ``datetime`` (Firestore returns ``DatetimeWithNanoseconds``),
    a ``{"seconds": ..., "nanoseconds": ...}`` mapping, epoch seconds or
    milliseconds, or an ISO-8601 string. Anything else yields ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if not isinstance(seconds, (int, float)):
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0))
        if not isinstance(nanos, (int, float)):
            nanos = 0
        return datetime.fromtimestamp(float(seconds) + float(nanos) / 1e9, tz=UTC)
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None


Timestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces document timestamps to UTC datetimes."""


class MoneyboardBaseModel(BaseModel):
    """Frozen model with camelCase aliases."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
