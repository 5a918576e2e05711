"""Expense record and snapshot models."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import Field, model_validator

from moneyboard.models._base import MoneyboardBaseModel, Timestamp, parse_timestamp

#: Document field carrying the server-assigned creation time.
TIMESTAMP_FIELD = "timestamp"


class Record(MoneyboardBaseModel):
    """One document of the expenses collection.

    ``fields`` holds the document data as received; ``timestamp`` is
    derived from its ``timestamp`` field when that can be read as a time.
    """

    id: str = Field(min_length=1)
    fields: dict[str, Any] = Field(default_factory=dict)
    timestamp: Timestamp = None

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any] | None) -> Record:
        fields = dict(data or {})
        return cls(id=doc_id, fields=fields, timestamp=parse_timestamp(fields.get(TIMESTAMP_FIELD)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


class Snapshot(MoneyboardBaseModel):
    """Ordered, point-in-time view of the collection.

    Each delivery from the store produces a new Snapshot that replaces the
    previous one as a whole.
    """

    records: tuple[Record, ...] = ()
    read_time: Timestamp = None
    sequence: int = 0

    @model_validator(mode="after")
    def _unique_ids(self) -> Snapshot:
        seen: set[str] = set()
        for record in self.records:
            if record.id in seen:
                raise ValueError(f"duplicate record id in snapshot: {record.id}")
            seen.add(record.id)
        return self

    @property
    def ids(self) -> list[str]:
        return [record.id for record in self.records]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:  # type: ignore[override]
        return iter(self.records)


EMPTY_SNAPSHOT = Snapshot()