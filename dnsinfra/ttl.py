"""Resource records and lookups with TTL clipping."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Record:
    """A resource record with a time-to-live in seconds."""

    name: str
    record_type: str
    data: Any
    ttl: int

    def clip_max_ttl(self, ttl: int) -> None:
        """Lower the TTL to ``ttl`` if it is larger."""
        if self.ttl > ttl:
            self.ttl = ttl

    def clip_min_ttl(self, ttl: int) -> None:
        """Raise the TTL to ``ttl`` if it is smaller."""
        if self.ttl < ttl:
            self.ttl = ttl


@dataclass(frozen=True)
class Lookup:
    """The records answering a query, valid until a deadline."""

    query: Any
    records: tuple[Record, ...] = field(default_factory=tuple)
    valid_until: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def max_ttl(self) -> int | None:
        return max((record.ttl for record in self.records), default=None)

    def min_ttl(self) -> int | None:
        return min((record.ttl for record in self.records), default=None)

    def _with_records(self, change: Callable[[Record], None]) -> Lookup:
        records = []
        for record in self.records:
            copy = dataclasses.replace(record)
            change(copy)
            records.append(copy)
        return Lookup(self.query, tuple(records), self.valid_until)

    def with_new_ttl(self, ttl: int) -> Lookup:
        """A copy with every record's TTL set to ``ttl``."""

        def set_ttl(record: Record) -> None:
            record.ttl = ttl

        return self._with_records(set_ttl)

    def with_max_ttl(self, ttl: int) -> Lookup:
        """A copy with TTLs above ``ttl`` lowered to it."""
        return self._with_records(lambda record: record.clip_max_ttl(ttl))

    def with_min_ttl(self, ttl: int) -> Lookup:
        """A copy with TTLs below ``ttl`` raised to it."""
        return self._with_records(lambda record: record.clip_min_ttl(ttl))