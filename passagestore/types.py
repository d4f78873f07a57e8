"""
Data types for the passage store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

MAX_ID_LENGTH = 1024


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_utc_timestamp(dt: datetime) -> str:
    """
    Canonical stored form of a record date.

    Fixed width (4-digit year, microseconds, +00:00) so stored dates sort
    lexically in chronological order.
    """
    return to_utc(dt).isoformat(timespec="microseconds")


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime.

    Accepts the canonical format plus 'Z' suffixes and naive values.
    """
    ts = ts.replace("Z", "+00:00")
    return to_utc(datetime.fromisoformat(ts))


def validate_id(id: str) -> None:
    """Validate a record ID: non-empty string of bounded length."""
    if not isinstance(id, str):
        raise ValueError(f"Record ID must be a string, got {type(id).__name__}")
    if not id or len(id) > MAX_ID_LENGTH:
        raise ValueError(f"Record ID must be 1-{MAX_ID_LENGTH} characters")


@dataclass
class Record(Generic[T]):
    """
    A stored passage.

    The embedding is not part of the record: the store derives it from
    ``text`` at insert time.

    Attributes:
        id: Primary key, unique within a store
        text: The passage; indexed lexically and semantically
        data: Caller-defined payload, stored and returned untouched
        group: Optional tag for bulk deletion and atomic replacement
        date: Timestamp used for recency eviction and tie-breaking (UTC)
    """
    id: str
    text: str
    data: Any = None
    group: Optional[str] = None
    date: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.date = to_utc(self.date)
