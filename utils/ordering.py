"""
Chronological ordering shared by the stock ledger and the account ledger.

Both ledgers order rows by the calendar date the movement is attributed to,
then by record creation time. Keeping the comparator here means the SQL
ordering and the in-memory ordering cannot drift apart.
"""
from datetime import date, datetime, timezone
from functools import cmp_to_key
from typing import Any, Callable, Iterable, List, NamedTuple, Optional


class ChronologicalKey(NamedTuple):
    day: date
    created_at: datetime
    seq: int = 0


def parse_day(value: Any) -> Optional[date]:
    """Return a calendar date from a date, datetime or ISO string, else None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Return a naive UTC datetime from a datetime, date or ISO string, else None."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


def chronological_key(day: Any, created_at: Any = None, seq: int = 0) -> ChronologicalKey:
    """Build the sort key; a missing creation time sorts first within its day."""
    parsed_day = parse_day(day)
    if parsed_day is None:
        raise ValueError(f"Unparseable date: {day!r}")
    return ChronologicalKey(parsed_day, parse_timestamp(created_at) or datetime.min, seq)


def compare_chronologically(a_day: Any, a_created: Any, b_day: Any, b_created: Any) -> int:
    """
    Three-way comparison on (day, created_at).

    When either day cannot be parsed the comparison falls back to creation
    time alone instead of failing.
    """
    left_day, right_day = parse_day(a_day), parse_day(b_day)
    if left_day is not None and right_day is not None and left_day != right_day:
        return -1 if left_day < right_day else 1

    left_created = parse_timestamp(a_created) or datetime.min
    right_created = parse_timestamp(b_created) or datetime.min
    if left_created == right_created:
        return 0
    return -1 if left_created < right_created else 1


def sort_chronologically(
    items: Iterable[Any],
    day_of: Callable[[Any], Any],
    created_of: Callable[[Any], Any],
) -> List[Any]:
    """Stable in-memory sort; rows with equal keys keep their input order."""
    def _compare(a, b):
        return compare_chronologically(day_of(a), created_of(a), day_of(b), created_of(b))

    return sorted(items, key=cmp_to_key(_compare))


def chronological_order(model, date_column) -> tuple:
    """SQL ORDER BY clauses matching sort_chronologically, with id as final tie-break."""
    return (date_column.asc(), model.created_at.asc(), model.id.asc())
