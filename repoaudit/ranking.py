"""Size ranking for blobs and working-tree files. Raw byte counts only."""

from typing import Sequence, TypeVar

T = TypeVar("T")


def _size(record) -> int:
    return record.size if hasattr(record, "size") else record[0]


def top_ascending(records: Sequence[T], n: int) -> list[T]:
    """Smallest-to-largest, keeping the n largest. Equal sizes keep input order."""
    if n <= 0:
        return []
    return sorted(records, key=_size)[-n:]


def top_descending(records: Sequence[T], m: int) -> list[T]:
    """Largest-to-smallest, keeping the first m. Equal sizes keep input order."""
    if m <= 0:
        return []
    # sorted(reverse=True) is still stable for equal keys
    return sorted(records, key=_size, reverse=True)[:m]
