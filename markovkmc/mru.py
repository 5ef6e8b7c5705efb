"""A most-recently-used ordering of items and a single data-store transaction."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Generic, Hashable, Iterator, Optional, TypeVar

T = TypeVar("T", bound=Hashable)


@dataclass
class Transaction:
    """One database transaction between two ranks."""

    kind: int = 0
    db_key: int = 0
    key: int = 0
    data: bytes = b""
    source: int = 0
    destination: int = 0
    pending: bool = False

    def describe(self) -> str:
        return (
            f" type: {self.kind} dbKey: {self.db_key} key: {self.key}"
            f" source: {self.source} destination: {self.destination}"
            f" pending: {int(bool(self.pending))}"
        )


class MRU(Generic[T]):
    """Unique items ordered by last touch; the oldest comes first."""

    def __init__(self) -> None:
        self._items: OrderedDict[T, None] = OrderedDict()

    def touch(self, item: T) -> None:
        """Add ``item`` as the newest, moving it to the back if present."""
        if item in self._items:
            self._items.move_to_end(item)
        else:
            self._items[item] = None

    def erase(self, item: T) -> None:
        """Remove ``item`` if present."""
        self._items.pop(item, None)

    def oldest(self) -> Optional[T]:
        """Return the least recently touched item, or None when empty."""
        return next(iter(self._items), None)

    def pop_oldest(self) -> bool:
        """Drop the oldest item; return False when there was none."""
        if not self._items:
            return False
        self._items.popitem(last=False)
        return True

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items