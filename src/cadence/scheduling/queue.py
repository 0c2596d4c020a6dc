"""Deadline queue: scheduled work items sorted by ``(next_run, id)``.

The queue always ends with a sentinel item due at ``EPOCH_FUTURE``, so it is
never empty and ``pop_due`` can scan from the front without bounds checks.
The sentinel is invisible to ``__len__``, ``__iter__`` and lookups.
"""

from __future__ import annotations

from collections.abc import Iterator

from cadence.timestamps import EPOCH_FUTURE

from .items import ItemKind, WorkItem

SENTINEL_ID = "__?# internal cadence scheduler last item #?__"


def _noop() -> None:
    return None


def sentinel_item() -> WorkItem:
    return WorkItem(id=SENTINEL_ID, callback=_noop, kind=ItemKind.ONE_SHOT, next_run=EPOCH_FUTURE)


class DeadlineQueue:
    """Sorted container of Scheduled deadline items, upserted by id."""

    def __init__(self) -> None:
        self._items: list[WorkItem] = [sentinel_item()]

    def upsert(self, item: WorkItem) -> WorkItem | None:
        """Insert or replace by id, then re-sort.

        Returns:
            The replaced item, or None when the id was new.
        """
        replaced = None
        for index, existing in enumerate(self._items):
            if existing.id == item.id:
                replaced = existing
                self._items[index] = item
                break
        else:
            self._items.append(item)

        self._items.sort(key=WorkItem.sort_key)
        return replaced

    def pop_due(self, now: int) -> list[WorkItem]:
        """Remove and return the sorted prefix of items due at ``now``."""
        count = 0
        while self._items[count].next_run <= now:
            count += 1
        due = self._items[:count]
        del self._items[:count]
        return due

    def get(self, item_id: str) -> WorkItem | None:
        for item in self:
            if item.id == item_id:
                return item
        return None

    def peek(self) -> WorkItem | None:
        """Earliest registered item, if any."""
        first = self._items[0]
        return None if first.id == SENTINEL_ID else first

    def __iter__(self) -> Iterator[WorkItem]:
        return (item for item in self._items if item.id != SENTINEL_ID)

    def __len__(self) -> int:
        return len(self._items) - 1

    def __contains__(self, item_id: object) -> bool:
        return self.get(item_id) is not None if isinstance(item_id, str) else False


__all__ = ["DeadlineQueue", "SENTINEL_ID", "sentinel_item"]
