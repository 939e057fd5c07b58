from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field, replace

from .pagination import PaginationState

SnapshotListener = Callable[["TableStateSnapshot"], None]


@dataclass(frozen=True)
class SortSpec:
    column_id: str
    descending: bool = False

    @property
    def direction(self) -> str:
        return "desc" if self.descending else "asc"


@dataclass(frozen=True)
class FilterEntry:
    column_id: str
    value: str


@dataclass(frozen=True)
class FilterSet:
    """Ordered column filters, unique by column id.

    Order matters because it is the order entries are written to the
    ``search`` query parameter.
    """

    entries: tuple[FilterEntry, ...] = ()

    @classmethod
    def of(cls, pairs: Iterable[tuple[str, str] | FilterEntry]) -> FilterSet:
        result = cls()
        for pair in pairs:
            entry = pair if isinstance(pair, FilterEntry) else FilterEntry(*pair)
            result = result.with_value(entry.column_id, entry.value)
        return result

    def with_value(self, column_id: str, value: str | None) -> FilterSet:
        """Set a column filter; an empty value removes it.

        An existing column keeps its position, a new one is appended.
        """
        if value is None or value == "":
            return self.without(column_id)
        updated = FilterEntry(column_id=column_id, value=value)
        if column_id not in self:
            return FilterSet(entries=(*self.entries, updated))
        return FilterSet(
            entries=tuple(updated if entry.column_id == column_id else entry for entry in self.entries)
        )

    def without(self, column_id: str) -> FilterSet:
        if column_id not in self:
            return self
        return FilterSet(entries=tuple(entry for entry in self.entries if entry.column_id != column_id))

    def get(self, column_id: str, default: str | None = None) -> str | None:
        for entry in self.entries:
            if entry.column_id == column_id:
                return entry.value
        return default

    def as_pairs(self) -> list[tuple[str, str]]:
        return [(entry.column_id, entry.value) for entry in self.entries]

    def __contains__(self, column_id: object) -> bool:
        return any(entry.column_id == column_id for entry in self.entries)

    def __iter__(self) -> Iterator[FilterEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class TableStateSnapshot:
    sort: SortSpec | None = None
    filters: FilterSet = field(default_factory=FilterSet)
    pagination: PaginationState = field(default_factory=PaginationState)


class TableStateStore:
    """Holds the current snapshot and replaces one slice per setter call.

    Every setter call notifies subscribers, even when the new slice equals
    the old one. Deduplication belongs to the dispatcher and navigation.
    """

    def __init__(self, initial: TableStateSnapshot | None = None) -> None:
        self._snapshot = initial or TableStateSnapshot()
        self._listeners: list[SnapshotListener] = []
        self._lock = threading.RLock()

    @property
    def snapshot(self) -> TableStateSnapshot:
        return self._snapshot

    def set_sort(self, sort: SortSpec | None) -> TableStateSnapshot:
        return self._apply(sort=sort)

    def set_filters(self, filters: FilterSet) -> TableStateSnapshot:
        return self._apply(filters=filters)

    def set_pagination(self, pagination: PaginationState) -> TableStateSnapshot:
        return self._apply(pagination=pagination)

    def reset(self, snapshot: TableStateSnapshot | None = None) -> TableStateSnapshot:
        with self._lock:
            self._snapshot = snapshot or TableStateSnapshot()
            current = self._snapshot
        self._notify(current)
        return current

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _apply(self, **changes: object) -> TableStateSnapshot:
        with self._lock:
            self._snapshot = replace(self._snapshot, **changes)
            current = self._snapshot
        self._notify(current)
        return current

    def _notify(self, snapshot: TableStateSnapshot) -> None:
        for listener in list(self._listeners):
            listener(snapshot)
