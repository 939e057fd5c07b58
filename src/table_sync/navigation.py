from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

from .query import encode_query, parse_query_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    path: str = "/"
    query: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_url(cls, url: str) -> Location:
        parts = urlsplit(url)
        return cls(path=parts.path or "/", query=tuple(parse_query_string(parts.query).items()))

    @classmethod
    def build(cls, path: str, query: Mapping[str, str]) -> Location:
        return cls(path=path, query=tuple((str(key), str(value)) for key, value in query.items()))

    @property
    def query_map(self) -> dict[str, str]:
        return dict(self.query)

    @property
    def search(self) -> str:
        return encode_query(self.query_map)

    @property
    def url(self) -> str:
        return f"{self.path}?{self.search}" if self.query else self.path


NavigationListener = Callable[[Location], None]


class Navigator(Protocol):
    def current_query(self) -> dict[str, str]: ...

    def replace(self, query: Mapping[str, str]) -> bool: ...


class MemoryRouter:
    """History stack with push/replace/back, notifying listeners on change.

    Navigating to the location that is already current is a no-op, so
    listeners only see real changes.
    """

    def __init__(self, initial: str | Location = "/") -> None:
        start = initial if isinstance(initial, Location) else Location.from_url(initial)
        self._entries: list[Location] = [start]
        self._index = 0
        self._listeners: list[NavigationListener] = []

    @property
    def location(self) -> Location:
        return self._entries[self._index]

    @property
    def history(self) -> list[Location]:
        return list(self._entries[: self._index + 1])

    def current_query(self) -> dict[str, str]:
        return self.location.query_map

    def push(self, query: Mapping[str, str], path: str | None = None) -> bool:
        target = Location.build(path or self.location.path, query)
        if target == self.location:
            return False
        del self._entries[self._index + 1 :]
        self._entries.append(target)
        self._index += 1
        logger.debug("navigation_push", extra={"url": target.url})
        self._notify(target)
        return True

    def replace(self, query: Mapping[str, str], path: str | None = None) -> bool:
        target = Location.build(path or self.location.path, query)
        if target == self.location:
            return False
        self._entries[self._index] = target
        logger.debug("navigation_replace", extra={"url": target.url})
        self._notify(target)
        return True

    def back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        self._notify(self.location)
        return True

    def subscribe(self, listener: NavigationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, location: Location) -> None:
        for listener in list(self._listeners):
            listener(location)
