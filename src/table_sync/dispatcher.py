from __future__ import annotations

import logging
from collections.abc import Callable

from .debounce import Cancellable, Scheduler
from .navigation import Navigator
from .query import serialize
from .state import TableStateSnapshot, TableStateStore

logger = logging.getLogger(__name__)

DispatchHook = Callable[[dict[str, str]], None]


class QueryDispatcher:
    """Mirror store snapshots into the URL by replacing the history entry.

    With a scheduler, changes only mark the dispatcher dirty and one flush
    is scheduled; the flush serializes whatever snapshot is latest, so a
    burst of setter calls yields a single navigation. Without one, every
    change flushes synchronously.
    """

    def __init__(
        self,
        store: TableStateStore,
        navigator: Navigator,
        scheduler: Scheduler | None = None,
        on_dispatch: DispatchHook | None = None,
    ) -> None:
        self.store = store
        self.navigator = navigator
        self.scheduler = scheduler
        self.on_dispatch = on_dispatch
        self._handle: Cancellable | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self.dispatch_count = 0

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.notify)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    def notify(self, snapshot: TableStateSnapshot | None = None) -> None:
        if self.scheduler is None:
            self.flush()
            return
        if self._handle is None:
            self._handle = self.scheduler(0, self._run_scheduled)

    def flush(self) -> dict[str, str] | None:
        current = self.navigator.current_query()
        target = serialize(self.store.snapshot, current)
        if target == current:
            logger.debug("dispatch_skipped_unchanged")
            return None
        self.navigator.replace(target)
        self.dispatch_count += 1
        logger.info("dispatch_replace", extra={"query_keys": sorted(target)})
        if self.on_dispatch:
            self.on_dispatch(target)
        return target

    def _run_scheduled(self) -> None:
        self._handle = None
        self.flush()
