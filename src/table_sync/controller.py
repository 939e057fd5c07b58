from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import replace
from functools import partial
from time import perf_counter
from typing import Any

from .config import ClientConfig
from .debounce import DebouncedValue, LoopScheduler, Scheduler
from .dispatcher import QueryDispatcher
from .exceptions import FetchError, StaleResponseError
from .http_client import HttpClient
from .loader import UsersLoader
from .models import QueryResult, UserRow
from .navigation import Location, MemoryRouter
from .pagination import (
    DEFAULT_PAGE_SIZE,
    PaginationState,
    can_next_page,
    can_previous_page,
    goto_page,
    next_page,
    page_count,
    previous_page,
    resize_page,
)
from .query import deserialize, serialize
from .state import FilterSet, SortSpec, TableStateSnapshot, TableStateStore
from .telemetry import TelemetryLogger
from .view_state import USER_COLUMNS, ColumnDef, TableViewState, page_label, resolve_table_view_state

logger = logging.getLogger(__name__)


class TableController:
    """Server-backed users table: state, URL and rows kept in step.

    User actions mutate the store; the dispatcher mirrors the store into the
    router; every navigation loads the page for the new URL. Filter text goes
    through one debounced source per column before it reaches the store.

    All state changes happen on the thread that owns the controller. Timers
    go through ``scheduler`` (``asyncio`` ``loop.call_later`` or similar);
    by default a ``LoopScheduler`` the owner pumps with ``run_pending``.
    """

    def __init__(
        self,
        loader: UsersLoader,
        router: MemoryRouter,
        *,
        columns: Sequence[ColumnDef] = USER_COLUMNS,
        debounce_ms: int = 500,
        scheduler: Scheduler | None = None,
        dispatch_scheduler: Scheduler | None = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        reset_page_on_change: bool = False,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self.loader = loader
        self.router = router
        self.columns = tuple(columns)
        self.debounce_ms = debounce_ms
        self.scheduler: Scheduler = scheduler if scheduler is not None else LoopScheduler()
        self.default_page_size = default_page_size
        self.reset_page_on_change = reset_page_on_change
        self.telemetry = telemetry or TelemetryLogger(app_name="table_sync", enabled=False)
        self.store = TableStateStore()
        self.dispatcher = QueryDispatcher(
            self.store,
            router,
            scheduler=dispatch_scheduler,
            on_dispatch=self._on_dispatch,
        )
        self.rows: list[UserRow] = []
        self.total_count = 0
        self.error: FetchError | None = None
        self.loading = False
        self.loaded = False
        self.mounted = False
        self._filter_inputs: dict[str, DebouncedValue[str]] = {}
        self._unsubscribe_router: Callable[[], None] | None = None
        self._results_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        router: MemoryRouter,
        *,
        http: HttpClient | None = None,
        scheduler: Scheduler | None = None,
        telemetry: TelemetryLogger | None = None,
    ) -> TableController:
        loader = UsersLoader(http or HttpClient(config), default_page_size=config.default_page_size)
        return cls(
            loader,
            router,
            debounce_ms=config.debounce_ms,
            scheduler=scheduler,
            default_page_size=config.default_page_size,
            reset_page_on_change=config.reset_page_on_change,
            telemetry=telemetry,
        )

    # lifecycle

    def mount(self) -> TableStateSnapshot:
        snapshot = deserialize(self.router.current_query(), self.default_page_size)
        self.store.reset(snapshot)
        for column in self.columns:
            if not column.filterable:
                continue
            self._filter_inputs[column.key] = DebouncedValue.create(
                snapshot.filters.get(column.key, "") or "",
                partial(self._apply_filter, column.key),
                delay_ms=self.debounce_ms,
                scheduler=self.scheduler,
            )
        self._unsubscribe_router = self.router.subscribe(self._on_navigate)
        self.dispatcher.start()
        self.mounted = True
        # the first flush writes page/limit into the URL; if the URL already
        # matches there is no navigation, so load it directly
        if self.dispatcher.flush() is None:
            self._on_navigate(self.router.location)
        return self.store.snapshot

    def unmount(self) -> None:
        for debounced in self._filter_inputs.values():
            debounced.dispose()
        self._filter_inputs = {}
        self.dispatcher.stop()
        if self._unsubscribe_router is not None:
            self._unsubscribe_router()
            self._unsubscribe_router = None
        self.loader.supersede()
        self.store.reset()
        self.rows = []
        self.total_count = 0
        self.error = None
        self.loading = False
        self.loaded = False
        self.mounted = False

    # user actions

    @property
    def snapshot(self) -> TableStateSnapshot:
        return self.store.snapshot

    def toggle_sort(self, column_id: str) -> SortSpec | None:
        """Cycle a column header: ascending, descending, unsorted."""
        current = self.store.snapshot.sort
        if current is None or current.column_id != column_id:
            sort: SortSpec | None = SortSpec(column_id=column_id, descending=False)
        elif not current.descending:
            sort = SortSpec(column_id=column_id, descending=True)
        else:
            sort = None
        self.store.set_sort(sort)
        self._after_query_change()
        return sort

    def set_sort(self, sort: SortSpec | None) -> None:
        self.store.set_sort(sort)
        self._after_query_change()

    def set_filter_text(self, column_id: str, text: str) -> None:
        self._filter_input(column_id).set_pending(text)

    def filter_text(self, column_id: str) -> str:
        return self._filter_input(column_id).value

    def clear_filters(self) -> None:
        for debounced in self._filter_inputs.values():
            debounced.sync("")
        self.store.set_filters(FilterSet())
        self._after_query_change()

    def set_page_size(self, page_size: int) -> None:
        self.store.set_pagination(resize_page(self.store.snapshot.pagination, page_size))

    def next_page(self) -> None:
        self.store.set_pagination(next_page(self.store.snapshot.pagination, self.page_count))

    def previous_page(self) -> None:
        self.store.set_pagination(previous_page(self.store.snapshot.pagination))

    def go_to_page(self, page_index: int) -> None:
        self.store.set_pagination(goto_page(self.store.snapshot.pagination, page_index, self.page_count))

    # derived pagination

    @property
    def pagination(self) -> PaginationState:
        return self.store.snapshot.pagination

    @property
    def page_count(self) -> int:
        return page_count(self.total_count, self.pagination.page_size)

    @property
    def can_next_page(self) -> bool:
        return can_next_page(self.pagination, self.page_count)

    @property
    def can_previous_page(self) -> bool:
        return can_previous_page(self.pagination)

    @property
    def page_label(self) -> str:
        return page_label(self.pagination, self.page_count)

    @property
    def view_state(self) -> TableViewState:
        return resolve_table_view_state(
            loaded=self.loaded,
            loading=self.loading,
            has_data=bool(self.rows),
            error=self.error.message if self.error else None,
            error_code=self.error.code if self.error else None,
        )

    def row_dicts(self) -> list[dict[str, Any]]:
        return [row.model_dump() for row in self.rows]

    # loading

    def load(self, query_string: str) -> QueryResult:
        """Fetch rows for ``query_string``. Fetch errors propagate.

        A result whose fetch was superseded while it was in flight raises
        ``StaleResponseError`` instead of replacing newer rows, even when the
        fetch ran on a worker thread.
        """
        self.loading = True
        started = perf_counter()
        try:
            result = self.loader.fetch(query_string)
        except StaleResponseError:
            raise
        except FetchError:
            self.loading = False
            raise
        with self._results_lock:
            if not self.loader.is_current(result.generation):
                logger.info("load_result_discarded", extra={"generation": result.generation})
                raise StaleResponseError(
                    code="REQUEST_SUPERSEDED",
                    message="A newer query was loaded before this result was applied",
                    details={"generation": result.generation},
                )
            self.rows = result.rows
            self.total_count = result.total_count
            self.error = None
            self.loading = False
            self.loaded = True
        self.telemetry.record(
            "api_call_result",
            "users_page_loaded",
            component="loader",
            duration_ms=int((perf_counter() - started) * 1000),
            success=True,
            context={"rows": len(result.rows), "total_count": result.total_count},
        )
        return result

    def _on_navigate(self, location: Location) -> None:
        query = location.query_map
        if not self._owns(query):
            self._adopt_location(location)
            if not self._owns(query):
                # the dispatcher completes the URL; that navigation loads
                return
        try:
            self.load(location.search)
        except StaleResponseError:
            logger.debug("load_superseded", extra={"url": location.path})
        except FetchError as exc:
            logger.exception("load_failed", extra={"code": exc.code, "status_code": exc.status_code})
            with self._results_lock:
                self.rows = []
                self.total_count = 0
                self.error = exc
                self.loading = False
                self.loaded = True
            self.telemetry.record("error", "users_page_failed", component="loader", success=False, error_code=exc.code)

    def _owns(self, query: dict[str, str]) -> bool:
        """True when ``query`` is exactly what the store serializes to."""
        return serialize(self.store.snapshot, query) == query

    def _adopt_location(self, location: Location) -> None:
        # back/forward or an outside push: the URL is the source of truth
        snapshot = deserialize(location.query_map, self.default_page_size)
        logger.info("state_restored_from_url", extra={"url": location.path})
        self.store.reset(snapshot)
        for column_id, debounced in self._filter_inputs.items():
            text = snapshot.filters.get(column_id, "") or ""
            if debounced.value != text:
                debounced.sync(text)

    def _on_dispatch(self, query: dict[str, str]) -> None:
        self.telemetry.record(
            "state_change",
            "table_query_dispatched",
            component="dispatcher",
            context={"keys": sorted(query)},
        )

    def _apply_filter(self, column_id: str, value: str) -> None:
        logger.info("filter_stable", extra={"column_id": column_id})
        filters = self.store.snapshot.filters.with_value(column_id, value)
        self.store.set_filters(filters)
        self._after_query_change()

    def _after_query_change(self) -> None:
        if not self.reset_page_on_change:
            return
        pagination = self.store.snapshot.pagination
        if pagination.page_index != 0:
            self.store.set_pagination(replace(pagination, page_index=0))

    def _filter_input(self, column_id: str) -> DebouncedValue[str]:
        try:
            return self._filter_inputs[column_id]
        except KeyError:
            raise ValueError(f"Column {column_id!r} is not filterable or the table is not mounted") from None
