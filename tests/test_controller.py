from __future__ import annotations

import json
import threading
import time
from dataclasses import replace

import pytest
import responses

from table_sync.controller import TableController
from table_sync.debounce import LoopScheduler
from table_sync.exceptions import StaleResponseError, TransportError
from table_sync.models import QueryResult, UserRow
from table_sync.navigation import MemoryRouter
from table_sync.query import deserialize, parse_query_string
from table_sync.state import SortSpec
from table_sync.telemetry import TelemetryLogger
from table_sync.view_state import TableViewStatus

USERS = [{"name": f"User {idx}", "email": f"user{idx}@example.com", "age": 20 + idx} for idx in range(12)]


class FakeUsersLoader:
    """Answers queries the way the users API does, from an in-memory list."""

    def __init__(self, users: list[dict] | None = None) -> None:
        self.users = users if users is not None else USERS
        self.queries: list[str] = []
        self.generation = 0
        self.fail_with: Exception | None = None
        self.gates: dict[str, threading.Event] = {}

    def supersede(self) -> int:
        self.generation += 1
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def fetch(self, query_string: str) -> QueryResult:
        generation = self.supersede()
        self.queries.append(query_string)
        gate = self.gates.get(query_string)
        if gate is not None:
            assert gate.wait(timeout=5)
        if self.fail_with is not None:
            raise self.fail_with
        snapshot = deserialize(parse_query_string(query_string))
        rows = list(self.users)
        for entry in snapshot.filters:
            rows = [row for row in rows if entry.value.lower() in str(row.get(entry.column_id, "")).lower()]
        if snapshot.sort is not None:
            rows.sort(key=lambda row: row[snapshot.sort.column_id], reverse=snapshot.sort.descending)
        size = snapshot.pagination.page_size
        start = snapshot.pagination.page_index * size
        return QueryResult(
            rows=[UserRow(**row) for row in rows[start : start + size]],
            total_count=len(rows),
            page_size=size,
            query_string=query_string,
            generation=generation,
        )


def _controller(url: str = "/", clock=None, **kwargs) -> tuple[TableController, FakeUsersLoader, MemoryRouter]:
    loader = FakeUsersLoader()
    router = MemoryRouter(url)
    controller = TableController(loader, router, scheduler=clock, **kwargs)  # type: ignore[arg-type]
    return controller, loader, router


def test_mount_writes_defaults_to_url_and_loads_first_page() -> None:
    controller, loader, router = _controller()

    controller.mount()

    assert router.location.url == "/?page=1&limit=5"
    assert loader.queries == ["page=1&limit=5"]
    assert len(controller.rows) == 5
    assert controller.total_count == 12
    assert controller.page_count == 3
    assert controller.page_label == "Page 1 of 3"
    assert controller.can_next_page is True
    assert controller.can_previous_page is False
    assert controller.view_state.status == TableViewStatus.SUCCESS


def test_mount_restores_state_from_shared_url(clock) -> None:
    controller, loader, router = _controller("/?search=name:User+1&sort=age:desc&page=1&limit=10", clock=clock)

    snapshot = controller.mount()

    assert snapshot.sort == SortSpec("age", descending=True)
    assert controller.filter_text("name") == "User 1"
    assert controller.filter_text("email") == ""
    assert loader.queries == ["search=name:User+1&sort=age:desc&page=1&limit=10"]
    assert [row.name for row in controller.rows] == ["User 11", "User 10", "User 1"]
    assert len(router.history) == 1


def test_filter_typing_is_debounced_into_one_load(clock) -> None:
    controller, loader, router = _controller(clock=clock)
    controller.mount()

    controller.set_filter_text("name", "U")
    clock.advance(0.1)
    controller.set_filter_text("name", "User")
    clock.advance(0.1)
    controller.set_filter_text("name", "User 1")

    assert len(loader.queries) == 1

    clock.advance(0.5)

    assert loader.queries[-1] == "search=name:User+1&page=1&limit=5"
    assert len(loader.queries) == 2
    assert controller.total_count == 3
    assert "sort" not in router.current_query()


def test_clearing_filter_text_removes_search_key(clock) -> None:
    controller, loader, router = _controller("/?search=email:user1&page=1&limit=5", clock=clock)
    controller.mount()

    controller.set_filter_text("email", "")
    clock.advance(1)

    assert router.current_query() == {"page": "1", "limit": "5"}
    assert controller.total_count == 12


def test_toggle_sort_cycles_and_replaces_history() -> None:
    controller, _, router = _controller()
    controller.mount()

    controller.toggle_sort("age")
    assert router.current_query()["sort"] == "age:asc"
    assert controller.rows[0].age == 20

    controller.toggle_sort("age")
    assert router.current_query()["sort"] == "age:desc"
    assert controller.rows[0].age == 31

    controller.toggle_sort("age")
    assert "sort" not in router.current_query()
    assert len(router.history) == 1


def test_page_navigation_stays_within_page_count() -> None:
    controller, loader, router = _controller()
    controller.mount()

    controller.next_page()
    controller.next_page()
    controller.next_page()

    assert controller.pagination.page_index == 2
    assert controller.can_next_page is False
    assert router.current_query()["page"] == "3"
    assert len(loader.queries) == 3
    assert [row.name for row in controller.rows] == ["User 10", "User 11"]

    controller.previous_page()
    assert router.current_query()["page"] == "2"

    controller.set_page_size(10)
    assert router.current_query() == {"page": "1", "limit": "10"}
    assert controller.page_count == 2

    controller.go_to_page(99)
    assert controller.pagination.page_index == 1


def test_sort_keeps_page_index_by_default() -> None:
    controller, _, router = _controller()
    controller.mount()
    controller.next_page()

    controller.toggle_sort("name")

    assert controller.pagination.page_index == 1
    assert router.current_query()["page"] == "2"


def test_sort_and_filter_reset_page_when_enabled(clock) -> None:
    controller, _, router = _controller(clock=clock, reset_page_on_change=True)
    controller.mount()
    controller.next_page()

    controller.toggle_sort("name")
    assert controller.pagination.page_index == 0

    controller.next_page()
    controller.set_filter_text("name", "User")
    clock.advance(1)

    assert controller.pagination.page_index == 0
    assert router.current_query()["page"] == "1"


def test_rapid_changes_dispatch_once_with_dispatch_scheduler(clock) -> None:
    loader = FakeUsersLoader()
    router = MemoryRouter("/")
    controller = TableController(loader, router, scheduler=clock, dispatch_scheduler=clock)  # type: ignore[arg-type]
    controller.mount()

    controller.toggle_sort("age")
    controller.next_page()
    controller.set_page_size(10)
    clock.run_pending()

    assert loader.queries == ["page=1&limit=5", "sort=age:asc&page=1&limit=10"]


def test_back_navigation_restores_state_from_url(clock) -> None:
    controller, loader, router = _controller(clock=clock)
    controller.mount()

    router.push({"search": "email:user1", "sort": "name:desc", "page": "1", "limit": "5"})

    assert controller.snapshot.sort == SortSpec("name", descending=True)
    assert controller.filter_text("email") == "user1"
    assert [row.name for row in controller.rows] == ["User 11", "User 10", "User 1"]

    router.back()

    assert controller.snapshot.sort is None
    assert controller.filter_text("email") == ""
    assert loader.queries == [
        "page=1&limit=5",
        "search=email:user1&sort=name:desc&page=1&limit=5",
        "page=1&limit=5",
    ]
    assert clock.pending == 0


def test_partial_outside_url_is_completed_and_loaded_once() -> None:
    controller, loader, router = _controller()
    controller.mount()

    router.push({"sort": "age:desc"})

    assert router.current_query() == {"sort": "age:desc", "page": "1", "limit": "5"}
    assert loader.queries[1:] == ["sort=age:desc&page=1&limit=5"]
    assert len(router.history) == 2


def test_partial_outside_url_loads_once_with_dispatch_scheduler(clock) -> None:
    loader = FakeUsersLoader()
    router = MemoryRouter("/")
    controller = TableController(loader, router, scheduler=clock, dispatch_scheduler=clock)  # type: ignore[arg-type]
    controller.mount()

    router.push({"sort": "age:desc"})
    clock.run_pending()

    assert router.current_query() == {"sort": "age:desc", "page": "1", "limit": "5"}
    assert loader.queries == ["page=1&limit=5", "sort=age:desc&page=1&limit=5"]


@pytest.mark.parametrize("text", ["Smith, J", "a:b", "x,y:z"])
def test_filter_text_with_separators_is_sent_unchanged(clock, text: str) -> None:
    controller, loader, router = _controller(clock=clock)
    controller.mount()

    controller.set_filter_text("name", text)
    clock.advance(1)

    assert controller.filter_text("name") == text
    assert controller.snapshot.filters.as_pairs() == [("name", text)]
    assert router.current_query()["search"] == f"name:{text}"
    assert len(loader.queries) == 2
    assert parse_query_string(loader.queries[-1])["search"] == f"name:{text}"


def test_default_scheduler_applies_filters_on_the_owning_thread() -> None:
    controller, _, _ = _controller(debounce_ms=10)
    controller.mount()
    threads: list[int] = []
    controller.store.subscribe(lambda snapshot: threads.append(threading.get_ident()))

    controller.set_filter_text("name", "User")
    time.sleep(0.05)

    assert threads == []

    assert isinstance(controller.scheduler, LoopScheduler)
    assert controller.scheduler.run_pending() == 1
    assert threads == [threading.get_ident()]
    assert controller.snapshot.filters.as_pairs() == [("name", "User")]


def test_in_flight_load_finishing_after_newer_load_is_discarded() -> None:
    controller, loader, _ = _controller()
    controller.mount()
    gate = threading.Event()
    loader.gates["page=1&limit=5"] = gate
    outcome: list[BaseException] = []

    def slow_load() -> None:
        try:
            controller.load("page=1&limit=5")
        except StaleResponseError as exc:
            outcome.append(exc)

    worker = threading.Thread(target=slow_load)
    worker.start()
    while len(loader.queries) < 2:
        time.sleep(0.001)

    controller.toggle_sort("age")
    gate.set()
    worker.join(timeout=5)

    assert len(outcome) == 1
    assert outcome[0].code == "REQUEST_SUPERSEDED"
    assert [row.age for row in controller.rows] == [20, 21, 22, 23, 24]
    assert loader.queries[-1] == "sort=age:asc&page=1&limit=5"


def test_fetch_failure_renders_error_state() -> None:
    controller, loader, _ = _controller()
    controller.mount()
    loader.fail_with = TransportError(code="TRANSPORT_ERROR", message="connection refused")

    controller.toggle_sort("age")

    state = controller.view_state
    assert state.status == TableViewStatus.ERROR
    assert state.error_code == "TRANSPORT_ERROR"
    assert controller.rows == []
    assert controller.page_count == 0

    loader.fail_with = None
    controller.toggle_sort("age")

    assert controller.view_state.status == TableViewStatus.SUCCESS


def test_direct_load_propagates_fetch_error() -> None:
    controller, loader, _ = _controller()
    controller.mount()
    loader.fail_with = TransportError(code="TRANSPORT_ERROR", message="down")

    with pytest.raises(TransportError):
        controller.load("page=1&limit=5")

    assert controller.loading is False


def test_stale_response_keeps_current_rows() -> None:
    controller, loader, _ = _controller()
    controller.mount()
    rows = list(controller.rows)
    loader.fail_with = StaleResponseError(code="REQUEST_SUPERSEDED", message="stale")

    controller.next_page()

    assert controller.rows == rows
    assert controller.error is None


def test_unmount_cancels_pending_filter_and_resets_state(clock) -> None:
    controller, loader, _ = _controller(clock=clock)
    controller.mount()

    controller.set_filter_text("name", "User 1")
    controller.unmount()
    clock.advance(5)

    assert len(loader.queries) == 1
    assert controller.snapshot.filters.as_pairs() == []
    assert controller.view_state.status == TableViewStatus.IDLE
    assert clock.pending == 0


def test_clear_filters_resets_inputs_without_firing(clock) -> None:
    controller, loader, router = _controller("/?search=name:User,email:user&page=1&limit=5", clock=clock)
    controller.mount()
    controller.set_filter_text("age", "2")

    controller.clear_filters()
    clock.advance(5)

    assert controller.filter_text("name") == ""
    assert controller.filter_text("age") == ""
    assert "search" not in router.current_query()
    assert len(loader.queries) == 2


def test_unknown_filter_column_rejected() -> None:
    controller, _, _ = _controller()
    controller.mount()

    with pytest.raises(ValueError):
        controller.set_filter_text("salary", "1")


def test_dispatch_and_load_emit_telemetry(tmp_path) -> None:
    log_file = tmp_path / "telemetry.jsonl"
    telemetry = TelemetryLogger(app_name="table_sync", enabled=True, log_file=log_file)
    controller, _, _ = _controller(telemetry=telemetry)

    controller.mount()

    events = [json.loads(line) for line in log_file.read_text().splitlines()]
    by_name = {event["name"]: event for event in events}
    assert set(by_name) == {"table_query_dispatched", "users_page_loaded"}
    assert by_name["table_query_dispatched"]["context"] == {"keys": ["limit", "page"]}
    assert by_name["users_page_loaded"]["category"] == "api_call_result"


@responses.activate
def test_from_config_wires_http_loader_and_settings(config) -> None:
    responses.add(
        responses.GET,
        "http://api.test/users",
        json={"data": [{"name": "Jo", "email": "jo@example.com", "age": 30}], "totalCount": 25},
        status=200,
    )
    settings = replace(config, default_page_size=10, debounce_ms=0, reset_page_on_change=True)
    router = MemoryRouter("/?tab=users")

    controller = TableController.from_config(settings, router)
    controller.mount()
    controller.set_filter_text("name", "Jo")

    assert controller.reset_page_on_change is True
    assert controller.page_count == 3
    assert router.location.url == "/?tab=users&search=name:Jo&page=1&limit=10"
    assert responses.calls[-1].request.url == "http://api.test/users?tab=users&search=name:Jo&page=1&limit=10"
