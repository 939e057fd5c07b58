from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .pagination import PaginationState


@dataclass(frozen=True)
class ColumnDef:
    key: str
    label: str
    sortable: bool = True
    filterable: bool = True


USER_COLUMNS: tuple[ColumnDef, ...] = (
    ColumnDef("name", "Full Name"),
    ColumnDef("email", "Email Address"),
    ColumnDef("age", "Age"),
)


class TableViewStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    EMPTY = "empty"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class TableViewState:
    status: TableViewStatus
    message: str
    error_code: str | None = None

    def render(self) -> dict[str, Any]:
        return {"status": self.status.value, "message": self.message, "error_code": self.error_code}


def resolve_table_view_state(
    *,
    loaded: bool,
    loading: bool,
    has_data: bool,
    error: str | None,
    error_code: str | None = None,
) -> TableViewState:
    if error:
        return TableViewState(status=TableViewStatus.ERROR, message=error, error_code=error_code)
    if loading:
        return TableViewState(status=TableViewStatus.LOADING, message="Loading")
    if not loaded:
        return TableViewState(status=TableViewStatus.IDLE, message="Not loaded")
    if not has_data:
        return TableViewState(status=TableViewStatus.EMPTY, message="No records")
    return TableViewState(status=TableViewStatus.SUCCESS, message="Ready")


def page_label(pagination: PaginationState, pages: int) -> str:
    return f"Page {pagination.page_number} of {pages}"


def sort_indicator(column_id: str, sort_column: str | None, descending: bool) -> str:
    if column_id != sort_column:
        return ""
    return "desc" if descending else "asc"
