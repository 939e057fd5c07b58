from __future__ import annotations

from dataclasses import dataclass, replace

DEFAULT_PAGE_SIZE = 5
PAGE_SIZE_OPTIONS: tuple[int, ...] = (5, 10, 20, 40, 50, 100, 200, 500)


@dataclass(frozen=True)
class PaginationState:
    """Zero-based page position. Surfaced to users and URLs as one-based."""

    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {self.page_index}")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")

    @property
    def page_number(self) -> int:
        return self.page_index + 1


def page_count(total_count: int, page_size: int) -> int:
    if total_count <= 0:
        return 0
    return -(-total_count // page_size)


def can_next_page(state: PaginationState, pages: int) -> bool:
    return state.page_index + 1 < pages


def can_previous_page(state: PaginationState) -> bool:
    return state.page_index > 0


def next_page(state: PaginationState, pages: int) -> PaginationState:
    if not can_next_page(state, pages):
        return state
    return replace(state, page_index=state.page_index + 1)


def previous_page(state: PaginationState) -> PaginationState:
    if not can_previous_page(state):
        return state
    return replace(state, page_index=state.page_index - 1)


def goto_page(state: PaginationState, page_index: int, pages: int | None = None) -> PaginationState:
    upper = max(0, pages - 1) if pages is not None else None
    target = max(0, page_index)
    if upper is not None:
        target = min(target, upper)
    return replace(state, page_index=target)


def resize_page(state: PaginationState, page_size: int) -> PaginationState:
    # keep the first visible row on screen
    if page_size <= 0:
        raise ValueError(f"page_size must be > 0, got {page_size}")
    top_row = state.page_index * state.page_size
    return PaginationState(page_index=top_row // page_size, page_size=page_size)
