from .config import ClientConfig, ConfigError, load_config
from .controller import TableController
from .debounce import DebouncedValue, LoopScheduler, Scheduler, timer_scheduler
from .dispatcher import QueryDispatcher
from .exceptions import (
    ApiError,
    FetchError,
    HttpStatusError,
    NotFoundError,
    PayloadError,
    ServerError,
    StaleResponseError,
    TransportError,
    ValidationError,
)
from .http_client import HttpClient
from .loader import UsersLoader
from .models import QueryResult, UserRow, UsersPage
from .navigation import Location, MemoryRouter
from .pagination import PAGE_SIZE_OPTIONS, PaginationState, can_next_page, can_previous_page, page_count
from .query import deserialize, encode_query, parse_query_string, serialize
from .state import FilterEntry, FilterSet, SortSpec, TableStateSnapshot, TableStateStore

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "ClientConfig",
    "ConfigError",
    "DebouncedValue",
    "FetchError",
    "FilterEntry",
    "FilterSet",
    "HttpClient",
    "HttpStatusError",
    "Location",
    "LoopScheduler",
    "MemoryRouter",
    "NotFoundError",
    "PAGE_SIZE_OPTIONS",
    "PaginationState",
    "PayloadError",
    "QueryDispatcher",
    "QueryResult",
    "Scheduler",
    "ServerError",
    "SortSpec",
    "StaleResponseError",
    "TableController",
    "TableStateSnapshot",
    "TableStateStore",
    "TransportError",
    "UserRow",
    "UsersLoader",
    "UsersPage",
    "ValidationError",
    "can_next_page",
    "can_previous_page",
    "deserialize",
    "encode_query",
    "load_config",
    "page_count",
    "parse_query_string",
    "serialize",
    "timer_scheduler",
]
