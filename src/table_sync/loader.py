from __future__ import annotations

import logging
import threading

from pydantic import ValidationError as PydanticValidationError

from .exceptions import FetchError, PayloadError, StaleResponseError
from .http_client import HttpClient
from .models import QueryResult, UsersPage
from .pagination import DEFAULT_PAGE_SIZE
from .query import deserialize, parse_query_string

logger = logging.getLogger(__name__)


class UsersLoader:
    """One ``GET /users?<query>`` per call, no retries.

    Each call supersedes the previous ones: a response (or failure) that
    arrives after a newer call started raises ``StaleResponseError`` so it
    can never overwrite fresher rows.
    """

    def __init__(self, http: HttpClient, path: str | None = None, default_page_size: int | None = None) -> None:
        self.http = http
        self.path = path or http.config.users_path
        self.default_page_size = default_page_size or http.config.default_page_size or DEFAULT_PAGE_SIZE
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def supersede(self) -> int:
        """Mark every in-flight fetch as stale."""
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def fetch(self, query_string: str) -> QueryResult:
        query_string = query_string.lstrip("?")
        generation = self.supersede()
        logger.info("fetch_start", extra={"generation": generation, "path": self.path})
        try:
            payload = self.http.get(self.path, query_string)
        except FetchError as exc:
            self._raise_if_stale(generation, exc)
            logger.warning("fetch_failed", extra={"generation": generation, "code": exc.code})
            raise
        self._raise_if_stale(generation)

        try:
            page = UsersPage.model_validate(payload)
        except PydanticValidationError as exc:
            logger.warning("fetch_failed", extra={"generation": generation, "code": "INVALID_PAYLOAD"})
            raise PayloadError(
                code="INVALID_PAYLOAD",
                message="Response body is not a users page",
                details=exc.errors(include_url=False),
                status_code=200,
                raw_payload=payload,
                cause=exc,
            ) from exc

        page_size = deserialize(parse_query_string(query_string), self.default_page_size).pagination.page_size
        logger.info(
            "fetch_success",
            extra={"generation": generation, "rows": len(page.data), "total_count": page.total_count},
        )
        return QueryResult(
            rows=list(page.data),
            total_count=page.total_count,
            page_size=page_size,
            query_string=query_string,
            generation=generation,
        )

    def _raise_if_stale(self, generation: int, cause: FetchError | None = None) -> None:
        if self.is_current(generation):
            return
        logger.info("fetch_stale_discarded", extra={"generation": generation, "latest": self._generation})
        stale = StaleResponseError(
            code="REQUEST_SUPERSEDED",
            message="A newer query was dispatched before this response arrived",
            details={"generation": generation, "latest": self._generation},
            cause=cause,
        )
        if cause is not None:
            raise stale from cause
        raise stale
