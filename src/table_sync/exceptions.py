from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None = None
    status_code: int = 0
    raw_payload: object | None = None

    def __str__(self) -> str:
        return f"[{self.status_code}] {self.code}: {self.message}"


@dataclass
class FetchError(ApiError):
    """A users query round trip did not produce a usable page."""

    cause: BaseException | None = None


class TransportError(FetchError):
    """Network failure before an HTTP response was returned."""


class HttpStatusError(FetchError):
    """The server answered with a non-2xx status."""


class NotFoundError(HttpStatusError):
    pass


class ValidationError(HttpStatusError):
    pass


class ServerError(HttpStatusError):
    """5xx server-side failures."""


class PayloadError(FetchError):
    """2xx response whose body is not a users page."""


class StaleResponseError(FetchError):
    """A newer query was dispatched while this one was in flight."""
