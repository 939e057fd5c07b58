from __future__ import annotations

from typing import Mapping

from .exceptions import HttpStatusError, NotFoundError, ServerError, ValidationError


def map_error(
    status_code: int,
    payload: Mapping[str, object] | None,
    cause: BaseException | None = None,
) -> HttpStatusError:
    payload = payload or {}
    code = str(payload.get("code") or "HTTP_ERROR")
    message = str(payload.get("message") or "Request failed")
    details = payload.get("details")
    mapped: type[HttpStatusError]
    if status_code == 404:
        mapped = NotFoundError
    elif status_code in {400, 422}:
        mapped = ValidationError
    elif status_code >= 500:
        mapped = ServerError
    else:
        mapped = HttpStatusError
    return mapped(
        code=code,
        message=message,
        details=details,
        status_code=status_code,
        raw_payload=dict(payload),
        cause=cause,
    )
