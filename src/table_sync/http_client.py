from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from .config import ClientConfig
from .error_mapper import map_error
from .exceptions import PayloadError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class HttpClient:
    """GET-only JSON transport bound to one API base URL.

    Retries (``config.retries``) live here and nowhere else; they cover
    connection failures and 5xx answers.
    """

    config: ClientConfig
    session: requests.Session | None = None
    sleeper: Callable[[float], None] = field(default=time.sleep)

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=self.config.max_connections,
                pool_maxsize=self.config.max_connections,
            )
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def build_url(self, path: str, query_string: str = "") -> str:
        base = self.config.api_base_url.rstrip("/") + "/"
        url = urljoin(base, path.lstrip("/"))
        return f"{url}?{query_string}" if query_string else url

    def get(self, path: str, query_string: str = "") -> Any:
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        url = self.build_url(path, query_string)
        attempts = self.config.retries + 1
        response: requests.Response | None = None
        for attempt in range(attempts):
            try:
                response = self.session.get(
                    url,
                    headers={"Accept": "application/json"},
                    timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
                    verify=self.config.verify_ssl,
                )
            except requests.RequestException as exc:
                if attempt >= attempts - 1:
                    raise TransportError(
                        code="TRANSPORT_ERROR",
                        message=str(exc),
                        details={"type": type(exc).__name__, "url": url},
                        status_code=0,
                        cause=exc,
                    ) from exc
                logger.warning("http_retry", extra={"attempt": attempt + 1, "reason": type(exc).__name__})
            else:
                if response.status_code < 500 or attempt >= attempts - 1:
                    break
                logger.warning("http_retry", extra={"attempt": attempt + 1, "reason": response.status_code})
            self.sleeper(self.config.retry_backoff_seconds * (2**attempt))

        if response is None:
            raise RuntimeError("HTTP request finished without a response")

        if not response.ok:
            payload: Any
            try:
                payload = response.json()
            except json.JSONDecodeError:
                payload = {"message": response.text}
            raise map_error(response.status_code, payload if isinstance(payload, dict) else {})

        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise PayloadError(
                code="INVALID_PAYLOAD",
                message="Response body is not JSON",
                status_code=response.status_code,
                raw_payload=response.text,
                cause=exc,
            ) from exc
