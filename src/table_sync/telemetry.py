from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

TELEMETRY_CATEGORIES = frozenset({"api_call_result", "error", "state_change"})
# Filter values are typed by users, so keys that may carry them are rejected.
_FORBIDDEN_CONTEXT_KEYS = frozenset({"email", "name", "search", "filter_value", "query_string"})


@dataclass(frozen=True)
class TelemetryEvent:
    category: str
    name: str
    component: str
    timestamp_utc: str
    duration_ms: int | None = None
    success: bool | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None

    def to_json(self, app_name: str) -> str:
        payload = {key: value for key, value in asdict(self).items() if value is not None}
        payload["app_name"] = app_name
        return json.dumps(payload, sort_keys=True)


class TelemetryLogger:
    """Append table events to a JSONL file when enabled.

    Off unless ``enabled=True`` or ``TABLE_SYNC_TELEMETRY_ENABLED`` is set.
    Events are validated either way, so a bad category or a user-data key
    fails in tests even with telemetry off.
    """

    def __init__(self, *, app_name: str, enabled: bool | None = None, log_file: str | Path | None = None) -> None:
        self.app_name = app_name
        self.enabled = enabled if enabled is not None else _env_enabled()
        self.log_file = Path(log_file) if log_file else Path("artifacts") / "telemetry" / f"{app_name}.jsonl"

    def record(
        self,
        category: str,
        name: str,
        *,
        component: str,
        duration_ms: int | None = None,
        success: bool | None = None,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> TelemetryEvent | None:
        if category not in TELEMETRY_CATEGORIES:
            raise ValueError(f"Unsupported telemetry category: {category}")
        illegal = sorted(key for key in context or {} if key.lower() in _FORBIDDEN_CONTEXT_KEYS)
        if illegal:
            raise ValueError(f"User data keys are not allowed in telemetry context: {illegal}")
        if not self.enabled:
            return None

        event = TelemetryEvent(
            category=category,
            name=name,
            component=component,
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            duration_ms=duration_ms,
            success=success,
            error_code=error_code,
            context=context,
        )
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with self.log_file.open("a", encoding="utf-8") as fp:
            fp.write(event.to_json(self.app_name) + "\n")
        return event


def _env_enabled() -> bool:
    value = os.getenv("TABLE_SYNC_TELEMETRY_ENABLED", "0").strip().lower()
    return value in {"1", "true", "yes", "on"}
