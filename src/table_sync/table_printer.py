from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TextIO

from .view_state import ColumnDef

EMPTY_VALUE = "-"


def normalize_value(value: Any) -> str:
    if value is None:
        return EMPTY_VALUE
    if isinstance(value, str):
        return value.strip() or EMPTY_VALUE
    return str(value)


def format_table(rows: Sequence[dict[str, Any]], columns: Sequence[ColumnDef]) -> list[str]:
    if not rows:
        return ["(no results)"]

    widths = []
    for column in columns:
        max_cell = max(len(normalize_value(row.get(column.key))) for row in rows)
        widths.append(max(len(column.label), max_cell))

    lines = [
        " | ".join(column.label.ljust(widths[idx]) for idx, column in enumerate(columns)),
        "-+-".join("-" * width for width in widths),
    ]
    for row in rows:
        lines.append(
            " | ".join(normalize_value(row.get(column.key)).ljust(widths[idx]) for idx, column in enumerate(columns))
        )
    return lines


def print_table(title: str, rows: Sequence[dict[str, Any]], columns: Sequence[ColumnDef], stream: TextIO | None = None) -> None:
    print(f"\n{title}", file=stream)
    for line in format_table(rows, columns):
        print(line, file=stream)
