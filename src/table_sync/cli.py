from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Sequence
from dataclasses import replace

from .config import load_config
from .exceptions import ApiError
from .http_client import HttpClient
from .loader import UsersLoader
from .pagination import PaginationState
from .query import deserialize, encode_query, parse_query_string, parse_search, parse_sort, serialize
from .state import TableStateSnapshot
from .table_printer import print_table
from .view_state import USER_COLUMNS, ColumnDef, page_label, sort_indicator


def cmd_query(args: argparse.Namespace) -> None:
    existing = parse_query_string(args.from_url or "")
    base = deserialize(existing)
    pagination = PaginationState(
        page_index=args.page - 1 if args.page is not None else base.pagination.page_index,
        page_size=args.limit if args.limit is not None else base.pagination.page_size,
    )
    snapshot = TableStateSnapshot(
        sort=parse_sort(args.sort) if args.sort is not None else base.sort,
        filters=parse_search(args.search) if args.search is not None else base.filters,
        pagination=pagination,
    )
    print(encode_query(serialize(snapshot, existing)))


def cmd_fetch(args: argparse.Namespace) -> None:
    config = load_config(args.env_file)
    loader = UsersLoader(HttpClient(config))
    query = parse_query_string(args.target or "")
    snapshot = deserialize(query, config.default_page_size)
    result = loader.fetch(encode_query(serialize(snapshot, query)))
    if args.json:
        print(
            json.dumps(
                {
                    "rows": [row.model_dump() for row in result.rows],
                    "totalCount": result.total_count,
                    "pageCount": result.page_count,
                },
                indent=2,
            )
        )
        return
    print_table(config.users_path, [row.model_dump() for row in result.rows], _headers(snapshot))
    print(page_label(snapshot.pagination, result.page_count))


def _headers(snapshot: TableStateSnapshot) -> list[ColumnDef]:
    sort = snapshot.sort
    columns = []
    for column in USER_COLUMNS:
        indicator = sort_indicator(column.key, sort.column_id if sort else None, bool(sort and sort.descending))
        columns.append(replace(column, label=f"{column.label} ({indicator})") if indicator else column)
    return columns


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="table-sync", description="Users table query CLI")
    parser.add_argument("--env-file", default=None)
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    query_parser = subparsers.add_parser("query", help="print the query string for a table state")
    query_parser.add_argument("--from-url", default=None, help="current URL or query string to merge over")
    query_parser.add_argument("--search", default=None, help="col:value,col:value")
    query_parser.add_argument("--sort", default=None, help="col:asc or col:desc")
    query_parser.add_argument("--page", type=int, default=None, help="one-based page number")
    query_parser.add_argument("--limit", type=int, default=None)
    query_parser.set_defaults(func=cmd_query)

    fetch_parser = subparsers.add_parser("fetch", help="load one page of users")
    fetch_parser.add_argument("target", nargs="?", default="", help="URL or query string")
    fetch_parser.add_argument("--json", action="store_true")
    fetch_parser.set_defaults(func=cmd_fetch)

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
    try:
        args.func(args)
    except ApiError as exc:
        print(json.dumps({"error": exc.code, "message": exc.message, "status_code": exc.status_code}, indent=2))
        raise SystemExit(1) from exc
    except ValueError as exc:
        print(json.dumps({"error": "INVALID_ARGUMENT", "message": str(exc)}, indent=2))
        raise SystemExit(2) from exc


if __name__ == "__main__":
    main()
