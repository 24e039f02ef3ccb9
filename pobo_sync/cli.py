"""Operator CLI for Pobo sync jobs and the webhook receiver.

Usage:
    pobo-sync export --kind products --days 7
    pobo-sync export --kind all --since "2024-01-01 00:00:00" --jsonl export.jsonl
    pobo-sync import categories categories.json --retries 3
    pobo-sync serve --port 8000
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable

from pobo_sync.api.client import PoboClient, paginate
from pobo_sync.api.models import API_TIMESTAMP_FORMAT, Language, LocalizedString, ResourceKind, SyncFilter
from pobo_sync.api.retry import retry_with_backoff
from pobo_sync.config import Settings
from pobo_sync.context import AppContext
from pobo_sync.exceptions import ApiError, ConfigError, MalformedResponseError, TransportError
from pobo_sync.logging_config import configure_logging

EXPORTABLE = [ResourceKind.CATEGORIES, ResourceKind.PRODUCTS, ResourceKind.BLOGS]


def parse_timestamp(value: str) -> datetime:
    """argparse type for --since: ``YYYY-MM-DD HH:MM:SS`` or ISO 8601."""
    try:
        return datetime.strptime(value, API_TIMESTAMP_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid timestamp {value!r} (expected YYYY-MM-DD HH:MM:SS or ISO 8601)"
        ) from None


def _int_at_least(minimum: int) -> Callable[[str], int]:
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid integer {value!r}") from None
        if number < minimum:
            raise argparse.ArgumentTypeError(f"must be >= {minimum}, got {number}")
        return number

    return parse


non_negative_int = _int_at_least(0)
positive_int = _int_at_least(1)


def resolve_since(since: str | datetime | None = None, days: int | None = None) -> datetime | None:
    """Turn --since / --days into the incremental sync boundary."""
    if isinstance(since, str):
        since = parse_timestamp(since)
    if since is not None:
        return since
    if days is not None:
        return datetime.now() - timedelta(days=days)
    return None


def describe_record(record: dict[str, Any], lang: str | None = None) -> str:
    """One summary line: ``  - <id>: <name> (updated: <ts>)``."""
    record_id = record.get("id") or record.get("guid") or "N/A"
    name = LocalizedString.from_api(record.get("name"))
    label = "N/A"
    if name is not None:
        label = (lang and name.translation(lang)) or name.default or "N/A"
    updated = record.get("updated_at") or "N/A"
    return f"  - {record_id}: {label} (updated: {updated})"


def cmd_export(args: argparse.Namespace, context: AppContext) -> int:
    since = resolve_since(args.since, args.days)
    kinds = EXPORTABLE if args.kind == "all" else [ResourceKind(args.kind)]
    sync_filter = SyncFilter(since)

    out = open(args.jsonl, "w", encoding="utf-8") if args.jsonl else None
    try:
        with PoboClient(context) as client:
            fetch = client.fetch_page
            if args.retries:
                fetch = retry_with_backoff(max_retries=args.retries)(fetch)
            per_page = args.per_page if args.per_page is not None else client.per_page

            if since is not None:
                print(f"Updated since {since.strftime(API_TIMESTAMP_FORMAT)}")
            for kind in kinds:
                print(f"--- {kind.value.capitalize()} ---")
                count = 0
                for record in paginate(fetch, kind, per_page, sync_filter):
                    count += 1
                    print(describe_record(record, args.lang))
                    if out is not None:
                        out.write(json.dumps({"kind": kind.value, **record}, ensure_ascii=False) + "\n")
                print(f"  Total: {count} {kind.value}\n")
    finally:
        if out is not None:
            out.close()
    return 0


def cmd_import(args: argparse.Namespace, context: AppContext) -> int:
    kind = ResourceKind(args.kind)
    path = Path(args.file)
    if not path.exists():
        print(f"ERROR: file not found: {path}", file=sys.stderr)
        return 1
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print(f"ERROR: {path} is not valid JSON: {e}", file=sys.stderr)
        return 1
    if not isinstance(records, list):
        print(f"ERROR: {path} must contain a JSON array of records", file=sys.stderr)
        return 1

    with PoboClient(context) as client:
        send = client.import_records
        if args.retries:
            send = retry_with_backoff(max_retries=args.retries)(send)
        result = send(kind, records)

    line = (
        f"{kind.value.capitalize()}: imported={result.imported}, updated={result.updated}, "
        f"skipped={result.skipped}, errors={len(result.errors)}"
    )
    if kind is ResourceKind.PARAMETERS:
        line += f", values_imported={result.values_imported or 0}, values_updated={result.values_updated or 0}"
    print(line)

    if result.has_errors:
        print("\nImport errors:")
        for error in result.errors:
            print(f"  - [{error.index}] {error.id or 'unknown'}: {', '.join(error.messages)}")
    return 0


def cmd_serve(args: argparse.Namespace, context: AppContext) -> int:
    import uvicorn

    from pobo_sync.webhooks.handlers import create_app

    app = create_app(context)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pobo-sync", description="Pobo API sync jobs and webhook receiver")
    sub = parser.add_subparsers(dest="command", required=True)

    p_export = sub.add_parser("export", help="List records, optionally only recently updated ones")
    p_export.add_argument("--kind", choices=["all"] + [k.value for k in EXPORTABLE], default="all")
    window = p_export.add_mutually_exclusive_group()
    window.add_argument(
        "--since",
        type=parse_timestamp,
        help="Only records updated at/after this time (YYYY-MM-DD HH:MM:SS)",
    )
    window.add_argument("--days", type=non_negative_int, help="Only records updated in the last N days")
    p_export.add_argument("--per-page", type=positive_int, default=None)
    p_export.add_argument("--lang", choices=[lang.value for lang in Language], default=None)
    p_export.add_argument("--retries", type=non_negative_int, default=0)
    p_export.add_argument("--jsonl", help="Also write every record to this JSON-lines file")
    p_export.set_defaults(func=cmd_export, requires=("api_token",))

    p_import = sub.add_parser("import", help="Import a JSON array of records")
    p_import.add_argument("kind", choices=[k.value for k in ResourceKind])
    p_import.add_argument("file")
    p_import.add_argument("--retries", type=non_negative_int, default=0)
    p_import.set_defaults(func=cmd_import, requires=("api_token",))

    p_serve = sub.add_parser("serve", help="Run the webhook receiver")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.set_defaults(func=cmd_serve, requires=("webhook_secret",))

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings().require(*args.requires)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    context = AppContext(settings=settings, logger=configure_logging(settings))

    try:
        return args.func(args, context)
    except ApiError as e:
        print(f"API Error ({e.http_status}): {e.body}", file=sys.stderr)
    except TransportError as e:
        print(f"Transport error: {e}", file=sys.stderr)
    except MalformedResponseError as e:
        print(f"Error: {e}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
