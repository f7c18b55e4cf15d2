"""
Batch-Formula-Requisition reconciliation from the command line.

Commands:
- section NAME: batch availability for one section (Bulk, Finish, RM, PPM, PM)
- materials: MFC materials missing from batch requisitions
- reconcile: batch <-> formula reconciliation report
- dashboard: MFC batch-volume tiers
- duplicates: batch numbers repeated under one MFC
- matched: batches grouped by MFC and product code
- import DIR: load a JSON export directory into the SQLite store

Examples:
    python scripts/reconcile.py --data-dir ./data section RM
    python scripts/reconcile.py --db reconciliation.db materials --type PPM --output gaps.json
    python scripts/reconcile.py --db reconciliation.db import ./data
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import List, Optional

import sys
sys.path.append(str(Path(__file__).resolve().parents[1]))

from core.config import Settings, build_record_store, get_settings
from core.observability.logging import configure_logging
from models.api_responses import ServiceResponse
from reconciliation import service
from reconciliation.eligibility import DEFAULT_MIN_BATCHES
from storage.sqlite_store import import_directory


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile batches, formulas and requisitions")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--data-dir", type=Path, help="Read records from a JSON export directory")
    source.add_argument("--db", type=Path, help="Read records from a SQLite database")
    parser.add_argument("--output", type=Path, help="Write the JSON response to this file")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    commands = parser.add_subparsers(dest="command", required=True)

    section = commands.add_parser("section", help="Validate one section")
    section.add_argument("name", help="Bulk, Finish, RM, PPM or PM")
    section.add_argument("--min-batches", type=int, default=DEFAULT_MIN_BATCHES)

    materials = commands.add_parser("materials", help="Validate MFC materials against requisitions")
    materials.add_argument("--type", dest="material_type", help="Only check RM, PPM or PM")
    materials.add_argument("--min-batches", type=int, default=DEFAULT_MIN_BATCHES)

    commands.add_parser("reconcile", help="Batch <-> formula reconciliation report")
    commands.add_parser("dashboard", help="MFC batch-volume tiers")
    commands.add_parser("duplicates", help="Duplicate batch numbers per MFC")
    commands.add_parser("matched", help="Batches grouped by MFC and product code")

    importer = commands.add_parser("import", help="Load a JSON export directory into SQLite")
    importer.add_argument("directory", type=Path)

    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Environment settings overridden by --data-dir / --db."""
    settings = get_settings()
    if args.data_dir:
        return Settings(
            store_backend="json",
            data_dir=args.data_dir,
            db_path=settings.db_path,
            log_level=settings.log_level,
            log_json=settings.log_json,
        )
    if args.db:
        return Settings(
            store_backend="sqlite",
            data_dir=settings.data_dir,
            db_path=args.db,
            log_level=settings.log_level,
            log_json=settings.log_json,
        )
    return settings


async def run_command(args: argparse.Namespace, settings: Settings) -> ServiceResponse:
    store = build_record_store(settings)
    if args.command == "section":
        return await service.validate_section(store, args.name, args.min_batches)
    if args.command == "materials":
        return await service.validate_materials(store, args.min_batches, args.material_type)
    if args.command == "reconcile":
        return await service.reconcile_batches(store)
    if args.command == "dashboard":
        return await service.build_dashboard(store)
    if args.command == "duplicates":
        return await service.find_duplicate_batches(store)
    if args.command == "matched":
        return await service.list_matched_batches(store)
    raise ValueError(f"Unknown command: {args.command}")


def print_response(command: str, response: ServiceResponse) -> None:
    """Print a short human summary of a response."""
    status = "OK" if response.success else "FAILED"
    print("=" * 60)
    print(f"{command.upper()}: {status}")
    print("=" * 60)
    print(response.message)

    payload = response.to_payload()
    summary = payload.get("summary")
    if summary is None and isinstance(payload.get("data"), dict):
        summary = payload["data"].get("batchReconciliation")
    if summary is None:
        summary = payload.get("sectionBatchTotals")
    if isinstance(summary, dict):
        for key, value in summary.items():
            print(f"  {key}: {value}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = resolve_settings(args)
    configure_logging(settings.log_level, json_format=args.json_logs or settings.log_json)

    if args.command == "import":
        db_path = args.db or settings.db_path
        try:
            summary = import_directory(args.directory, db_path)
        except FileNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        for collection, counts in summary.items():
            print(f"{collection}: {counts['inserted']} inserted, {counts['skipped']} skipped")
        return 0

    try:
        response = asyncio.run(run_command(args, settings))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_response(args.command, response)

    if args.output:
        args.output.write_text(json.dumps(response.to_payload(), indent=2), encoding="utf-8")
        print(f"\nResults written to {args.output}")

    return 0 if response.success else 1


if __name__ == "__main__":
    sys.exit(main())
