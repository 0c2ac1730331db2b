"""CLI entry point for sheetaudit.

Usage:
    python -m sheetaudit serve [--host HOST] [--port PORT]
    python -m sheetaudit setup [document_id_or_url]
    python -m sheetaudit baseline [document_id_or_url]
    python -m sheetaudit snapshot <document_id_or_url>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import re
import sys

from pydantic import ValidationError

from sheetaudit.config import Settings, get_settings
from sheetaudit.credentials import (
    SCRIPT_SCOPES,
    SHEETS_SCOPES,
    CredentialsError,
    get_access_token,
)
from sheetaudit.logging import configure_logging
from sheetaudit.models import snapshot_to_dict
from sheetaudit.script_transport import GoogleAppsScriptTransport
from sheetaudit.service import AuditLogger
from sheetaudit.snapshot_store import create_snapshot_store
from sheetaudit.transport import GoogleSheetsTransport, TransportError
from sheetaudit.triggers import SetupError, setup_documents, target_documents


def parse_spreadsheet_id(id_or_url: str) -> str:
    """Extract spreadsheet ID from a URL or return as-is if already an ID."""
    url_pattern = r"docs\.google\.com/spreadsheets/d/([a-zA-Z0-9_-]+)"
    match = re.search(url_pattern, id_or_url)
    if match:
        return match.group(1)
    return id_or_url


def _optional_id(value: str | None) -> str | None:
    return parse_spreadsheet_id(value) if value else None


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    """Run the notification server."""
    import uvicorn

    from sheetaudit.main import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host,
        port=args.port or settings.port,
        log_config=None,
    )
    return 0


async def cmd_setup(args: argparse.Namespace, settings: Settings) -> int:
    """Install the forwarder on monitored spreadsheets."""
    print("Authenticating...")
    try:
        token = get_access_token(SCRIPT_SCOPES)
    except CredentialsError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        return 1

    transport = GoogleAppsScriptTransport(access_token=token)
    try:
        results = await setup_documents(settings, transport, _optional_id(args.document))
    except SetupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await transport.close()

    failed = 0
    for result in results:
        if result.success:
            print(f"  {result.document_id}: {result.message} (script {result.script_id})")
        elif result.needs_manual_run:
            failed += 1
            print(
                f"  {result.document_id}: forwarder pushed, triggers NOT active\n"
                f"    {result.message}",
                file=sys.stderr,
            )
        else:
            failed += 1
            print(f"  {result.document_id}: FAILED - {result.message}", file=sys.stderr)

    print(
        "\nNote: running installTriggers through the API requires each new script"
        "\nproject to use the same Google Cloud project as your OAuth client"
        "\n(Project Settings > Google Cloud Platform project). Otherwise run it"
        "\nonce from the script editor as shown above."
        "\nRunning setup again on the same document installs duplicate triggers."
    )
    return 1 if failed else 0


async def cmd_baseline(args: argparse.Namespace, settings: Settings) -> int:
    """Capture and save the structure baseline of monitored spreadsheets."""
    try:
        documents = target_documents(settings, _optional_id(args.document))
        token = get_access_token(SHEETS_SCOPES)
    except (SetupError, CredentialsError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    transport = GoogleSheetsTransport(access_token=token)
    audit = AuditLogger(settings, transport, create_snapshot_store(settings, transport))
    try:
        for document_id in documents:
            count = await audit.capture_baseline(document_id)
            print(f"  {document_id}: {count} sheet(s)")
        return 0
    except TransportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await transport.close()


async def cmd_snapshot(args: argparse.Namespace, settings: Settings) -> int:  # noqa: ARG001
    """Print the current structure of a spreadsheet as JSON."""
    try:
        token = get_access_token(SHEETS_SCOPES)
    except CredentialsError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        return 1

    transport = GoogleSheetsTransport(access_token=token)
    try:
        structure = await transport.get_structure(parse_spreadsheet_id(args.document))
        print(json.dumps(snapshot_to_dict(structure), indent=2))
        return 0
    except TransportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await transport.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheetaudit",
        description="Audit trail of edits and structural changes to Google Sheets",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the notification server",
    )
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port (default: PORT setting)",
    )
    serve_parser.set_defaults(func=cmd_serve)

    setup_parser = subparsers.add_parser(
        "setup",
        help="Install the forwarder and its triggers on monitored spreadsheets",
    )
    setup_parser.add_argument(
        "document",
        nargs="?",
        default=None,
        help="Spreadsheet ID or URL (default: all MONITORED_SOURCES)",
    )
    setup_parser.set_defaults(func=cmd_setup)

    baseline_parser = subparsers.add_parser(
        "baseline",
        help="Save the current structure as the comparison baseline",
    )
    baseline_parser.add_argument(
        "document",
        nargs="?",
        default=None,
        help="Spreadsheet ID or URL (default: all MONITORED_SOURCES)",
    )
    baseline_parser.set_defaults(func=cmd_baseline)

    snapshot_parser = subparsers.add_parser(
        "snapshot",
        help="Print the current sheet structure as JSON",
    )
    snapshot_parser.add_argument("document", help="Spreadsheet ID or URL")
    snapshot_parser.set_defaults(func=cmd_snapshot)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(is_production=settings.is_production, log_level=settings.log_level)

    if args.command == "serve":
        return cmd_serve(args, settings)
    result: int = asyncio.run(args.func(args, settings))
    return result


if __name__ == "__main__":
    sys.exit(main())
