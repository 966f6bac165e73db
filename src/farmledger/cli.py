"""``farmledger`` command line: schema setup, legacy import and session cleanup."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from farmledger.config import get_settings
from farmledger.errors import FarmLedgerError
from farmledger.legacy_import import import_legacy_export
from farmledger.service import FarmLedger


async def _cmd_init_db(args: argparse.Namespace) -> int:
    async with FarmLedger():
        pass
    print(f"Schema ready: {get_settings().database_url}")
    return 0


async def _cmd_import(args: argparse.Namespace) -> int:
    path = Path(args.file)
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)

    async with FarmLedger() as ledger:
        report = await import_legacy_export(ledger, data)

    print(f"Users imported: {report.users_imported}")
    print(f"Users skipped:  {len(report.users_skipped)}")
    print(f"Saves imported: {report.saves_imported}")
    for username, reason in report.users_failed.items():
        print(f"FAILED: {username}: {reason}", file=sys.stderr)
    if report.save_error:
        print(f"FAILED: game save: {report.save_error}", file=sys.stderr)
    return 1 if report.users_failed or report.save_error else 0


async def _cmd_purge_sessions(args: argparse.Namespace) -> int:
    async with FarmLedger() as ledger:
        count = await ledger.sessions.purge_expired()
    print(f"Sessions purged: {count}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="farmledger", description="FarmLedger storage tools")
    sub = p.add_subparsers(dest="cmd", required=True)

    i = sub.add_parser("init-db", help="Create missing tables and indexes")
    i.set_defaults(func=_cmd_init_db)

    m = sub.add_parser("import", help="Import a browser local-storage export")
    m.add_argument("file", help="Path to the exported JSON file")
    m.set_defaults(func=_cmd_import)

    s = sub.add_parser("purge-sessions", help="Delete expired and revoked sessions")
    s.set_defaults(func=_cmd_purge_sessions)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(args.func(args))
    except FarmLedgerError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
