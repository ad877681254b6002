from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from scdsync.adapters.snapshot import load_snapshot
from scdsync.app import reconcile_snapshot, record_history
from scdsync.config import (
    ConfigurationError,
    RunSettings,
    configure_logging,
    get_database_config,
    load_run_settings,
)
from scdsync.domain.errors import (
    RunCancelledError,
    ScdSyncError,
    SerializationError,
    SnapshotError,
    StoreConnectionError,
    StoreTransactionError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_STORE_CONNECTION = 3
EXIT_STORE_TRANSACTION = 4
EXIT_INPUT = 5
EXIT_CANCELLED = 130

_EXIT_CODES: tuple[tuple[type[Exception], int], ...] = (
    (ConfigurationError, EXIT_USAGE),
    (StoreConnectionError, EXIT_STORE_CONNECTION),
    (StoreTransactionError, EXIT_STORE_TRANSACTION),
    (SerializationError, EXIT_INPUT),
    (SnapshotError, EXIT_INPUT),
    (RunCancelledError, EXIT_CANCELLED),
)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile snapshots into a Type-2 versioned record store"
    )
    parser.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy database URI (defaults to DATABASE_URI or the local data dir)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log every planned mutation")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("reconcile", help="Reconcile a desired snapshot")
    run.add_argument(
        "--snapshot",
        type=Path,
        required=True,
        help="JSON array or JSON-lines file holding the desired entries",
    )
    run.add_argument("--config", type=Path, help="TOML file with run settings")
    run.add_argument("--collection", type=str, help="Logical collection to reconcile")
    run.add_argument(
        "--scope-key",
        action="append",
        dest="scope_keys",
        help="Restrict the run to active records with this partition key (repeatable)",
    )
    hashing = run.add_mutually_exclusive_group()
    hashing.add_argument(
        "--pick",
        nargs="+",
        help="Hash only these fields; matched records get their payload updated",
    )
    hashing.add_argument(
        "--omit",
        nargs="+",
        help="Hash all fields except these; matched records get their payload updated",
    )
    keying = run.add_mutually_exclusive_group()
    keying.add_argument(
        "--key-field",
        action="append",
        dest="key_fields",
        help="Entry field contributing to the partition key (repeatable)",
    )
    keying.add_argument(
        "--key-function",
        type=str,
        help="Keying function as 'package.module:function'",
    )
    run.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Compute and report the plan without writing to the store",
    )

    history = subparsers.add_parser("history", help="Show every version of stored records")
    history.add_argument("--collection", type=str, required=True)
    history.add_argument("--key", type=str, help="Only records with this partition key")
    history.add_argument("--hash", type=str, dest="content_hash", help="Only this content hash")

    return parser.parse_args(list(argv))


def _build_settings(args: argparse.Namespace) -> RunSettings:
    base = load_run_settings(args.config) if args.config else RunSettings()

    hashing: dict[str, Any] | None = None
    if args.pick:
        hashing = {"pick": args.pick}
    elif args.omit:
        hashing = {"omit": args.omit}

    keying: dict[str, Any] | None = None
    if args.key_fields:
        keying = {"fields": args.key_fields}
    elif args.key_function:
        keying = {"function": args.key_function}

    return base.with_overrides(
        scope={"collection": args.collection, "keys": args.scope_keys},
        hashing=hashing,
        keying=keying,
        dry_run=args.dry_run,
    )


def _run_reconcile(args: argparse.Namespace) -> None:
    settings = _build_settings(args)
    settings.scope_filter()  # fail on a missing collection before touching the store
    entries = load_snapshot(args.snapshot)
    reconcile_snapshot(
        entries,
        settings=settings,
        database=get_database_config(uri=args.database_uri),
    )


def _run_history(args: argparse.Namespace) -> None:
    records = record_history(
        args.collection,
        key=args.key,
        content_hash=args.content_hash,
        database=get_database_config(uri=args.database_uri),
    )
    if not records:
        log.info("No records found for collection %s", args.collection)
    for record in records:
        log.info(
            "record=%s hash=%s key=%s start=%s end=%s updated=%s",
            record.id,
            record.hash,
            record.key,
            record.start_timestamp.isoformat(),
            record.end_timestamp.isoformat() if record.end_timestamp else "-",
            record.updated_timestamp.isoformat() if record.updated_timestamp else "-",
        )


def _exit_code(exc: Exception) -> int:
    for error_cls, code in _EXIT_CODES:
        if isinstance(exc, error_cls):
            return code
    return EXIT_FAILURE


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "reconcile":
            _run_reconcile(parsed_args)
        elif parsed_args.command == "history":
            _run_history(parsed_args)
        else:
            raise ConfigurationError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ScdSyncError as exc:
        log.error("%s: %s", type(exc).__name__, exc)  # noqa: TRY400
        sys.exit(_exit_code(exc))
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(EXIT_FAILURE)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C); the open transaction is rolled back on the way out."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(EXIT_CANCELLED)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
