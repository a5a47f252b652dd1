"""
Operator command line for the consolidation pipeline.

    uuid-archiver pending [--now ISO] [--lookback-hours N]
    uuid-archiver consolidate [--now ISO] [--lookback-hours N] [--drain]

Configuration comes from the same environment variables as the Lambda
functions. Do not run `consolidate` while the scheduled function is active:
only one consolidator may be in flight at a time.
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import Callable, Sequence

import boto3
from rich.console import Console
from rich.table import Table

from .clients import S3Client
from .config import get_config
from .consolidator import ConsolidationResult, Consolidator
from .exceptions import UuidArchiverError, get_error_context
from .keys import as_utc

ConsolidatorFactory = Callable[[int | None], Consolidator]


def _parse_now(value: str) -> datetime:
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value}") from e


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uuid-archiver",
        description="Inspect and run hourly shard consolidation.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="Pretend the current time is this ISO-8601 timestamp (UTC if naive).",
    )
    common.add_argument(
        "--lookback-hours",
        type=_positive_int,
        default=None,
        help="Override LOOKBACK_HOURS for this run.",
    )

    subparsers.add_parser(
        "pending", parents=[common], help="Show shard counts per hour in the window."
    )
    consolidate = subparsers.add_parser(
        "consolidate", parents=[common], help="Consolidate the oldest pending hour."
    )
    consolidate.add_argument(
        "--drain",
        action="store_true",
        help="Keep consolidating until no hour in the window has shards.",
    )
    return parser


def _default_factory(lookback_hours: int | None) -> Consolidator:
    config = get_config()
    s3_client = S3Client(
        boto3.client("s3"), timeout_seconds=config.s3_operation_timeout_seconds
    )
    return Consolidator.from_config(s3_client, config, lookback_hours=lookback_hours)


def _render_results(console: Console, results: Sequence[ConsolidationResult]) -> None:
    if not results:
        console.print("[green]Nothing to consolidate.[/green]")
        return
    table = Table(title="Consolidated hours")
    table.add_column("Hour")
    table.add_column("Archive")
    table.add_column("Shards", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("New rows", justify="right")
    for result in results:
        table.add_row(
            result.hour.isoformat() if result.hour else "-",
            result.archive_key or "-",
            str(len(result.deleted_keys)),
            str(result.archive_rows),
            str(result.new_rows),
        )
    console.print(table)


def main(
    argv: Sequence[str] | None = None,
    *,
    consolidator_factory: ConsolidatorFactory = _default_factory,
    console: Console | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    console = console or Console()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    now = args.now or datetime.now(timezone.utc)

    try:
        consolidator = consolidator_factory(args.lookback_hours)
        if args.command == "pending":
            table = Table(title=f"Pending shards in s3://{consolidator.bucket}")
            table.add_column("Hour")
            table.add_column("Shards", justify="right")
            for hour, count in consolidator.pending_hours(now):
                table.add_row(hour.isoformat(), str(count))
            console.print(table)
        elif args.drain:
            _render_results(console, consolidator.drain(now))
        else:
            result = consolidator.run(now)
            _render_results(console, [result] if result.processed else [])
    except UuidArchiverError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        console.print(get_error_context(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
