"""Command-line entrypoints."""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional, Sequence

from listing_tracker.db.session import AsyncSessionLocal, engine, init_db
from listing_tracker.ingest.fetchers.headless import ListingExtractor
from listing_tracker.ingest.snapshot_probe import HtmlSnapshotProbe
from listing_tracker.logging_config import setup_logging
from listing_tracker.worker.tasks import build_task_runner

logger = logging.getLogger(__name__)


async def run_daily_check() -> int:
    """Run the lock-gated daily check once. Returns the process exit code."""
    await init_db()
    task_runner = build_task_runner(AsyncSessionLocal)

    try:
        result = await task_runner.run_daily_check()
    except Exception as e:
        logger.error(f"Daily check failed: {e}")
        return 1
    finally:
        await task_runner.close()
        await engine.dispose()

    logger.info(f"Daily check finished: {result.to_dict()}")
    return 0


async def extract_html(path: str, url: Optional[str] = None) -> int:
    """
    Run the field chains against a listing page saved from a browser.

    Prints the extracted fields as JSON. Returns 1 if the page was
    classified as an interstitial or yielded no identifying field.
    """
    try:
        probe = HtmlSnapshotProbe.from_file(path)
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        return 1

    data = await ListingExtractor(session=None).extract_from_probe(probe, url)
    fields = asdict(data)
    fields["open_closed_status"] = data.open_closed_status.value
    print(json.dumps(fields, indent=2, ensure_ascii=False))
    return 1 if data.error_code else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="listing-tracker", description="Google Maps listing tracker")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run-daily-check", help="Check every business not yet checked today")
    subparsers.add_parser("serve", help="Run the HTTP API and scheduler")

    extract = subparsers.add_parser("extract-html", help="Extract listing fields from a saved HTML page")
    extract.add_argument("file", help="Path to the saved page")
    extract.add_argument("--url", help="Listing link to record on the result")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        from listing_tracker.main import run

        run()
        return 0

    if args.command == "extract-html":
        # stdout carries the JSON result only
        return asyncio.run(extract_html(args.file, args.url))

    setup_logging()
    return asyncio.run(run_daily_check())


if __name__ == "__main__":
    sys.exit(main())
