"""Run one registry export locally.

Uses the same settings as the Cloud Functions (env vars / `.env`).

Usage:
    python -m etl
    python -m etl --bucket my-bucket --progress-every 50000 --log-level DEBUG
"""

import argparse
import asyncio
import dataclasses
import sys

from etl.errors import ExportError
from etl.extractor import run_export
from utils.config import Settings
from utils.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Download the business registry dump and upload organisasjonsnummer/navn as TSV."
    )
    parser.add_argument("--source-url", help="Override SOURCE_URL")
    parser.add_argument("--bucket", help="Override GCS_BUCKET")
    parser.add_argument("--artifact", help="Override ARTIFACT_NAME")
    parser.add_argument(
        "--progress-every",
        type=int,
        help="Log progress every N entries (0 disables). Overrides PROGRESS_LOG_EVERY",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (defaults to LOG_LEVEL or INFO)",
    )
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.source_url:
        overrides["source_url"] = args.source_url
    if args.artifact:
        overrides["artifact_name"] = args.artifact
    if args.progress_every is not None:
        overrides["progress_every"] = max(0, args.progress_every)
        # Progress lines were asked for explicitly, show them at INFO
        overrides["progress_log_level"] = "INFO"
    return dataclasses.replace(settings, **overrides) if overrides else settings


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = configure_logging(service_name="registry_export", level=args.log_level)

    try:
        settings = apply_overrides(Settings.load(gcs_bucket=args.bucket), args)
    except ValueError as e:
        logger.error(f"[ExportMain] Configuration error: {e}")
        return 2

    try:
        result = asyncio.run(run_export(settings))
    except ExportError as e:
        logger.error(f"[ExportMain] Export failed: {type(e).__name__}: {e}", exc_info=True)
        return 1

    print("\n" + "=" * 80)
    print("EXPORT RESULTS")
    print("=" * 80)
    print(f"Source: {settings.source_url}")
    print(f"Artifact: {result.artifact_uri}")
    print(f"Entries: {result.record_count}")
    print(f"Bytes: {result.bytes_written}")
    print(f"Duration: {result.elapsed_millis / 1000:.1f}s")
    print("=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main())
