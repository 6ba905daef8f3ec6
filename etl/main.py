"""Cloud Function entry points for the registry export.

This file is required by Cloud Functions deployment.
The function name MUST match the --entry-point parameter:

    scheduled_refresh  Pub/Sub CloudEvent published by Cloud Scheduler
                       (schedule: "37 2 1,8,15,22 * *")
    force_refresh      HTTP trigger for manual refreshes

Both adapters call the same `run_export()`.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import functions_framework

from etl.errors import ExportError, FetchError
from etl.extractor import run_export
from utils.config import Settings
from utils.logging import configure_logging

logger = logging.getLogger(__name__)

SERVICE_NAME = "registry-export"
PLAIN_TEXT = {"Content-Type": "text/plain; charset=utf-8"}
TRIGGER_KEY_HEADER = "X-Trigger-Key"


@functions_framework.cloud_event
def scheduled_refresh(cloud_event: Any) -> None:
    """Entry point for the scheduled refresh.

    Triggered by: Cloud Scheduler -> Pub/Sub topic -> Cloud Function.
    The message payload is ignored. Failures are re-raised so the execution
    is reported as failed (and retried only if the trigger enables retries).
    """
    configure_logging(service_name=SERVICE_NAME)
    settings = Settings.load()

    logger.info(
        f"[Trigger] Scheduled refresh executed at: {datetime.now(timezone.utc).isoformat()} "
        f"(event_id={_event_attr(cloud_event, 'id')}, event_time={_event_attr(cloud_event, 'time')})"
    )

    try:
        result = asyncio.run(run_export(settings))
    except ExportError as e:
        logger.error(f"[Trigger] Scheduled refresh failed: {type(e).__name__}: {e}", exc_info=True)
        raise

    logger.info(f"[Trigger] Scheduled refresh complete: {result.as_dict()}")


@functions_framework.http
def force_refresh(request: Any) -> tuple[str, int, dict[str, str]]:
    """Entry point for a manual refresh.

    Accepts GET (browser, curl) and POST (Cloud Scheduler HTTP target).

    Returns:
        "Done!" with 200 on success; a plain-text error with 502 when the
        source fetch failed, 500 for every other export failure.
    """
    configure_logging(service_name=SERVICE_NAME)

    if request.method not in ("GET", "POST"):
        return "Method Not Allowed", 405, {**PLAIN_TEXT, "Allow": "GET, POST"}

    settings = Settings.load()

    if not _authorized(request, settings.trigger_key):
        logger.warning("[Trigger] Manual refresh rejected: missing or wrong trigger key")
        return "Unauthorized", 401, PLAIN_TEXT

    logger.info(f"[Trigger] Manual refresh executed at: {datetime.now(timezone.utc).isoformat()}")

    try:
        result = asyncio.run(run_export(settings))
    except ExportError as e:
        logger.error(f"[Trigger] Manual refresh failed: {type(e).__name__}: {e}", exc_info=True)
        status = 502 if isinstance(e, FetchError) else 500
        return f"Failed: {type(e).__name__}: {e}", status, PLAIN_TEXT

    logger.info(
        f"[Trigger] Manual refresh completed at: {datetime.now(timezone.utc).isoformat()} "
        f"({result.record_count} entries, {result.elapsed_millis} ms)"
    )
    return "Done!", 200, PLAIN_TEXT


def _authorized(request: Any, trigger_key: Optional[str]) -> bool:
    """Check the shared trigger key. Without one configured, IAM guards the function."""
    if not trigger_key:
        return True
    supplied = request.headers.get(TRIGGER_KEY_HEADER) or request.args.get("key") or ""
    return hmac.compare_digest(supplied.encode("utf-8"), trigger_key.encode("utf-8"))


def _event_attr(cloud_event: Any, name: str) -> str:
    try:
        return str(cloud_event[name])
    except (KeyError, TypeError):
        return "unknown"
