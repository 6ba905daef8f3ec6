"""Configuration loader.

Loads export settings from environment variables and optional local `.env`.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional

from dotenv import load_dotenv

DEFAULT_SOURCE_URL = "https://data.brreg.no/enhetsregisteret/oppslag/enheter/lastned"
DEFAULT_ARTIFACT_NAME = "mainunits2.tsv"
DEFAULT_PROGRESS_EVERY = 10_000
DEFAULT_SPOOL_MAX_BYTES = 64 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class Settings:
    """Settings shared by the trigger adapters and the CLI."""

    gcs_bucket: str
    gcp_project_id: Optional[str] = None
    gcp_region: Optional[str] = None
    artifact_name: str = DEFAULT_ARTIFACT_NAME
    source_url: str = DEFAULT_SOURCE_URL
    source_timeout_seconds: Optional[float] = None
    progress_every: int = DEFAULT_PROGRESS_EVERY
    progress_log_level: str = "DEBUG"
    spool_max_bytes: int = DEFAULT_SPOOL_MAX_BYTES
    trigger_key: Optional[str] = None

    @staticmethod
    def load(*, env_file: str = ".env", gcs_bucket: Optional[str] = None) -> "Settings":
        """Load settings from environment; raises ValueError if vars are missing or malformed.

        An explicit `gcs_bucket` takes precedence over GCS_BUCKET.
        """
        load_dotenv(env_file, override=False)

        gcs_bucket = (gcs_bucket or os.getenv("GCS_BUCKET", "")).strip()
        if not gcs_bucket:
            raise ValueError("Missing required env var(s): GCS_BUCKET")

        invalid: list[str] = []

        def _int(name: str, default: int) -> int:
            raw = os.getenv(name, "").strip()
            if not raw:
                return default
            try:
                value = int(raw)
            except ValueError:
                invalid.append(f"{name}={raw!r}")
                return default
            if value < 0:
                invalid.append(f"{name}={raw!r}")
            return value

        timeout_raw = os.getenv("SOURCE_TIMEOUT_SECONDS", "").strip()
        source_timeout_seconds: Optional[float] = None
        if timeout_raw:
            try:
                source_timeout_seconds = float(timeout_raw)
            except ValueError:
                invalid.append(f"SOURCE_TIMEOUT_SECONDS={timeout_raw!r}")
            else:
                if source_timeout_seconds <= 0:
                    # 0 means no timeout
                    source_timeout_seconds = None

        progress_every = _int("PROGRESS_LOG_EVERY", DEFAULT_PROGRESS_EVERY)
        spool_max_bytes = _int("SPOOL_MAX_BYTES", DEFAULT_SPOOL_MAX_BYTES)

        if invalid:
            raise ValueError(f"Invalid env var value(s): {', '.join(invalid)}")

        return Settings(
            gcs_bucket=gcs_bucket,
            gcp_project_id=os.getenv("GCP_PROJECT_ID", "").strip() or None,
            gcp_region=os.getenv("GCP_REGION", "").strip() or None,
            artifact_name=os.getenv("ARTIFACT_NAME", "").strip() or DEFAULT_ARTIFACT_NAME,
            source_url=os.getenv("SOURCE_URL", "").strip() or DEFAULT_SOURCE_URL,
            source_timeout_seconds=source_timeout_seconds,
            progress_every=progress_every,
            progress_log_level=os.getenv("PROGRESS_LOG_LEVEL", "").strip().upper() or "DEBUG",
            spool_max_bytes=spool_max_bytes,
            trigger_key=os.getenv("TRIGGER_KEY", "").strip() or None,
        )
