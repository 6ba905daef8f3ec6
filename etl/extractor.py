"""Registry export: download, extract, upload.

One sequential streaming pass per run:

1. Ensure the destination bucket exists (create if absent)
2. Stream GET the gzip dump from the registry API (headers first, body streamed)
3. Gunzip and parse the body incrementally, one entity object at a time
4. Write `organisasjonsnummer<TAB>navn` per entity to a spooled temp buffer
5. Rewind the buffer and upload it over the previous artifact

Nothing touches the artifact before the whole input has been consumed, so a
failed run leaves the previous artifact in place. No step is retried.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Optional

import aiohttp

from etl.decode import GzipStreamReader, iter_entities
from etl.errors import ContainerSetupError, FetchError, UploadError
from etl.transform import format_line
from utils.config import Settings
from utils.gcs import GCSClient, GCSError, build_artifact_uri
from utils.logging import ProgressReporter

logger = logging.getLogger(__name__)

TSV_CONTENT_TYPE = "text/tab-separated-values; charset=utf-8"


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Outcome of a successful run. Reported for observability only."""

    record_count: int
    elapsed_millis: int
    artifact_uri: str
    bytes_written: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "recordCount": self.record_count,
            "elapsedMillis": self.elapsed_millis,
            "artifactUri": self.artifact_uri,
            "bytesWritten": self.bytes_written,
        }


class RegistryExporter:
    """Extractor-Uploader for the business registry dump.

    Collaborators are passed in; the exporter never builds clients itself.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        session: aiohttp.ClientSession,
        storage: GCSClient,
        progress: Optional[ProgressReporter] = None,
    ) -> None:
        self._settings = settings
        self._session = session
        self._storage = storage
        self._progress = progress or ProgressReporter(
            logger,
            every=settings.progress_every,
            level=settings.progress_log_level,
        )
        self._artifact_uri = build_artifact_uri(settings.gcs_bucket, settings.artifact_name)

    @property
    def artifact_uri(self) -> str:
        return self._artifact_uri

    async def run(self) -> ExportResult:
        """Run one export pass.

        Raises:
            ContainerSetupError: Bucket could not be verified or created.
            FetchError: Source request failed or returned a non-2xx status.
            DecodeError: Body is not gzip, not well-formed JSON, or an entity
                lacks a required field.
            UploadError: Writing the artifact failed.
        """
        started = time.monotonic()
        logger.info(f"[Export] Starting export {self._settings.source_url} -> {self._artifact_uri}")

        self._ensure_bucket()

        with tempfile.SpooledTemporaryFile(
            max_size=self._settings.spool_max_bytes, mode="w+b"
        ) as sink:
            count = await self._extract(sink, started)
            bytes_written = sink.tell()

            logger.info(f"[Export] Uploading blob ({bytes_written} bytes) ...")
            sink.seek(0)
            self._upload(sink)
            logger.info("[Export] Upload complete")

        elapsed = time.monotonic() - started
        rate = count / elapsed if elapsed > 0 else 0.0
        logger.info(f"[Export] Wrote {count} entries in {elapsed:.0f} seconds ({rate:.0f} entries/sec)")

        return ExportResult(
            record_count=count,
            elapsed_millis=int(elapsed * 1000),
            artifact_uri=self._artifact_uri,
            bytes_written=bytes_written,
        )

    def _ensure_bucket(self) -> None:
        try:
            self._storage.ensure_bucket(
                self._settings.gcs_bucket,
                location=self._settings.gcp_region,
            )
        except GCSError as e:
            raise ContainerSetupError(str(e)) from e

    async def _extract(self, sink: BinaryIO, started: float) -> int:
        """Stream the source into `sink`. Returns the number of entities written."""
        url = self._settings.source_url
        count = 0
        try:
            async with self._session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(
                        f"Source returned HTTP {response.status} {response.reason or ''}".rstrip()
                        + f" for {url}",
                        status=response.status,
                    )

                logger.info("[Export] Headers received, starting parse ...")
                reader = GzipStreamReader(response.content)

                async for entity in iter_entities(reader):
                    sink.write(format_line(entity).encode("utf-8"))
                    count += 1
                    self._progress.update(count, time.monotonic() - started)

                logger.debug(
                    f"[Export] Source consumed: {reader.compressed_bytes} bytes gzip, "
                    f"{reader.decompressed_bytes} bytes JSON"
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Request to {url} failed: {e!r}") from e

        return count

    def _upload(self, sink: BinaryIO) -> None:
        try:
            self._storage.upload_stream(sink, self._artifact_uri, content_type=TSV_CONTENT_TYPE)
        except GCSError as e:
            raise UploadError(str(e)) from e


def _client_timeout(settings: Settings) -> aiohttp.ClientTimeout:
    # aiohttp defaults to a 5 minute total timeout, too short for the full dump
    return aiohttp.ClientTimeout(total=settings.source_timeout_seconds)


async def run_export(
    settings: Settings,
    *,
    storage: Optional[GCSClient] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> ExportResult:
    """Build default collaborators from `settings` and run one export.

    A session passed in is left open; one created here is closed on exit.
    """
    if storage is None:
        try:
            storage = GCSClient(project_id=settings.gcp_project_id)
        except GCSError as e:
            raise ContainerSetupError(str(e)) from e

    if session is not None:
        return await RegistryExporter(settings, session=session, storage=storage).run()

    # The dump is served as a gzip file; keep the raw bytes for GzipStreamReader
    async with aiohttp.ClientSession(
        timeout=_client_timeout(settings),
        auto_decompress=False,
    ) as own_session:
        return await RegistryExporter(settings, session=own_session, storage=storage).run()
