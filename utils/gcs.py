"""GCS helpers for the export destination.

This module provides a thin client over Google Cloud Storage:
- Ensure the destination bucket exists (create if absent)
- Upload a file object, replacing the existing blob
- Path helper utilities
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Optional

from google.cloud import storage
from google.cloud.exceptions import Conflict, Forbidden


logger = logging.getLogger(__name__)


class GCSError(Exception):
    """Base exception for GCS operations."""


class GCSPermissionError(GCSError):
    """Raised when IAM permissions are insufficient."""


class GCSClient:
    """Client for the Google Cloud Storage calls the export needs.

    No retries are configured here: a failed call fails the run.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        client: Optional[storage.Client] = None,
    ) -> None:
        """Initialize GCS client.

        Args:
            project_id: GCP project ID (optional, uses default from environment)
            client: Pre-built storage client (skips credential discovery)
        """
        if client is not None:
            self._client = client
            return
        try:
            self._client = storage.Client(project=project_id)
            logger.info(f"[GCS] Initialized client for project: {project_id or 'default'}")
        except Exception as e:
            logger.error(f"[GCS] Failed to initialize client: {e}")
            raise GCSError(f"Failed to initialize GCS client: {e}") from e

    def ensure_bucket(self, bucket_name: str, location: Optional[str] = None) -> storage.Bucket:
        """Return the bucket, creating it first when it does not exist.

        Args:
            bucket_name: Name of the GCS bucket
            location: Bucket location used on creation (e.g. "europe-north1")

        Raises:
            GCSPermissionError: If IAM permissions are insufficient
            GCSError: For other lookup/creation failures
        """
        try:
            bucket = self._client.lookup_bucket(bucket_name)
            if bucket is not None:
                logger.debug(f"[GCS] Bucket exists: gs://{bucket_name}")
                return bucket

            bucket = self._client.create_bucket(bucket_name, location=location)
            logger.info(f"[GCS] Created bucket gs://{bucket_name} (location: {location or 'default'})")
            return bucket

        except Forbidden as e:
            raise GCSPermissionError(
                f"Permission denied checking/creating gs://{bucket_name}. "
                "Check IAM role: roles/storage.admin"
            ) from e
        except Conflict:
            # Created by a concurrent run between lookup and create
            logger.info(f"[GCS] Bucket gs://{bucket_name} created concurrently, reusing it")
            return self._client.bucket(bucket_name)
        except Exception as e:
            logger.error(f"[GCS] Bucket setup failed: {e}")
            raise GCSError(f"Failed to verify or create bucket {bucket_name}: {e}") from e

    def upload_stream(
        self,
        fileobj: BinaryIO,
        gcs_uri: str,
        content_type: str = "application/octet-stream",
    ) -> dict[str, str]:
        """Upload the whole content of `fileobj` to GCS, replacing the blob.

        The file object is rewound before upload. The blob becomes visible
        only once the upload completes.

        Args:
            fileobj: Seekable binary file object
            gcs_uri: Destination GCS URI (gs://bucket/path/to/file)
            content_type: Content-Type stored on the blob

        Returns:
            Dict with blob metadata (size, updated, gs_uri)

        Raises:
            GCSPermissionError: If IAM permissions are insufficient
            GCSError: For other upload failures
        """
        bucket_name, blob_name = parse_gcs_uri(gcs_uri)

        try:
            bucket = self._client.bucket(bucket_name)
            blob = bucket.blob(blob_name)

            # The upload response fills size and updated, no separate GET
            blob.upload_from_file(fileobj, rewind=True, content_type=content_type)

            result = {
                "size": str(blob.size),
                "updated": blob.updated.isoformat() if blob.updated else "unknown",
                "gs_uri": f"gs://{bucket_name}/{blob.name}",
            }

            logger.info(f"[GCS] Uploaded {result['gs_uri']} ({result['size']} bytes)")
            return result

        except Forbidden as e:
            raise GCSPermissionError(
                f"Permission denied uploading to gs://{bucket_name}/{blob_name}. "
                "Check IAM role: roles/storage.objectAdmin"
            ) from e
        except Exception as e:
            logger.error(f"[GCS] Upload failed: {e}")
            raise GCSError(f"Failed to upload to {gcs_uri}: {e}") from e


# =============================================================================
# Path Helper Functions
# =============================================================================

def parse_gcs_uri(gcs_uri: str) -> tuple[str, str]:
    """Parse a GCS URI into bucket name and blob name.

    Args:
        gcs_uri: GCS URI in format gs://bucket/path/to/blob

    Returns:
        Tuple of (bucket_name, blob_name)

    Raises:
        ValueError: If URI format is invalid
    """
    if not gcs_uri.startswith("gs://"):
        raise ValueError(f"Invalid GCS URI (must start with gs://): {gcs_uri}")

    parts = gcs_uri[5:].split("/", 1)

    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid GCS URI format (expected gs://bucket/path): {gcs_uri}")

    return parts[0], parts[1]


def build_artifact_uri(bucket: str, artifact_name: str) -> str:
    """Build the GCS URI of the export artifact."""
    return f"gs://{bucket}/{artifact_name.lstrip('/')}"
