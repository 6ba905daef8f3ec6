"""Exceptions raised by a registry export run.

Every failure is terminal for the run; nothing is retried.
"""

from __future__ import annotations

from typing import Optional


class ExportError(Exception):
    """Base exception for export failures."""


class ContainerSetupError(ExportError):
    """Raised when the destination bucket cannot be verified or created."""


class FetchError(ExportError):
    """Raised on a network failure or a non-2xx response from the source."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class DecodeError(ExportError):
    """Raised when the body is not valid gzip or not the expected JSON shape."""


class UploadError(ExportError):
    """Raised when writing the artifact to storage fails."""
