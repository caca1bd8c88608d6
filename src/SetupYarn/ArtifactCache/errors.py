"""Exception hierarchy shared by the artifact cache transport and archive codec.

Restoring or saving a cache spans HTTP calls to the cache service, two
cooperating archiver subprocesses, and temporary files on disk.  The failure
modes are grouped here so callers can react to broad categories while still
inspecting the status code, command line, or content type that caused them.

A cache miss (lookup answered 204) and a lost reservation race (reserve
answered 409) are *not* errors; they are reported as ``None`` by the transport
and as ``False`` by the orchestrator.
"""

from __future__ import annotations

from typing import Optional, Sequence

__all__ = [
    "ArtifactCacheError",
    "CacheConfigurationError",
    "ProtocolError",
    "ContentTypeMismatch",
    "SubprocessFailure",
    "FilesystemError",
    "HashingCancelled",
]


class ArtifactCacheError(RuntimeError):
    """Base exception for cache restore, save, and archive failures."""


class CacheConfigurationError(ArtifactCacheError):
    """Raised when the cache service configuration is missing or unusable."""


class ProtocolError(ArtifactCacheError):
    """Raised when the cache service answers with an unexpected status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ContentTypeMismatch(ArtifactCacheError):
    """Raised when a response body is not of the content type an endpoint promises."""

    def __init__(self, expected: str, actual: Optional[str]) -> None:
        super().__init__(
            f"expected content type to be '{expected}', but instead got '{actual or 'undefined'}'"
        )
        self.expected = expected
        self.actual = actual


class SubprocessFailure(ArtifactCacheError):
    """Raised when an archiver or compressor process fails to start or exits non-zero."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__("\n".join([f"Process failed: {' '.join(self.command)}", stderr]))


class FilesystemError(ArtifactCacheError):
    """Raised when temporary directories or archive files cannot be managed."""


class HashingCancelled(ArtifactCacheError):
    """Raised by a hashing worker that observed its cancellation signal."""
