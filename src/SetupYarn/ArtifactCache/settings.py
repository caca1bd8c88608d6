"""Configuration for the artifact cache service client.

The runner injects two ambient strings into every job: the cache service base
URL (``ACTIONS_CACHE_URL``) and a short-lived bearer token
(``ACTIONS_RUNTIME_TOKEN``).  :class:`CacheServiceSettings` reads them once at
startup, together with a handful of ``SETUP_YARN_*`` tuning knobs, and the
resulting object is handed to :class:`~SetupYarn.ArtifactCache.transport.CacheTransport`
explicitly instead of being looked up from the environment on every request.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

API_VERSION = "6.0-preview"
ARCHIVE_NAME = "cache.tar.zst"
DEFAULT_MAX_CHUNK_SIZE = 4 * 1024 * 1024

__all__ = [
    "API_VERSION",
    "ARCHIVE_NAME",
    "DEFAULT_MAX_CHUNK_SIZE",
    "CacheServiceSettings",
    "get_settings",
]


class CacheServiceSettings(BaseSettings):
    """Connection and transfer settings for the artifact cache service."""

    cache_url: str = Field(
        default="",
        validation_alias=AliasChoices("cache_url", "ACTIONS_CACHE_URL"),
        description="Base URL of the cache service, as injected by the runner",
    )
    runtime_token: str = Field(
        default="",
        validation_alias=AliasChoices("runtime_token", "ACTIONS_RUNTIME_TOKEN"),
        description="Bearer token used to authenticate cache service requests",
        repr=False,
    )
    api_version: str = Field(default=API_VERSION, description="Negotiated API version")
    max_chunk_size: int = Field(
        default=DEFAULT_MAX_CHUNK_SIZE,
        ge=1,
        description="Largest byte range transferred by a single upload or download request",
    )
    max_concurrent_chunks: Optional[int] = Field(
        default=None,
        ge=1,
        description="Upper bound on in-flight chunk requests (unbounded when unset)",
    )
    timeout_sec: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Per-request timeout; requests may wait indefinitely when unset",
    )
    max_connections: int = Field(default=100, ge=1, le=1024)
    authorize_downloads: bool = Field(
        default=False,
        description="Send service Accept/Authorization headers to archive download URLs",
    )
    tar_command: str = Field(default="tar", min_length=1)
    zstd_command: str = Field(default="zstd", min_length=1)

    model_config = SettingsConfigDict(
        env_prefix="SETUP_YARN_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("cache_url", "runtime_token")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    def service_url(self, resource_path: str) -> str:
        """Return the absolute URL of ``resource_path`` on the cache service."""

        base = self.cache_url if self.cache_url.endswith("/") else f"{self.cache_url}/"
        return f"{base}_apis/artifactcache/{resource_path}"


def get_settings() -> CacheServiceSettings:
    """Load settings from the process environment."""

    return CacheServiceSettings()
