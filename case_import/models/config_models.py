from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the case import pipeline.

Built by case_import.config.loader from config/import.yml. Every section is
optional; the defaults below apply when a key is missing.
"""

DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024  # 50 MiB
DEFAULT_CONTENT_TYPES = ("text/csv", "application/csv")
DEFAULT_CHUNK_SIZE = 100
DEFAULT_MAX_WORKERS = 10


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class UploadConfig:
    """Limits applied to an upload before it is parsed."""
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    content_types: tuple[str, ...] = DEFAULT_CONTENT_TYPES


@dataclass(frozen=True)
class CommitConfig:
    """Batch commit tuning.

    chunk_size rows are attempted per chunk; at most max_workers of them are
    in flight against the Case Store at once.
    """
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    commit: CommitConfig = field(default_factory=CommitConfig)
    error_log_dir: str = "./logs"
