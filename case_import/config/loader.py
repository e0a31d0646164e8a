from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONTENT_TYPES,
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_MAX_WORKERS,
    CommitConfig,
    DatabaseConfig,
    ImportConfig,
    UploadConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate against the packaged JSON schema (config_schema.json)
- Apply defaults for every missing section
- Apply the MAX_FILE_SIZE environment override to upload.max_bytes
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "build_config",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/import.yml")

MAX_FILE_SIZE_ENV = "MAX_FILE_SIZE"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation (wrong types, unknown keys...).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _max_bytes_from_env(default: int) -> int:
    raw = os.getenv(MAX_FILE_SIZE_ENV)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{MAX_FILE_SIZE_ENV} must be an integer byte count: {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{MAX_FILE_SIZE_ENV} must be positive: {value}")
    return value


def build_config(data: dict[str, Any] | None = None) -> ImportConfig:
    """Build ImportConfig from an already-parsed mapping (None = all defaults)."""
    data = data or {}
    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    upload_raw = data.get("upload") or {}
    upload = UploadConfig(
        max_bytes=_max_bytes_from_env(upload_raw.get("max_bytes", DEFAULT_MAX_UPLOAD_BYTES)),
        content_types=tuple(upload_raw.get("content_types", DEFAULT_CONTENT_TYPES)),
    )
    commit_raw = data.get("commit") or {}
    commit = CommitConfig(
        chunk_size=commit_raw.get("chunk_size", DEFAULT_CHUNK_SIZE),
        max_workers=commit_raw.get("max_workers", DEFAULT_MAX_WORKERS),
    )
    return ImportConfig(
        database=db,
        upload=upload,
        commit=commit,
        error_log_dir=data.get("error_log_dir", "./logs"),
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return build_config(data)
