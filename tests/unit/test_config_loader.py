from __future__ import annotations
import pytest
from pathlib import Path
from case_import.config.loader import ConfigError, build_config, load_config
from case_import.models.config_models import DEFAULT_MAX_UPLOAD_BYTES


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.database.host == "localhost"
    assert cfg.database.port == 5432
    assert cfg.upload.max_bytes == 1048576
    assert cfg.upload.content_types == ("text/csv",)
    assert cfg.commit.chunk_size == 2
    assert cfg.commit.max_workers == 2
    assert cfg.error_log_dir == "./logs"


def test_build_config_defaults():
    cfg = build_config(None)
    assert cfg.upload.max_bytes == DEFAULT_MAX_UPLOAD_BYTES == 50 * 1024 * 1024
    assert cfg.upload.content_types == ("text/csv", "application/csv")
    assert cfg.commit.chunk_size == 100
    assert cfg.commit.max_workers == 10
    assert cfg.database.dsn is None


def test_load_config_missing_file(temp_workdir: Path):
    missing = temp_workdir / "config" / "not_exists.yml"
    with pytest.raises(ConfigError, match="not found"):
        load_config(missing)


def test_load_config_invalid_yaml(write_config: Path):
    write_config.write_text("database: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(write_config)


def test_load_config_root_not_mapping(write_config: Path):
    write_config.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(write_config)


def test_load_config_bad_chunk_size(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("chunk_size: 2", "chunk_size: 0")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_load_config_wrong_type(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("max_bytes: 1048576", "max_bytes: lots")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(write_config)


def test_load_config_extra_field(write_config: Path):
    # additionalProperties: false
    text = write_config.read_text(encoding="utf-8") + "\nextra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_max_file_size_env_override(write_config: Path, monkeypatch):
    monkeypatch.setenv("MAX_FILE_SIZE", "2048")
    assert load_config(write_config).upload.max_bytes == 2048


@pytest.mark.parametrize("raw", ["abc", "0", "-5"])
def test_max_file_size_env_invalid(monkeypatch, raw: str):
    monkeypatch.setenv("MAX_FILE_SIZE", raw)
    with pytest.raises(ConfigError, match="MAX_FILE_SIZE"):
        build_config(None)
