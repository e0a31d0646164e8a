# Shared pytest fixtures
from __future__ import annotations
import tempfile
from datetime import date
from pathlib import Path

import pytest

from case_import.db.memory_store import InMemoryCaseStore
from case_import.logging.init import reset_logging
from case_import.models.case_fields import CaseFields

# 検証の "今日" を固定 (未来日判定を決定的にする)
TODAY = date(2026, 10, 19)

HEADER = "case_id,applicant_name,dob,email,phone,category,priority"


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("MAX_FILE_SIZE", "DATABASE_URL", "PGDSN", "DISABLE_DB_CONNECT"):
        monkeypatch.delenv(name, raising=False)
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: cases
upload:
  max_bytes: 1048576
  content_types: [text/csv]
commit:
  chunk_size: 2
  max_workers: 2
error_log_dir: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def today() -> date:
    return TODAY


@pytest.fixture()
def memory_store() -> InMemoryCaseStore:
    return InMemoryCaseStore()


@pytest.fixture()
def valid_fields() -> CaseFields:
    return CaseFields(
        case_id="C-1001",
        applicant_name="John Doe",
        date_of_birth="1990-01-01",
        email="john@example.com",
        phone="+1234567890",
        category="TAX",
        priority="HIGH",
    )


@pytest.fixture()
def three_row_csv() -> bytes:
    """1 valid row, 1 missing category, 1 with a future dob."""
    return (
        f"{HEADER}\n"
        "C-1,Jane Roe,1985-05-05,jane@example.com,5551234567,tax,high\n"
        "C-2,John Doe,1990-01-01,,,,\n"
        "C-3,Max Mustermann,2099-01-01,max@example.com,,PERMIT,\n"
    ).encode("utf-8")
