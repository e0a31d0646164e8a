from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

import psycopg2
import psycopg2.errors
import psycopg2.pool
import pytest

from case_import.db.case_store import DuplicateError, StoreError
from case_import.db.postgres_store import SCHEMA_SQL, PostgresCaseStore, resolve_dsn
from case_import.models.case_fields import CaseFields
from case_import.models.config_models import DatabaseConfig
from case_import.models.import_job import JobStatus

NOW = datetime(2026, 10, 19, 9, 0, 0, tzinfo=timezone.utc)


def _store():
    """PostgresCaseStore over a mocked pool; returns (store, pool, cursor)."""
    cur = MagicMock()
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cur
    pool = MagicMock()
    pool.getconn.return_value = conn
    return PostgresCaseStore(pool), pool, cur


def _job_row(status: str = "processing", success: int = 0, failed: int = 0):
    return ("job-1", "cases.csv", "user-1", 3, success, failed, status, NOW, NOW)


def _case_row(case_id: str = "C-1001"):
    return ("rec-1", case_id, "John Doe", date(1990, 1, 1), None, "+1234567890", "TAX", "HIGH", "job-1", NOW)


def test_create_case(valid_fields: CaseFields):
    store, pool, cur = _store()
    cur.fetchone.return_value = _case_row()

    record = store.create_case(valid_fields, import_job_id="job-1")

    assert record.id == "rec-1"
    assert record.case_id == "C-1001"
    assert record.import_job_id == "job-1"
    sql, params = cur.execute.call_args.args
    assert sql.startswith("INSERT INTO cases")
    assert params[1] == "C-1001"
    assert params[3] == date(1990, 1, 1)
    assert params[7] == "HIGH"
    assert params[8] == "job-1"
    # 接続は必ずプールへ返却
    pool.putconn.assert_called_once_with(pool.getconn.return_value)


def test_create_case_unique_violation_is_duplicate(valid_fields: CaseFields):
    store, pool, cur = _store()
    cur.execute.side_effect = psycopg2.errors.UniqueViolation("duplicate key value violates unique constraint")

    with pytest.raises(DuplicateError) as e:
        store.create_case(valid_fields)

    assert e.value.case_id == "C-1001"
    pool.putconn.assert_called_once()


def test_other_database_errors_are_store_errors(valid_fields: CaseFields):
    store, _pool, cur = _store()
    cur.execute.side_effect = psycopg2.OperationalError("server closed the connection")

    with pytest.raises(StoreError) as e:
        store.create_case(valid_fields)

    assert not isinstance(e.value, DuplicateError)
    assert "server closed" in str(e.value)


def test_getconn_failure_is_store_error():
    store, pool, _cur = _store()
    pool.getconn.side_effect = psycopg2.pool.PoolError("connection pool exhausted")

    with pytest.raises(StoreError, match="no database connection"):
        store.find_case_by_case_id("C-1")


def test_find_case_by_case_id():
    store, _pool, cur = _store()
    cur.fetchone.return_value = None
    assert store.find_case_by_case_id("C-404") is None

    cur.fetchone.return_value = _case_row("C-7")
    assert store.find_case_by_case_id("C-7").case_id == "C-7"
    assert cur.execute.call_args.args[1] == ("C-7",)


def test_import_job_create_and_update():
    store, _pool, cur = _store()
    cur.fetchone.return_value = _job_row()
    job = store.create_import_job("cases.csv", 3, "user-1")
    assert job.status is JobStatus.PROCESSING
    assert cur.execute.call_args.args[1][1:] == ("cases.csv", "user-1", 3, "processing")

    cur.fetchone.return_value = _job_row("completed", 2, 1)
    updated = store.update_import_job("job-1", 2, 1, JobStatus.COMPLETED)
    assert updated.status is JobStatus.COMPLETED
    assert cur.execute.call_args.args[1] == (2, 1, "completed", "job-1")


def test_update_missing_job():
    store, _pool, cur = _store()
    cur.fetchone.return_value = None
    with pytest.raises(StoreError, match="not found"):
        store.update_import_job("nope", 0, 0, JobStatus.COMPLETED)


def test_create_audit_log_entry_sends_json():
    store, _pool, cur = _store()
    cur.fetchone.return_value = ("audit-1", NOW)

    entry = store.create_audit_log_entry("user-1", "rec-1", "import", {"import_job_id": "job-1"})

    assert entry.id == "audit-1"
    assert entry.details == {"import_job_id": "job-1"}
    params = cur.execute.call_args.args[1]
    assert params[1:4] == ("user-1", "rec-1", "import")
    assert params[4].adapted == {"import_job_id": "job-1"}


def test_list_import_jobs():
    store, _pool, cur = _store()
    cur.fetchall.return_value = [_job_row("completed"), _job_row("cancelled")]

    jobs = store.list_import_jobs("user-1", limit=5)

    assert [j.status for j in jobs] == [JobStatus.COMPLETED, JobStatus.CANCELLED]
    sql, params = cur.execute.call_args.args
    assert "ORDER BY created_at DESC" in sql
    assert params == ("user-1", 5)


def test_ensure_schema():
    store, _pool, cur = _store()
    store.ensure_schema()
    cur.execute.assert_called_once_with(SCHEMA_SQL)
    assert "UNIQUE INDEX" in SCHEMA_SQL


def test_connect_failure():
    with patch(
        "case_import.db.postgres_store.ThreadedConnectionPool",
        side_effect=psycopg2.OperationalError("could not connect"),
    ):
        with pytest.raises(StoreError, match="cannot connect"):
            PostgresCaseStore.connect("host=nowhere", 4)


def test_connect_and_close():
    with patch("case_import.db.postgres_store.ThreadedConnectionPool") as mock_pool:
        with PostgresCaseStore.connect("host=db", 11):
            pass
    mock_pool.assert_called_once_with(1, 11, "host=db")
    mock_pool.return_value.closeall.assert_called_once()


class TestResolveDsn:
    @pytest.fixture(autouse=True)
    def _no_pg_env(self, monkeypatch):
        for name in ("PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
            monkeypatch.delenv(name, raising=False)

    def test_database_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/db")
        monkeypatch.setenv("PGDSN", "host=other")
        assert resolve_dsn(DatabaseConfig(dsn="host=config")) == "postgresql://u@h/db"

    def test_pgdsn_over_config(self, monkeypatch):
        monkeypatch.setenv("PGDSN", "host=other")
        assert resolve_dsn(DatabaseConfig(dsn="host=config")) == "host=other"

    def test_config_dsn(self):
        assert resolve_dsn(DatabaseConfig(dsn="host=config")) == "host=config"

    def test_fields_with_env_override(self, monkeypatch):
        monkeypatch.setenv("PGHOST", "envhost")
        cfg = DatabaseConfig(host="cfghost", port=6543, user="app", password="pw", database="cases")
        assert resolve_dsn(cfg) == "host=envhost port=6543 user=app dbname=cases password=pw"

    def test_defaults(self):
        assert resolve_dsn(DatabaseConfig()) == "host=localhost port=5432 user=postgres dbname=postgres"
