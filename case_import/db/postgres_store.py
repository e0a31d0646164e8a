from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from typing import Any

import psycopg2
import psycopg2.errors
from psycopg2.extras import Json
from psycopg2.pool import ThreadedConnectionPool

from ..models.case_fields import CaseFields
from ..models.config_models import DatabaseConfig
from ..models.import_job import AuditLogEntry, CaseRecord, ImportJob, JobStatus
from .case_store import DuplicateError, StoreError

"""PostgreSQL Case Store (psycopg2).

Each store call borrows a connection from a ThreadedConnectionPool and runs in
its own transaction (`with conn:` commits on success, rolls back on error), so
the committer's worker threads never share a connection. The UNIQUE index on
cases.case_id is what actually prevents duplicates; a UniqueViolation is
reported as DuplicateError.
"""

__all__ = [
    "PostgresCaseStore",
    "SCHEMA_SQL",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS import_jobs (
    id uuid PRIMARY KEY,
    file_name text NOT NULL,
    actor_id text NOT NULL,
    total_rows integer NOT NULL,
    success_rows integer NOT NULL DEFAULT 0,
    failed_rows integer NOT NULL DEFAULT 0,
    status text NOT NULL,
    created_at timestamptz NOT NULL DEFAULT now(),
    updated_at timestamptz NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS cases (
    id uuid PRIMARY KEY,
    case_id text NOT NULL,
    applicant_name text NOT NULL,
    dob date NOT NULL,
    email text,
    phone text,
    category text NOT NULL,
    priority text NOT NULL DEFAULT 'LOW',
    import_job_id uuid REFERENCES import_jobs (id),
    created_at timestamptz NOT NULL DEFAULT now()
);
CREATE UNIQUE INDEX IF NOT EXISTS cases_case_id_key ON cases (case_id);
CREATE TABLE IF NOT EXISTS audit_logs (
    id uuid PRIMARY KEY,
    actor_id text NOT NULL,
    case_record_id uuid NOT NULL REFERENCES cases (id),
    action text NOT NULL,
    details jsonb NOT NULL DEFAULT '{}'::jsonb,
    created_at timestamptz NOT NULL DEFAULT now()
);
"""

_JOB_COLUMNS = (
    "id, file_name, actor_id, total_rows, success_rows, failed_rows, status, created_at, updated_at"
)
_CASE_COLUMNS = (
    "id, case_id, applicant_name, dob, email, phone, category, priority, import_job_id, created_at"
)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve the connection string.

    Priority:
        1. DATABASE_URL / PGDSN environment variables (whole DSN)
        2. config `database.dsn`
        3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each falling
           back to the matching config value, then to libpq-style defaults
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _job_from_row(row: tuple[Any, ...]) -> ImportJob:
    return ImportJob(
        id=str(row[0]),
        file_name=row[1],
        actor_id=row[2],
        total_rows=row[3],
        success_rows=row[4],
        failed_rows=row[5],
        status=JobStatus(row[6]),
        created_at=row[7],
        updated_at=row[8],
    )


def _case_from_row(row: tuple[Any, ...]) -> CaseRecord:
    return CaseRecord(
        id=str(row[0]),
        case_id=row[1],
        applicant_name=row[2],
        date_of_birth=row[3],
        email=row[4],
        phone=row[5],
        category=row[6],
        priority=row[7],
        import_job_id=str(row[8]) if row[8] is not None else None,
        created_at=row[9],
    )


class PostgresCaseStore:
    def __init__(self, pool: Any) -> None:
        self._pool = pool

    @classmethod
    def connect(cls, dsn: str, max_connections: int) -> PostgresCaseStore:
        """Open a pool sized for max_connections concurrent store calls."""
        try:
            pool = ThreadedConnectionPool(1, max_connections, dsn)
        except psycopg2.Error as e:
            raise StoreError(f"cannot connect to database: {e}") from e
        logger.debug("connection pool opened (max=%d)", max_connections)
        return cls(pool)

    def close(self) -> None:
        self._pool.closeall()

    def __enter__(self) -> PostgresCaseStore:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        try:
            conn = self._pool.getconn()
        except psycopg2.Error as e:
            raise StoreError(f"no database connection available: {e}") from e
        try:
            with conn:  # commit / rollback
                with conn.cursor() as cur:
                    yield cur
        finally:
            self._pool.putconn(conn)

    def _fetchone(self, sql: str, params: tuple[Any, ...]) -> tuple[Any, ...] | None:
        try:
            with self._cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchone()
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e

    def _fetchall(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        try:
            with self._cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall()
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e

    def ensure_schema(self) -> None:
        try:
            with self._cursor() as cur:
                cur.execute(SCHEMA_SQL)
        except psycopg2.Error as e:
            raise StoreError(f"schema setup failed: {e}") from e
        logger.debug("schema ensured")

    def create_case(self, fields: CaseFields, import_job_id: str | None = None) -> CaseRecord:
        sql = (
            f"INSERT INTO cases ({_CASE_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, now()) "
            f"RETURNING {_CASE_COLUMNS}"
        )
        params = (
            str(uuid.uuid4()),
            fields.case_id,
            fields.applicant_name,
            date.fromisoformat(fields.date_of_birth),
            fields.email or None,
            fields.phone or None,
            fields.category,
            fields.effective_priority,
            import_job_id,
        )
        try:
            row = self._fetchone(sql, params)
        except StoreError as e:
            if isinstance(e.__cause__, psycopg2.errors.UniqueViolation):
                raise DuplicateError(fields.case_id) from e.__cause__
            raise
        if row is None:  # pragma: no cover
            raise StoreError("INSERT ... RETURNING returned no row")
        return _case_from_row(row)

    def find_case_by_case_id(self, case_id: str) -> CaseRecord | None:
        row = self._fetchone(f"SELECT {_CASE_COLUMNS} FROM cases WHERE case_id = %s", (case_id,))
        return _case_from_row(row) if row is not None else None

    def create_import_job(self, file_name: str, total_rows: int, actor_id: str) -> ImportJob:
        sql = (
            f"INSERT INTO import_jobs ({_JOB_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, 0, 0, %s, now(), now()) "
            f"RETURNING {_JOB_COLUMNS}"
        )
        row = self._fetchone(
            sql, (str(uuid.uuid4()), file_name, actor_id, total_rows, JobStatus.PROCESSING.value)
        )
        if row is None:  # pragma: no cover
            raise StoreError("INSERT ... RETURNING returned no row")
        return _job_from_row(row)

    def update_import_job(
        self, job_id: str, success_rows: int, failed_rows: int, status: JobStatus
    ) -> ImportJob:
        sql = (
            "UPDATE import_jobs SET success_rows = %s, failed_rows = %s, status = %s, updated_at = now() "
            f"WHERE id = %s RETURNING {_JOB_COLUMNS}"
        )
        row = self._fetchone(sql, (success_rows, failed_rows, status.value, job_id))
        if row is None:
            raise StoreError(f"import job not found: {job_id}")
        return _job_from_row(row)

    def create_audit_log_entry(
        self, actor_id: str, case_record_id: str, action: str, details: dict[str, Any] | None = None
    ) -> AuditLogEntry:
        sql = (
            "INSERT INTO audit_logs (id, actor_id, case_record_id, action, details, created_at) "
            "VALUES (%s, %s, %s, %s, %s, now()) RETURNING id, created_at"
        )
        payload = dict(details or {})
        row = self._fetchone(sql, (str(uuid.uuid4()), actor_id, case_record_id, action, Json(payload)))
        if row is None:  # pragma: no cover
            raise StoreError("INSERT ... RETURNING returned no row")
        return AuditLogEntry(
            id=str(row[0]),
            actor_id=actor_id,
            case_record_id=case_record_id,
            action=action,
            details=payload,
            created_at=row[1],
        )

    def get_import_job(self, job_id: str) -> ImportJob | None:
        row = self._fetchone(f"SELECT {_JOB_COLUMNS} FROM import_jobs WHERE id = %s", (job_id,))
        return _job_from_row(row) if row is not None else None

    def list_import_jobs(self, actor_id: str, limit: int = 50) -> list[ImportJob]:
        rows = self._fetchall(
            f"SELECT {_JOB_COLUMNS} FROM import_jobs WHERE actor_id = %s "
            "ORDER BY created_at DESC LIMIT %s",
            (actor_id, limit),
        )
        return [_job_from_row(r) for r in rows]
