from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from ..models.case_fields import CaseFields
from ..models.import_job import AuditLogEntry, CaseRecord, ImportJob, JobStatus
from .case_store import DuplicateError, StoreError

"""In-memory Case Store.

Used for dry runs (DISABLE_DB_CONNECT=1 / --dry-run) and tests. All state sits
behind one lock, so the case_id uniqueness check and the insert happen as one
step even when the committer runs rows on several threads.
"""

__all__ = [
    "InMemoryCaseStore",
]


class InMemoryCaseStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.cases: dict[str, CaseRecord] = {}  # case_id -> record
        self.jobs: dict[str, ImportJob] = {}
        self.audit_log: list[AuditLogEntry] = []
        self.job_updates: list[str] = []  # job id per update call

    def create_case(self, fields: CaseFields, import_job_id: str | None = None) -> CaseRecord:
        with self._lock:
            if fields.case_id in self.cases:
                raise DuplicateError(fields.case_id)
            record = CaseRecord.from_fields(
                str(uuid.uuid4()), fields, import_job_id, created_at=datetime.now(UTC)
            )
            self.cases[fields.case_id] = record
            return record

    def find_case_by_case_id(self, case_id: str) -> CaseRecord | None:
        with self._lock:
            return self.cases.get(case_id)

    def create_import_job(self, file_name: str, total_rows: int, actor_id: str) -> ImportJob:
        now = datetime.now(UTC)
        job = ImportJob(
            id=str(uuid.uuid4()),
            file_name=file_name,
            actor_id=actor_id,
            total_rows=total_rows,
            status=JobStatus.PROCESSING,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self.jobs[job.id] = job
        return job

    def update_import_job(
        self, job_id: str, success_rows: int, failed_rows: int, status: JobStatus
    ) -> ImportJob:
        with self._lock:
            job = self.jobs.get(job_id)
            if job is None:
                raise StoreError(f"import job not found: {job_id}")
            updated = replace(
                job,
                success_rows=success_rows,
                failed_rows=failed_rows,
                status=status,
                updated_at=datetime.now(UTC),
            )
            self.jobs[job_id] = updated
            self.job_updates.append(job_id)
            return updated

    def create_audit_log_entry(
        self, actor_id: str, case_record_id: str, action: str, details: dict[str, Any] | None = None
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            actor_id=actor_id,
            case_record_id=case_record_id,
            action=action,
            details=dict(details or {}),
            created_at=datetime.now(UTC),
        )
        with self._lock:
            self.audit_log.append(entry)
        return entry

    def get_import_job(self, job_id: str) -> ImportJob | None:
        with self._lock:
            return self.jobs.get(job_id)

    def list_import_jobs(self, actor_id: str, limit: int = 50) -> list[ImportJob]:
        # dict は作成順 -> 逆順で新しい順
        with self._lock:
            jobs = [j for j in reversed(list(self.jobs.values())) if j.actor_id == actor_id]
        return jobs[:limit]
