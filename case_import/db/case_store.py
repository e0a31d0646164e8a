from __future__ import annotations

from typing import Any, Protocol

from ..models.case_fields import CaseFields
from ..models.import_job import AuditLogEntry, CaseRecord, ImportJob, JobStatus

"""Case Store collaborator interface.

The pipeline never talks to a database directly; it goes through an object
with this shape. Each call is expected to be atomic on its own. The store's
unique constraint on case_id is the final word on duplicates: create_case must
raise DuplicateError when it is violated, whatever the caller checked before.
"""

__all__ = [
    "CaseStore",
    "DuplicateError",
    "StoreError",
]


class StoreError(Exception):
    """Infrastructure failure talking to the Case Store."""


class DuplicateError(StoreError):
    """A case with the same case_id already exists."""

    def __init__(self, case_id: str, message: str | None = None) -> None:
        super().__init__(message or f"case_id already exists: {case_id}")
        self.case_id = case_id


class CaseStore(Protocol):
    def create_case(self, fields: CaseFields, import_job_id: str | None = None) -> CaseRecord: ...

    def find_case_by_case_id(self, case_id: str) -> CaseRecord | None: ...

    def create_import_job(self, file_name: str, total_rows: int, actor_id: str) -> ImportJob: ...

    def update_import_job(
        self, job_id: str, success_rows: int, failed_rows: int, status: JobStatus
    ) -> ImportJob: ...

    def create_audit_log_entry(
        self, actor_id: str, case_record_id: str, action: str, details: dict[str, Any] | None = None
    ) -> AuditLogEntry: ...

    def get_import_job(self, job_id: str) -> ImportJob | None: ...

    def list_import_jobs(self, actor_id: str, limit: int = 50) -> list[ImportJob]: ...
