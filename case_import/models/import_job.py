from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from .case_fields import CaseFields

"""Case Store records: ImportJob, CaseRecord, AuditLogEntry.

These are owned by the Case Store; the pipeline only asks the store to create
or update them and reads back what the store returns.
"""

__all__ = [
    "JobStatus",
    "ImportJob",
    "CaseRecord",
    "AuditLogEntry",
    "AUDIT_ACTION_IMPORT",
]

AUDIT_ACTION_IMPORT = "import"


class JobStatus(Enum):
    """ImportJob lifecycle.

    State transitions: processing → (completed | cancelled)

    - PROCESSING: job created, rows being committed
    - COMPLETED: every submitted row was attempted; failures only show in counts
    - CANCELLED: stopped at a chunk boundary; unstarted rows counted as failed
    """
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ImportJob:
    id: str
    file_name: str
    actor_id: str
    total_rows: int
    success_rows: int = 0
    failed_rows: int = 0
    status: JobStatus = JobStatus.PROCESSING
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "actorId": self.actor_id,
            "totalRows": self.total_rows,
            "successRows": self.success_rows,
            "failedRows": self.failed_rows,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class CaseRecord:
    """A committed case as returned by the store (``id`` is store-assigned)."""
    id: str
    case_id: str
    applicant_name: str
    date_of_birth: date
    category: str
    priority: str
    email: str | None = None
    phone: str | None = None
    import_job_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_fields(
        cls, record_id: str, fields: CaseFields, import_job_id: str | None, created_at: datetime | None = None
    ) -> CaseRecord:
        return cls(
            id=record_id,
            case_id=fields.case_id,
            applicant_name=fields.applicant_name,
            date_of_birth=date.fromisoformat(fields.date_of_birth),
            category=fields.category,
            priority=fields.effective_priority,
            email=fields.email or None,
            phone=fields.phone or None,
            import_job_id=import_job_id,
            created_at=created_at,
        )


@dataclass(frozen=True)
class AuditLogEntry:
    id: str
    actor_id: str
    case_record_id: str
    action: str
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
