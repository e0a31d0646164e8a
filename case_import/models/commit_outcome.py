from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .processing_result import CommitStats

"""Commit ledger models.

Every row submitted to a batch commit ends up as exactly one CommitOutcome:
either Committed or Rejected. The row_index travels unchanged from the upload
so a rejected row can be traced back to its line in the source file.
"""

__all__ = [
    "Committed",
    "Rejected",
    "CommitOutcome",
    "CommitSummary",
    "BatchCommitResult",
]


@dataclass(frozen=True)
class Committed:
    row_index: int | None
    case_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"rowIndex": self.row_index, "caseId": self.case_id}


@dataclass(frozen=True)
class Rejected:
    """A row that was not committed.

    Attributes:
        row_index: Source line number (None when the submitted payload had none)
        data: Field values as they were when the row was rejected
        reasons: Human-readable messages (validator errors or store failure)
        error_type: UPPER_SNAKE classification, mirrored into the error log
    """
    row_index: int | None
    data: dict[str, Any]
    reasons: tuple[str, ...]
    error_type: str = "VALIDATION_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"rowIndex": self.row_index, "data": self.data, "errors": list(self.reasons)}


CommitOutcome = Union[Committed, Rejected]


@dataclass(frozen=True)
class CommitSummary:
    total: int
    success: int
    failed: int

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "success": self.success, "failed": self.failed}


@dataclass(frozen=True)
class BatchCommitResult:
    """Ledger and summary for one batch commit (ordered by submission)."""
    import_job_id: str
    file_name: str
    outcomes: list[CommitOutcome]
    summary: CommitSummary
    stats: CommitStats | None = None
    cancelled: bool = False

    @property
    def committed(self) -> list[Committed]:
        return [o for o in self.outcomes if isinstance(o, Committed)]

    @property
    def rejected(self) -> list[Rejected]:
        return [o for o in self.outcomes if isinstance(o, Rejected)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "importJobId": self.import_job_id,
            "results": {
                "success": [o.to_dict() for o in self.committed],
                "failed": [o.to_dict() for o in self.rejected],
            },
            "summary": self.summary.to_dict(),
        }
