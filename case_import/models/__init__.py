"""Domain models for the case import pipeline.

Rows flow through these types in order: CaseFields (normalized) ->
ValidatedRow (staged) -> CommitOutcome (ledger), while ImportJob, CaseRecord
and AuditLogEntry are the records the Case Store hands back.
"""

from .case_fields import FIELD_NAMES, CaseCategory, CaseFields, CasePriority
from .commit_outcome import BatchCommitResult, CommitOutcome, CommitSummary, Committed, Rejected
from .config_models import CommitConfig, DatabaseConfig, ImportConfig, UploadConfig
from .import_job import AuditLogEntry, CaseRecord, ImportJob, JobStatus
from .processing_result import ChunkStatsAccumulator, CommitStats
from .validated_row import ValidatedRow

__all__ = [
    # Case fields
    "CaseCategory",
    "CaseFields",
    "CasePriority",
    "FIELD_NAMES",
    # Staging / ledger
    "ValidatedRow",
    "Committed",
    "Rejected",
    "CommitOutcome",
    "CommitSummary",
    "BatchCommitResult",
    "CommitStats",
    "ChunkStatsAccumulator",
    # Store records
    "AuditLogEntry",
    "CaseRecord",
    "ImportJob",
    "JobStatus",
    # Configuration models
    "CommitConfig",
    "DatabaseConfig",
    "ImportConfig",
    "UploadConfig",
]
