from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any, Union

from ..db.case_store import CaseStore, DuplicateError, StoreError
from ..logging.error_log import ErrorLogBuffer
from ..models.case_fields import CaseFields
from ..models.commit_outcome import BatchCommitResult, CommitOutcome, CommitSummary, Committed, Rejected
from ..models.config_models import DEFAULT_CHUNK_SIZE, DEFAULT_MAX_WORKERS
from ..models.import_job import AUDIT_ACTION_IMPORT, JobStatus
from ..models.processing_result import ChunkStatsAccumulator
from ..models.validated_row import ValidatedRow
from .normalizer import normalize_case_fields
from .progress import ProgressTracker
from .validator import validate

"""Batch commit of staged rows into the Case Store.

Flow:
1. Reject an empty submission (EmptyBatch) before anything is written
2. Create one ImportJob for the submission
3. Walk the rows in fixed-size chunks, strictly one chunk after another; the
   rows of a chunk run on a bounded thread pool and the chunk is joined before
   the next one starts
4. Per row: normalize -> validate -> duplicate check -> create case -> audit
   entry. Any failure becomes a Rejected ledger entry for that row only
5. Update the ImportJob once with the final counts

Cancellation is honoured only between chunks, so the committed rows are always
a clean prefix of the submission.
"""

__all__ = [
    "BatchCommitter",
    "EmptyBatch",
    "DEFAULT_FILE_NAME",
    "DUPLICATE_MESSAGE",
    "CANCELLED_MESSAGE",
]

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "unknown.csv"
DUPLICATE_MESSAGE = "case_id already exists"
CANCELLED_MESSAGE = "import cancelled before this row was committed"
INVALID_PAYLOAD_MESSAGE = "row must be an object of field values"

SubmittedRow = Union[ValidatedRow, CaseFields, Mapping[str, Any]]


class EmptyBatch(Exception):
    """Raised when a commit is requested with no rows."""


@dataclass(frozen=True)
class _Submission:
    position: int  # 投入順 (ledger の並び順)
    row_index: int | None
    payload: CaseFields | Mapping[str, Any] | None


def _coerce_row_index(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_submission(position: int, row: Any) -> _Submission:
    """Accept a ValidatedRow, CaseFields, or an editable row mapping.

    Mappings may be ``{"rowIndex": n, "data": {...}}`` or flat field values
    (optionally carrying ``rowIndex``).
    """
    if isinstance(row, ValidatedRow):
        return _Submission(position, row.row_index, row.fields)
    if isinstance(row, CaseFields):
        return _Submission(position, None, row)
    if isinstance(row, Mapping):
        row_index = _coerce_row_index(row.get("rowIndex", row.get("row_index")))
        data = row.get("data")
        payload = data if isinstance(data, Mapping) else row
        return _Submission(position, row_index, payload)
    return _Submission(position, None, None)


def _chunks(items: Sequence[_Submission], size: int) -> Iterator[Sequence[_Submission]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchCommitter:
    """Commits rows to a CaseStore in sequential, bounded-concurrency chunks."""

    def __init__(
        self,
        store: CaseStore,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_workers: int = DEFAULT_MAX_WORKERS,
        error_log: ErrorLogBuffer | None = None,
        show_progress: bool | None = None,
        today: date | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._store = store
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        self._error_log = error_log
        # None = TTY 判定に従う
        self._show_progress = show_progress
        self._today = today

    def commit(
        self,
        rows: Sequence[SubmittedRow],
        file_name: str | None,
        actor_id: str,
        cancel_event: threading.Event | None = None,
    ) -> BatchCommitResult:
        """Commit rows and return the complete ledger.

        Raises:
            EmptyBatch: no rows were submitted (no ImportJob is created)
            StoreError: the ImportJob itself could not be created
        """
        rows = list(rows)
        if not rows:
            raise EmptyBatch("no rows provided")
        file_name = file_name or DEFAULT_FILE_NAME

        start_time = datetime.now(UTC)
        job = self._store.create_import_job(file_name, len(rows), actor_id)
        logger.info("import job=%s file=%s rows=%d created", job.id, file_name, len(rows))

        submissions = [_to_submission(pos, row) for pos, row in enumerate(rows)]
        outcomes: list[CommitOutcome | None] = [None] * len(submissions)
        stats = ChunkStatsAccumulator()
        cancelled = False

        workers = min(self.max_workers, self.chunk_size)
        with ProgressTracker(len(submissions), enabled=self._show_progress) as progress, \
                ThreadPoolExecutor(max_workers=workers, thread_name_prefix="case-commit") as pool:
            for chunk_no, chunk in enumerate(_chunks(submissions, self.chunk_size), start=1):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    logger.warning(
                        "import job=%s cancelled before chunk %d; %d rows not attempted",
                        job.id,
                        chunk_no,
                        sum(1 for o in outcomes if o is None),
                    )
                    break
                chunk_start = time.perf_counter()
                futures: dict[Future[CommitOutcome], _Submission] = {
                    pool.submit(self._commit_one, sub, job.id, actor_id): sub for sub in chunk
                }
                # チャンク境界: 全行の確定を待ってから次へ
                wait(futures)
                for future, sub in futures.items():
                    outcomes[sub.position] = self._resolve(future, sub)
                stats.add_chunk_time(time.perf_counter() - chunk_start)

                progress.advance(len(chunk))
                committed = sum(1 for o in outcomes if isinstance(o, Committed))
                failed = sum(1 for o in outcomes if isinstance(o, Rejected))
                progress.set_postfix(success=committed, failed=failed)
                logger.debug(
                    "import job=%s chunk=%d rows=%d success_so_far=%d failed_so_far=%d",
                    job.id,
                    chunk_no,
                    len(chunk),
                    committed,
                    failed,
                )

        ledger: list[CommitOutcome] = []
        for sub, outcome in zip(submissions, outcomes, strict=True):
            if outcome is None:
                outcome = Rejected(
                    row_index=sub.row_index,
                    data=self._data_of(sub),
                    reasons=(CANCELLED_MESSAGE,),
                    error_type="CANCELLED",
                )
            ledger.append(outcome)

        success = sum(1 for o in ledger if isinstance(o, Committed))
        failed = len(ledger) - success
        status = JobStatus.CANCELLED if cancelled else JobStatus.COMPLETED
        try:
            self._store.update_import_job(job.id, success, failed, status)
        except Exception as e:  # ledger は返す (ジョブ作成後は全体を失敗させない)
            logger.error("import job=%s final update failed: %s", job.id, e)

        self._write_error_log(file_name, ledger)

        end_time = datetime.now(UTC)
        return BatchCommitResult(
            import_job_id=job.id,
            file_name=file_name,
            outcomes=ledger,
            summary=CommitSummary(total=len(ledger), success=success, failed=failed),
            stats=stats.build(start_time, end_time, len(ledger)),
            cancelled=cancelled,
        )

    @staticmethod
    def _data_of(sub: _Submission) -> dict[str, Any]:
        if isinstance(sub.payload, CaseFields):
            return sub.payload.to_dict()
        if isinstance(sub.payload, Mapping):
            return dict(sub.payload)
        return {}

    def _resolve(self, future: Future[CommitOutcome], sub: _Submission) -> CommitOutcome:
        exc = future.exception()
        if exc is None:
            return future.result()
        # _commit_one は例外を握って Rejected を返すが、念のため
        logger.error("row=%s worker failed: %s", sub.row_index, exc)
        return Rejected(sub.row_index, self._data_of(sub), (str(exc) or type(exc).__name__,), "UNEXPECTED_ERROR")

    def _commit_one(self, sub: _Submission, job_id: str, actor_id: str) -> CommitOutcome:
        if sub.payload is None:
            return Rejected(sub.row_index, {}, (INVALID_PAYLOAD_MESSAGE,), "INVALID_PAYLOAD")

        fields = normalize_case_fields(sub.payload)
        verdict = validate(fields, sub.row_index or 0, today=self._today)
        if not verdict.is_valid:
            return Rejected(sub.row_index, fields.to_dict(), verdict.errors, "VALIDATION_ERROR")

        duplicate = Rejected(sub.row_index, fields.to_dict(), (DUPLICATE_MESSAGE,), "DUPLICATE_CASE_ID")
        try:
            if self._store.find_case_by_case_id(fields.case_id) is not None:
                return duplicate
            record = self._store.create_case(fields, import_job_id=job_id)
            self._store.create_audit_log_entry(
                actor_id, record.id, AUDIT_ACTION_IMPORT, {"import_job_id": job_id}
            )
        except DuplicateError:
            # 事前チェック後の競合: ストアの一意制約が最終判定
            return duplicate
        except StoreError as e:
            logger.warning("row=%s case_id=%s store error: %s", sub.row_index, fields.case_id, e)
            return Rejected(sub.row_index, fields.to_dict(), (str(e) or "store error",), "STORE_ERROR")
        except Exception as e:
            logger.warning(
                "row=%s case_id=%s unexpected error: %s", sub.row_index, fields.case_id, e, exc_info=True
            )
            return Rejected(sub.row_index, fields.to_dict(), (str(e) or type(e).__name__,), "UNEXPECTED_ERROR")
        return Committed(row_index=sub.row_index, case_id=record.case_id)

    def _write_error_log(self, file_name: str, ledger: list[CommitOutcome]) -> None:
        if self._error_log is None:
            return
        for outcome in ledger:
            if isinstance(outcome, Rejected):
                self._error_log.append_rejection(file_name, outcome)
        try:
            path = self._error_log.flush()
        except OSError as e:
            logger.warning("could not write error log: %s", e)
            return
        if path is not None and any(isinstance(o, Rejected) for o in ledger):
            logger.info("rejected rows written to %s", path)
