from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..db.case_store import CaseStore
from ..logging.error_log import ErrorLogBuffer
from ..models.commit_outcome import BatchCommitResult
from ..models.config_models import ImportConfig
from ..models.validated_row import ValidatedRow
from ..parsing.table_parser import parse_table
from .committer import DEFAULT_FILE_NAME, BatchCommitter
from .staging import BulkFix, StagingSet

"""Import session: one upload's lifecycle from preview to commit.

The session owns the StagingSet. It is created by upload(), changed only
through edit_row()/fix_all(), and discarded by reset() or once commit()
returns. commit_payload() serves the stateless batch-commit contract, where
the caller sends the rows back itself.
"""

__all__ = [
    "ImportSession",
    "UploadRejected",
    "NoStagedRows",
    "UploadResponse",
    "check_upload",
    "commit_payload",
]

logger = logging.getLogger(__name__)


class UploadRejected(Exception):
    """Upload refused before parsing (too large or not a delimited file)."""


class NoStagedRows(Exception):
    """An operation needs staged rows but nothing has been uploaded."""


@dataclass(frozen=True)
class UploadResponse:
    rows: list[ValidatedRow]
    columns: list[str]

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [r.to_dict() for r in self.rows],
            "totalRows": self.total_rows,
            "columns": list(self.columns),
        }


def check_upload(content: bytes, file_name: str, content_type: str | None, config: ImportConfig) -> None:
    """Enforce the size ceiling and the content-type / .csv extension rule."""
    limit = config.upload.max_bytes
    if len(content) > limit:
        raise UploadRejected(f"file is too large: {len(content)} bytes (limit {limit})")
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    allowed = {t.lower() for t in config.upload.content_types}
    if media_type in allowed or file_name.lower().endswith(".csv"):
        return
    raise UploadRejected(
        f"only CSV files are allowed (got content type {content_type!r} for {file_name!r})"
    )


def _build_committer(store: CaseStore, config: ImportConfig, today: date | None) -> BatchCommitter:
    return BatchCommitter(
        store,
        chunk_size=config.commit.chunk_size,
        max_workers=config.commit.max_workers,
        error_log=ErrorLogBuffer(config.error_log_dir),
        today=today,
    )


class ImportSession:
    def __init__(
        self, store: CaseStore, config: ImportConfig, actor_id: str, today: date | None = None
    ) -> None:
        self._store = store
        self._config = config
        self.actor_id = actor_id
        self._today = today
        self.staging: StagingSet | None = None

    def _require_staging(self) -> StagingSet:
        if self.staging is None:
            raise NoStagedRows("no upload is staged in this session")
        return self.staging

    def upload(self, content: bytes, file_name: str, content_type: str | None = None) -> UploadResponse:
        """Parse, normalize and validate an upload; replaces any staged rows.

        Raises UploadRejected or ParseError; on either, the previous staging
        set is left untouched.
        """
        check_upload(content, file_name, content_type, self._config)
        table = parse_table(content)
        self.staging = StagingSet.from_table(table, file_name=file_name, today=self._today)
        logger.info(
            "upload file=%s rows=%d invalid=%d",
            file_name,
            len(self.staging),
            len(self.staging.invalid_rows()),
        )
        return UploadResponse(rows=self.staging.rows, columns=self.staging.columns)

    def edit_row(self, position: int, changes: Mapping[str, str | None]) -> ValidatedRow:
        return self._require_staging().edit_row(position, changes)

    def fix_all(self, fix: str | BulkFix) -> StagingSet:
        return self._require_staging().fix_all(fix)

    def commit(self, cancel_event: threading.Event | None = None) -> BatchCommitResult:
        """Commit the currently valid rows, then discard the staging set."""
        staging = self._require_staging()
        committer = _build_committer(self._store, self._config, self._today)
        result = committer.commit(
            staging.valid_rows(), staging.file_name, self.actor_id, cancel_event=cancel_event
        )
        self.staging = None
        return result

    def reset(self) -> None:
        self.staging = None


def commit_payload(
    store: CaseStore,
    payload: Mapping[str, Any],
    actor_id: str,
    config: ImportConfig,
    today: date | None = None,
) -> dict[str, Any]:
    """Batch-commit contract: ``{rows, fileName}`` in, ledger dict out.

    Rows may be ValidatedRow dicts or raw editable rows; each is normalized and
    validated again before commit. Raises EmptyBatch for a non-mapping payload
    or a missing or empty ``rows`` list.
    """
    if not isinstance(payload, Mapping):
        payload = {}
    rows = payload.get("rows")
    if not isinstance(rows, list):
        rows = []
    file_name = payload.get("fileName") or DEFAULT_FILE_NAME
    committer = _build_committer(store, config, today)
    return committer.commit(rows, file_name, actor_id).to_dict()
