from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.commit_outcome import Rejected
from ..models.error_record import ErrorRecord

"""Error log generation & buffering.

- JSON Lines with a fixed schema (no extra keys)
- One file per process run: `logs/errors-YYYYMMDD-HHMMSS.log` (UTC), created
  lazily on first flush
- Records are buffered and written in one go when the committer flushes
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    Only the committer's coordinating thread appends, so no locking is done.
    """
    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._logs_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def append_rejection(self, file_name: str, outcome: Rejected) -> None:
        self.append(
            ErrorRecord.create(
                file=file_name,
                row=outcome.row_index,
                error_type=outcome.error_type,
                message="; ".join(outcome.reasons),
            )
        )

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file.

        Returns the file path, or None when there was nothing to write (no
        empty log file is created).
        """
        if not self._records:
            return self._file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
