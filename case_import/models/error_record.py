from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

One ErrorRecord is written per rejected row (or per file-level failure, with
row=-1) to the JSON Lines error log. The key set is fixed:
timestamp, file, row, error_type, message.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Uploaded file name the row came from
        row: Row number (1-based, header = 1). Use -1 when the row is unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Rejection reasons joined with '; '
    """
    timestamp: str  # ISO8601 UTC
    file: str
    row: int  # 行番号。不明な場合 -1 許容
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, row: int | None, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp.

        A row of None is recorded as -1.
        """
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=-1 if row is None else row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
