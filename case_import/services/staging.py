from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import replace
from datetime import date
from enum import Enum

from ..models.case_fields import FIELD_NAMES, CaseFields
from ..models.validated_row import ValidatedRow
from ..parsing.table_parser import ParsedTable
from .normalizer import normalize_case_fields, normalize_phone, title_case, trim
from .validator import validate_row

"""Staging set: the working copy of an upload between preview and commit.

Rows are addressed by position. The only ways to change a row are edit_row()
and fix_all(); both rebuild the affected ValidatedRow through the validator
before the new list replaces the old one, so no row ever carries a stale
verdict.
"""

__all__ = [
    "BulkFix",
    "StagingSet",
]

logger = logging.getLogger(__name__)

# ヘッダ行 = 1 行目、最初のデータ行 = 2 行目
FIRST_DATA_ROW_INDEX = 2


class BulkFix(Enum):
    """Named column-wide transforms offered to the staging UI."""
    TRIM = "trim"
    TITLE_CASE = "titleCase"
    NORMALIZE_PHONE = "normalizePhone"

    @classmethod
    def parse(cls, value: str | BulkFix) -> BulkFix:
        if isinstance(value, BulkFix):
            return value
        for fix in cls:
            if fix.value == value or fix.name.lower() == str(value).lower():
                return fix
        valid = ", ".join(f.value for f in cls)
        raise ValueError(f"unknown bulk fix {value!r} (expected one of: {valid})")


def _apply_fix(fields: CaseFields, fix: BulkFix) -> CaseFields:
    if fix is BulkFix.TRIM:
        return replace(
            fields,
            case_id=trim(fields.case_id),
            applicant_name=trim(fields.applicant_name),
            email=trim(fields.email),
            phone=trim(fields.phone),
        )
    if fix is BulkFix.TITLE_CASE:
        return replace(fields, applicant_name=title_case(fields.applicant_name))
    if fix is BulkFix.NORMALIZE_PHONE:
        if fields.phone:
            return replace(fields, phone=normalize_phone(fields.phone))
        return fields
    raise ValueError(f"unsupported bulk fix: {fix}")  # pragma: no cover


class StagingSet:
    """Ordered, position-addressed collection of ValidatedRow.

    Owned by a single import session; not safe for concurrent writers.
    """

    def __init__(
        self,
        rows: list[ValidatedRow],
        columns: list[str] | None = None,
        file_name: str = "unknown.csv",
        today: date | None = None,
    ) -> None:
        self._rows: list[ValidatedRow] = list(rows)
        self.columns: list[str] = list(columns or [])
        self.file_name = file_name
        # None = 検証時点の日付を使用
        self._today = today

    @classmethod
    def from_table(
        cls, table: ParsedTable, file_name: str = "unknown.csv", today: date | None = None
    ) -> StagingSet:
        rows = [
            validate_row(normalize_case_fields(raw), pos + FIRST_DATA_ROW_INDEX, today=today)
            for pos, raw in enumerate(table.rows)
        ]
        staging = cls(rows, columns=table.columns, file_name=file_name, today=today)
        logger.debug(
            "staged file=%s rows=%d valid=%d invalid=%d",
            file_name,
            len(staging),
            len(staging.valid_rows()),
            len(staging.invalid_rows()),
        )
        return staging

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[ValidatedRow]:
        return iter(list(self._rows))

    def __getitem__(self, position: int) -> ValidatedRow:
        return self._rows[position]

    @property
    def rows(self) -> list[ValidatedRow]:
        return list(self._rows)

    def valid_rows(self) -> list[ValidatedRow]:
        return [r for r in self._rows if r.is_valid]

    def invalid_rows(self) -> list[ValidatedRow]:
        return [r for r in self._rows if not r.is_valid]

    def edit_row(self, position: int, changes: Mapping[str, str | None]) -> ValidatedRow:
        """Replace fields on one row and re-validate it.

        Edited values are taken as already canonical; they are not normalized
        again. Raises IndexError for a bad position and KeyError for a field
        name that CaseFields does not have.
        """
        if not -len(self._rows) <= position < len(self._rows):
            raise IndexError(f"row position out of range: {position}")
        unknown = sorted(set(changes) - set(FIELD_NAMES))
        if unknown:
            raise KeyError(f"unknown case field(s): {unknown}")

        current = self._rows[position]
        edited = validate_row(replace(current.fields, **changes), current.row_index, today=self._today)
        rows = list(self._rows)
        rows[position] = edited
        self._rows = rows
        return edited

    def fix_all(self, fix: str | BulkFix) -> StagingSet:
        """Apply one bulk fix to every row, then re-validate every row."""
        fix = BulkFix.parse(fix)
        before = len(self.invalid_rows())
        self._rows = [
            validate_row(_apply_fix(r.fields, fix), r.row_index, today=self._today) for r in self._rows
        ]
        logger.info(
            "applied %s to %d rows (invalid %d -> %d)",
            fix.value,
            len(self._rows),
            before,
            len(self.invalid_rows()),
        )
        return self

    def to_dict(self) -> dict[str, object]:
        return {
            "rows": [r.to_dict() for r in self._rows],
            "totalRows": len(self._rows),
            "columns": list(self.columns),
        }
