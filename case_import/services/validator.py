from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from ..models.case_fields import CaseCategory, CaseFields, CasePriority
from ..models.validated_row import ValidatedRow
from .normalizer import normalize_phone

"""Row validation rules.

validate() is a pure function: every rule runs, messages accumulate in a fixed
order, and the same input always yields the same verdict (the "today" bound is
injectable for that reason). Messages start with the field name so callers can
filter them, e.g. every date-of-birth message contains "dob".
"""

__all__ = [
    "ValidationResult",
    "validate",
    "validate_row",
    "parse_dob",
    "MIN_DOB",
]

MIN_DOB = date(1900, 1, 1)

# アンカーなし: fullmatch で照合する
EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
# E.164: '+' then 2-15 digits, first digit 1-9
PHONE_RE = re.compile(r"\+[1-9]\d{1,14}")

_CATEGORY_LIST = ", ".join(CaseCategory.values())
_PRIORITY_LIST = ", ".join(CasePriority.values())


@dataclass(frozen=True)
class ValidationResult:
    errors: tuple[str, ...]

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


def parse_dob(value: str) -> date | None:
    """Parse an ISO calendar date; None when it is not one."""
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _dob_errors(value: str, today: date) -> list[str]:
    if not value or not value.strip():
        return ["dob is required"]
    dob = parse_dob(value)
    if dob is None:
        return ["dob must be a valid ISO date (YYYY-MM-DD)"]
    if dob < MIN_DOB:
        return [f"dob must be on or after {MIN_DOB.isoformat()}"]
    if dob > today:
        return ["dob cannot be in the future"]
    return []


def validate(fields: CaseFields, row_index: int, today: date | None = None) -> ValidationResult:
    """Check one normalized row against the domain rules.

    row_index is not used by the rules themselves; it is accepted so callers
    can validate a row together with its provenance.
    """
    today = today or date.today()
    errors: list[str] = []

    if not fields.case_id or not fields.case_id.strip():
        errors.append("case_id is required")

    if not fields.applicant_name or not fields.applicant_name.strip():
        errors.append("applicant_name is required")

    errors.extend(_dob_errors(fields.date_of_birth, today))

    if fields.email and fields.email.strip():
        if not EMAIL_RE.fullmatch(fields.email):
            errors.append("email must be a valid email address")

    if fields.phone and fields.phone.strip():
        if not PHONE_RE.fullmatch(normalize_phone(fields.phone)):
            errors.append("phone must be in E.164 format (+[country code][number])")

    category = (fields.category or "").strip()
    if not category:
        errors.append(f"category is required (one of: {_CATEGORY_LIST})")
    elif category not in CaseCategory.values():
        errors.append(f"category must be one of: {_CATEGORY_LIST}")

    priority = (fields.priority or "").strip()
    if priority and priority not in CasePriority.values():
        errors.append(f"priority must be one of: {_PRIORITY_LIST}")

    return ValidationResult(errors=tuple(errors))


def validate_row(fields: CaseFields, row_index: int, today: date | None = None) -> ValidatedRow:
    result = validate(fields, row_index, today=today)
    return ValidatedRow(row_index=row_index, fields=fields, errors=result.errors)
