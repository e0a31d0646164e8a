from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from ..models.case_fields import CaseFields

"""Field normalization.

Turns a raw row (any of the accepted column spellings) into CaseFields.
Normalization never fails: it produces a best-effort record and leaves the
verdict to the validator. The same helpers back the staging bulk fixes and the
committer, so preview and commit always agree.
"""

__all__ = [
    "normalize_case_fields",
    "normalize_phone",
    "title_case",
    "trim",
    "canonical_field_name",
]

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NOT_PHONE_CHAR = re.compile(r"[^\d+]")

# 列名 (英数字のみ・小文字化) -> CaseFields 属性名
_ALIASES: dict[str, str] = {
    "caseid": "case_id",
    "applicantname": "applicant_name",
    "applicant": "applicant_name",
    "name": "applicant_name",
    "dob": "date_of_birth",
    "dateofbirth": "date_of_birth",
    "birthdate": "date_of_birth",
    "email": "email",
    "emailaddress": "email",
    "phone": "phone",
    "phonenumber": "phone",
    "category": "category",
    "priority": "priority",
}


def canonical_field_name(column: str) -> str | None:
    """Map a column header onto a CaseFields attribute name (None if unknown)."""
    return _ALIASES.get(_NON_ALNUM.sub("", str(column).lower()))


def trim(value: str | None) -> str | None:
    return value.strip() if value is not None else None


def title_case(value: str | None) -> str | None:
    """Lowercase, then capitalize the first letter of every space-separated word."""
    if not value:
        return value
    return " ".join(word[:1].upper() + word[1:] for word in value.lower().split(" "))


def normalize_phone(phone: str) -> str:
    """Best-effort E.164 normalization (not a telecom-grade parse).

    Keeps digits and a leading '+'. Without a leading '+', a 10 digit number
    is assumed to be North American (+1); 12 digits starting with 91 and 11
    digits starting with 1 already carry their country code; anything else
    just gets '+' prepended. The validator decides whether the result is usable.
    """
    cleaned = _NOT_PHONE_CHAR.sub("", phone)
    has_plus = cleaned.startswith("+")
    digits = cleaned.replace("+", "")
    if has_plus:
        return "+" + digits
    if len(digits) == 10:
        return "+1" + digits
    if len(digits) == 12 and digits.startswith("91"):
        return "+" + digits
    if len(digits) == 11 and digits.startswith("1"):
        return "+" + digits
    return "+" + digits


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional(value: Any) -> str | None:
    text = _text(value)
    return text or None


def _collect(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the first non-blank value for each canonical field."""
    picked: dict[str, Any] = {}
    for column, value in raw.items():
        name = canonical_field_name(column)
        if name is None:
            continue
        if name not in picked or (_text(picked[name]) == "" and _text(value) != ""):
            picked[name] = value
    return picked


def normalize_case_fields(raw: Mapping[str, Any] | CaseFields) -> CaseFields:
    """Normalize a raw row (or re-normalize CaseFields; idempotent)."""
    if isinstance(raw, CaseFields):
        raw = raw.to_dict()
    values = _collect(raw)

    phone = _optional(values.get("phone"))
    priority = _optional(values.get("priority"))
    return CaseFields(
        case_id=_text(values.get("case_id")),
        applicant_name=_text(values.get("applicant_name")),
        date_of_birth=_text(values.get("date_of_birth")),
        email=_optional(values.get("email")),
        phone=normalize_phone(phone) if phone is not None else None,
        category=_text(values.get("category")).upper(),
        priority=priority.upper() if priority is not None else None,
    )
