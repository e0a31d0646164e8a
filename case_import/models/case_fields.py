from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any

"""CaseFields model and case enums.

CaseFields is the canonical record produced by the field normalizer. Values are
kept as strings (best effort) so that a row which fails validation can still be
shown, edited and re-validated; the validator decides whether they are usable.
"""

__all__ = [
    "CaseCategory",
    "CasePriority",
    "CaseFields",
    "FIELD_NAMES",
    "WIRE_KEYS",
]


class CaseCategory(Enum):
    """Allowed case categories."""
    TAX = "TAX"
    LICENSE = "LICENSE"
    PERMIT = "PERMIT"

    @classmethod
    def values(cls) -> list[str]:
        return [c.value for c in cls]


class CasePriority(Enum):
    """Allowed case priorities. LOW is applied when the column is empty."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def values(cls) -> list[str]:
        return [p.value for p in cls]


@dataclass(frozen=True)
class CaseFields:
    """Canonical case record derived from one uploaded row.

    Optional fields are None when the source cell was absent or blank.
    """
    case_id: str = ""
    applicant_name: str = ""
    date_of_birth: str = ""
    email: str | None = None
    phone: str | None = None
    category: str = ""
    priority: str | None = None

    @property
    def effective_priority(self) -> str:
        return self.priority or CasePriority.LOW.value

    def to_dict(self) -> dict[str, Any]:
        """Wire representation, keyed like the upload columns (``dob`` etc.)."""
        data = asdict(self)
        return {WIRE_KEYS[name]: value for name, value in data.items()}


FIELD_NAMES: tuple[str, ...] = tuple(f.name for f in fields(CaseFields))

# 属性名 -> アップロード/レスポンス上のキー名
WIRE_KEYS: dict[str, str] = {name: name for name in FIELD_NAMES}
WIRE_KEYS["date_of_birth"] = "dob"
