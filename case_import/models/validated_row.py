from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .case_fields import CaseFields

"""ValidatedRow model.

A ValidatedRow pairs a normalized CaseFields with the validator's verdict.
``is_valid`` is derived from ``errors`` and cannot be set on its own.
"""

__all__ = [
    "ValidatedRow",
]


@dataclass(frozen=True)
class ValidatedRow:
    """One staged row after normalization and validation.

    row_index is the 1-based line number in the uploaded file; the header is
    line 1, so the first data row is 2.
    """
    row_index: int
    fields: CaseFields
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowIndex": self.row_index,
            "data": self.fields.to_dict(),
            "errors": list(self.errors),
            "isValid": self.is_valid,
        }
