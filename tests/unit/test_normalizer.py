from __future__ import annotations

import pytest

from case_import.models.case_fields import CaseFields
from case_import.services.normalizer import (
    canonical_field_name,
    normalize_case_fields,
    normalize_phone,
    title_case,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1234567890", "+11234567890"),  # 10 digits -> +1
        ("+1 234 567 890", "+1234567890"),  # already has +, only cleaned
        ("+1234567890", "+1234567890"),
        ("(555) 123-4567", "+15551234567"),
        ("919876543210", "+919876543210"),  # 12 digits starting 91
        ("15551234567", "+15551234567"),  # 11 digits starting 1
        ("4930123456", "+14930123456"),  # 10 digits wins over any country guess
        ("442071234567", "+442071234567"),  # fallback: just prepend +
        ("12+34", "+1234"),  # only a leading + is kept
    ],
)
def test_normalize_phone(raw: str, expected: str):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["1234567890", "+1 234 567 890", "919876543210", "abc", "0044 20 7123", "+", "12+34"],
)
def test_normalize_phone_is_idempotent(raw: str):
    once = normalize_phone(raw)
    assert normalize_phone(once) == once


def test_title_case():
    assert title_case("john doe") == "John Doe"
    assert title_case("mARY o'BRIEN") == "Mary O'brien"
    # 連続スペースは保持
    assert title_case("ann  lee") == "Ann  Lee"


@pytest.mark.parametrize(
    "column, expected",
    [
        ("case_id", "case_id"),
        ("caseId", "case_id"),
        ("Case ID", "case_id"),
        ("applicantName", "applicant_name"),
        ("DOB", "date_of_birth"),
        ("dateOfBirth", "date_of_birth"),
        ("phone_number", "phone"),
        ("unrelated", None),
    ],
)
def test_canonical_field_name(column: str, expected: str | None):
    assert canonical_field_name(column) == expected


def test_normalize_case_fields_trims_and_uppercases():
    fields = normalize_case_fields(
        {
            "case_id": "  C-1001  ",
            "applicant_name": "  john doe  ",
            "dob": "1990-01-01",
            "category": "tax",
            "priority": "high",
        }
    )
    assert fields.case_id == "C-1001"
    assert fields.applicant_name == "john doe"
    assert fields.date_of_birth == "1990-01-01"
    assert fields.category == "TAX"
    assert fields.priority == "HIGH"
    assert fields.email is None
    assert fields.phone is None


def test_normalize_case_fields_aliases():
    fields = normalize_case_fields(
        {"caseId": "C-9", "applicantName": "Ann", "dateOfBirth": "2000-02-02", "category": "permit"}
    )
    assert (fields.case_id, fields.applicant_name, fields.date_of_birth, fields.category) == (
        "C-9",
        "Ann",
        "2000-02-02",
        "PERMIT",
    )


def test_normalize_blank_optionals_are_absent():
    fields = normalize_case_fields({"email": "   ", "phone": "", "priority": " "})
    assert fields.email is None
    assert fields.phone is None
    assert fields.priority is None
    assert fields.effective_priority == "LOW"


def test_normalize_phone_applied():
    fields = normalize_case_fields({"phone": " 555-123-4567 "})
    assert fields.phone == "+15551234567"


def test_normalize_never_fails_on_garbage():
    fields = normalize_case_fields({"case_id": None, "dob": 12345, "category": None, "other": object()})
    assert fields.case_id == ""
    assert fields.date_of_birth == "12345"
    assert fields.category == ""


def test_normalize_is_idempotent_on_case_fields(valid_fields: CaseFields):
    once = normalize_case_fields(valid_fields)
    assert normalize_case_fields(once) == once
    assert once == valid_fields
