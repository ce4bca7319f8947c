"""
neuralhash.schemas — Supported document types and their credential fields.
"""

import re
from typing import Optional

DOCUMENT_SCHEMAS: dict[str, tuple[str, ...]] = {
    "10th Marksheet": ("student_name", "board_name", "roll_number", "year_of_passing"),
    "12th Marksheet": ("student_name", "board_name", "roll_number", "stream"),
    "Aadhaar": ("full_name", "aadhaar_number", "date_of_birth", "gender", "address"),
    "Passport": ("full_name", "passport_number", "nationality", "date_of_birth", "date_of_expiry"),
    "PAN": ("full_name", "pan_number", "date_of_birth", "father_name"),
    "Voter ID": ("full_name", "voter_id_number", "gender", "address"),
    "Driving License": ("full_name", "license_number", "date_of_birth", "date_of_expiry", "vehicle_class"),
    "UG Marksheet": ("student_name", "university_name", "registration_number", "course_name", "cgpa_or_percentage"),
    "PG Marksheet": ("student_name", "university_name", "registration_number", "course_name", "cgpa_or_percentage"),
    "Diploma Certificate": ("student_name", "institute_name", "certificate_number", "course_name", "year_of_passing"),
}

DOCUMENT_TYPE_OPTIONS = tuple(DOCUMENT_SCHEMAS)

# (keyword test, document type), checked in order; first match wins.
_KEYWORD_RULES = (
    (lambda n: "10th" in n or "secondary" in n, "10th Marksheet"),
    (lambda n: "12th" in n or "highersecondary" in n, "12th Marksheet"),
    (lambda n: "aadhaar" in n or "aadhar" in n, "Aadhaar"),
    (lambda n: "passport" in n, "Passport"),
    (lambda n: n == "pan" or "pancard" in n, "PAN"),
    (lambda n: "voter" in n, "Voter ID"),
    (lambda n: "drivinglicense" in n or "dl" in n, "Driving License"),
    (lambda n: "ug" in n or "bachelor" in n, "UG Marksheet"),
    (lambda n: "pg" in n or "master" in n, "PG Marksheet"),
    (lambda n: "diploma" in n, "Diploma Certificate"),
)


def _squash(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.strip().lower())


def normalize_document_type(raw_type: str) -> Optional[str]:
    """Map a free-text document type (e.g. LLM output) to a supported type."""
    normalized = _squash(raw_type or "")
    if not normalized:
        return None

    for matches, doc_type in _KEYWORD_RULES:
        if matches(normalized):
            return doc_type

    for doc_type in DOCUMENT_TYPE_OPTIONS:
        if _squash(doc_type) == normalized:
            return doc_type
    return None


def schema_fields(doc_type: str) -> tuple[str, ...]:
    try:
        return DOCUMENT_SCHEMAS[doc_type]
    except KeyError:
        raise ValueError(f"Unsupported document type: {doc_type!r}") from None


def format_field_label(field_key: str) -> str:
    """'date_of_birth' -> 'Date Of Birth'."""
    return " ".join(part[:1].upper() + part[1:] for part in field_key.split("_"))
