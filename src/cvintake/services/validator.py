"""
Field validation for the personal-info and email steps.

validate(field, value, uploads) is a pure function: the same inputs always
give the same message (or None). Which errors are *shown* is the caller's
business (touched flags); this module only decides what is wrong.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from cvintake.errors import FieldValidationError
from cvintake.models.submission import PersonalInfo, PreferredLanguage
from cvintake.models.upload import UploadErrorKind, UploadRecord

# Fixed order: validation passes and first-invalid focus both follow it
FIELD_ORDER: tuple[str, ...] = (
    "first_name",
    "last_name",
    "date_of_birth",
    "address",
    "phone",
    "linkedin",
    "preferred_language",
    "cv",
)

REQUIRED_FIELDS = frozenset({"first_name", "last_name", "phone"})

MIN_BIRTH_YEAR = 1930
MAX_BIRTH_YEAR = 2020

_PHONE_RE    = re.compile(r"^[+\d\s()-]{7,20}$")
_YEAR_RE     = re.compile(r"^(\d{4})-")
_LINKEDIN_RE = re.compile(r"^https?://(www\.)?linkedin\.com/.+", re.IGNORECASE)
_EMAIL_RE    = re.compile(r"^\S+@\S+\.\S+$")
_NAME_STRIP_RE = re.compile(r"[^A-Za-z\- ]+")

_LANGUAGES = {lang.value for lang in PreferredLanguage}

MSG_REQUIRED       = "Please fill out this field."
MSG_NAME_SHORT     = "Must be at least 2 characters."
MSG_PHONE          = "Enter a valid phone number."
MSG_DATE           = "Enter a valid date."
MSG_YEAR_RANGE     = f"Year must be between {MIN_BIRTH_YEAR} and {MAX_BIRTH_YEAR}."
MSG_LINKEDIN       = "Enter a valid LinkedIn URL."
MSG_LANGUAGE       = "Select a valid language."
MSG_CV_TOO_LARGE   = "One or more files exceed the 10 MB limit."
MSG_CV_FAILED      = "One or more files failed to upload."
MSG_CV_IN_PROGRESS = "Please wait for uploads to finish."
MSG_EMAIL          = "Enter a valid email."


@dataclass(frozen=True)
class UploadSnapshot:
    """Read-only view of the upload tracker at one instant."""
    records: tuple[UploadRecord, ...] = ()
    cv_urls: tuple[str, ...] = ()

    @property
    def has_errors(self) -> bool:
        return any(r.error for r in self.records)

    @property
    def in_flight(self) -> bool:
        return any(r.in_flight for r in self.records)

    @property
    def progress(self) -> int:
        """Mean progress across all records, rounded."""
        if not self.records:
            return 0
        return round(sum(r.progress for r in self.records) / len(self.records))


EMPTY_UPLOADS = UploadSnapshot()


@dataclass
class ValidationReport:
    errors: dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not any(self.errors.values())

    @property
    def first_invalid(self) -> Optional[str]:
        for name in FIELD_ORDER:
            if self.errors.get(name):
                return name
        return None


# ---------------------------------------------------------------------------
# Input sanitising (runs before validation, never after)
# ---------------------------------------------------------------------------

def sanitize_name(value: str, previous: str = "") -> str:
    """
    Filter a name keystroke: letters, hyphen and space only, no leading space.

    A single space typed into an empty field is ignored.
    """
    if value == " " and not previous:
        return previous
    filtered = _NAME_STRIP_RE.sub("", value or "")
    return filtered.lstrip()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate(name: str, value: Optional[str], uploads: UploadSnapshot = EMPTY_UPLOADS) -> Optional[str]:
    """Return the error message for one field, or None when it is valid."""
    if name == "cv":
        return _validate_cv(uploads)

    text = value if isinstance(value, str) else ("" if value is None else str(value))

    if name in REQUIRED_FIELDS and not text.strip():
        return MSG_REQUIRED

    if name in ("first_name", "last_name"):
        if len(text.strip()) < 2:
            return MSG_NAME_SHORT
        return None

    if name == "phone":
        return None if _PHONE_RE.match(text) else MSG_PHONE

    if name == "date_of_birth":
        return _validate_date_of_birth(text)

    if name == "linkedin":
        if text and not _LINKEDIN_RE.match(text):
            return MSG_LINKEDIN
        return None

    if name == "preferred_language":
        if text and text not in _LANGUAGES:
            return MSG_LANGUAGE
        return None

    # address and anything unknown: no rule
    return None


def validate_all(form: PersonalInfo, uploads: UploadSnapshot = EMPTY_UPLOADS) -> ValidationReport:
    """Validate every field in FIELD_ORDER."""
    return ValidationReport(
        errors={name: validate(name, form.value_of(name), uploads) for name in FIELD_ORDER}
    )


def ensure_valid(form: PersonalInfo, uploads: UploadSnapshot = EMPTY_UPLOADS) -> None:
    """
    Raise for the first invalid field in FIELD_ORDER.

    For callers that hold a form outside the step gate, e.g. a payload about
    to be stored.

    Raises:
        FieldValidationError: With the field name and its message.
    """
    report = validate_all(form, uploads)
    first = report.first_invalid
    if first is not None:
        raise FieldValidationError(first, report.errors[first])


def validate_email(value: Optional[str]) -> Optional[str]:
    """Email is optional; when given it needs a local part, an @ and a dotted domain."""
    if not value:
        return None
    return None if _EMAIL_RE.match(value) else MSG_EMAIL


def _validate_date_of_birth(text: str) -> Optional[str]:
    if not text:
        return MSG_REQUIRED
    match = _YEAR_RE.match(text)
    if not match:
        return MSG_DATE
    year = int(match.group(1))
    if year < MIN_BIRTH_YEAR or year > MAX_BIRTH_YEAR:
        return MSG_YEAR_RANGE
    return None


def _validate_cv(uploads: UploadSnapshot) -> Optional[str]:
    # Optional: nothing attached is fine
    if not uploads.cv_urls and not uploads.records:
        return None
    if any(r.error == UploadErrorKind.TOO_LARGE for r in uploads.records):
        return MSG_CV_TOO_LARGE
    if uploads.has_errors:
        return MSG_CV_FAILED
    # 0 (queued) and 100 (done) are resting states
    if any(r.in_flight for r in uploads.records):
        return MSG_CV_IN_PROGRESS
    return None
