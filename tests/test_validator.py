import pytest

from cvintake.errors import FieldValidationError
from cvintake.models.submission import PersonalInfo
from cvintake.models.upload import UploadErrorKind, UploadRecord
from cvintake.services.validator import (
    MSG_CV_FAILED,
    MSG_CV_IN_PROGRESS,
    MSG_CV_TOO_LARGE,
    MSG_DATE,
    MSG_EMAIL,
    MSG_LANGUAGE,
    MSG_LINKEDIN,
    MSG_NAME_SHORT,
    MSG_PHONE,
    MSG_REQUIRED,
    MSG_YEAR_RANGE,
    UploadSnapshot,
    ensure_valid,
    sanitize_name,
    validate,
    validate_all,
    validate_email,
)


def _record(progress=0, url=None, error=None, name="cv.pdf"):
    return UploadRecord(id=f"1_0_{name}", name=name, size=10, progress=progress, url=url, error=error)


@pytest.mark.parametrize("value,expected", [
    ("", MSG_REQUIRED),
    ("   ", MSG_REQUIRED),
    ("A", MSG_NAME_SHORT),
    (" A ", MSG_NAME_SHORT),
    ("Li", None),
    ("Mary-Jane", None),
])
def test_name_rules(value, expected):
    assert validate("first_name", value) == expected
    assert validate("last_name", value) == expected


@pytest.mark.parametrize("value,expected", [
    ("", MSG_REQUIRED),
    ("+1 555 123 4567", None),
    ("(555) 123-4567", None),
    ("123456", MSG_PHONE),
    ("555-CALL-NOW", MSG_PHONE),
    ("1" * 21, MSG_PHONE),
])
def test_phone_rules(value, expected):
    assert validate("phone", value) == expected


@pytest.mark.parametrize("value,expected", [
    ("", MSG_REQUIRED),
    ("02/05/1990", MSG_DATE),
    ("1929-12-31", MSG_YEAR_RANGE),
    ("2021-01-01", MSG_YEAR_RANGE),
    ("1930-01-01", None),
    ("2020-12-31", None),
    ("1990-05-02", None),
])
def test_date_of_birth_rules(value, expected):
    assert validate("date_of_birth", value) == expected


@pytest.mark.parametrize("value,expected", [
    ("", None),
    ("https://linkedin.com/in/ana", None),
    ("http://www.LinkedIn.com/in/ana", None),
    ("https://linkedin.com/", MSG_LINKEDIN),
    ("https://example.com/in/ana", MSG_LINKEDIN),
    ("linkedin.com/in/ana", MSG_LINKEDIN),
])
def test_linkedin_rules(value, expected):
    assert validate("linkedin", value) == expected


def test_preferred_language_must_be_known():
    assert validate("preferred_language", "") is None
    assert validate("preferred_language", "korean") is None
    assert validate("preferred_language", "67") is None
    assert validate("preferred_language", "klingon") == MSG_LANGUAGE


def test_address_is_never_rejected():
    assert validate("address", "") is None
    assert validate("address", "!!!") is None


def test_cv_optional_when_nothing_attached():
    assert validate("cv", None) is None


def test_cv_resting_states_are_accepted():
    uploads = UploadSnapshot(records=(_record(0, name="a.pdf"), _record(100, url="https://x/b", name="b.pdf")))
    assert validate("cv", None, uploads) is None


def test_cv_mid_progress_asks_to_wait():
    uploads = UploadSnapshot(records=(_record(40),))
    assert validate("cv", None, uploads) == MSG_CV_IN_PROGRESS


def test_cv_errors_take_precedence_over_progress():
    uploads = UploadSnapshot(records=(
        _record(40, name="a.pdf"),
        _record(0, error=UploadErrorKind.UPLOAD_FAILED, name="b.pdf"),
    ))
    assert validate("cv", None, uploads) == MSG_CV_FAILED


def test_cv_too_large_has_its_own_message():
    uploads = UploadSnapshot(records=(_record(0, error=UploadErrorKind.TOO_LARGE),))
    assert validate("cv", None, uploads) == MSG_CV_TOO_LARGE


def test_validate_is_deterministic():
    uploads = UploadSnapshot(records=(_record(40),))
    assert validate("cv", None, uploads) == validate("cv", None, uploads)
    assert validate("phone", "12") == validate("phone", "12")


def test_validate_all_reports_first_invalid_in_field_order():
    form = PersonalInfo(first_name="Ana", phone="nope", linkedin="https://example.com")
    report = validate_all(form)
    assert not report.ok
    assert report.first_invalid == "last_name"
    assert report.errors["phone"] == MSG_PHONE
    assert report.errors["linkedin"] == MSG_LINKEDIN
    assert report.errors["address"] is None


def test_validate_all_passes_minimal_valid_form():
    form = PersonalInfo(first_name="Ana", last_name="Li", phone="+1 555 123 4567", date_of_birth="1990-05-02")
    report = validate_all(form)
    assert report.ok
    assert report.first_invalid is None


@pytest.mark.parametrize("value,previous,expected", [
    ("Ana3", "", "Ana"),
    ("Jean-Luc", "", "Jean-Luc"),
    ("  Ana", "", "Ana"),
    (" ", "", ""),
    ("Ana ", "Ana", "Ana "),
    ("O'Neil", "", "ONeil"),
])
def test_sanitize_name(value, previous, expected):
    assert sanitize_name(value, previous) == expected


def test_email_is_optional_but_checked():
    assert validate_email("") is None
    assert validate_email(None) is None
    assert validate_email("ana@example.com") is None
    assert validate_email("ana@example") == MSG_EMAIL
    assert validate_email("ana example.com") == MSG_EMAIL


def test_ensure_valid_raises_for_first_bad_field():
    form = PersonalInfo(first_name="Ana", last_name="L", phone="abc", date_of_birth="1990-05-02")

    with pytest.raises(FieldValidationError) as exc:
        ensure_valid(form)

    assert exc.value.field == "last_name"
    assert exc.value.message == MSG_NAME_SHORT


def test_ensure_valid_accepts_complete_form():
    form = PersonalInfo(first_name="Ana", last_name="Li", phone="+1 555 123 4567", date_of_birth="1990-05-02")
    ensure_valid(form)
