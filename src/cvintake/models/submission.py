"""
Submission and in-progress form models.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class PreferredLanguage(str, Enum):
    ENGLISH            = "english"
    SPANISH            = "spanish"
    CHINESE_SIMPLIFIED = "chinese_simplified"
    FRENCH             = "french"
    RUSSIAN            = "russian"
    HINDI              = "hindi"
    KOREAN             = "korean"
    SIXTY_SEVEN        = "67"


LANGUAGE_LABELS: dict[PreferredLanguage, str] = {
    PreferredLanguage.ENGLISH:            "English",
    PreferredLanguage.SPANISH:            "Spanish",
    PreferredLanguage.CHINESE_SIMPLIFIED: "Chinese (simplified)",
    PreferredLanguage.FRENCH:             "French",
    PreferredLanguage.RUSSIAN:            "Russian",
    PreferredLanguage.HINDI:              "Hindi",
    PreferredLanguage.KOREAN:             "Korean",
    PreferredLanguage.SIXTY_SEVEN:        "67",
}


class PersonalInfo(BaseModel):
    """Form state of the personal-info step; every field may still be empty."""
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    address: str = ""
    phone: str = ""
    linkedin: str = ""
    preferred_language: str = ""
    cv_urls: list[str] = []
    email: Optional[str] = None

    def value_of(self, field: str) -> str:
        value = getattr(self, field, "")
        return value if isinstance(value, str) else ""


class DobParts(BaseModel):
    """The three date-of-birth selectors."""
    day: str = ""
    month: str = ""
    year: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.day and self.month and self.year)

    def compose(self) -> Optional[str]:
        """Return YYYY-MM-DD once all three selectors are set."""
        if not self.complete:
            return None
        return f"{self.year}-{str(self.month).zfill(2)}-{str(self.day).zfill(2)}"

    @classmethod
    def split(cls, value: str) -> Optional["DobParts"]:
        parts = (value or "").split("-")
        if len(parts) != 3:
            return None
        try:
            return cls(year=parts[0], month=str(int(parts[1])), day=str(int(parts[2])))
        except ValueError:
            return None


class Submission(BaseModel):
    id: Optional[str] = None            # assigned by the document store
    first_name: str
    last_name: str
    date_of_birth: str = ""
    phone: str
    address: str = ""
    linkedin: str = ""
    preferred_language: str = PreferredLanguage.ENGLISH.value
    cv_urls: list[str] = []
    email: Optional[str] = None
    user_id: Optional[str] = None

    submitted_at: Optional[datetime] = None
    timestamp: Optional[int] = None     # epoch milliseconds

    def model_post_init(self, __context):
        if self.submitted_at is None:
            self.submitted_at = datetime.now(timezone.utc)
        if self.timestamp is None:
            self.timestamp = int(self.submitted_at.timestamp() * 1000)

    @classmethod
    def from_form(
        cls,
        form: PersonalInfo,
        *,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> "Submission":
        data = form.model_dump(exclude={"email"})
        data["preferred_language"] = data.get("preferred_language") or PreferredLanguage.ENGLISH.value
        return cls(**data, email=email or None, user_id=user_id)
