"""
Draft model: a locally persisted, partially completed personal-info form.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from cvintake.models.submission import DobParts, PersonalInfo
from cvintake.models.upload import UploadRecord


class Draft(BaseModel):
    form: PersonalInfo = PersonalInfo()
    uploaded_files: list[UploadRecord] = []
    saved_at: Optional[datetime] = None

    def model_post_init(self, __context):
        if self.saved_at is None:
            self.saved_at = datetime.now(timezone.utc)

    @property
    def dob(self) -> Optional[DobParts]:
        if not self.form.date_of_birth:
            return None
        return DobParts.split(self.form.date_of_birth)

    def to_storage(self) -> dict:
        """Serialise with file handles stripped; only display metadata survives."""
        return {
            "form": self.form.model_dump(mode="json"),
            "uploaded_files": [r.to_draft() for r in self.uploaded_files],
            "saved_at": self.saved_at.isoformat(),
        }

    @classmethod
    def from_storage(cls, data: dict) -> "Draft":
        records = [
            UploadRecord(**r, restored=True) for r in data.get("uploaded_files", [])
        ]
        return cls(
            form=PersonalInfo(**data.get("form", {})),
            uploaded_files=records,
            saved_at=data.get("saved_at"),
        )
