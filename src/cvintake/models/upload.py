"""
Upload record model.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from cvintake.errors import UploadError


class UploadErrorKind(str, Enum):
    TOO_LARGE     = "too_large"
    UPLOAD_FAILED = "upload_failed"


ERROR_MESSAGES: dict[UploadErrorKind, str] = {
    UploadErrorKind.TOO_LARGE:     "File too large (max 10 MB)",
    UploadErrorKind.UPLOAD_FAILED: "Upload failed",
}


@dataclass
class SelectedFile:
    """A file picked by the user; `data` is the raw handle the draft never keeps."""
    name: str
    size: int
    data: bytes = b""

    @classmethod
    def from_path(cls, path: Path) -> "SelectedFile":
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise UploadError(f"Cannot read {path.name}: {e}") from e
        return cls(name=path.name, size=len(data), data=data)

    @property
    def key(self) -> str:
        return f"{self.name}:{self.size}"


class UploadRecord(BaseModel):
    id: str
    name: str
    size: int = 0
    progress: int = 0
    url: Optional[str] = None
    error: Optional[UploadErrorKind] = None
    restored: bool = False          # rebuilt from a draft, no file handle

    @property
    def key(self) -> str:
        return f"{self.name}:{self.size}"

    @property
    def in_flight(self) -> bool:
        # a restored record has no file handle, so its transfer never resumes
        if self.restored and self.url is None:
            return False
        return 0 < self.progress < 100 and self.error is None

    @property
    def done(self) -> bool:
        return self.progress == 100 and self.url is not None

    @property
    def error_message(self) -> Optional[str]:
        return ERROR_MESSAGES[self.error] if self.error else None

    def to_draft(self) -> dict:
        """Metadata that survives a draft round-trip."""
        return self.model_dump(mode="json", include={"id", "name", "size", "progress", "url", "error"})
