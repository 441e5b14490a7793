"""
Submission document store backed by JSON files.

Each submission is saved as:  data/submissions/<timestamp>__<slug(name)>__<id>.json

Intentionally simple: no database, no ORM. Files are human-readable and can
be inspected or edited directly.

Every public call returns an OperationResult instead of raising, so a
failing store never crashes the form flow. File I/O is synchronous and runs
in the default executor so it doesn't block the event loop.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from cvintake.config import get_settings
from cvintake.models.submission import Submission

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    success: bool
    message: str = ""
    id: Optional[str] = None
    data: list[Submission] = field(default_factory=list)
    count: int = 0


class JsonSubmissionStore:
    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or get_settings().data_dir)

    # ── Public API ────────────────────────────────────────────────────────────

    async def create(self, submission: Submission) -> OperationResult:
        """Persist a new submission and return its generated id."""
        loop = asyncio.get_running_loop()
        try:
            record_id = await loop.run_in_executor(None, self._save, submission)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error submitting form: %s", e)
            return OperationResult(success=False, message="Failed to submit form. Please try again.")

        logger.info("Form submitted successfully with ID: %s", record_id)
        return OperationResult(success=True, id=record_id, message="Form submitted successfully!")

    async def recent_records(self, limit: int = 50) -> OperationResult:
        """Return up to `limit` submissions, most recent first."""
        loop = asyncio.get_running_loop()
        try:
            records = await loop.run_in_executor(None, self._load_all)
        except (OSError, ValueError) as e:
            logger.error("Error fetching submissions: %s", e)
            return OperationResult(success=False, message="Failed to fetch submissions")

        records.sort(key=lambda s: s.submitted_at, reverse=True)
        return OperationResult(success=True, data=records[:limit])

    async def count(self) -> OperationResult:
        loop = asyncio.get_running_loop()
        try:
            total = await loop.run_in_executor(None, lambda: len(self._paths()))
        except OSError as e:
            logger.error("Error getting submission count: %s", e)
            return OperationResult(success=False, message="Failed to get submission count")
        return OperationResult(success=True, count=total)

    # ── File helpers ──────────────────────────────────────────────────────────

    def _paths(self) -> list[Path]:
        if not self.data_dir.exists():
            return []
        return list(self.data_dir.glob("*.json"))

    def _save(self, submission: Submission) -> str:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        record_id = uuid.uuid4().hex[:20]
        stored = submission.model_copy(update={"id": record_id})

        path = self.data_dir / _make_filename(stored)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(stored.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        return record_id

    def _load_all(self) -> list[Submission]:
        records: list[Submission] = []
        for path in self._paths():
            try:
                records.append(load(path))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable submission %s: %s", path.name, e)
        return records


def load(path: Path) -> Submission:
    """Load a Submission from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = json.load(f)
    return Submission(**data)


def _make_filename(submission: Submission) -> str:
    timestamp = submission.submitted_at.strftime("%Y%m%d_%H%M%S")
    name = _slug(f"{submission.first_name} {submission.last_name}") or "anonymous"
    return f"{timestamp}__{name}__{submission.id}.json"


def _slug(text: str) -> str:
    """Convert text to a safe filename segment."""
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_-]+", "_", text)
    return text[:40]
