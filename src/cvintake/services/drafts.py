"""
Draft persistence for the personal-info step.

The draft lives under a single key in an injectable KeyValueStore. It is
best-effort: read or write failures are logged and treated as "no draft",
never raised to the form.
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from cvintake.config import get_settings
from cvintake.models.draft import Draft
from cvintake.models.submission import PersonalInfo
from cvintake.models.upload import UploadRecord
from cvintake.services.kv_store import DRAFT_KEY, KeyValueStore

logger = logging.getLogger(__name__)

StateGetter = Callable[[], tuple[PersonalInfo, Iterable[UploadRecord]]]


class DraftManager:
    def __init__(self, store: KeyValueStore, *, interval: Optional[float] = None):
        self._store = store
        self._interval = get_settings().autosave_interval_seconds if interval is None else interval
        self._task: Optional[asyncio.Task] = None
        self.last_saved: Optional[datetime] = None

    def exists(self) -> bool:
        try:
            return bool(self._store.get(DRAFT_KEY))
        except (OSError, ValueError) as e:
            logger.warning("Could not read draft flag: %s", e)
            return False

    def snapshot(self, form: PersonalInfo, records: Iterable[UploadRecord] = ()) -> bool:
        """Overwrite the stored draft. Returns False when the write failed."""
        draft = Draft(form=form, uploaded_files=list(records))
        try:
            self._store.set(DRAFT_KEY, json.dumps(draft.to_storage()))
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Autosave failed: %s", e)
            return False
        self.last_saved = datetime.now(timezone.utc)
        return True

    def restore(self) -> Optional[Draft]:
        try:
            raw = self._store.get(DRAFT_KEY)
            if not raw:
                return None
            data = json.loads(raw)
            if not isinstance(data, dict):
                return None
            return Draft.from_storage(data)
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.warning("Failed to restore draft: %s", e)
            return None

    def clear(self) -> None:
        try:
            self._store.remove(DRAFT_KEY)
        except (OSError, ValueError) as e:
            logger.warning("Failed to clear draft: %s", e)

    # ── Autosave lifecycle ────────────────────────────────────────────────────

    @property
    def autosaving(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_autosave(self, get_state: StateGetter) -> None:
        """Snapshot every interval until stop_autosave(). Needs a running loop."""
        self.stop_autosave()
        self._task = asyncio.get_running_loop().create_task(self._autosave_loop(get_state))

    def stop_autosave(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _autosave_loop(self, get_state: StateGetter) -> None:
        while True:
            await asyncio.sleep(self._interval)
            form, records = get_state()
            self.snapshot(form, records)


def merge_draft(current: PersonalInfo, draft: Draft) -> PersonalInfo:
    """
    Lay saved fields over the current form.

    Fields the draft left empty keep whatever the current form already has.
    """
    saved = draft.form.model_dump()
    merged = current.model_dump()
    for key, value in saved.items():
        if value in ("", None, []):
            continue
        merged[key] = value
    return PersonalInfo(**merged)
