"""
Personal-info step: the view-model a UI binds to.

Holds the form state, per-field errors and touched flags, the date-of-birth
selectors, the upload tracker and the step gate. mount() restores the draft
and starts autosave; unmount() cancels autosave and any pending wait.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from cvintake.models.submission import DobParts, PersonalInfo
from cvintake.models.upload import SelectedFile, UploadRecord
from cvintake.services.drafts import DraftManager, merge_draft
from cvintake.services.step_gate import GateOutcome, GateState, StepGate
from cvintake.services.upload_tracker import UploadTracker
from cvintake.services.validator import sanitize_name, validate

logger = logging.getLogger(__name__)

_NAME_FIELDS = ("first_name", "last_name")


class PersonalInfoStep:
    def __init__(
        self,
        form: PersonalInfo,
        tracker: UploadTracker,
        drafts: DraftManager,
        gate: Optional[StepGate] = None,
    ):
        self.form = form
        self.tracker = tracker
        self.drafts = drafts
        self.gate = gate or StepGate(tracker, drafts)
        self.errors: dict[str, Optional[str]] = {}
        self.touched: set[str] = set()
        self.dob = DobParts()
        self.focus: Optional[str] = None
        self.mounted = False
        self._unsubscribe = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def mount(self) -> None:
        """Restore any draft, then autosave until unmount(). Needs a running loop."""
        draft = self.drafts.restore()
        if draft is not None:
            self.form = merge_draft(self.form, draft)
            if draft.dob is not None:
                self.dob = draft.dob
            logger.info("Restored draft saved at %s", draft.saved_at)

        # URLs already on the form belong to the tracker from here on
        self.tracker.restore(draft.uploaded_files if draft is not None else [], self.form.cv_urls)

        self._unsubscribe = self.tracker.subscribe(lambda _snap: self._sync_cv_urls())
        self._sync_cv_urls()
        self.gate.reset()
        self.drafts.start_autosave(lambda: (self.form, self.tracker.records))
        self.mounted = True

    def unmount(self) -> None:
        self.drafts.stop_autosave()
        self.gate.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.mounted = False

    def _sync_cv_urls(self) -> None:
        self.form = self.form.model_copy(update={"cv_urls": self.tracker.cv_urls})

    # ── Display helpers ───────────────────────────────────────────────────────

    def visible_error(self, name: str) -> Optional[str]:
        """Errors show only after the field was touched."""
        return self.errors.get(name) if name in self.touched else None

    @property
    def can_continue(self) -> bool:
        return self.gate.can_continue

    @property
    def continue_label(self) -> str:
        if self.gate.state == GateState.WAITING_FOR_UPLOADS:
            return f"Waiting ({self.gate.waiting_progress}%)"
        return "Continue"

    # ── Input handlers ────────────────────────────────────────────────────────

    def change(self, name: str, value: str) -> None:
        """A keystroke or selection in a text-like field."""
        if name == "date_of_birth":
            # only the three selectors set the date
            return
        if name in _NAME_FIELDS:
            value = sanitize_name(value, self.form.value_of(name))
        self.form = self.form.model_copy(update={name: value})
        self.errors[name] = validate(name, value, self.tracker.snapshot())

    def blur(self, name: str) -> None:
        value = self.form.value_of(name)
        if name in _NAME_FIELDS:
            value = value.strip()
            self.form = self.form.model_copy(update={name: value})
        self.touched.add(name)
        self.errors[name] = validate(name, value, self.tracker.snapshot())

    def select_dob(self, *, day: Optional[str] = None, month: Optional[str] = None, year: Optional[str] = None) -> None:
        updates = {k: str(v) for k, v in (("day", day), ("month", month), ("year", year)) if v is not None}
        self.dob = self.dob.model_copy(update=updates)
        composed = self.dob.compose()
        if composed is None:
            return
        self.form = self.form.model_copy(update={"date_of_birth": composed})
        self.errors["date_of_birth"] = validate("date_of_birth", composed)

    # ── Files ─────────────────────────────────────────────────────────────────

    def select_files(self, files: Iterable[SelectedFile]) -> list[UploadRecord]:
        created = self.tracker.select(files)
        self.errors["cv"] = validate("cv", None, self.tracker.snapshot())
        return created

    def remove_file(self, record_id: str) -> None:
        self.tracker.remove_upload(record_id)
        self.errors["cv"] = validate("cv", None, self.tracker.snapshot())

    def remove_all_files(self) -> None:
        self.tracker.clear()
        self.errors["cv"] = None

    # ── Continue ──────────────────────────────────────────────────────────────

    async def request_continue(self) -> GateOutcome:
        outcome = await self.gate.request_continue(self.form)
        if outcome.cancelled:
            return outcome
        if outcome.errors:
            self.errors = dict(outcome.errors)
        self.touched |= set(outcome.touched)
        self.focus = outcome.focus
        return outcome
