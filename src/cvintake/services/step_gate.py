"""
Step gate: decides whether the wizard may leave the personal-info step.

States:
  IDLE                 nothing requested yet (or reset for a new step)
  VALIDATING_ALL       full validation pass, every field marked touched
  WAITING_FOR_UPLOADS  fields are fine, some uploads are still moving
  BLOCKED              field errors, a failed upload, or the wait timed out
  ADVANCE              terminal for this request; the draft is deleted

Waiting is a subscription on the upload tracker, not a timer: every tracker
change re-evaluates the snapshot, and a deadline bounds the whole wait.
cancel() ends a pending wait without touching any state afterwards.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from cvintake.config import get_settings
from cvintake.errors import UploadTimeout
from cvintake.models.submission import PersonalInfo
from cvintake.services.drafts import DraftManager
from cvintake.services.upload_tracker import UploadTracker
from cvintake.services.validator import (
    FIELD_ORDER,
    MSG_CV_FAILED,
    MSG_CV_IN_PROGRESS,
    ValidationReport,
    validate_all,
)

logger = logging.getLogger(__name__)

MSG_UPLOAD_TIMEOUT = "Upload timeout. Please try again."


class GateState(str, Enum):
    IDLE                = "idle"
    VALIDATING_ALL      = "validating_all"
    WAITING_FOR_UPLOADS = "waiting_for_uploads"
    BLOCKED             = "blocked"
    ADVANCE             = "advance"


@dataclass
class GateOutcome:
    state: GateState
    errors: dict[str, Optional[str]] = field(default_factory=dict)
    touched: frozenset[str] = frozenset()
    focus: Optional[str] = None
    message: Optional[str] = None
    cancelled: bool = False

    @property
    def advanced(self) -> bool:
        return self.state == GateState.ADVANCE


class StepGate:
    def __init__(
        self,
        tracker: UploadTracker,
        drafts: Optional[DraftManager] = None,
        *,
        timeout: Optional[float] = None,
    ):
        self._tracker = tracker
        self._drafts = drafts
        self._timeout = get_settings().upload_wait_timeout_seconds if timeout is None else timeout
        self.state = GateState.IDLE
        # wake-up event of the pending wait; replaced per wait, None when idle
        self._changed: Optional[asyncio.Event] = None

    # ── View-model helpers ────────────────────────────────────────────────────

    @property
    def can_continue(self) -> bool:
        return self.state != GateState.WAITING_FOR_UPLOADS

    @property
    def waiting_progress(self) -> int:
        """Mean progress of all records, shown on the button while waiting."""
        return self._tracker.aggregate_progress()

    # ── Transitions ───────────────────────────────────────────────────────────

    async def request_continue(self, form: PersonalInfo) -> GateOutcome:
        if self.state == GateState.WAITING_FOR_UPLOADS:
            # continue is disabled while waiting
            return GateOutcome(state=self.state, message="Waiting for uploads")

        self.state = GateState.VALIDATING_ALL
        report = validate_all(form, self._tracker.snapshot())
        touched = frozenset(FIELD_ORDER)

        # Mid-progress uploads are what the wait is for, not a blocking error
        blocking = {
            name: msg for name, msg in report.errors.items()
            if msg and not (name == "cv" and msg == MSG_CV_IN_PROGRESS)
        }
        if blocking:
            first = ValidationReport(errors=blocking).first_invalid
            logger.debug("Continue blocked by %s", sorted(blocking))
            self.state = GateState.BLOCKED
            return GateOutcome(state=self.state, errors=report.errors, touched=touched, focus=first)

        if self._tracker.snapshot().in_flight:
            self.state = GateState.WAITING_FOR_UPLOADS
            try:
                outcome = await self._wait_for_uploads(report, touched)
            except UploadTimeout as e:
                logger.warning("%s", e)
                outcome = GateOutcome(
                    state=GateState.BLOCKED, errors={**report.errors, "cv": MSG_UPLOAD_TIMEOUT},
                    touched=touched, focus="cv", message=MSG_UPLOAD_TIMEOUT,
                )
            if outcome.cancelled:
                return outcome
            self.state = outcome.state
            if outcome.state == GateState.ADVANCE:
                self._advance()
            return outcome

        self.state = GateState.ADVANCE
        self._advance()
        return GateOutcome(state=self.state, errors=report.errors, touched=touched)

    async def _wait_for_uploads(self, report: ValidationReport, touched: frozenset[str]) -> GateOutcome:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        changed = asyncio.Event()
        self._changed = changed
        unsubscribe = self._tracker.subscribe(lambda _snap: changed.set())
        errors = dict(report.errors)
        errors["cv"] = None

        try:
            while True:
                if self._changed is not changed:
                    return GateOutcome(state=GateState.IDLE, cancelled=True)

                snap = self._tracker.snapshot()
                if snap.has_errors:
                    errors["cv"] = MSG_CV_FAILED
                    return GateOutcome(
                        state=GateState.BLOCKED, errors=errors, touched=touched,
                        focus="cv", message=MSG_CV_FAILED,
                    )
                if not snap.in_flight:
                    return GateOutcome(state=GateState.ADVANCE, errors=errors, touched=touched)

                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise UploadTimeout(f"Uploads still in progress after {self._timeout:.1f}s")

                changed.clear()
                try:
                    await asyncio.wait_for(changed.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass
        finally:
            unsubscribe()
            if self._changed is changed:
                self._changed = None

    def _advance(self) -> None:
        if self._drafts is not None:
            self._drafts.clear()
        logger.info("Personal info accepted, advancing")

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def cancel(self) -> None:
        """Abandon a pending wait (the step is being torn down)."""
        pending, self._changed = self._changed, None
        if pending is not None:
            pending.set()
        self.state = GateState.IDLE

    def reset(self) -> None:
        self.state = GateState.IDLE
