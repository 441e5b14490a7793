"""
Form orchestrator: step sequencing, submission history and PDF export.

Steps:
  landing → personal → email → done
  done → landing ("Home") or personal ("Start a new form")

Collaborators (auth, document store, blob storage, key/value store) are
injected, so the same orchestrator drives the CLI and the tests.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from cvintake.config import get_settings
from cvintake.errors import PreviewGenerationFailure
from cvintake.models.submission import PersonalInfo, Submission
from cvintake.services.auth import AuthSession
from cvintake.services.drafts import DraftManager
from cvintake.services.email_step import EmailStep
from cvintake.services.kv_store import PANEL_OPEN_KEY, KeyValueStore
from cvintake.services.paginator import paginate_to_pdf
from cvintake.services.personal_info import PersonalInfoStep
from cvintake.services.renderer import render_submission
from cvintake.services.step_gate import GateOutcome, StepGate
from cvintake.services.storage import JsonSubmissionStore, OperationResult
from cvintake.services.upload_tracker import BlobStorage, UploadTracker

logger = logging.getLogger(__name__)


class Step(str, Enum):
    LANDING  = "landing"
    PERSONAL = "personal"
    EMAIL    = "email"
    DONE     = "done"


class FormOrchestrator:
    def __init__(
        self,
        auth: AuthSession,
        store: JsonSubmissionStore,
        blobs: BlobStorage,
        kv: KeyValueStore,
        *,
        drafts: Optional[DraftManager] = None,
        upload_wait_timeout: Optional[float] = None,
    ):
        self.auth = auth
        self.store = store
        self.blobs = blobs
        self.kv = kv
        self.drafts = drafts or DraftManager(kv)
        self._upload_wait_timeout = upload_wait_timeout

        self.step = Step.LANDING
        self.form = PersonalInfo()
        self.personal: Optional[PersonalInfoStep] = None
        self.email_step: Optional[EmailStep] = None

        self.submissions: list[Submission] = []
        self.submission_count = 0
        self.last_submission: Optional[Submission] = None
        self.loading = False
        self.error = ""
        self.toast: Optional[str] = None
        self.has_draft = False
        self.panel_open = False

    # ── Startup ───────────────────────────────────────────────────────────────

    async def open(self) -> None:
        """Load history and restore the draft flag and panel preference."""
        await self.load_submissions()
        self.has_draft = self.drafts.exists()
        try:
            self.panel_open = self.kv.get(PANEL_OPEN_KEY) == "true"
        except (OSError, ValueError) as e:
            logger.warning("Could not read panel preference: %s", e)
            self.panel_open = False

    @property
    def landing_label(self) -> str:
        return "Continue" if self.has_draft else "Start"

    # ── Step transitions ──────────────────────────────────────────────────────

    def start(self) -> PersonalInfoStep:
        """Enter the personal-info step (landing, or "Start a new form" from done)."""
        self._teardown_personal()
        tracker = UploadTracker(self.blobs)
        gate = StepGate(tracker, self.drafts, timeout=self._upload_wait_timeout)
        self.personal = PersonalInfoStep(self.form, tracker, self.drafts, gate)
        self.personal.mount()
        self.step = Step.PERSONAL
        return self.personal

    async def continue_personal(self) -> GateOutcome:
        if self.step != Step.PERSONAL or self.personal is None:
            raise RuntimeError(f"continue_personal() called in step {self.step.value}")
        outcome = await self.personal.request_continue()
        if outcome.advanced:
            self.form = self.personal.form
            self.has_draft = False
            self._teardown_personal()
            self.email_step = EmailStep(self.form, self.store, self.auth.user_id)
            self.step = Step.EMAIL
        return outcome

    async def submit(self, email: Optional[str] = None) -> OperationResult:
        if self.step != Step.EMAIL or self.email_step is None:
            raise RuntimeError(f"submit() called in step {self.step.value}")
        result = await self.email_step.submit(email)
        if not result.success:
            return result

        user_subs = await self.load_submissions()
        if user_subs:
            self.last_submission = user_subs[0]
        self._set_panel_open(True)
        self.toast = "Form submitted"

        self.form = PersonalInfo()
        self.email_step = None
        self.step = Step.DONE
        return result

    def go_home(self) -> None:
        self._teardown_personal()
        self.step = Step.LANDING

    def _teardown_personal(self) -> None:
        if self.personal is not None:
            self.personal.unmount()
            self.personal = None

    # ── History panel ─────────────────────────────────────────────────────────

    async def load_submissions(self) -> list[Submission]:
        """Fetch recent records and the total count; keep only this user's."""
        self.loading = True
        try:
            limit = get_settings().recent_submissions_limit
            records, count = await asyncio.gather(
                self.store.recent_records(limit),
                self.store.count(),
            )
            if count.success:
                self.submission_count = count.count

            if not records.success:
                self.error = records.message
                return []

            self.error = ""
            self.submissions = [s for s in records.data if s.user_id == self.auth.user_id]
            return self.submissions
        finally:
            self.loading = False

    def toggle_panel(self) -> bool:
        self.last_submission = self.submissions[0] if self.submissions else None
        self._set_panel_open(not self.panel_open)
        return self.panel_open

    def _set_panel_open(self, value: bool) -> None:
        self.panel_open = value
        try:
            self.kv.set(PANEL_OPEN_KEY, "true" if value else "false")
        except (OSError, ValueError) as e:
            logger.warning("Could not persist panel preference: %s", e)

    # ── Export ────────────────────────────────────────────────────────────────

    def export_pdf(self, submission: Submission, output_dir: Optional[Path] = None) -> Path:
        """
        Render `submission` and write a paginated PDF named after its id.

        Raises:
            PreviewGenerationFailure: If rendering or writing fails.
        """
        settings = get_settings()
        output_dir = Path(output_dir or settings.export_dir)
        image = render_submission(submission)
        target = output_dir / f"submission_{submission.id}.pdf"
        try:
            path = paginate_to_pdf(image, target, jpeg_quality=settings.jpeg_quality)
        except (OSError, ValueError) as e:
            logger.error("PDF save failed for %s: %s", submission.id, e)
            raise PreviewGenerationFailure("Failed to save PDF") from e
        logger.info("Exported %s", path)
        return path

    # ── Session ───────────────────────────────────────────────────────────────

    def sign_out(self) -> None:
        self._teardown_personal()
        self.auth.sign_out()
