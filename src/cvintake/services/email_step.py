"""
Email/submit step: optional email, then one create() against the store.
"""
from __future__ import annotations

import logging
from typing import Optional

from cvintake.models.submission import PersonalInfo, Submission
from cvintake.services.storage import JsonSubmissionStore, OperationResult
from cvintake.errors import FieldValidationError
from cvintake.services.validator import ensure_valid, validate_email

logger = logging.getLogger(__name__)


class EmailStep:
    def __init__(self, form: PersonalInfo, store: JsonSubmissionStore, user_id: Optional[str] = None):
        self.form = form
        self.store = store
        self.user_id = user_id
        self.email = form.email or ""
        self.error: Optional[str] = None
        self.submitting = False

    async def submit(self, email: Optional[str] = None) -> OperationResult:
        if email is not None:
            self.email = email.strip()

        err = validate_email(self.email)
        if err:
            self.error = err
            return OperationResult(success=False, message=err)

        try:
            ensure_valid(self.form)
        except FieldValidationError as e:
            logger.warning("Refusing to submit, %s", e)
            self.error = e.message
            return OperationResult(success=False, message=e.message)

        self.error = None
        self.submitting = True
        try:
            payload = Submission.from_form(self.form, email=self.email, user_id=self.user_id)
            result = await self.store.create(payload)
        finally:
            self.submitting = False

        if not result.success:
            self.error = result.message or "Submission failed"
        return result
