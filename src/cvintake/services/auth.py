"""
Auth session collaborator.

The form only needs a stable user id, an email to display, and sign-out.
How the session was obtained is outside this package.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    user_id: str
    email: str = ""
    signed_in: bool = True
    on_sign_out: Optional[Callable[[], None]] = None

    def sign_out(self) -> None:
        if not self.signed_in:
            return
        self.signed_in = False
        logger.info("User %s signed out", self.user_id)
        if self.on_sign_out is not None:
            self.on_sign_out()
