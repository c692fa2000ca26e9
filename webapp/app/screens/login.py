import logging
from typing import Any, Optional

from .base import SCREEN_ERRORS, Screen

logger = logging.getLogger(__name__)


class LoginScreen(Screen):
    name = "login"
    title = "Sign in"
    template = "login.html"

    def __init__(self, session, client) -> None:
        super().__init__(session, client)
        self.email = ""
        self.mode = "sign_in"

    async def sign_in(self, email: str, password: str) -> bool:
        email = (email or "").strip()
        self._update(email=email, notice=None)
        if not email or not password:
            self._update(notice="Please enter email and password")
            return False
        try:
            await self.session.sign_in(email, password)
        except SCREEN_ERRORS as e:
            logger.warning("Sign-in failed: %s", e)
            self._update(notice="Failed to sign in")
            return False
        return True

    async def sign_up(self, email: str, password: str, name: Optional[str] = None) -> bool:
        email = (email or "").strip()
        self._update(email=email, notice=None, mode="sign_up")
        if not email or not password:
            self._update(notice="Please enter email and password")
            return False
        try:
            state = await self.session.sign_up(email, password, name)
        except SCREEN_ERRORS as e:
            logger.warning("Sign-up failed: %s", e)
            self._update(notice="Failed to sign up")
            return False
        if not state.is_authenticated:
            self._update(message="Check your email to confirm the account", mode="sign_in")
            return False
        return True

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx.update(email=self.email, mode=self.mode)
        return ctx
