import logging
from typing import Optional

from ..api_client import BackendClient
from ..schemas.auth import AuthSession, AuthUser

logger = logging.getLogger(__name__)


class AuthService:
    """
    Сквозные вызовы в GoTrue (/auth/v1). Выдачей токенов занимается backend'а.
    """

    @staticmethod
    async def sign_in(client: BackendClient, email: str, password: str) -> AuthSession:
        data = await client.auth_request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return AuthSession.model_validate(data)

    @staticmethod
    async def sign_up(
        client: BackendClient,
        email: str,
        password: str,
        name: Optional[str] = None,
    ) -> Optional[AuthSession]:
        """
        Регистрация. Если в проекте включено подтверждение email,
        GoTrue вернёт только user без токенов, тогда отдаём None.
        """
        payload: dict = {"email": email, "password": password}
        if name:
            payload["data"] = {"name": name}

        data = await client.auth_request("POST", "/signup", json=payload)
        if not data or "access_token" not in data:
            logger.info("Sign-up for %s requires email confirmation", email)
            return None
        return AuthSession.model_validate(data)

    @staticmethod
    async def refresh(client: BackendClient, refresh_token: str) -> AuthSession:
        data = await client.auth_request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return AuthSession.model_validate(data)

    @staticmethod
    async def get_user(client: BackendClient, access_token: str) -> AuthUser:
        data = await client.auth_request("GET", "/user", token=access_token)
        return AuthUser.model_validate(data)

    @staticmethod
    async def sign_out(client: BackendClient, access_token: str) -> None:
        await client.auth_request("POST", "/logout", token=access_token)
