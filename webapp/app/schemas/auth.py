from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuthUser(BaseModel):
    """Identity из GoTrue (не путать с Profile из таблицы profiles)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[str] = None


class AuthSession(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    user: AuthUser
