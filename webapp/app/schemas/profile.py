from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserRole(str, Enum):
    customer = "customer"
    admin = "admin"
    shop_manager = "shop_manager"


class ProfileSummary(BaseModel):
    """Кусок профиля, который подтягивается join'ом в брони/заказы."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: UserRole = UserRole.customer
    phone: Optional[str] = None
    avatar_url: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def role_label(self) -> str:
        # shop_manager -> "SHOP MANAGER"
        return self.role.value.replace("_", " ").upper()
