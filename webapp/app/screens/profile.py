import asyncio
from typing import Any

from ..schemas.profile import UserRole
from ..services.cars_service import CarsService
from ..services.spare_parts_service import SparePartsService
from .base import Screen

DEFAULT_AVATAR = "https://images.pexels.com/photos/771742/pexels-photo-771742.jpeg?auto=compress&cs=tinysrgb&w=400"

ROLE_COLORS = {
    UserRole.admin: "#8B5CF6",
    UserRole.shop_manager: "#10B981",
}


class ProfileScreen(Screen):
    name = "profile"
    title = "Profile"
    template = "profile.html"

    def __init__(self, session, client) -> None:
        super().__init__(session, client)
        self.bookings_count = 0
        self.orders_count = 0
        self.signed_out = False

    async def _fetch_counts(self, user_id: str) -> tuple[int, int]:
        bookings, orders = await asyncio.gather(
            CarsService.get_user_bookings(self.client, user_id),
            SparePartsService.get_user_orders(self.client, user_id),
        )
        return len(bookings), len(orders)

    async def load(self) -> None:
        user_id = self.user_id
        if user_id is None:
            return
        counts = await self.guarded(self._fetch_counts(user_id), "Failed to load profile")
        if counts is not None:
            self._update(bookings_count=counts[0], orders_count=counts[1])

    @property
    def role_label(self) -> str:
        return self.profile.role_label if self.profile else "CUSTOMER"

    @property
    def role_color(self) -> str:
        role = self.profile.role if self.profile else UserRole.customer
        return ROLE_COLORS.get(role, "#3B82F6")

    @property
    def avatar_url(self) -> str:
        return (self.profile.avatar_url if self.profile else None) or DEFAULT_AVATAR

    async def sign_out(self) -> None:
        """Выход; переход на экран логина делает вызывающий (роутер)."""
        await self.session.sign_out()
        self._update(signed_out=True)

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        user = self.session.user
        ctx.update(
            email=user.email if user else None,
            role_label=self.role_label,
            role_color=self.role_color,
            avatar_url=self.avatar_url,
            bookings_count=self.bookings_count,
            orders_count=self.orders_count,
        )
        return ctx
