import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from ..realtime import ChangeEvent, RealtimeClient, Subscription
from ..schemas.gps import GPSLocation
from ..schemas.profile import UserRole
from ..services.tracking_service import GPS_TRACKING, TrackingService
from .base import Screen

logger = logging.getLogger(__name__)


def format_last_updated(timestamp: datetime, now: Optional[datetime] = None) -> str:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)

    diff_mins = int((now - timestamp).total_seconds() // 60)
    if diff_mins < 1:
        return "Just now"
    if diff_mins < 60:
        return f"{diff_mins}m ago"
    if diff_mins < 1440:
        return f"{diff_mins // 60}h ago"
    return timestamp.date().isoformat()


class TrackingScreen(Screen):
    """
    GPS-трекинг. Пока экран открыт, держит подписку на gps_tracking и
    перечитывает координаты по каждому новому событию.
    """

    name = "tracking"
    title = "GPS Tracking"
    template = "tracking.html"

    def __init__(self, session, client, realtime: Optional[RealtimeClient] = None) -> None:
        super().__init__(session, client)
        self.realtime = realtime
        self.locations: list[GPSLocation] = []
        self.subscription: Optional[Subscription] = None

        self._last_sequence = 0
        self._refetch_task: Optional[asyncio.Task] = None
        self._dirty = False
        self.feed_lost = False

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.role == UserRole.admin

    @property
    def heading(self) -> str:
        return "All Vehicles" if self.is_admin else "Your Rentals"

    @property
    def empty_message(self) -> str:
        if self.is_admin:
            return "No vehicles are currently being tracked"
        return "You have no active rentals with GPS tracking"

    async def on_mount(self) -> None:
        await self.load()
        if self.realtime is None or self.closed:
            return

        subscription = await self.guarded(
            self.realtime.subscribe(
                GPS_TRACKING,
                GPS_TRACKING,
                self.on_change,
                access_token=self.client.access_token,
                on_close=self.on_feed_closed,
            ),
            "Failed to subscribe to GPS updates",
        )
        if subscription is None:
            return
        if self.closed:
            await subscription.unsubscribe()
            return
        self.subscription = subscription
        self.add_teardown(subscription.unsubscribe)

    async def load(self) -> None:
        locations = await self.guarded(
            TrackingService.get_locations(self.client, self.profile),
            "Failed to load GPS data",
        )
        if locations is not None:
            self._update(locations=locations)

    def on_change(self, event: ChangeEvent) -> None:
        """
        Событие из change feed. Дубли/устаревшие (sequence не больше уже
        обработанного) отбрасываем; пока идёт перечитка, только помечаем,
        что нужна ещё одна.
        """
        if self.closed:
            return
        if event.sequence <= self._last_sequence:
            logger.debug("Tracking: stale change #%s dropped", event.sequence)
            return
        self._last_sequence = event.sequence

        if self._refetch_task is not None and not self._refetch_task.done():
            self._dirty = True
            return
        self._refetch_task = self.spawn(self._refetch())

    def on_feed_closed(self) -> None:
        """Сервер оборвал канал: данные на экране больше не обновляются."""
        logger.warning("Tracking: GPS feed closed by server")
        self.feed_lost = True
        self._update(notice="GPS updates stopped, refresh the page to reconnect")

    async def _refetch(self) -> None:
        while True:
            self._dirty = False
            await self.load()
            if not self._dirty or self.closed:
                return

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx.update(
            heading=self.heading,
            locations=self.locations,
            empty_message=self.empty_message,
            format_last_updated=format_last_updated,
            live=self.subscription is not None and self.subscription.active,
        )
        return ctx
