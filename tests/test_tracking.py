import asyncio
from datetime import datetime, timedelta, timezone

from webapp.app.dependencies import ScreenRegistry
from webapp.app.realtime import ChangeEvent, Subscription
from webapp.app.schemas.profile import Profile, UserRole
from webapp.app.screens.tracking import TrackingScreen, format_last_updated
from webapp.app.services.tracking_service import TrackingService


class FakeRealtime:
    """Подписка без сокета: события подаются тестом через handle_message."""

    def __init__(self):
        self.subscriptions: list[Subscription] = []

    async def subscribe(self, channel, table, on_change, *, schema="public", access_token=None, on_close=None):
        sub = Subscription(channel, table, on_change, schema=schema, on_close=on_close)
        self.subscriptions.append(sub)
        return sub


def _change(sequence: int) -> ChangeEvent:
    return ChangeEvent(channel="gps_tracking", table="gps_tracking", sequence=sequence, event_type="UPDATE")


def _seed_location(backend, car_id, **overrides):
    row = {
        "car_id": car_id,
        "latitude": 52.52,
        "longitude": 13.405,
        "speed": 42.4,
        "last_updated": "2024-06-01T10:00:00+00:00",
    }
    row.update(overrides)
    return backend.seed("gps_tracking", **row)


async def test_admin_sees_whole_fleet(client, backend):
    first = backend.seed_car(license_plate="B-AA-1")
    second = backend.seed_car(license_plate="B-AA-2")
    _seed_location(backend, first["id"], last_updated="2024-06-01T09:00:00+00:00")
    _seed_location(backend, second["id"], last_updated="2024-06-01T11:00:00+00:00")

    locations = await TrackingService.get_locations(client, Profile(id="admin", role=UserRole.admin))

    assert [loc.car_id for loc in locations] == [second["id"], first["id"]]
    assert locations[0].car.license_plate == "B-AA-2"
    assert backend.table_requests("bookings") == []


async def test_customer_sees_only_active_rentals(client, backend):
    rented = backend.seed_car()
    finished = backend.seed_car()
    foreign = backend.seed_car()
    backend.seed("bookings", car_id=rented["id"], user_id="me", status="active",
                 start_date="2024-06-01", end_date="2024-06-05", total_price=1)
    backend.seed("bookings", car_id=finished["id"], user_id="me", status="completed",
                 start_date="2024-05-01", end_date="2024-05-05", total_price=1)
    backend.seed("bookings", car_id=foreign["id"], user_id="someone", status="active",
                 start_date="2024-06-01", end_date="2024-06-05", total_price=1)
    for car in (rented, finished, foreign):
        _seed_location(backend, car["id"])

    locations = await TrackingService.get_locations(client, Profile(id="me", role=UserRole.customer))

    assert [loc.car_id for loc in locations] == [rented["id"]]


async def test_no_active_rentals_skips_gps_query(client, backend):
    _seed_location(backend, backend.seed_car()["id"])

    locations = await TrackingService.get_locations(client, Profile(id="me", role=UserRole.shop_manager))

    assert locations == []
    assert backend.table_requests("gps_tracking") == []


async def test_no_profile_means_nothing_to_track(client, backend):
    assert await TrackingService.get_locations(client, None) == []
    assert backend.requests == []


def test_format_last_updated():
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert format_last_updated(now - timedelta(seconds=20), now) == "Just now"
    assert format_last_updated(now - timedelta(minutes=5), now) == "5m ago"
    assert format_last_updated(now - timedelta(hours=3), now) == "3h ago"
    assert format_last_updated(now - timedelta(days=2), now) == "2024-05-30"
    assert format_last_updated(datetime(2024, 6, 1, 11, 30), now) == "30m ago"


async def test_screen_subscribes_and_refetches_on_change(session, client, backend, sign_in_as):
    await sign_in_as("admin")
    car = backend.seed_car()
    realtime = FakeRealtime()

    screen = TrackingScreen(session, client, realtime)
    await screen.mount()
    assert screen.heading == "All Vehicles"
    assert screen.locations == []
    assert screen.context()["live"] is True

    _seed_location(backend, car["id"])
    await realtime.subscriptions[0].handle_message(
        {
            "topic": "realtime:gps_tracking",
            "event": "postgres_changes",
            "payload": {"data": {"table": "gps_tracking", "type": "INSERT"}},
        }
    )
    await asyncio.wait_for(screen._refetch_task, timeout=1)

    assert [loc.car_id for loc in screen.locations] == [car["id"]]
    await screen.close()


async def test_stale_and_duplicate_changes_are_dropped(session, client, backend, sign_in_as):
    await sign_in_as("admin")
    screen = TrackingScreen(session, client, FakeRealtime())
    await screen.mount()

    screen.on_change(_change(1))
    first = screen._refetch_task
    await first
    gps_reads = len(backend.table_requests("gps_tracking"))

    screen.on_change(_change(1))
    screen.on_change(_change(0))

    assert screen._refetch_task is first
    assert len(backend.table_requests("gps_tracking")) == gps_reads
    await screen.close()


async def test_bursts_are_coalesced(session, client, backend, sign_in_as):
    await sign_in_as("admin")
    screen = TrackingScreen(session, client, FakeRealtime())
    await screen.mount()
    before = len(backend.table_requests("gps_tracking"))

    for sequence in range(1, 6):
        screen.on_change(_change(sequence))
    await screen._refetch_task

    # вся пачка пришла до начала перечитки, одной хватает
    assert len(backend.table_requests("gps_tracking")) - before == 1
    assert not screen._dirty
    await screen.close()


async def test_close_unsubscribes_and_ignores_late_events(session, client, backend, sign_in_as):
    await sign_in_as("customer")
    realtime = FakeRealtime()
    screen = TrackingScreen(session, client, realtime)
    await screen.mount()
    subscription = realtime.subscriptions[0]
    assert screen.heading == "Your Rentals"
    assert screen.empty_message == "You have no active rentals with GPS tracking"

    await screen.close()

    assert not subscription.active
    before = len(backend.requests)
    screen.on_change(_change(10))
    assert await subscription.handle_message(
        {"topic": "realtime:gps_tracking", "event": "postgres_changes", "payload": {"data": {}}}
    ) is None
    assert len(backend.requests) == before


async def test_subscription_failure_leaves_screen_usable(session, client, backend, sign_in_as):
    from webapp.app.errors import NetworkError

    class BrokenRealtime:
        async def subscribe(self, *args, **kwargs):
            raise NetworkError("realtime connect failed")

    await sign_in_as("admin")
    screen = TrackingScreen(session, client, BrokenRealtime())
    await screen.mount()

    assert screen.subscription is None
    assert screen.notice == "Failed to subscribe to GPS updates"
    assert screen.context()["live"] is False
    await screen.close()


async def test_dropped_feed_is_reported_and_reopened(session, client, backend, sign_in_as):
    await sign_in_as("admin")
    realtime = FakeRealtime()
    screens = ScreenRegistry(session, client, realtime)

    screen = await screens.get(TrackingScreen)
    assert screen.context()["live"] is True

    await realtime.subscriptions[0]._connection_lost()

    assert not realtime.subscriptions[0].active
    assert screen.feed_lost
    assert screen.notice == "GPS updates stopped, refresh the page to reconnect"
    assert screen.context()["live"] is False

    reopened = await screens.get(TrackingScreen)
    assert reopened is not screen
    assert screen.closed
    assert len(realtime.subscriptions) == 2
    assert reopened.context()["live"] is True
    await reopened.close()
