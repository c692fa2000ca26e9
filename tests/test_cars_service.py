from datetime import date

import pytest

from webapp.app.errors import NotFoundError, ValidationError
from webapp.app.schemas.booking import BookingCreate, BookingStatus
from webapp.app.schemas.car import CarCreate, CarFilters, CarStatus, CarUpdate
from webapp.app.services.cars_service import CarsService


async def test_get_cars_newest_first(client, backend):
    older = backend.seed_car(model="Corolla")
    newer = backend.seed_car(model="Supra")

    cars = await CarsService.get_cars(client)

    assert [car.id for car in cars] == [newer["id"], older["id"]]


async def test_get_cars_combines_filters_with_and(client, backend):
    match = backend.seed_car(brand="Toyota", location="Berlin", price_per_day=70.0)
    backend.seed_car(brand="Toyota", location="Berlin", price_per_day=150.0)
    backend.seed_car(brand="BMW", location="Berlin", price_per_day=60.0)
    backend.seed_car(brand="Toyota", location="Munich", price_per_day=50.0)

    cars = await CarsService.get_cars(
        client,
        CarFilters(brand="Toyota", location="Berlin", max_price=100),
    )

    assert [car.id for car in cars] == [match["id"]]


async def test_zero_max_price_is_still_a_filter(client, backend):
    backend.seed_car(price_per_day=10.0)

    cars = await CarsService.get_cars(client, CarFilters(max_price=0))

    assert cars == []
    assert ("price_per_day", "lte.0.0") in backend.requests[-1].params


async def test_blank_filter_fields_are_ignored(client, backend):
    backend.seed_car(brand="Toyota")
    backend.seed_car(brand="BMW")

    cars = await CarsService.get_cars(client, CarFilters(brand="  ", status=None))

    assert len(cars) == 2


async def test_get_car_by_id(client, backend):
    row = backend.seed_car(brand="Audi", model="A4", status="booked")

    car = await CarsService.get_car_by_id(client, row["id"])

    assert (car.brand, car.model, car.status) == ("Audi", "A4", CarStatus.booked)

    with pytest.raises(NotFoundError):
        await CarsService.get_car_by_id(client, "does-not-exist")


async def test_car_crud_round_trip(client, backend):
    created = await CarsService.create_car(
        client,
        CarCreate(brand="Tesla", model="Model 3", year=2023, price_per_day=120, location="Hamburg"),
    )
    assert created.status == CarStatus.available

    updated = await CarsService.update_car(client, created.id, CarUpdate(status=CarStatus.maintenance))
    assert updated.status == CarStatus.maintenance
    assert updated.price_per_day == 120

    await CarsService.delete_car(client, created.id)
    assert backend.rows("cars") == []


async def test_overlapping_booking_makes_car_unavailable(client, backend):
    car = backend.seed_car()
    backend.seed(
        "bookings",
        car_id=car["id"],
        user_id="someone",
        start_date="2024-06-03",
        end_date="2024-06-10",
        total_price=560,
        status="confirmed",
    )

    assert not await CarsService.get_car_availability(client, car["id"], date(2024, 6, 1), date(2024, 6, 5))
    # выбранный отрезок целиком внутри брони
    assert not await CarsService.get_car_availability(client, car["id"], date(2024, 6, 4), date(2024, 6, 6))
    # граница включительно: день возврата = день выдачи
    assert not await CarsService.get_car_availability(client, car["id"], date(2024, 6, 10), date(2024, 6, 12))
    assert await CarsService.get_car_availability(client, car["id"], date(2024, 6, 11), date(2024, 6, 15))
    assert await CarsService.get_car_availability(client, car["id"], date(2024, 5, 20), date(2024, 6, 2))


async def test_cancelled_and_foreign_bookings_do_not_block(client, backend):
    car = backend.seed_car()
    other = backend.seed_car()
    backend.seed("bookings", car_id=car["id"], start_date="2024-06-03", end_date="2024-06-10",
                 total_price=1, status="cancelled")
    backend.seed("bookings", car_id=other["id"], start_date="2024-06-03", end_date="2024-06-10",
                 total_price=1, status="active")

    assert await CarsService.get_car_availability(client, car["id"], date(2024, 6, 1), date(2024, 6, 5))


async def test_availability_with_reversed_dates_is_rejected_without_query(client, backend):
    with pytest.raises(ValidationError):
        await CarsService.get_car_availability(client, "car", date(2024, 6, 5), date(2024, 6, 1))
    assert backend.table_requests("bookings") == []


def test_calculate_days():
    assert CarsService.calculate_days(None, date(2024, 6, 5)) == 0
    assert CarsService.calculate_days(date(2024, 6, 1), date(2024, 6, 1)) == 0
    assert CarsService.calculate_days(date(2024, 6, 1), date(2024, 6, 5)) == 4
    assert CarsService.calculate_days(date(2024, 6, 5), date(2024, 6, 1)) == 4


async def test_create_booking_is_always_pending(client, backend):
    car = backend.seed_car(price_per_day=50)
    data_in = BookingCreate.model_validate(
        {
            "car_id": car["id"],
            "user_id": "u1",
            "start_date": "2024-07-01",
            "end_date": "2024-07-04",
            "total_price": 150,
            "status": "confirmed",
        }
    )

    booking = await CarsService.create_booking(client, data_in)

    assert booking.status == BookingStatus.pending
    assert booking.car is not None and booking.car.id == car["id"]
    assert backend.rows("bookings")[0]["status"] == "pending"


def test_booking_create_rejects_reversed_dates():
    with pytest.raises(ValueError):
        BookingCreate(car_id="c", start_date=date(2024, 7, 4), end_date=date(2024, 7, 1), total_price=0)


async def test_user_and_admin_booking_lists(client, backend):
    car = backend.seed_car()
    user_id = backend.add_user("renter@autohub.test", name="Renter")
    mine = backend.seed("bookings", car_id=car["id"], user_id=user_id, start_date="2024-06-01",
                        end_date="2024-06-02", total_price=80, status="pending")
    backend.seed("bookings", car_id=car["id"], user_id="someone-else", start_date="2024-07-01",
                 end_date="2024-07-02", total_price=80, status="pending")

    own = await CarsService.get_user_bookings(client, user_id)
    assert [b.id for b in own] == [mine["id"]]
    assert own[0].car.brand == "Toyota"

    everything = await CarsService.get_all_bookings(client)
    assert len(everything) == 2
    renter_booking = next(b for b in everything if b.id == mine["id"])
    assert renter_booking.user.name == "Renter"


async def test_update_booking_status(client, backend):
    car = backend.seed_car()
    row = backend.seed("bookings", car_id=car["id"], start_date="2024-06-01", end_date="2024-06-02",
                       total_price=80, status="pending")

    booking = await CarsService.update_booking_status(client, row["id"], BookingStatus.confirmed)

    assert booking.status == BookingStatus.confirmed
    assert backend.rows("bookings")[0]["status"] == "confirmed"
