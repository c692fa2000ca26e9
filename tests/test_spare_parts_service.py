import pytest

from webapp.app.schemas.order import OrderCreate, OrderStatus
from webapp.app.schemas.spare_part import SparePartCreate, SparePartFilters, SparePartUpdate
from webapp.app.services.spare_parts_service import SparePartsService


async def test_category_and_text_search(client, backend):
    pads = backend.seed_part(name="Brake Pad Set", category="Brakes", description="Front axle")
    backend.seed_part(name="Brake Disc", category="Brakes", description="Vented disc")
    backend.seed_part(name="Oil Filter", category="Filters", description="Fits most pads? no")
    backend.seed_part(name="Rear Brake PADS", category="Brakes", stock=0)

    parts = await SparePartsService.get_spare_parts(
        client,
        SparePartFilters(category="Brakes", search="pad"),
    )

    assert [p.id for p in parts] == [pads["id"]]


async def test_brakes_pad_scenario(client, backend):
    pad = backend.seed_part(name="Brake Pad", category="Brakes", stock=5, description=None)
    backend.seed_part(name="Oil Filter", category="Engine", stock=3, description=None)

    parts = await SparePartsService.get_spare_parts(client, SparePartFilters(category="Brakes", search="pad"))

    assert [p.id for p in parts] == [pad["id"]]


async def test_search_matches_description_case_insensitive(client, backend):
    match = backend.seed_part(name="Kit", description="Includes CERAMIC pads")
    backend.seed_part(name="Wiper", description="Rain blade")

    parts = await SparePartsService.get_spare_parts(client, SparePartFilters(search="ceramic"))

    assert [p.id for p in parts] == [match["id"]]


async def test_out_of_stock_parts_are_hidden(client, backend):
    in_stock = backend.seed_part(stock=1)
    backend.seed_part(stock=0)

    parts = await SparePartsService.get_spare_parts(client)

    assert [p.id for p in parts] == [in_stock["id"]]
    assert ("stock", "gt.0") in backend.requests[-1].params


async def test_categories_are_unique(client, backend):
    backend.seed_part(category="Brakes")
    backend.seed_part(category="Brakes")
    backend.seed_part(category="Filters")
    backend.seed_part(category=None)

    categories = await SparePartsService.get_categories(client)

    assert sorted(categories) == ["Brakes", "Filters"]


async def test_stock_update_round_trip(client, backend):
    part = await SparePartsService.create_spare_part(
        client,
        SparePartCreate(name="Spark Plug", category="Ignition", price=9.5, stock=4),
    )

    updated = await SparePartsService.update_spare_part(client, part.id, SparePartUpdate(stock=12))
    fetched = await SparePartsService.get_spare_part_by_id(client, part.id)

    assert updated.stock == 12
    assert fetched.stock == 12
    assert fetched.price == 9.5
    assert fetched.id == part.id
    # не трогали, значит не отправляли
    assert backend.requests[-2].body == {"stock": 12}


async def test_delete_spare_part(client, backend):
    part = backend.seed_part()
    await SparePartsService.delete_spare_part(client, part["id"])
    assert backend.rows("spare_parts") == []


async def test_create_order_computes_total_and_pending(client, backend):
    part = backend.seed_part(price=25.0)
    data_in = OrderCreate.model_validate(
        {
            "spare_part_id": part["id"],
            "user_id": "u1",
            "quantity": 3,
            "unit_price": 25.0,
            "total_price": 1,
            "status": "delivered",
        }
    )

    order = await SparePartsService.create_order(client, data_in)

    assert order.total_price == 75.0
    assert order.status == OrderStatus.pending
    assert order.spare_part.name == "Brake Pad Set"


def test_order_quantity_must_be_positive():
    with pytest.raises(ValueError):
        OrderCreate(spare_part_id="p", quantity=0, unit_price=1)


async def test_order_lists_and_status_update(client, backend):
    part = backend.seed_part()
    user_id = backend.add_user("buyer@autohub.test", name="Buyer")
    mine = backend.seed("orders", spare_part_id=part["id"], user_id=user_id, quantity=1,
                        unit_price=45.0, total_price=45.0, status="pending")
    backend.seed("orders", spare_part_id=part["id"], user_id="other", quantity=2,
                 unit_price=45.0, total_price=90.0, status="shipped")

    own = await SparePartsService.get_user_orders(client, user_id)
    assert [o.id for o in own] == [mine["id"]]

    everything = await SparePartsService.get_all_orders(client)
    assert {o.id for o in everything} == {o["id"] for o in backend.rows("orders")}
    assert next(o for o in everything if o.id == mine["id"]).user.name == "Buyer"

    updated = await SparePartsService.update_order_status(client, mine["id"], OrderStatus.shipped)
    assert updated.status == OrderStatus.shipped
