import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from services.order_service.models import Order, OrderItem
from services.order_service.repository import OrderRepository
from services.order_service.schemas import OrderCreate
from services.order_service import service as service_module
from services.order_service.service import OrderService
from services.product_service.models import Product
from shared.errors import PersistenceError, ValidationError


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def _stock(session_factory, product) -> int:
    async with session_factory() as session:
        return await session.scalar(
            select(Product.stock_quantity).where(Product.id == product.id)
        )


async def test_totals_are_computed_server_side(client, order_payload):
    response = await client.post("/", json=order_payload())

    assert response.status_code == 201
    body = response.json()
    assert Decimal(body["subtotal"]) == Decimal("250")
    assert Decimal(body["shipping_cost"]) == Decimal("20")
    assert Decimal(body["tax"]) == Decimal("0")
    assert Decimal(body["total"]) == Decimal("270")
    assert body["status"] == "pending"
    assert body["order_number"].startswith("RAY-")

    lines = [(Decimal(i["product_price"]), i["quantity"], Decimal(i["subtotal"])) for i in body["items"]]
    assert lines == [(Decimal("100"), 2, Decimal("200")), (Decimal("50"), 1, Decimal("50"))]


async def test_client_totals_are_not_trusted(client, order_payload):
    response = await client.post("/", json=order_payload(subtotal="1.00", total="1.00"))

    assert response.status_code == 201
    assert Decimal(response.json()["total"]) == Decimal("270")


async def test_subtotal_keeps_cents(client, order_payload, products):
    oud, _ = products
    payload = order_payload(items=[(oud, 3)])
    payload["items"][0]["product_price"] = "19.99"

    response = await client.post("/", json=payload)

    assert response.status_code == 201
    assert Decimal(response.json()["subtotal"]) == Decimal("59.97")


async def test_default_shipping_and_contact_fields(client, order_payload):
    payload = order_payload()
    del payload["shipping_cost"]

    body = (await client.post("/", json=payload)).json()

    assert Decimal(body["shipping_cost"]) == Decimal("0")
    assert Decimal(body["total"]) == Decimal("250")
    assert body["shipping_country"] == "Maroc"
    assert body["whatsapp_phone"] == payload["shipping_phone"]
    assert body["billing_address"] == payload["shipping_address"]


async def test_guest_checkout_has_no_user(place_order):
    order = await place_order()
    assert order["user_id"] is None


async def test_authenticated_checkout_is_linked_to_user(place_order, customer_headers, customer_id):
    order = await place_order(headers=customer_headers)
    assert order["user_id"] == customer_id


async def test_invalid_token_is_rejected_rather_than_treated_as_guest(client, order_payload):
    response = await client.post(
        "/", json=order_payload(), headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401
    assert "message" in response.json()


async def test_stock_is_decremented(client, order_payload, products, session_factory):
    oud, rose = products
    await client.post("/", json=order_payload())

    assert await _stock(session_factory, oud) == 8
    assert await _stock(session_factory, rose) == 9


async def test_unknown_product_is_a_field_error(client, order_payload, products, session_factory):
    payload = order_payload()
    payload["items"][1]["product_id"] = str(uuid.uuid4())

    response = await client.post("/", json=payload)

    assert response.status_code == 422
    assert response.json()["errors"] == [
        {"field": "items.1.product_id", "message": "The selected product does not exist"}
    ]
    assert await _count(session_factory, Order) == 0
    assert await _stock(session_factory, products[0]) == 10


async def test_insufficient_stock_rolls_back_everything(client, order_payload, products, session_factory):
    oud, rose = products
    response = await client.post("/", json=order_payload(items=[(oud, 2), (rose, 11)]))

    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "items.1.quantity"
    assert await _count(session_factory, Order) == 0
    assert await _count(session_factory, OrderItem) == 0
    # the first line had already been reserved inside the transaction
    assert await _stock(session_factory, oud) == 10


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"items": []}, "items"),
        ({"customer_name": ""}, "customer_name"),
        ({"shipping_phone": "call me"}, "shipping_phone"),
        ({"shipping_cost": "-5"}, "shipping_cost"),
    ],
)
async def test_request_validation_is_structured(client, order_payload, overrides, field):
    payload = order_payload()
    payload.update(overrides)

    response = await client.post("/", json=payload)

    assert response.status_code == 422
    body = response.json()
    assert body["message"]
    assert field in [error["field"] for error in body["errors"]]


async def test_item_quantity_must_be_positive(client, order_payload):
    payload = order_payload()
    payload["items"][0]["quantity"] = 0

    response = await client.post("/", json=payload)

    assert response.status_code == 422
    assert "items.0.quantity" in [error["field"] for error in response.json()["errors"]]


async def test_database_failure_leaves_no_partial_order(
    db, cache, order_payload, products, session_factory, monkeypatch
):
    async def broken_add_order(session, order):
        session.add(order)
        await session.flush()
        raise OperationalError("INSERT INTO order_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(OrderRepository, "add_order", staticmethod(broken_add_order))

    with pytest.raises(PersistenceError):
        await OrderService.create_order(db, cache, OrderCreate(**order_payload()))

    assert await _count(session_factory, Order) == 0
    assert await _count(session_factory, OrderItem) == 0
    assert await _stock(session_factory, products[0]) == 10


async def test_service_reports_every_missing_product(db, cache, order_payload):
    payload = order_payload()
    for item in payload["items"]:
        item["product_id"] = str(uuid.uuid4())

    with pytest.raises(ValidationError) as exc_info:
        await OrderService.create_order(db, cache, OrderCreate(**payload))

    assert [e["field"] for e in exc_info.value.errors] == ["items.0.product_id", "items.1.product_id"]


async def test_line_total_beyond_money_columns_is_a_field_error(client, order_payload, products, session_factory):
    oud, _ = products
    payload = order_payload(items=[(oud, 1000)])
    payload["items"][0]["product_price"] = "99999999.99"

    response = await client.post("/", json=payload)

    assert response.status_code == 422
    assert response.json()["errors"] == [
        {"field": "items.0.quantity", "message": "The line total exceeds the maximum order amount"}
    ]
    assert await _count(session_factory, Order) == 0
    assert await _stock(session_factory, oud) == 10


async def test_order_total_beyond_money_columns_is_a_field_error(client, order_payload, products):
    oud, rose = products
    payload = order_payload(items=[(oud, 1), (rose, 1)])
    for item in payload["items"]:
        item["product_price"] = "60000000.00"

    response = await client.post("/", json=payload)

    assert response.status_code == 422
    assert [e["field"] for e in response.json()["errors"]] == ["total"]


class _RecordingLogger:
    def __init__(self):
        self.events = []

    def _record(self, event, **kw):
        self.events.append((event, kw))

    info = warning = error = _record


async def test_price_differing_from_catalog_is_logged(client, order_payload, products, monkeypatch):
    oud, _ = products
    recorder = _RecordingLogger()
    monkeypatch.setattr(service_module, "logger", recorder)
    payload = order_payload(items=[(oud, 1)])
    payload["items"][0]["product_price"] = "1.00"

    response = await client.post("/", json=payload)

    assert response.status_code == 201
    assert Decimal(response.json()["subtotal"]) == Decimal("1.00")
    mismatches = [kw for event, kw in recorder.events if event == "item_price_mismatch"]
    assert mismatches == [
        {"line": 0, "product_id": str(oud.id), "submitted": "1.00", "catalog": "100.00"}
    ]


async def test_number_taken_at_insert_is_retried(client, place_order, products, session_factory, monkeypatch):
    taken = (await place_order())["order_number"]
    numbers = iter([taken, "RAY-20261019-RETRY000"])

    async def racing_generator(exists):
        # The existence check passed, then another checkout took the number
        return next(numbers)

    monkeypatch.setattr(service_module, "generate_order_number", racing_generator)

    order = await place_order()

    assert order["order_number"] == "RAY-20261019-RETRY000"
    assert await _count(session_factory, Order) == 2
    # the failed attempt's stock reservation was rolled back
    assert await _stock(session_factory, products[0]) == 6
    assert await _stock(session_factory, products[1]) == 8


async def test_number_always_taken_at_insert_gives_up(client, place_order, order_payload, products, session_factory, monkeypatch):
    taken = (await place_order())["order_number"]

    async def racing_generator(exists):
        return taken

    monkeypatch.setattr(service_module, "generate_order_number", racing_generator)

    response = await client.post("/", json=order_payload())

    assert response.status_code == 503
    assert await _count(session_factory, Order) == 1
    assert await _stock(session_factory, products[0]) == 8
