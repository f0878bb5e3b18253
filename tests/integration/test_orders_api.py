"""Integration tests for the orders endpoints."""

import uuid
from decimal import Decimal

import pytest
from services.store_service.models import OrderStatus
from tests.factories import CustomerFactory, OrderFactory, ProductFactory


async def _seed(db, **product_overrides):
    customer = CustomerFactory.create()
    product = ProductFactory.create(**product_overrides)
    db.add_all([customer, product])
    await db.commit()
    return customer, product


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_order(client, db_session, notifier):
    customer, product = await _seed(
        db_session, price=Decimal("19.99"), stock_quantity=5
    )

    response = await client.post(
        "/api/v1/orders",
        json={
            "customer_id": str(customer.id),
            "items": [{"product_id": str(product.id), "quantity": 3}],
        },
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["status"] == "pending"
    assert data["status_label"] == "Pending"
    assert Decimal(data["total_amount"]) == Decimal("59.97")
    assert data["customer"]["email"] == customer.email
    assert data["items"][0]["product_name"] == product.name
    assert Decimal(data["items"][0]["unit_price"]) == Decimal("19.99")
    assert len(notifier.jobs) == 1

    await db_session.refresh(product)
    assert product.stock_quantity == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_order_insufficient_stock(client, db_session):
    customer, product = await _seed(db_session, name="Teapot", stock_quantity=1)

    response = await client.post(
        "/api/v1/orders",
        json={
            "customer_id": str(customer.id),
            "items": [{"product_id": str(product.id), "quantity": 2}],
        },
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INSUFFICIENT_STOCK"
    assert error["message"] == "Insufficient stock for product: Teapot. Available: 1"
    assert response.json()["success"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_order_unknown_product(client, db_session):
    customer, _ = await _seed(db_session)

    response = await client.post(
        "/api/v1/orders",
        json={
            "customer_id": str(customer.id),
            "items": [{"product_id": str(uuid.uuid4()), "quantity": 1}],
        },
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize("quantities", [[], [0]])
async def test_create_order_validates_payload(client, db_session, quantities):
    customer, product = await _seed(db_session)
    items = [{"product_id": str(product.id), "quantity": q} for q in quantities]

    response = await client.post(
        "/api/v1/orders", json={"customer_id": str(customer.id), "items": items}
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_order(client, db_session):
    customer, product = await _seed(db_session)
    created = await client.post(
        "/api/v1/orders",
        json={
            "customer_id": str(customer.id),
            "items": [{"product_id": str(product.id), "quantity": 1}],
        },
    )
    order_id = created.json()["id"]

    response = await client.get(f"/api/v1/orders/{order_id}")

    assert response.status_code == 200
    assert response.json()["id"] == order_id

    missing = await client.get(f"/api/v1/orders/{uuid.uuid4()}")
    assert missing.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_orders_filters_by_status(client, db_session):
    customer, _ = await _seed(db_session)
    pending = OrderFactory.create(customer_id=customer.id)
    cancelled = OrderFactory.create(
        customer_id=customer.id, status=OrderStatus.CANCELLED
    )
    db_session.add_all([pending, cancelled])
    await db_session.commit()

    response = await client.get(
        "/api/v1/orders", params={"customer_id": str(customer.id), "status": "cancelled"}
    )

    assert response.status_code == 200
    assert [o["id"] for o in response.json()] == [str(cancelled.id)]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_order_status(client, db_session):
    customer, _ = await _seed(db_session)
    order = OrderFactory.create(customer_id=customer.id)
    db_session.add(order)
    await db_session.commit()

    response = await client.patch(
        f"/api/v1/orders/{order.id}/status", json={"status": "processing"}
    )

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "processing"


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.PROCESSING, "pending"),
        (OrderStatus.COMPLETED, "refunded"),
        (OrderStatus.CANCELLED, "processing"),
    ],
)
async def test_update_order_status_rejections(client, db_session, current, target):
    customer, _ = await _seed(db_session)
    order = OrderFactory.create(customer_id=customer.id, status=current)
    db_session.add(order)
    await db_session.commit()

    response = await client.patch(
        f"/api/v1/orders/{order.id}/status", json={"status": target}
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_STATE_TRANSITION"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_order_status_unknown_value(client, db_session):
    customer, _ = await _seed(db_session)
    order = OrderFactory.create(customer_id=customer.id)
    db_session.add(order)
    await db_session.commit()

    response = await client.patch(
        f"/api/v1/orders/{order.id}/status", json={"status": "shipped"}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers
