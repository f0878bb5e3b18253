"""Unit tests for the inventory ledger.

Tests call the ledger functions directly with the db_session fixture.
"""

import pytest
from libs.common.errors import ValidationError
from services.store_service.services.inventory_ledger import (
    decrease_stock,
    has_stock,
    increase_stock,
    low_stock,
)
from tests.factories import ProductFactory


async def _make_product(db, **overrides):
    product = ProductFactory.create(**overrides)
    db.add(product)
    await db.commit()
    return product


@pytest.mark.unit
def test_has_stock_is_inclusive():
    product = ProductFactory.create(stock_quantity=5)

    assert has_stock(product, 5)
    assert has_stock(product, 1)
    assert not has_stock(product, 6)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_decrease_stock_success(db_session):
    product = await _make_product(db_session, stock_quantity=10)

    assert await decrease_stock(db_session, product, 3) is True
    await db_session.commit()

    assert product.stock_quantity == 7
    await db_session.refresh(product)
    assert product.stock_quantity == 7


@pytest.mark.asyncio
@pytest.mark.unit
async def test_decrease_stock_to_exactly_zero(db_session):
    product = await _make_product(db_session, stock_quantity=4)

    assert await decrease_stock(db_session, product, 4) is True
    await db_session.commit()

    await db_session.refresh(product)
    assert product.stock_quantity == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_decrease_stock_refuses_when_insufficient(db_session):
    """A refused decrease returns False and leaves stock untouched."""
    product = await _make_product(db_session, stock_quantity=2)

    assert await decrease_stock(db_session, product, 3) is False
    await db_session.commit()

    await db_session.refresh(product)
    assert product.stock_quantity == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_decrease_stock_checks_current_database_value(db_session):
    """The check runs in the UPDATE, not against a stale in-memory count."""
    product = await _make_product(db_session, stock_quantity=5)
    product.stock_quantity = 100  # stale, never flushed

    assert await decrease_stock(db_session, product, 6) is False


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("quantity", [0, -1])
async def test_non_positive_quantities_are_rejected(db_session, quantity):
    product = await _make_product(db_session, stock_quantity=5)

    with pytest.raises(ValidationError):
        await decrease_stock(db_session, product, quantity)
    with pytest.raises(ValidationError):
        await increase_stock(db_session, product, quantity)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_increase_stock(db_session):
    product = await _make_product(db_session, stock_quantity=1)

    await increase_stock(db_session, product, 9)
    await db_session.commit()

    await db_session.refresh(product)
    assert product.stock_quantity == 10


@pytest.mark.asyncio
@pytest.mark.unit
async def test_low_stock_lists_products_at_or_below_threshold(db_session):
    empty = await _make_product(db_session, name="Empty", stock_quantity=0)
    at_threshold = await _make_product(db_session, name="Edge", stock_quantity=10)
    await _make_product(db_session, name="Plenty", stock_quantity=11)

    products = await low_stock(db_session, threshold=10)

    assert [p.id for p in products] == [empty.id, at_threshold.id]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_low_stock_skips_deleted_products(db_session):
    from libs.common.datetime_utils import utc_now

    await _make_product(db_session, stock_quantity=0, deleted_at=utc_now())

    assert await low_stock(db_session, threshold=5) == []
