from decimal import Decimal

import pytest

from storefront.core.exceptions import ValidationError
from storefront.modules.orders.order_details import OrderDetailRepository
from storefront.modules.orders.schemas import OrderDetailCreate, OrderDetailUpdate


@pytest.fixture
def repository(session):
    return OrderDetailRepository(session)


async def test_create_returns_detail_with_product(repository, session, make_product, make_purchase):
    product = await make_product(name="Gorra", price="30.00", images=["gorra.jpg"])
    purchase = await make_purchase()

    detail = await repository.create(OrderDetailCreate(
        purchase_id=purchase.id,
        product_id=product.id,
        quantity=2,
        unit_price=Decimal("30.00"),
        total_price=Decimal("60.00"),
        selected_color="Rojo",
    ))
    await session.commit()

    assert detail.id is not None
    assert detail.total_price == Decimal("60.00")
    assert detail.selected_color == "Rojo"
    assert detail.product.name == "Gorra"
    assert detail.product.images == ["gorra.jpg"]


async def test_get_by_purchase_id_in_insert_order(repository, make_product, make_purchase):
    shirt = await make_product(name="Camiseta")
    cap = await make_product(name="Gorra")
    purchase = await make_purchase(items=[(shirt, 1), (cap, 3)])
    await make_purchase(items=[(cap, 1)])

    details = await repository.get_by_purchase_id(purchase.id)

    assert [d.product_id for d in details] == [shirt.id, cap.id]
    assert details[1].quantity == 3


async def test_update(repository, session, make_product, make_purchase):
    product = await make_product(price="50.00")
    purchase = await make_purchase(items=[(product, 1)])
    detail_id = (await repository.get_by_purchase_id(purchase.id))[0].id

    updated = await repository.update(detail_id, OrderDetailUpdate(quantity=4, total_price=Decimal("200.00")))

    assert updated.quantity == 4
    assert updated.total_price == Decimal("200.00")
    assert updated.unit_price == Decimal("50.00")


@pytest.mark.parametrize("quantity", [0, -1])
async def test_update_rejects_non_positive_quantity(repository, make_product, make_purchase, quantity):
    product = await make_product()
    purchase = await make_purchase(items=[(product, 2)])
    detail_id = (await repository.get_by_purchase_id(purchase.id))[0].id

    with pytest.raises(ValidationError):
        await repository.update(detail_id, OrderDetailUpdate(quantity=quantity))

    assert (await repository.get_by_id(detail_id)).quantity == 2


async def test_update_missing_returns_none(repository):
    assert await repository.update(9999, OrderDetailUpdate(quantity=2)) is None


async def test_delete(repository, session, make_product, make_purchase):
    product = await make_product()
    purchase = await make_purchase(items=[(product, 1)])
    detail_id = (await repository.get_by_purchase_id(purchase.id))[0].id

    assert await repository.delete(detail_id) is True
    await session.commit()
    assert await repository.get_by_id(detail_id) is None
    assert await repository.delete(detail_id) is False


async def test_get_by_id_missing(repository):
    assert await repository.get_by_id(9999) is None
