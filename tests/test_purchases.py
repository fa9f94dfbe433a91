import re
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.core.exceptions import PaymentGatewayError, ValidationError
from storefront.modules.orders.models import OrderDetail, Purchase, PurchaseStatus
from storefront.modules.orders.schemas import CartItem, PurchaseCreate
from storefront.modules.orders.service import PurchaseService, generate_external_reference, to_minor_units

REFERENCE_PATTERN = re.compile(r"^REF-\d+-[0-9a-z]{9}$")


def purchase_request(items, **overrides):
    data = {
        "buyer_email": "ana@example.com",
        "buyer_name": "  Ana Gómez ",
        "buyer_identification_number": "1020304050",
        "buyer_contact_number": "3001234567",
        "shipping_address": "Calle 10 # 20-30, Medellín",
        "items": items,
    }
    data.update(overrides)
    return PurchaseCreate(**data)


async def count_rows(session, model):
    return await session.scalar(select(func.count()).select_from(model))


class TestCreatePurchase:
    async def test_prices_cart_from_catalog(self, service, session, make_product):
        product = await make_product(price="50.00")

        created = await service.create_purchase(purchase_request([CartItem(product_id=product.id, quantity=2)]))

        assert created.total_amount == 100.0
        assert len(created.items) == 1
        assert created.items[0].total_price == 100.0
        assert created.items[0].product_name == product.name

        purchase = await session.get(Purchase, created.purchase_id)
        assert purchase.amount == 10000
        assert purchase.status == PurchaseStatus.PENDING
        assert purchase.buyer_name == "Ana Gómez"
        assert purchase.currency == "COP"

        details = (await session.execute(select(OrderDetail))).scalars().all()
        assert len(details) == 1
        assert details[0].quantity == 2
        assert details[0].unit_price == Decimal("50.00")
        assert details[0].total_price == Decimal("100.00")

    async def test_total_is_sum_of_line_items(self, service, make_product):
        shirt = await make_product(name="Camiseta", price="45000.50", colors=["Negro", "Blanco"])
        cap = await make_product(name="Gorra", price="35000.25")

        created = await service.create_purchase(purchase_request([
            CartItem(product_id=shirt.id, quantity=3, selected_color="Negro"),
            CartItem(product_id=cap.id, quantity=1),
        ]))

        assert created.total_amount == pytest.approx(sum(item.total_price for item in created.items))
        assert created.total_amount == pytest.approx(170001.75)
        assert created.items[0].selected_color == "Negro"

    async def test_attaches_payment_session(self, service, session, gateway, make_product):
        product = await make_product(price="50.00")

        created = await service.create_purchase(purchase_request([CartItem(product_id=product.id, quantity=1)]))

        purchase = await session.get(Purchase, created.purchase_id)
        assert REFERENCE_PATTERN.match(purchase.external_reference)
        assert purchase.wompi_transaction_id == purchase.external_reference
        assert created.wompi_transaction_id == purchase.external_reference
        assert created.payment_url.startswith("https://checkout.wompi.co/p/?")
        assert gateway.sessions[0].amount_in_cents == 5000

    async def test_gateway_failure_keeps_pending_purchase(self, service, session, gateway, make_product):
        product = await make_product(price="50.00")
        gateway.fail = True

        with pytest.raises(PaymentGatewayError):
            await service.create_purchase(purchase_request([CartItem(product_id=product.id, quantity=1)]))

        purchases = (await session.execute(select(Purchase))).scalars().all()
        assert len(purchases) == 1
        assert purchases[0].status == PurchaseStatus.PENDING
        assert purchases[0].wompi_transaction_id is None
        assert await count_rows(session, OrderDetail) == 1

    async def test_minimum_amount(self, session, gateway, email_service, test_settings, make_product):
        product = await make_product(price="50.00")
        test_settings.MIN_PURCHASE_AMOUNT = Decimal("200")
        service = PurchaseService(session, gateway, email_service, test_settings)

        with pytest.raises(ValidationError):
            await service.create_purchase(purchase_request([CartItem(product_id=product.id, quantity=2)]))
        assert await count_rows(session, Purchase) == 0


class TestCreatePurchaseValidation:
    async def assert_rejected(self, service, session, request):
        with pytest.raises(ValidationError):
            await service.create_purchase(request)
        assert await count_rows(session, Purchase) == 0
        assert await count_rows(session, OrderDetail) == 0

    async def test_empty_cart(self, service, session):
        await self.assert_rejected(service, session, purchase_request([]))

    async def test_unknown_product(self, service, session):
        await self.assert_rejected(service, session, purchase_request([CartItem(product_id=999, quantity=1)]))

    async def test_unavailable_product(self, service, session, make_product):
        product = await make_product(status="sold_out")
        await self.assert_rejected(service, session, purchase_request([CartItem(product_id=product.id, quantity=1)]))

    async def test_color_not_offered(self, service, session, make_product):
        product = await make_product(colors=["Rojo"])
        request = purchase_request([CartItem(product_id=product.id, quantity=1, selected_color="Verde")])
        await self.assert_rejected(service, session, request)

    async def test_malformed_email(self, service, session, make_product):
        product = await make_product()
        request = purchase_request([CartItem(product_id=product.id, quantity=1)], buyer_email="ana.example.com")
        await self.assert_rejected(service, session, request)

    async def test_non_positive_quantity(self, service, session, make_product):
        product = await make_product()
        await self.assert_rejected(service, session, purchase_request([CartItem(product_id=product.id, quantity=0)]))

    async def test_short_buyer_fields(self, service, session, make_product):
        product = await make_product()
        items = [CartItem(product_id=product.id, quantity=1)]
        await self.assert_rejected(service, session, purchase_request(items, buyer_name=" A "))
        await self.assert_rejected(service, session, purchase_request(items, buyer_identification_number="123"))
        await self.assert_rejected(service, session, purchase_request(items, buyer_contact_number="300"))

    async def test_invalid_item_after_valid_one_writes_nothing(self, service, session, make_product):
        product = await make_product()
        request = purchase_request([
            CartItem(product_id=product.id, quantity=1),
            CartItem(product_id=product.id + 100, quantity=1),
        ])
        await self.assert_rejected(service, session, request)


def test_external_reference_format():
    references = {generate_external_reference() for _ in range(50)}
    assert len(references) == 50
    assert all(REFERENCE_PATTERN.match(ref) for ref in references)


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("100.00")) == 10000
    assert to_minor_units(Decimal("0.005")) == 1
    assert to_minor_units(Decimal("170001.75")) == 17000175
