import hashlib
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.pool import StaticPool

from storefront.core import deps
from storefront.core.config import Settings, get_settings, settings
from storefront.core.db import Base, Database, get_db
from storefront.core.exceptions import PaymentGatewayError
from storefront.modules.catalog.models import Category, Product
from storefront.modules.notifications.service import EmailService
from storefront.modules.orders.models import OrderDetail, OrderStatus, Purchase, PurchaseStatus
from storefront.modules.orders.service import PurchaseService, generate_external_reference
from storefront.modules.payments.wompi import WompiClient

WOMPI_API_URL = "https://sandbox.wompi.co/v1"
EVENTS_SECRET = "test_events_secret"


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self.payload = payload or {}
        self.text = str(self.payload)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self.payload


class FakeHttp:
    """Stands in for requests.Session; unknown URLs answer 404."""

    def __init__(self):
        self.responses = {}
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append(url)
        return self.responses.get(url, FakeResponse(404))


class RecordingGateway(WompiClient):
    def __init__(self):
        super().__init__(
            public_key="pub_test_123",
            integrity_secret="test_integrity_secret",
            events_secret=EVENTS_SECRET,
            api_url=WOMPI_API_URL,
            checkout_url="https://checkout.wompi.co/p/",
            currency="COP",
            http=FakeHttp(),
        )
        self.sessions = []
        self.fail = False

    def respond(self, transaction_id, status_code, payload=None):
        self.http.responses[f"{WOMPI_API_URL}/transactions/{transaction_id}"] = FakeResponse(status_code, payload)

    def create_payment(self, **kwargs):
        if self.fail:
            raise PaymentGatewayError("Wompi unavailable")
        session = super().create_payment(**kwargs)
        self.sessions.append(session)
        return session


class RecordingEmailService(EmailService):
    def __init__(self):
        super().__init__(None, "ventas@test.local", "Tienda de prueba")
        self.sent = []
        self.result = True

    def send_payment_confirmation_email(self, payload):
        self.sent.append(payload)
        return self.result


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, CURRENCY="COP", MIN_PURCHASE_AMOUNT=Decimal("0"))


@pytest.fixture
async def database():
    db = Database()
    db.connect(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.disconnect()


@pytest.fixture
async def session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def email_service():
    return RecordingEmailService()


@pytest.fixture
def service(session, gateway, email_service, test_settings):
    return PurchaseService(session, gateway, email_service, test_settings)


@pytest.fixture
async def category(session):
    category = Category(name="Ropa", description="Prendas")
    session.add(category)
    await session.commit()
    return category


@pytest.fixture
def make_product(session, category):
    async def _make(name="Camiseta", price="50.00", colors=None, status="available", **extra):
        fields = {
            "name": name,
            "description": f"{name} de prueba",
            "price": Decimal(price),
            "category_id": category.id,
            "status": status,
            "colors": colors if colors is not None else [],
            "images": [],
        }
        fields.update(extra)
        product = Product(**fields)
        session.add(product)
        await session.commit()
        return product
    return _make


@pytest.fixture
def make_purchase(session):
    """Inserts a purchase with line items directly, bypassing checkout."""
    async def _make(
        items=(),
        status=PurchaseStatus.PENDING,
        buyer_email="ana@example.com",
        amount=None,
        created_at=None,
        updated_at=None,
        wompi_transaction_id=None,
    ):
        now = datetime.now(timezone.utc)
        amount = amount if amount is not None else sum(int(p.price * 100) * q for p, q in items)
        purchase = Purchase(
            buyer_email=buyer_email,
            buyer_name="Ana Gómez",
            buyer_identification_number="1020304050",
            buyer_contact_number="3001234567",
            status=status,
            order_status=OrderStatus.PENDING,
            amount=amount,
            currency="COP",
            payment_provider="WOMPI",
            external_reference=generate_external_reference(),
            wompi_transaction_id=wompi_transaction_id,
            created_at=created_at or now,
            updated_at=updated_at or created_at or now,
        )
        session.add(purchase)
        await session.flush()
        for product, quantity in items:
            session.add(OrderDetail(
                purchase_id=purchase.id,
                product_id=product.id,
                quantity=quantity,
                unit_price=product.price,
                total_price=product.price * quantity,
            ))
        await session.commit()
        return purchase
    return _make


@pytest.fixture
def signed_event():
    def _sign(transaction, event="transaction.updated", secret=EVENTS_SECRET, timestamp=1760700000):
        properties = ["transaction.id", "transaction.status", "transaction.amount_in_cents"]
        values = "".join(str(transaction[prop.split(".", 1)[1]]) for prop in properties)
        checksum = hashlib.sha256(f"{values}{timestamp}{secret}".encode("utf-8")).hexdigest()
        return {
            "event": event,
            "data": {"transaction": transaction},
            "signature": {"properties": properties, "checksum": checksum},
            "timestamp": timestamp,
            "environment": "test",
        }
    return _sign


def make_token(role="admin", sub="admin@storefront.local", secret=None):
    claims = {
        "sub": sub,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=30),
    }
    return jwt.encode(claims, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def customer_headers():
    return {"Authorization": f"Bearer {make_token(role='customer')}"}


@pytest.fixture
async def client(database, gateway, email_service, test_settings):
    from storefront.main import app

    async def override_get_db():
        async with database.session() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[deps.get_payment_gateway] = lambda: gateway
    app.dependency_overrides[deps.get_email_service] = lambda: email_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
