import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Numeric, Enum, CheckConstraint
from sqlalchemy.orm import relationship

from storefront.core.db import Base, utcnow
from storefront.modules.catalog.models import Product  # noqa: F401  registers the "Product" mapper

class PurchaseStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"

class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

PAID_STATUSES = frozenset({PurchaseStatus.APPROVED, PurchaseStatus.COMPLETED})

# Payment lifecycle. Nothing leads back to PENDING.
ALLOWED_TRANSITIONS = {
    PurchaseStatus.PENDING: frozenset({
        PurchaseStatus.APPROVED,
        PurchaseStatus.COMPLETED,
        PurchaseStatus.REJECTED,
        PurchaseStatus.CANCELLED,
        PurchaseStatus.FAILED,
    }),
    PurchaseStatus.APPROVED: frozenset({PurchaseStatus.COMPLETED, PurchaseStatus.CANCELLED}),
    PurchaseStatus.COMPLETED: frozenset(),
    PurchaseStatus.REJECTED: frozenset(),
    PurchaseStatus.CANCELLED: frozenset(),
    PurchaseStatus.FAILED: frozenset(),
}

def can_transition(current: PurchaseStatus, new: PurchaseStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())

class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True)

    buyer_email = Column(String, nullable=False, index=True)
    buyer_name = Column(String, nullable=False)
    buyer_identification_number = Column(String, nullable=False)
    buyer_contact_number = Column(String, nullable=True)
    shipping_address = Column(Text, nullable=True)

    status = Column(Enum(PurchaseStatus, name="purchase_status"), default=PurchaseStatus.PENDING, nullable=False)
    order_status = Column(Enum(OrderStatus, name="order_status"), default=OrderStatus.PENDING, nullable=False)

    amount = Column(Integer, nullable=False)  # minor currency units
    currency = Column(String, nullable=False, default="COP")
    payment_provider = Column(String, nullable=False, default="WOMPI")

    external_reference = Column(String, unique=True, nullable=False)
    preference_id = Column(String, nullable=True)
    wompi_transaction_id = Column(String, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    order_details = relationship(
        "OrderDetail",
        back_populates="purchase",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderDetail.id",
    )

class OrderDetail(Base):
    __tablename__ = "order_details"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_details_quantity_positive"),
    )

    id = Column(Integer, primary_key=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)  # unit_price * quantity at purchase time
    selected_color = Column(String, nullable=True)

    purchase = relationship("Purchase", back_populates="order_details")
    product = relationship("Product")
