import logging
import re
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Union

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from starlette.concurrency import run_in_threadpool

from storefront.core.config import Settings, settings as default_settings
from storefront.core.db import utcnow
from storefront.core.exceptions import (
    DomainError,
    EmailDeliveryError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from storefront.modules.catalog.models import Product
from storefront.modules.catalog.service import ProductRepository
from storefront.modules.notifications.schemas import EmailItem, PaymentConfirmationEmail
from storefront.modules.notifications.service import EmailService
from storefront.modules.orders import models, schemas
from storefront.modules.orders.order_details import OrderDetailRepository
from storefront.modules.payments.wompi import PaymentSession, WompiClient

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
BASE36_ALPHABET = string.digits + string.ascii_lowercase
UNKNOWN_PRODUCT = "Unknown Product"

def generate_external_reference() -> str:
    """REF-<epoch millis>-<9 random base36 chars>. Uniqueness is probabilistic."""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(9))
    return f"REF-{millis}-{suffix}"

def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def parse_status(status: Union[str, models.PurchaseStatus]) -> models.PurchaseStatus:
    if isinstance(status, models.PurchaseStatus):
        return status
    try:
        return models.PurchaseStatus(str(status).strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown payment status: {status}")

@dataclass
class PricedItem:
    product: Product
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    selected_color: Optional[str] = None

    def to_read(self) -> schemas.PurchaseItemRead:
        return schemas.PurchaseItemRead(
            product_id=self.product.id,
            product_name=self.product.name,
            quantity=self.quantity,
            unit_price=float(self.unit_price),
            total_price=float(self.total_price),
            selected_color=self.selected_color,
        )

def to_purchase_read(purchase: models.Purchase) -> schemas.PurchaseRead:
    return schemas.PurchaseRead(
        id=purchase.id,
        buyer_email=purchase.buyer_email,
        buyer_name=purchase.buyer_name,
        buyer_contact_number=purchase.buyer_contact_number,
        shipping_address=purchase.shipping_address,
        status=purchase.status,
        order_status=purchase.order_status,
        amount=purchase.amount,
        currency=purchase.currency,
        external_reference=purchase.external_reference,
        wompi_transaction_id=purchase.wompi_transaction_id,
        items=[
            schemas.PurchaseItemRead(
                product_id=detail.product_id,
                product_name=detail.product.name if detail.product else UNKNOWN_PRODUCT,
                quantity=detail.quantity,
                unit_price=float(detail.unit_price),
                total_price=float(detail.total_price),
                selected_color=detail.selected_color,
            )
            for detail in purchase.order_details
        ],
        created_at=purchase.created_at,
        updated_at=purchase.updated_at,
    )

class PurchaseService:
    """
    Purchase workflow: cart validation and pricing, persistence of the purchase
    and its line items, payment session creation, status reconciliation and
    the read-side projections used by the storefront and admin tooling.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: WompiClient,
        email_service: EmailService,
        config: Settings = default_settings,
    ):
        self.db = db
        self.gateway = gateway
        self.email_service = email_service
        self.config = config
        self.products = ProductRepository(db)
        self.order_details = OrderDetailRepository(db)

    # Creation

    async def create_purchase(self, request: schemas.PurchaseCreate) -> schemas.PurchaseCreated:
        logger.info(f"[Purchases] Creating purchase for {request.buyer_email} with {len(request.items)} items")

        self._validate_purchase_request(request)
        priced_items = await self._validate_and_price_items(request.items)
        total_amount = sum((item.total_price for item in priced_items), Decimal("0"))

        minimum = self.config.MIN_PURCHASE_AMOUNT
        if minimum and total_amount < minimum:
            raise ValidationError(f"Amount must be at least {minimum} {self.config.CURRENCY}")

        purchase = models.Purchase(
            buyer_email=request.buyer_email,
            buyer_name=request.buyer_name.strip(),
            buyer_identification_number=request.buyer_identification_number,
            buyer_contact_number=request.buyer_contact_number,
            shipping_address=request.shipping_address,
            status=models.PurchaseStatus.PENDING,
            order_status=models.OrderStatus.PENDING,
            amount=to_minor_units(total_amount),
            currency=self.config.CURRENCY,
            payment_provider="WOMPI",
            external_reference=generate_external_reference(),
        )

        # Purchase and line items commit together.
        try:
            self.db.add(purchase)
            await self.db.flush()
            for item in priced_items:
                await self.order_details.create(schemas.OrderDetailCreate(
                    purchase_id=purchase.id,
                    product_id=item.product.id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    selected_color=item.selected_color,
                ))
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"[Purchases] Could not persist purchase for {request.buyer_email}: {e}", exc_info=True)
            raise

        # A failure here leaves a PENDING purchase without a payment reference;
        # the reconciler retries it by external reference.
        session = await self.attach_payment_session(purchase, [item.product.id for item in priced_items])

        logger.info(
            f"[Purchases] Purchase {purchase.id} created ({purchase.external_reference}), "
            f"total {total_amount} {purchase.currency}, transaction {session.transaction_id}"
        )
        return schemas.PurchaseCreated(
            purchase_id=purchase.id,
            wompi_transaction_id=session.transaction_id,
            payment_url=session.payment_url,
            total_amount=float(total_amount),
            items=[item.to_read() for item in priced_items],
        )

    async def attach_payment_session(self, purchase: models.Purchase, product_ids: Sequence[int] = ()) -> PaymentSession:
        try:
            session = self.gateway.create_payment(
                reference=purchase.external_reference,
                amount_in_cents=purchase.amount,
                buyer_email=purchase.buyer_email,
                buyer_name=purchase.buyer_name,
                buyer_identification_number=purchase.buyer_identification_number,
                buyer_contact_number=purchase.buyer_contact_number or "",
                product_ids=product_ids,
            )
        except PaymentGatewayError as e:
            logger.error(f"[Purchases] Payment session failed for purchase {purchase.id} ({purchase.external_reference}): {e.message}")
            raise
        except Exception as e:
            logger.error(f"[Purchases] Payment session failed for purchase {purchase.id} ({purchase.external_reference}): {e}", exc_info=True)
            raise PaymentGatewayError(f"Payment session could not be created: {e}") from e

        purchase.preference_id = session.transaction_id
        purchase.wompi_transaction_id = session.transaction_id
        purchase.updated_at = utcnow()
        await self.db.commit()
        return session

    def _validate_purchase_request(self, request: schemas.PurchaseCreate):
        if not request.items:
            raise ValidationError("At least one item is required")

        if not EMAIL_PATTERN.match(request.buyer_email or ""):
            raise ValidationError("Invalid email format")

        if not request.buyer_name or len(request.buyer_name.strip()) < 2:
            raise ValidationError("Buyer name must be at least 2 characters long")

        if not request.buyer_identification_number or len(request.buyer_identification_number) < 6:
            raise ValidationError("Identification number must be at least 6 characters long")

        if not request.buyer_contact_number or len(request.buyer_contact_number) < 10:
            raise ValidationError("Contact number must be at least 10 characters long")

    async def _validate_and_price_items(self, items: List[schemas.CartItem]) -> List[PricedItem]:
        priced = []
        for item in items:
            if not item.quantity or item.quantity <= 0:
                raise ValidationError(f"Quantity must be greater than 0 for product {item.product_id}")

            product = await self.products.get_by_id(item.product_id)
            if not product:
                raise ValidationError(f"Product {item.product_id} not found")

            if not product.is_available:
                raise ValidationError(f"Product {product.name} is not available")

            if item.selected_color and item.selected_color not in product.color_list:
                raise ValidationError(f"Color {item.selected_color} not available for {product.name}")

            # Catalog price, never the caller's.
            unit_price = Decimal(product.price)
            priced.append(PricedItem(
                product=product,
                quantity=item.quantity,
                unit_price=unit_price,
                total_price=unit_price * item.quantity,
                selected_color=item.selected_color,
            ))
        return priced

    # Reconciliation

    async def update_payment_status(
        self,
        transaction_id: str,
        status: Union[str, models.PurchaseStatus],
        external_reference: Optional[str] = None,
    ) -> Optional[models.Purchase]:
        new_status = parse_status(status)
        logger.info(f"[Purchases] Payment status {new_status.value} for transaction {transaction_id} (reference {external_reference})")

        purchase = await self._find_one(models.Purchase.wompi_transaction_id == transaction_id)
        if not purchase and external_reference:
            purchase = await self._find_one(models.Purchase.external_reference == external_reference)

        if not purchase:
            logger.warning(f"[Purchases] No purchase for transaction {transaction_id} / reference {external_reference}; ignoring")
            return None

        if await self.transition_status(purchase, new_status, transaction_id=transaction_id):
            if new_status in models.PAID_STATUSES:
                await self.notify_payment_confirmed(purchase.id)
        return purchase

    async def transition_status(
        self,
        purchase: models.Purchase,
        new_status: models.PurchaseStatus,
        transaction_id: Optional[str] = None,
    ) -> bool:
        """Applies a status change if the lifecycle allows it. Returns whether anything was written."""
        old_status = purchase.status
        if old_status == new_status:
            logger.info(f"[Purchases] Purchase {purchase.id} already {new_status.value}")
            return False

        if not models.can_transition(old_status, new_status):
            logger.warning(f"[Purchases] Ignoring transition {old_status.value} -> {new_status.value} for purchase {purchase.id}")
            return False

        purchase.status = new_status
        if transaction_id:
            purchase.wompi_transaction_id = transaction_id
        purchase.updated_at = utcnow()
        await self.db.commit()

        logger.info(f"[Purchases] Purchase {purchase.id}: {old_status.value} -> {new_status.value}")
        return True

    async def reconcile_stale_purchases(self, retry_before: datetime, expire_before: datetime) -> schemas.ReconcileSummary:
        """
        Sweeps purchases stuck in PENDING.

        Any purchase the gateway never confirmed (no transaction id, or still
        the external reference placeholder) fails once created before
        ``expire_before``. Purchases without a payment reference created before
        ``retry_before`` get a new payment session under the same external
        reference.
        """
        summary = schemas.ReconcileSummary()
        missing_reference = or_(
            models.Purchase.wompi_transaction_id.is_(None),
            models.Purchase.wompi_transaction_id == "",
        )
        unconfirmed = or_(
            missing_reference,
            models.Purchase.wompi_transaction_id == models.Purchase.external_reference,
        )

        expired = await self.db.execute(
            select(models.Purchase).where(
                models.Purchase.status == models.PurchaseStatus.PENDING,
                unconfirmed,
                models.Purchase.created_at < expire_before,
            )
        )
        for purchase in expired.scalars().all():
            if await self.transition_status(purchase, models.PurchaseStatus.FAILED):
                summary.failed += 1

        stale = await self.db.execute(
            select(models.Purchase)
            .where(
                models.Purchase.status == models.PurchaseStatus.PENDING,
                missing_reference,
                models.Purchase.created_at < retry_before,
                models.Purchase.created_at >= expire_before,
            )
            .options(selectinload(models.Purchase.order_details))
        )
        for purchase in stale.scalars().all():
            try:
                await self.attach_payment_session(purchase, [d.product_id for d in purchase.order_details])
            except PaymentGatewayError:
                continue
            summary.retried += 1

        return summary

    # Queries

    async def get_purchases_by_email(self, email: str) -> List[schemas.PurchaseRead]:
        logger.info(f"[Purchases] Getting purchases for {email}")
        purchases = await self._query_purchases(
            models.Purchase.buyer_email == email,
            order_by=(models.Purchase.updated_at.desc(), models.Purchase.id.desc()),
        )
        return [to_purchase_read(p) for p in purchases]

    async def list_purchases(self) -> List[schemas.PurchaseRead]:
        purchases = await self._query_purchases(
            order_by=(models.Purchase.created_at.desc(), models.Purchase.id.desc()),
        )
        return [to_purchase_read(p) for p in purchases]

    async def get_purchase(self, purchase_id: int) -> schemas.PurchaseRead:
        purchase = await self._get_with_details(purchase_id)
        if not purchase:
            raise NotFoundError("Purchase not found")
        return to_purchase_read(purchase)

    async def generate_backup_data(self) -> schemas.BackupData:
        logger.info("[Purchases] Generating backup data")
        purchases = await self._query_purchases(
            order_by=(models.Purchase.created_at.desc(), models.Purchase.id.desc()),
        )

        stats = schemas.PurchaseStatistics(total_purchases=len(purchases))
        counters = {
            models.PurchaseStatus.APPROVED: "approved_count",
            models.PurchaseStatus.COMPLETED: "completed_count",
            models.PurchaseStatus.PENDING: "pending_count",
            models.PurchaseStatus.CANCELLED: "cancelled_count",
            models.PurchaseStatus.REJECTED: "rejected_count",
            models.PurchaseStatus.FAILED: "failed_count",
        }
        sold_products = set()
        for purchase in purchases:
            counter = counters[purchase.status]
            setattr(stats, counter, getattr(stats, counter) + 1)
            if purchase.status in models.PAID_STATUSES:
                stats.total_revenue += purchase.amount
                sold_products.update(detail.product_id for detail in purchase.order_details)
        stats.unique_products_sold = len(sold_products)

        return schemas.BackupData(
            statistics=stats,
            all_purchases=[to_purchase_read(p) for p in purchases],
            generated_at=utcnow().isoformat(),
        )

    # Admin corrections

    async def resend_email_for_purchase(self, purchase_id: int) -> schemas.PurchaseRead:
        logger.info(f"[Purchases] Resending email for purchase {purchase_id}")
        purchase = await self._get_with_details(purchase_id)
        if not purchase:
            raise NotFoundError("Purchase not found")

        if purchase.status not in models.PAID_STATUSES:
            raise DomainError(
                f"Cannot resend email. Purchase status is: {purchase.status.value}. "
                "Only APPROVED or COMPLETED purchases can have emails resent."
            )

        if not await self._send_confirmation(purchase):
            raise EmailDeliveryError("Email delivery is not configured")
        return to_purchase_read(purchase)

    async def update_purchase(self, purchase_id: int, patch: schemas.PurchaseUpdate) -> schemas.PurchaseRead:
        logger.info(f"[Purchases] Updating purchase {purchase_id}: {patch.model_dump(exclude_none=True)}")
        purchase = await self._get_with_details(purchase_id)
        if not purchase:
            raise NotFoundError("Purchase not found")

        if patch.buyer_email and not EMAIL_PATTERN.match(patch.buyer_email):
            raise ValidationError("Invalid email format")

        if patch.buyer_name and len(patch.buyer_name.strip()) < 2:
            raise ValidationError("Buyer name must be at least 2 characters long")

        if patch.buyer_email:
            purchase.buyer_email = patch.buyer_email
        if patch.buyer_name:
            purchase.buyer_name = patch.buyer_name.strip()
        if patch.buyer_contact_number:
            purchase.buyer_contact_number = patch.buyer_contact_number
        purchase.updated_at = utcnow()

        await self.db.commit()
        return to_purchase_read(purchase)

    # Helpers

    async def _find_one(self, condition) -> Optional[models.Purchase]:
        result = await self.db.execute(select(models.Purchase).where(condition).order_by(models.Purchase.id.asc()))
        return result.scalars().first()

    async def _query_purchases(self, *conditions, order_by=()) -> List[models.Purchase]:
        stmt = (
            select(models.Purchase)
            .options(selectinload(models.Purchase.order_details).selectinload(models.OrderDetail.product))
            .execution_options(populate_existing=True)
        )
        if conditions:
            stmt = stmt.where(*conditions)
        result = await self.db.execute(stmt.order_by(*order_by))
        return list(result.scalars().all())

    async def _get_with_details(self, purchase_id: int) -> Optional[models.Purchase]:
        purchases = await self._query_purchases(models.Purchase.id == purchase_id)
        return purchases[0] if purchases else None

    def _confirmation_payload(self, purchase: models.Purchase) -> PaymentConfirmationEmail:
        return PaymentConfirmationEmail(
            buyer_email=purchase.buyer_email,
            buyer_name=purchase.buyer_name,
            buyer_contact_number=purchase.buyer_contact_number or "No proporcionado",
            items=[
                EmailItem(
                    product_name=detail.product.name if detail.product else UNKNOWN_PRODUCT,
                    quantity=detail.quantity,
                    unit_price=float(detail.unit_price),
                    total_price=float(detail.total_price),
                )
                for detail in purchase.order_details
            ],
            total_amount=purchase.amount,
            currency=purchase.currency,
            status=purchase.status.value,
            payment_id=purchase.wompi_transaction_id or "N/A",
            purchase_date=purchase.updated_at,
        )

    async def _send_confirmation(self, purchase: models.Purchase) -> bool:
        payload = self._confirmation_payload(purchase)
        return await run_in_threadpool(self.email_service.send_payment_confirmation_email, payload)

    async def notify_payment_confirmed(self, purchase_id: int):
        # The status change is already committed; a failed email is recoverable via resend.
        try:
            purchase = await self._get_with_details(purchase_id)
            await self._send_confirmation(purchase)
        except Exception as e:
            logger.error(f"[Purchases] Confirmation email for purchase {purchase_id} failed: {e}", exc_info=True)
