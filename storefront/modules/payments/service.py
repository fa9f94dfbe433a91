import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from storefront.core.exceptions import AuthenticationError, ValidationError
from storefront.modules.orders import models
from storefront.modules.orders.service import PurchaseService, parse_status
from storefront.modules.payments.wompi import WompiClient, map_wompi_status

logger = logging.getLogger(__name__)

TRANSACTION_UPDATED = "transaction.updated"

class WompiPurchaseService:
    """Reconciles purchases against Wompi: webhook events, API lookups and reference updates."""

    def __init__(self, db: AsyncSession, gateway: WompiClient, purchases: PurchaseService):
        self.db = db
        self.gateway = gateway
        self.purchases = purchases

    async def handle_event(self, event: Dict[str, Any]) -> Optional[models.Purchase]:
        if not self.gateway.verify_event(event):
            logger.warning(f"[Wompi] Rejected event with invalid signature ({event.get('event')})")
            raise AuthenticationError("Invalid event signature")

        if event.get("event") != TRANSACTION_UPDATED:
            logger.info(f"[Wompi] Ignoring event {event.get('event')}")
            return None

        transaction = (event.get("data") or {}).get("transaction") or {}
        transaction_id = transaction.get("id")
        if not transaction_id:
            raise ValidationError("Event has no transaction id")

        status = map_wompi_status(transaction.get("status"))
        if status is None:
            logger.warning(f"[Wompi] Unknown transaction status {transaction.get('status')} for {transaction_id}")
            return None

        return await self.purchases.update_payment_status(
            str(transaction_id),
            status,
            external_reference=transaction.get("reference"),
        )

    async def update_purchase_status(self, transaction_id: str) -> Optional[models.Purchase]:
        """Pulls the transaction from the Wompi API and reconciles it."""
        logger.info(f"[Wompi] Syncing purchase status for transaction {transaction_id}")
        transaction = await run_in_threadpool(self.gateway.get_transaction, transaction_id)

        status = map_wompi_status(transaction.get("status"))
        if status is None:
            logger.warning(f"[Wompi] Unknown transaction status {transaction.get('status')} for {transaction_id}")
            return None

        return await self.purchases.update_payment_status(
            transaction_id,
            status,
            external_reference=transaction.get("reference"),
        )

    async def update_purchase_status_by_reference(
        self,
        reference: str,
        status: Union[str, models.PurchaseStatus],
    ) -> int:
        new_status = parse_status(status)
        logger.info(f"[Wompi] Updating purchase status by reference {reference} -> {new_status.value}")

        result = await self.db.execute(
            select(models.Purchase).where(models.Purchase.external_reference == reference)
        )
        updated = 0
        for purchase in result.scalars().all():
            if await self.purchases.transition_status(purchase, new_status):
                updated += 1
                if new_status in models.PAID_STATUSES:
                    await self.purchases.notify_payment_confirmed(purchase.id)

        logger.info(f"[Wompi] Reference {reference}: {updated} purchase(s) now {new_status.value}")
        return updated
