import asyncio
import logging
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings, settings as default_settings
from storefront.core.db import Database, database, utcnow
from storefront.modules.orders.schemas import ReconcileSummary
from storefront.modules.orders.service import PurchaseService

logger = logging.getLogger(__name__)

class Reconciler:
    """
    Periodic sweep over purchases left PENDING without a payment reference:
    retries the payment session, and fails them once they are too old.
    """

    def __init__(
        self,
        db: Database,
        service_factory: Callable[[AsyncSession], PurchaseService],
        config: Settings = default_settings,
    ):
        self.db = db
        self.service_factory = service_factory
        self.config = config
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Starts the sweep loop."""
        if self.is_running:
            return
        self.is_running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[Reconciler] Started (every {self.config.RECONCILE_INTERVAL_SECONDS}s).")

    async def stop(self):
        """Stops the sweep loop."""
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[Reconciler] Stopped.")

    async def run_once(self) -> ReconcileSummary:
        now = utcnow()
        retry_before = now - timedelta(minutes=self.config.PAYMENT_SESSION_RETRY_AFTER_MINUTES)
        expire_before = now - timedelta(minutes=self.config.PAYMENT_SESSION_EXPIRY_MINUTES)

        async with self.db.session() as session:
            service = self.service_factory(session)
            summary = await service.reconcile_stale_purchases(retry_before, expire_before)

        if summary.retried or summary.failed:
            logger.info(f"[Reconciler] Retried {summary.retried} payment session(s), failed {summary.failed} purchase(s)")
        return summary

    async def _loop(self):
        while self.is_running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"[Reconciler] Sweep failed: {e}", exc_info=True)
            try:
                await asyncio.sleep(self.config.RECONCILE_INTERVAL_SECONDS)
            except asyncio.CancelledError:
                break

def build_reconciler() -> Reconciler:
    from storefront.core.deps import build_purchase_service
    return Reconciler(database, build_purchase_service)
