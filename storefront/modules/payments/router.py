from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from storefront.core import deps, envelope
from storefront.core.envelope import Envelope
from storefront.modules.orders import schemas as order_schemas
from storefront.modules.payments.service import WompiPurchaseService

router = APIRouter()

@router.post("/wompi/webhook", response_model=Envelope[Optional[Dict[str, Any]]])
async def wompi_webhook(
    event: Dict[str, Any] = Body(...),
    service: WompiPurchaseService = Depends(deps.get_wompi_purchase_service)
) -> Any:
    purchase = await service.handle_event(event)
    if purchase is None:
        return envelope.success(None, "Event acknowledged")
    return envelope.success(
        {"purchase_id": purchase.id, "status": purchase.status.value},
        "Payment status processed",
    )

@router.post("/wompi/transactions/{transaction_id}/sync", response_model=Envelope[Optional[order_schemas.PurchaseRead]])
async def sync_transaction(
    transaction_id: str,
    admin: dict = Depends(deps.get_current_admin),
    service: WompiPurchaseService = Depends(deps.get_wompi_purchase_service)
) -> Any:
    purchase = await service.update_purchase_status(transaction_id)
    if purchase is None:
        return envelope.success(None, "No purchase matched; nothing updated")
    return envelope.success(
        await service.purchases.get_purchase(purchase.id),
        "Purchase status synchronized",
    )
