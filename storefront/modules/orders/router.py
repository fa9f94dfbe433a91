from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from storefront.core import deps, envelope
from storefront.core.envelope import Envelope
from storefront.core.exceptions import AuthenticationError
from storefront.modules.orders import schemas
from storefront.modules.orders.service import PurchaseService

router = APIRouter()

@router.post("/", response_model=Envelope[schemas.PurchaseCreated], status_code=201)
async def create_purchase(
    purchase_in: schemas.PurchaseCreate,
    service: PurchaseService = Depends(deps.get_purchase_service)
) -> Any:
    created = await service.create_purchase(purchase_in)
    return envelope.success(created, "Purchase created successfully")

@router.get("/", response_model=Envelope[schemas.PurchaseList])
async def list_purchases(
    email: Optional[str] = Query(None),
    admin: Optional[dict] = Depends(deps.get_current_admin_optional),
    service: PurchaseService = Depends(deps.get_purchase_service)
) -> Any:
    """Buyer history when ``email`` is given; otherwise the full list, admin only."""
    if email:
        purchases = await service.get_purchases_by_email(email)
        return envelope.success(
            schemas.PurchaseList(count=len(purchases), purchases=purchases),
            "Purchases retrieved successfully",
        )

    if admin is None:
        raise AuthenticationError("Could not validate credentials")
    purchases = await service.list_purchases()
    return envelope.success(
        schemas.PurchaseList(count=len(purchases), purchases=purchases),
        "Purchases retrieved successfully",
    )

@router.get("/backup", response_model=Envelope[schemas.BackupData])
async def backup_purchases(
    admin: dict = Depends(deps.get_current_admin),
    service: PurchaseService = Depends(deps.get_purchase_service)
) -> Any:
    data = await service.generate_backup_data()
    return envelope.success(data, "Backup generated successfully")

@router.post("/payment-status", response_model=Envelope[Optional[schemas.PurchaseRead]])
async def update_payment_status(
    status_in: schemas.PaymentStatusUpdate,
    admin: dict = Depends(deps.get_current_admin),
    service: PurchaseService = Depends(deps.get_purchase_service)
) -> Any:
    purchase = await service.update_payment_status(
        status_in.transaction_id,
        status_in.status,
        external_reference=status_in.external_reference,
    )
    if purchase is None:
        return envelope.success(None, "No purchase matched; nothing updated")
    return envelope.success(
        await service.get_purchase(purchase.id),
        "Payment status processed",
    )

@router.get("/{purchase_id}", response_model=Envelope[schemas.PurchaseRead])
async def get_purchase(
    purchase_id: int,
    admin: dict = Depends(deps.get_current_admin),
    service: PurchaseService = Depends(deps.get_purchase_service)
) -> Any:
    return envelope.success(await service.get_purchase(purchase_id), "Purchase retrieved successfully")

@router.patch("/{purchase_id}", response_model=Envelope[schemas.PurchaseRead])
async def update_purchase(
    purchase_id: int,
    patch: schemas.PurchaseUpdate,
    admin: dict = Depends(deps.get_current_admin),
    service: PurchaseService = Depends(deps.get_purchase_service)
) -> Any:
    updated = await service.update_purchase(purchase_id, patch)
    return envelope.success(updated, "Purchase updated successfully")

@router.post("/{purchase_id}/resend-email", response_model=Envelope[schemas.PurchaseRead])
async def resend_email(
    purchase_id: int,
    admin: dict = Depends(deps.get_current_admin),
    service: PurchaseService = Depends(deps.get_purchase_service)
) -> Any:
    purchase = await service.resend_email_for_purchase(purchase_id)
    return envelope.success(purchase, "Payment confirmation email resent successfully")
