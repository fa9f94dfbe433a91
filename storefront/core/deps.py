from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings, get_settings, settings
from storefront.core.db import get_db
from storefront.core.exceptions import AuthenticationError, PermissionDeniedError
from storefront.modules.notifications.service import EmailService
from storefront.modules.orders.service import PurchaseService
from storefront.modules.payments.service import WompiPurchaseService
from storefront.modules.payments.wompi import WompiClient

# auto_error=False so anonymous callers reach get_current_admin_optional
bearer_scheme = HTTPBearer(auto_error=False)

def decode_admin_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationError("Could not validate credentials")

    if payload.get("sub") is None:
        raise AuthenticationError("Could not validate credentials")
    if payload.get("role") != "admin":
        raise PermissionDeniedError("Admin only")
    return payload

async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    if credentials is None:
        raise AuthenticationError("Could not validate credentials")
    return decode_admin_token(credentials.credentials)

async def get_current_admin_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[dict]:
    if credentials is None:
        return None
    return decode_admin_token(credentials.credentials)

@lru_cache()
def get_payment_gateway() -> WompiClient:
    return WompiClient.from_settings(settings)

@lru_cache()
def get_email_service() -> EmailService:
    return EmailService.from_settings(settings)

def build_purchase_service(db: AsyncSession) -> PurchaseService:
    return PurchaseService(db, get_payment_gateway(), get_email_service(), settings)

def get_purchase_service(
    db: AsyncSession = Depends(get_db),
    gateway: WompiClient = Depends(get_payment_gateway),
    email_service: EmailService = Depends(get_email_service),
    config: Settings = Depends(get_settings)
) -> PurchaseService:
    return PurchaseService(db, gateway, email_service, config)

def get_wompi_purchase_service(
    db: AsyncSession = Depends(get_db),
    gateway: WompiClient = Depends(get_payment_gateway),
    purchases: PurchaseService = Depends(get_purchase_service)
) -> WompiPurchaseService:
    return WompiPurchaseService(db, gateway, purchases)
