import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlencode

import requests

from storefront.core.config import Settings
from storefront.core.exceptions import NotFoundError, PaymentGatewayError
from storefront.modules.orders.models import PurchaseStatus

logger = logging.getLogger(__name__)

# Wompi transaction status -> purchase status. PENDING carries no news.
WOMPI_STATUS_MAP = {
    "APPROVED": PurchaseStatus.APPROVED,
    "DECLINED": PurchaseStatus.REJECTED,
    "VOIDED": PurchaseStatus.CANCELLED,
    "ERROR": PurchaseStatus.FAILED,
    "PENDING": PurchaseStatus.PENDING,
}

def map_wompi_status(raw: Optional[str]) -> Optional[PurchaseStatus]:
    if not raw:
        return None
    return WOMPI_STATUS_MAP.get(str(raw).upper())

@dataclass
class PaymentSession:
    transaction_id: str
    payment_url: str
    reference: str
    public_key: str
    signature: str
    amount_in_cents: int
    currency: str

class WompiClient:
    """
    Wompi Web Checkout.

    A payment session is a signed checkout URL; Wompi only assigns a real
    transaction id once the buyer pays, so until the webhook arrives the
    reference doubles as the transaction id.
    """

    def __init__(
        self,
        public_key: str,
        integrity_secret: str,
        events_secret: str,
        api_url: str,
        checkout_url: str,
        currency: str = "COP",
        redirect_url: Optional[str] = None,
        timeout: int = 10,
        http: Optional[requests.Session] = None,
    ):
        self.public_key = public_key
        self.integrity_secret = integrity_secret
        self.events_secret = events_secret
        self.api_url = api_url.rstrip("/")
        self.checkout_url = checkout_url
        self.currency = currency
        self.redirect_url = redirect_url
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "WompiClient":
        return cls(
            public_key=settings.WOMPI_PUBLIC_KEY,
            integrity_secret=settings.WOMPI_INTEGRITY_SECRET,
            events_secret=settings.WOMPI_EVENTS_SECRET,
            api_url=settings.WOMPI_API_URL,
            checkout_url=settings.WOMPI_CHECKOUT_URL,
            currency=settings.CURRENCY,
            redirect_url=settings.WOMPI_REDIRECT_URL,
            timeout=settings.WOMPI_TIMEOUT_SECONDS,
        )

    def integrity_signature(self, reference: str, amount_in_cents: int, currency: str) -> str:
        payload = f"{reference}{amount_in_cents}{currency}{self.integrity_secret}"
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def create_payment(
        self,
        reference: str,
        amount_in_cents: int,
        buyer_email: str,
        buyer_name: str,
        buyer_identification_number: str,
        buyer_contact_number: str,
        product_ids: Sequence[int] = (),
    ) -> PaymentSession:
        if not self.public_key or not self.integrity_secret:
            raise PaymentGatewayError("Wompi is not configured")
        if amount_in_cents <= 0:
            raise PaymentGatewayError("Payment amount must be positive")

        signature = self.integrity_signature(reference, amount_in_cents, self.currency)
        params = {
            "public-key": self.public_key,
            "currency": self.currency,
            "amount-in-cents": amount_in_cents,
            "reference": reference,
            "signature:integrity": signature,
            "customer-data:email": buyer_email,
            "customer-data:full-name": buyer_name,
            "customer-data:phone-number": buyer_contact_number,
            "customer-data:legal-id": buyer_identification_number,
            "customer-data:legal-id-type": "CC",
        }
        if self.redirect_url:
            params["redirect-url"] = self.redirect_url

        logger.info(f"[Wompi] Checkout session {reference} for {amount_in_cents} {self.currency} (products {list(product_ids)})")
        return PaymentSession(
            transaction_id=reference,
            payment_url=f"{self.checkout_url}?{urlencode(params)}",
            reference=reference,
            public_key=self.public_key,
            signature=signature,
            amount_in_cents=amount_in_cents,
            currency=self.currency,
        )

    def get_transaction(self, transaction_id: str) -> Dict[str, Any]:
        url = f"{self.api_url}/transactions/{transaction_id}"
        try:
            response = self.http.get(
                url,
                headers={"Authorization": f"Bearer {self.public_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[Wompi] Transaction lookup failed for {transaction_id}: {e}")
            raise PaymentGatewayError(f"Could not reach Wompi: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"Wompi transaction {transaction_id} not found")
        if not response.ok:
            logger.error(f"[Wompi] Transaction lookup for {transaction_id} returned {response.status_code}: {response.text}")
            raise PaymentGatewayError(f"Wompi returned {response.status_code}")

        return response.json().get("data") or {}

    def verify_event(self, event: Dict[str, Any]) -> bool:
        """Checks the event checksum: sha256(property values + timestamp + events secret)."""
        if not self.events_secret:
            logger.warning("[Wompi] WOMPI_EVENTS_SECRET is not set; rejecting event")
            return False

        signature = event.get("signature") or {}
        checksum = signature.get("checksum")
        properties: List[str] = signature.get("properties") or []
        timestamp = event.get("timestamp")
        if not checksum or timestamp is None:
            return False

        data = event.get("data") or {}
        values = []
        for prop in properties:
            value: Any = data
            for key in prop.split("."):
                value = value.get(key) if isinstance(value, dict) else None
            values.append("" if value is None else str(value))

        payload = "".join(values) + str(timestamp) + self.events_secret
        expected = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return hmac.compare_digest(expected.lower(), str(checksum).lower())
