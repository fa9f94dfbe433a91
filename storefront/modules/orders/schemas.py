from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from storefront.modules.orders.models import PurchaseStatus, OrderStatus

class CartItem(BaseModel):
    product_id: int
    quantity: int
    selected_color: Optional[str] = None

class PurchaseCreate(BaseModel):
    buyer_email: str
    buyer_name: str
    buyer_identification_number: str
    buyer_contact_number: str
    shipping_address: Optional[str] = None
    items: List[CartItem] = []

class PurchaseUpdate(BaseModel):
    """Buyer contact corrections. Other purchase fields are not editable."""
    buyer_email: Optional[str] = None
    buyer_name: Optional[str] = None
    buyer_contact_number: Optional[str] = None

class PaymentStatusUpdate(BaseModel):
    transaction_id: str
    status: str
    external_reference: Optional[str] = None

class ProductSummary(BaseModel):
    id: int
    name: str
    description: str
    images: List[str]
    category_id: int

class OrderDetailCreate(BaseModel):
    purchase_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    selected_color: Optional[str] = None

class OrderDetailUpdate(BaseModel):
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    selected_color: Optional[str] = None

class OrderDetailRead(BaseModel):
    id: int
    purchase_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    selected_color: Optional[str] = None
    product: Optional[ProductSummary] = None

class PurchaseItemRead(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    selected_color: Optional[str] = None

class PurchaseCreated(BaseModel):
    purchase_id: int
    wompi_transaction_id: str
    payment_url: str
    total_amount: float
    items: List[PurchaseItemRead]

class PurchaseRead(BaseModel):
    id: int
    buyer_email: str
    buyer_name: str
    buyer_contact_number: Optional[str] = None
    shipping_address: Optional[str] = None
    status: PurchaseStatus
    order_status: OrderStatus
    amount: int
    currency: str
    external_reference: str
    wompi_transaction_id: Optional[str] = None
    items: List[PurchaseItemRead]
    created_at: datetime
    updated_at: datetime

class PurchaseList(BaseModel):
    count: int
    purchases: List[PurchaseRead]

class PurchaseStatistics(BaseModel):
    total_purchases: int = 0
    approved_count: int = 0
    completed_count: int = 0
    pending_count: int = 0
    cancelled_count: int = 0
    rejected_count: int = 0
    failed_count: int = 0
    total_revenue: int = 0
    unique_products_sold: int = 0

class BackupData(BaseModel):
    statistics: PurchaseStatistics
    all_purchases: List[PurchaseRead]
    generated_at: str

class ReconcileSummary(BaseModel):
    retried: int = 0
    failed: int = 0
