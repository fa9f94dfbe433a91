from datetime import datetime
from typing import List

from pydantic import BaseModel

class EmailItem(BaseModel):
    product_name: str
    quantity: int
    unit_price: float
    total_price: float

class PaymentConfirmationEmail(BaseModel):
    buyer_email: str
    buyer_name: str
    buyer_contact_number: str
    items: List[EmailItem]
    total_amount: int  # minor currency units
    currency: str
    status: str
    payment_id: str
    purchase_date: datetime
