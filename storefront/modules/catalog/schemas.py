from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from storefront.modules.catalog.models import ProductStatus

def _clean_string_list(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    cleaned = []
    for item in value:
        item = item.strip()
        if not item:
            raise ValueError("entries must be non-empty strings")
        if item not in cleaned:
            cleaned.append(item)
    return cleaned

class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None

class CategoryRead(CategoryBase):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class ProductBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    original_price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    images: List[str] = []
    category_id: int
    status: ProductStatus = ProductStatus.AVAILABLE
    colors: List[str] = []
    is_showcase: bool = False
    showcase_image: Optional[str] = None

    @field_validator("colors", "images")
    @classmethod
    def clean_lists(cls, value):
        return _clean_string_list(value)

class ProductCreate(ProductBase):
    pass

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    original_price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    images: Optional[List[str]] = None
    category_id: Optional[int] = None
    status: Optional[ProductStatus] = None
    colors: Optional[List[str]] = None
    is_showcase: Optional[bool] = None
    showcase_image: Optional[str] = None

    @field_validator("colors", "images")
    @classmethod
    def clean_lists(cls, value):
        return _clean_string_list(value)

class ProductRead(BaseModel):
    id: int
    name: str
    description: str
    price: float
    original_price: Optional[float] = None
    images: List[str]
    category_id: int
    status: str
    colors: List[str]
    is_showcase: bool
    showcase_image: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, product) -> "ProductRead":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description or "",
            price=float(product.price),
            original_price=float(product.original_price) if product.original_price is not None else None,
            images=product.image_list,
            category_id=product.category_id,
            status=product.status,
            colors=product.color_list,
            is_showcase=bool(product.is_showcase),
            showcase_image=product.showcase_image,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )

class ProductList(BaseModel):
    count: int
    products: List[ProductRead]

class CategoryList(BaseModel):
    count: int
    categories: List[CategoryRead]
