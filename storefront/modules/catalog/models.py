import enum
import json
from typing import Any, List

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Numeric, JSON
from sqlalchemy.orm import relationship

from storefront.core.db import Base, utcnow

class ProductStatus(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    SOLD_OUT = "sold_out"

def normalize_string_list(raw: Any) -> List[str]:
    """Lists arrive as real lists or as legacy JSON text. Anything unreadable reads as empty."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, str) and item]

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    products = relationship("Product", back_populates="category", passive_deletes=True)

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    original_price = Column(Numeric(10, 2), nullable=True)
    images = Column(JSON, nullable=False, default=list)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    status = Column(String, nullable=False, default=ProductStatus.AVAILABLE.value)
    colors = Column(JSON, nullable=False, default=list)
    is_showcase = Column(Boolean, nullable=False, default=False, index=True)
    showcase_image = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("Category", back_populates="products")

    @property
    def color_list(self) -> List[str]:
        return normalize_string_list(self.colors)

    @property
    def image_list(self) -> List[str]:
        return normalize_string_list(self.images)

    @property
    def is_available(self) -> bool:
        return self.status == ProductStatus.AVAILABLE
