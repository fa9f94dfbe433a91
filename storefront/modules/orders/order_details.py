from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.exceptions import ValidationError
from storefront.modules.orders import models, schemas

class OrderDetailRepository:
    """
    Line items of a purchase.

    Methods only flush. The caller owns the transaction, so line items commit
    together with the purchase they belong to.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, detail_in: schemas.OrderDetailCreate) -> schemas.OrderDetailRead:
        detail = models.OrderDetail(**detail_in.model_dump())
        self.db.add(detail)
        await self.db.flush()
        return await self.get_by_id(detail.id)

    async def get_by_purchase_id(self, purchase_id: int) -> List[schemas.OrderDetailRead]:
        result = await self.db.execute(
            select(models.OrderDetail)
            .where(models.OrderDetail.purchase_id == purchase_id)
            .options(selectinload(models.OrderDetail.product))
            .order_by(models.OrderDetail.id.asc())
            .execution_options(populate_existing=True)
        )
        return [to_order_detail_read(detail) for detail in result.scalars().all()]

    async def get_by_id(self, detail_id: int) -> Optional[schemas.OrderDetailRead]:
        result = await self.db.execute(
            select(models.OrderDetail)
            .where(models.OrderDetail.id == detail_id)
            .options(selectinload(models.OrderDetail.product))
            .execution_options(populate_existing=True)
        )
        detail = result.scalars().first()
        return to_order_detail_read(detail) if detail else None

    async def update(self, detail_id: int, detail_in: schemas.OrderDetailUpdate) -> Optional[schemas.OrderDetailRead]:
        detail = await self.db.get(models.OrderDetail, detail_id)
        if not detail:
            return None

        if detail_in.quantity is not None:
            if detail_in.quantity <= 0:
                raise ValidationError("Quantity must be greater than 0")
            detail.quantity = detail_in.quantity
        if detail_in.unit_price is not None:
            detail.unit_price = detail_in.unit_price
        if detail_in.total_price is not None:
            detail.total_price = detail_in.total_price
        if detail_in.selected_color is not None:
            detail.selected_color = detail_in.selected_color

        await self.db.flush()
        return await self.get_by_id(detail_id)

    async def delete(self, detail_id: int) -> bool:
        detail = await self.db.get(models.OrderDetail, detail_id)
        if not detail:
            return False
        await self.db.delete(detail)
        await self.db.flush()
        return True

def to_order_detail_read(detail: models.OrderDetail) -> schemas.OrderDetailRead:
    product = detail.product
    return schemas.OrderDetailRead(
        id=detail.id,
        purchase_id=detail.purchase_id,
        product_id=detail.product_id,
        quantity=detail.quantity,
        unit_price=detail.unit_price,
        total_price=detail.total_price,
        selected_color=detail.selected_color,
        product=schemas.ProductSummary(
            id=product.id,
            name=product.name,
            description=product.description or "",
            images=product.image_list,
            category_id=product.category_id,
        ) if product else None,
    )
