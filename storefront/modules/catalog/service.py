import logging
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import DomainError, NotFoundError
from storefront.modules.catalog import models, schemas

logger = logging.getLogger(__name__)

class ProductRepository:
    """Catalog products. Writes commit immediately."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, product_id: int) -> Optional[models.Product]:
        return await self.db.get(models.Product, product_id)

    async def list(
        self,
        category_id: Optional[int] = None,
        status: Optional[str] = None,
        showcase: Optional[bool] = None,
    ) -> List[models.Product]:
        stmt = select(models.Product)
        if category_id is not None:
            stmt = stmt.where(models.Product.category_id == category_id)
        if status is not None:
            stmt = stmt.where(models.Product.status == status)
        if showcase is not None:
            stmt = stmt.where(models.Product.is_showcase == showcase)
        result = await self.db.execute(stmt.order_by(models.Product.created_at.desc(), models.Product.id.desc()))
        return list(result.scalars().all())

    async def create(self, product_in: schemas.ProductCreate) -> models.Product:
        await self._ensure_category(product_in.category_id)
        product = models.Product(**product_in.model_dump(mode="python"))
        product.status = product_in.status.value
        self.db.add(product)
        await self.db.commit()
        logger.info(f"[Catalog] Product {product.id} created ({product.name})")
        return product

    async def update(self, product_id: int, product_in: schemas.ProductUpdate) -> Optional[models.Product]:
        product = await self.get_by_id(product_id)
        if not product:
            return None

        changes = product_in.model_dump(exclude_unset=True)
        if changes.get("category_id") is not None:
            await self._ensure_category(changes["category_id"])
        if changes.get("status") is not None:
            changes["status"] = changes["status"].value

        for field, value in changes.items():
            if value is None and field not in ("original_price", "showcase_image", "description"):
                continue
            setattr(product, field, value)

        await self.db.commit()
        logger.info(f"[Catalog] Product {product.id} updated: {sorted(changes)}")
        return product

    async def delete(self, product_id: int) -> bool:
        product = await self.get_by_id(product_id)
        if not product:
            return False
        await self.db.delete(product)
        await self.db.commit()
        logger.info(f"[Catalog] Product {product_id} deleted")
        return True

    async def _ensure_category(self, category_id: int):
        if not await self.db.get(models.Category, category_id):
            raise NotFoundError(f"Category {category_id} not found")

class CategoryRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, category_id: int) -> Optional[models.Category]:
        return await self.db.get(models.Category, category_id)

    async def list(self) -> List[models.Category]:
        result = await self.db.execute(select(models.Category).order_by(models.Category.name.asc()))
        return list(result.scalars().all())

    async def create(self, category_in: schemas.CategoryCreate) -> models.Category:
        category = models.Category(**category_in.model_dump())
        self.db.add(category)
        await self.db.commit()
        logger.info(f"[Catalog] Category {category.id} created ({category.name})")
        return category

    async def update(self, category_id: int, category_in: schemas.CategoryUpdate) -> Optional[models.Category]:
        category = await self.get_by_id(category_id)
        if not category:
            return None
        for field, value in category_in.model_dump(exclude_unset=True).items():
            if field == "name" and value is None:
                continue
            setattr(category, field, value)
        await self.db.commit()
        return category

    async def delete(self, category_id: int) -> bool:
        category = await self.get_by_id(category_id)
        if not category:
            return False

        count_res = await self.db.execute(
            select(func.count(models.Product.id)).where(models.Product.category_id == category_id)
        )
        if count_res.scalar():
            raise DomainError(f"Category {category_id} still has products")

        await self.db.delete(category)
        await self.db.commit()
        logger.info(f"[Catalog] Category {category_id} deleted")
        return True
