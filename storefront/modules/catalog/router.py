from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import deps, envelope
from storefront.core.db import get_db
from storefront.core.envelope import Envelope
from storefront.core.exceptions import NotFoundError
from storefront.modules.catalog import schemas
from storefront.modules.catalog.models import ProductStatus
from storefront.modules.catalog.service import CategoryRepository, ProductRepository

products_router = APIRouter()
categories_router = APIRouter()

@products_router.get("/", response_model=Envelope[schemas.ProductList])
async def list_products(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    status: Optional[ProductStatus] = None,
    showcase: Optional[bool] = None,
    db: AsyncSession = Depends(get_db)
) -> Any:
    products = await ProductRepository(db).list(
        category_id=category_id,
        status=status.value if status else None,
        showcase=showcase,
    )
    data = schemas.ProductList(count=len(products), products=[schemas.ProductRead.from_model(p) for p in products])
    if showcase:
        return envelope.success(data, "Showcase products retrieved successfully")
    if category_id is not None:
        return envelope.success(data, "Products by category retrieved successfully")
    return envelope.success(data, "Products retrieved successfully")

@products_router.get("/{product_id}", response_model=Envelope[schemas.ProductRead])
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db)
) -> Any:
    product = await ProductRepository(db).get_by_id(product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return envelope.success(schemas.ProductRead.from_model(product), "Product retrieved successfully")

@products_router.post("/", response_model=Envelope[schemas.ProductRead], status_code=201)
async def create_product(
    product_in: schemas.ProductCreate,
    admin: dict = Depends(deps.get_current_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    product = await ProductRepository(db).create(product_in)
    return envelope.success(schemas.ProductRead.from_model(product), "Product created successfully")

@products_router.put("/{product_id}", response_model=Envelope[schemas.ProductRead])
async def update_product(
    product_id: int,
    product_in: schemas.ProductUpdate,
    admin: dict = Depends(deps.get_current_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    product = await ProductRepository(db).update(product_id, product_in)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return envelope.success(schemas.ProductRead.from_model(product), "Product updated successfully")

@products_router.delete("/{product_id}", response_model=Envelope[None])
async def delete_product(
    product_id: int,
    admin: dict = Depends(deps.get_current_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    if not await ProductRepository(db).delete(product_id):
        raise NotFoundError(f"Product {product_id} not found")
    return envelope.success(None, "Product deleted successfully")

@categories_router.get("/", response_model=Envelope[schemas.CategoryList])
async def list_categories(
    db: AsyncSession = Depends(get_db)
) -> Any:
    categories = await CategoryRepository(db).list()
    data = schemas.CategoryList(
        count=len(categories),
        categories=[schemas.CategoryRead.model_validate(c) for c in categories],
    )
    return envelope.success(data, "Categories retrieved successfully")

@categories_router.get("/{category_id}", response_model=Envelope[schemas.CategoryRead])
async def get_category(
    category_id: int,
    db: AsyncSession = Depends(get_db)
) -> Any:
    category = await CategoryRepository(db).get_by_id(category_id)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")
    return envelope.success(schemas.CategoryRead.model_validate(category), "Category retrieved successfully")

@categories_router.post("/", response_model=Envelope[schemas.CategoryRead], status_code=201)
async def create_category(
    category_in: schemas.CategoryCreate,
    admin: dict = Depends(deps.get_current_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    category = await CategoryRepository(db).create(category_in)
    return envelope.success(schemas.CategoryRead.model_validate(category), "Category created successfully")

@categories_router.put("/{category_id}", response_model=Envelope[schemas.CategoryRead])
async def update_category(
    category_id: int,
    category_in: schemas.CategoryUpdate,
    admin: dict = Depends(deps.get_current_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    category = await CategoryRepository(db).update(category_id, category_in)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")
    return envelope.success(schemas.CategoryRead.model_validate(category), "Category updated successfully")

@categories_router.delete("/{category_id}", response_model=Envelope[None])
async def delete_category(
    category_id: int,
    admin: dict = Depends(deps.get_current_admin),
    db: AsyncSession = Depends(get_db)
) -> Any:
    if not await CategoryRepository(db).delete(category_id):
        raise NotFoundError(f"Category {category_id} not found")
    return envelope.success(None, "Category deleted successfully")
