from decimal import Decimal

import pydantic
import pytest
from sqlalchemy import func, select

from storefront.core.exceptions import DomainError, NotFoundError
from storefront.modules.catalog.models import Category, Product, normalize_string_list
from storefront.modules.catalog.schemas import CategoryCreate, ProductCreate, ProductUpdate
from storefront.modules.catalog.service import CategoryRepository, ProductRepository
from storefront.seed_catalog import STARTER_CATALOG, seed_catalog


class TestColorNormalization:
    @pytest.mark.parametrize("raw, expected", [
        (["Rojo", "Azul"], ["Rojo", "Azul"]),
        ('["Rojo", "", 3, "Azul"]', ["Rojo", "Azul"]),
        ("Rojo, Azul", []),
        ('{"color": "Rojo"}', []),
        (None, []),
        (42, []),
    ])
    def test_normalize_string_list(self, raw, expected):
        assert normalize_string_list(raw) == expected

    async def test_legacy_json_text_reads_as_list(self, make_product):
        product = await make_product(colors='["Negro", "Blanco"]')
        assert product.color_list == ["Negro", "Blanco"]

    def test_write_side_cleans_lists(self):
        product = ProductCreate(name="Gorra", price=Decimal("30000"), category_id=1, colors=[" Rojo ", "Rojo", "Azul"])
        assert product.colors == ["Rojo", "Azul"]

    def test_write_side_rejects_blank_entries(self):
        with pytest.raises(pydantic.ValidationError):
            ProductCreate(name="Gorra", price=Decimal("30000"), category_id=1, colors=["Rojo", "  "])


class TestProductRepository:
    async def test_create_and_round_trip_colors(self, session, category):
        repository = ProductRepository(session)
        created = await repository.create(ProductCreate(
            name="Chaqueta",
            price=Decimal("120000.00"),
            category_id=category.id,
            colors=["Negro", "Verde"],
        ))

        session.expunge_all()
        product = await repository.get_by_id(created.id)
        assert product.color_list == ["Negro", "Verde"]
        assert product.status == "available"

    async def test_create_requires_category(self, session):
        with pytest.raises(NotFoundError):
            await ProductRepository(session).create(ProductCreate(name="Gorra", price=Decimal("1"), category_id=99))

    async def test_filters(self, session, make_product):
        await make_product(name="Camiseta", is_showcase=True)
        await make_product(name="Gorra", status="sold_out")
        repository = ProductRepository(session)

        assert [p.name for p in await repository.list(showcase=True)] == ["Camiseta"]
        assert [p.name for p in await repository.list(status="sold_out")] == ["Gorra"]
        assert len(await repository.list()) == 2

    async def test_partial_update(self, session, make_product):
        product = await make_product(price="50.00", colors=["Rojo"])

        updated = await ProductRepository(session).update(product.id, ProductUpdate(price=Decimal("55.00")))

        assert updated.price == Decimal("55.00")
        assert updated.color_list == ["Rojo"]

    async def test_update_and_delete_missing(self, session):
        repository = ProductRepository(session)
        assert await repository.update(999, ProductUpdate(name="Nada")) is None
        assert await repository.delete(999) is False


class TestCategoryRepository:
    async def test_cannot_delete_category_with_products(self, session, category, make_product):
        await make_product()
        with pytest.raises(DomainError):
            await CategoryRepository(session).delete(category.id)

    async def test_create_list_delete(self, session):
        repository = CategoryRepository(session)
        shoes = await repository.create(CategoryCreate(name="Zapatos"))
        await repository.create(CategoryCreate(name="Accesorios"))

        assert [c.name for c in await repository.list()] == ["Accesorios", "Zapatos"]
        assert await repository.delete(shoes.id) is True
        assert [c.name for c in await repository.list()] == ["Accesorios"]


class TestSeedCatalog:
    async def test_seeds_empty_catalog_once(self, session):
        created = await seed_catalog(session)

        assert created == sum(len(products) for products in STARTER_CATALOG.values())
        assert await session.scalar(select(func.count()).select_from(Product)) == created
        assert await seed_catalog(session) == 0
        assert await session.scalar(select(func.count()).select_from(Category)) == len(STARTER_CATALOG)


class TestCatalogApi:
    async def test_public_listing(self, client, make_product):
        await make_product(name="Camiseta", colors=["Negro"])

        response = await client.get("/api/v1/products/")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["count"] == 1
        assert body["data"]["products"][0]["colors"] == ["Negro"]
        assert body["data"]["products"][0]["price"] == 50.0

    async def test_filter_by_category(self, client, category, make_product):
        await make_product(name="Camiseta")

        response = await client.get("/api/v1/products/", params={"categoryId": category.id + 1})

        assert response.json()["data"]["count"] == 0

    async def test_writes_require_admin(self, client, category, customer_headers):
        body = {"name": "Gorra", "price": 30000, "category_id": category.id}

        anonymous = await client.post("/api/v1/products/", json=body)
        assert anonymous.status_code == 401
        assert anonymous.json()["error"]["code"] == "unauthorized"

        customer = await client.post("/api/v1/products/", json=body, headers=customer_headers)
        assert customer.status_code == 403

    async def test_admin_creates_product(self, client, category, admin_headers):
        response = await client.post(
            "/api/v1/products/",
            json={"name": "Gorra", "price": 30000, "category_id": category.id, "colors": ["Rojo"]},
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["colors"] == ["Rojo"]
        assert data["status"] == "available"

    async def test_invalid_body_is_validation_error(self, client, category, admin_headers):
        response = await client.post(
            "/api/v1/products/",
            json={"name": "Gorra", "price": -5, "category_id": category.id},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    async def test_missing_product(self, client):
        response = await client.get("/api/v1/products/404")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    async def test_categories(self, client, category, admin_headers):
        listed = await client.get("/api/v1/categories/")
        assert listed.json()["data"]["categories"][0]["name"] == "Ropa"

        created = await client.post("/api/v1/categories/", json={"name": "Hogar"}, headers=admin_headers)
        assert created.status_code == 201

        deleted = await client.delete(f"/api/v1/categories/{created.json()['data']['id']}", headers=admin_headers)
        assert deleted.status_code == 200
