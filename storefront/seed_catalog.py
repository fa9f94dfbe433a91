import asyncio
import logging
from decimal import Decimal

from sqlalchemy import func, select

from storefront.core.config import settings
from storefront.core.db import connect_database, database
from storefront.core.log import configure_logging
from storefront.modules.catalog.models import Category, Product, ProductStatus

logger = logging.getLogger(__name__)

STARTER_CATALOG = {
    "Camisetas": [
        ("Camiseta básica", "Camiseta de algodón", Decimal("45000.00"), ["Negro", "Blanco"]),
        ("Camiseta estampada", "Camiseta con estampado frontal", Decimal("60000.00"), ["Azul"]),
    ],
    "Accesorios": [
        ("Gorra", "Gorra ajustable", Decimal("35000.00"), ["Negro", "Rojo"]),
    ],
}

async def seed_catalog(session) -> int:
    """Inserts the starter catalog into an empty database. Returns the number of products created."""
    existing = await session.scalar(select(func.count()).select_from(Category))
    if existing:
        logger.info("[Seed] Catalog already has categories; skipping.")
        return 0

    created = 0
    for category_name, products in STARTER_CATALOG.items():
        category = Category(name=category_name)
        session.add(category)
        await session.flush()
        for name, description, price, colors in products:
            session.add(Product(
                name=name,
                description=description,
                price=price,
                category_id=category.id,
                status=ProductStatus.AVAILABLE.value,
                colors=colors,
                images=[],
            ))
            created += 1

    await session.commit()
    logger.info(f"[Seed] Created {len(STARTER_CATALOG)} categories and {created} products.")
    return created

async def main():
    configure_logging(settings.LOG_LEVEL)
    connect_database()
    try:
        async with database.session() as session:
            await seed_catalog(session)
    finally:
        await database.disconnect()

if __name__ == "__main__":
    asyncio.run(main())
