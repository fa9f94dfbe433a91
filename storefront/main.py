from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.core.config import settings
from storefront.core.db import connect_database, database
from storefront.core.errors import register_exception_handlers
from storefront.core.log import configure_logging

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

from storefront.modules.worker.runner import build_reconciler

reconciler = build_reconciler()

@app.on_event("startup")
async def startup_event():
    configure_logging(settings.LOG_LEVEL)
    if not database.is_connected:
        connect_database()
    if settings.RECONCILER_ENABLED:
        await reconciler.start()

@app.on_event("shutdown")
async def shutdown_event():
    await reconciler.stop()
    await database.disconnect()

@app.get("/")
def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}", "docs": "/docs"}

@app.get("/health")
def health():
    return {"status": "ok"}

from storefront.modules.catalog.router import categories_router, products_router
from storefront.modules.orders.router import router as purchases_router
from storefront.modules.payments.router import router as payments_router

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(products_router, prefix=f"{settings.API_V1_STR}/products", tags=["products"])
app.include_router(categories_router, prefix=f"{settings.API_V1_STR}/categories", tags=["categories"])
app.include_router(purchases_router, prefix=f"{settings.API_V1_STR}/purchases", tags=["purchases"])
app.include_router(payments_router, prefix=f"{settings.API_V1_STR}/payments", tags=["payments"])
