import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from storefront.core import envelope
from storefront.core.exceptions import StorefrontError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI):
    """Every failure leaves the API as an error envelope."""

    @app.exception_handler(StorefrontError)
    async def handle_storefront_error(request: Request, exc: StorefrontError):
        if exc.status_code >= 500:
            logger.error(f"[API] {request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"[API] {request.method} {request.url.path} rejected ({exc.code}): {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope.failure(exc.code, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        return JSONResponse(
            status_code=400,
            content=envelope.failure("validation_error", "Invalid request", messages),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope.failure("http_error", str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        error_msg = str(exc.orig) if exc.orig is not None else str(exc)
        logger.error(f"[API] Database integrity error: {error_msg}")

        if "foreign key" in error_msg.lower():
            return JSONResponse(
                status_code=409,
                content=envelope.failure("invalid_reference", "Entity is still referenced by other records"),
            )
        if "unique" in error_msg.lower() or "duplicate" in error_msg.lower():
            return JSONResponse(
                status_code=409,
                content=envelope.failure("duplicate_entry", "This entry already exists"),
            )
        return JSONResponse(
            status_code=400,
            content=envelope.failure("integrity_error", "Data integrity constraint violated"),
        )

    @app.exception_handler(OperationalError)
    async def handle_operational_error(request: Request, exc: OperationalError):
        logger.error(f"[API] Database operational error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=503,
            content=envelope.failure("database_error", "Database operation failed. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(f"[API] Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=envelope.failure("internal_error", "Internal server error"),
        )
