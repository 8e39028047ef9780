"""FastAPI application for the product content optimizer.

Every response carries an X-Request-ID header. The same id appears in the
request log line and in the `request_id` field of error bodies, so a
merchant-facing error can be traced back to its log records.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from product_optimizer.api.v1 import router as api_v1_router
from product_optimizer.core.config import get_settings
from product_optimizer.core.database import db_manager
from product_optimizer.core.logging import get_logger, setup_logging
from product_optimizer.integrations.openai import close_openai, get_openai, init_openai
from product_optimizer.integrations.shopify import close_shopify, init_shopify

setup_logging()
logger = get_logger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _log_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign a request id and log one line per request with its outcome."""

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.monotonic()

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        logger.log(
            _log_level(response.status_code),
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Open the history store and the Shopify and OpenAI clients for the app's lifetime."""
    settings = get_settings()
    logger.info(
        "Starting product optimizer",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "shop": settings.shopify_shop_domain or None,
        },
    )

    db_manager.init_db()

    openai_client = await init_openai()
    if not openai_client.available:
        logger.warning("OPENAI_API_KEY is not set, products will get template content")

    await init_shopify()

    yield

    await close_shopify()
    await close_openai()
    await db_manager.close()
    logger.info("Product optimizer stopped")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Added first so it wraps CORS and sees every response
    app.add_middleware(RequestLoggingMiddleware)

    # The embedded admin UI is the only browser client when FRONTEND_URL is set
    cors_origins = [settings.frontend_url] if settings.frontend_url else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed request bodies as one readable message."""
        request_id = _request_id(request)
        error_msg = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in exc.errors()
        )
        logger.warning(
            "Request body rejected",
            extra={"request_id": request_id, "errors": error_msg},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": error_msg,
                "code": "VALIDATION_ERROR",
                "request_id": request_id,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        request_id = _request_id(request)
        logger.error(
            "Unhandled exception",
            extra={
                "request_id": request_id,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "An internal error occurred. Please try again later.",
                "code": "INTERNAL_ERROR",
                "request_id": request_id,
            },
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health/db", tags=["Health"])
    async def database_health() -> dict[str, str | bool]:
        """Whether the history store answers a trivial query."""
        is_healthy = await db_manager.check_connection()
        return {
            "status": "ok" if is_healthy else "error",
            "database": is_healthy,
        }

    @app.get("/health/integrations", tags=["Health"])
    async def integrations_health() -> dict[str, Any]:
        """Configuration of the model provider and the product store.

        Secrets are reported only as present or absent.
        """
        openai_client = await get_openai()
        return {
            "openai": {
                "api_key_set": openai_client.available,
                "model": openai_client.model,
                "circuit_breaker": openai_client.circuit_breaker.state.value,
            },
            "shopify": {
                "shop_domain": settings.shopify_shop_domain or None,
                "access_token_set": bool(settings.shopify_access_token),
                "api_version": settings.shopify_api_version,
            },
        }

    app.include_router(api_v1_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "product_optimizer.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
