"""Product optimization API endpoints.

- GET  /api/v1/products/audit - Field health for recently updated products
- POST /api/v1/products/optimize - Optimize one product
- POST /api/v1/products/bulk-optimize - Optimize several products
- POST /api/v1/products/rollback - Restore a product's previous version

Error Logging Requirements:
- Log all incoming requests with method, path, request_id
- Log response status and timing for every request
- Return structured error responses: {"error": str, "code": str, "request_id": str}
- Log 4xx errors at WARNING, 5xx at ERROR
"""

import time

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from product_optimizer.core.config import Settings, get_settings
from product_optimizer.core.database import get_session_factory
from product_optimizer.core.logging import get_logger
from product_optimizer.integrations.openai import OpenAIClient, get_openai
from product_optimizer.integrations.shopify import ShopifyClient, get_shopify
from product_optimizer.schemas.product_optimization import (
    AuditedProductItem,
    AuditResponse,
    AuditSummary,
    BulkOptimizeRequest,
    BulkOptimizeResponse,
    FieldHealthItem,
    OptimizedContentItem,
    OptimizeRequest,
    OptimizeResponse,
    ProductHealthItem,
    RollbackRequest,
    RollbackResponse,
)
from product_optimizer.services.content_generator import ContentGenerator
from product_optimizer.services.field_health import FieldHealth
from product_optimizer.services.product_audit import AuditedProduct, audit_products
from product_optimizer.services.product_content import OptimizedContent
from product_optimizer.services.product_optimization import (
    HistoryRecordError,
    HistoryUnavailableError,
    NoHistoryError,
    PreconditionFailedError,
    ProductNotFoundError,
    ProductOptimizationError,
    ProductOptimizationService,
    ProductStore,
    UpstreamError,
    ValidationRejectedError,
)

logger = get_logger(__name__)

router = APIRouter()

# Service error -> (HTTP status, error code)
ERROR_STATUS: list[tuple[type[ProductOptimizationError], int, str]] = [
    (PreconditionFailedError, status.HTTP_400_BAD_REQUEST, "PRECONDITION_FAILED"),
    (ProductNotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (NoHistoryError, status.HTTP_404_NOT_FOUND, "NO_HISTORY"),
    (ValidationRejectedError, status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_REJECTED"),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY, "UPSTREAM_ERROR"),
    (HistoryRecordError, status.HTTP_500_INTERNAL_SERVER_ERROR, "HISTORY_RECORD_FAILED"),
    (HistoryUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE, "HISTORY_UNAVAILABLE"),
]


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


async def get_product_store(
    shopify: ShopifyClient = Depends(get_shopify),
) -> ProductStore:
    """Dependency for the product store (Shopify by default)."""
    return shopify


def get_shop(settings: Settings = Depends(get_settings)) -> str:
    """Dependency for the shop domain that scopes history records."""
    return settings.shopify_shop_domain


async def get_content_generator(
    client: OpenAIClient = Depends(get_openai),
) -> ContentGenerator:
    """Dependency for the content generator."""
    return ContentGenerator(client)


async def get_product_optimization_service(
    store: ProductStore = Depends(get_product_store),
    shop: str = Depends(get_shop),
    generator: ContentGenerator = Depends(get_content_generator),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> ProductOptimizationService:
    """Dependency for the product optimization service."""
    return ProductOptimizationService(
        product_store=store,
        shop=shop,
        generator=generator,
        session_factory=session_factory,
        max_concurrent=settings.optimization_concurrency,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


def _error_response(
    error: ProductOptimizationError, request_id: str
) -> JSONResponse:
    """Convert a service error into a structured JSON response."""
    status_code, code = status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR"
    for error_type, mapped_status, mapped_code in ERROR_STATUS:
        if isinstance(error, error_type):
            status_code, code = mapped_status, mapped_code
            break

    log_extra = {
        "request_id": request_id,
        "product_id": error.product_id,
        "code": code,
        "error_message": error.message,
    }
    if status_code >= 500:
        logger.error("Product request failed", extra=log_extra)
    else:
        logger.warning("Product request rejected", extra=log_extra)

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error.message,
            "code": code,
            "request_id": request_id,
        },
    )


def _content_item(content: OptimizedContent) -> OptimizedContentItem:
    return OptimizedContentItem(
        description_html=content.description_html,
        tags=list(content.tags),
        seo_title=content.seo_title,
        seo_description=content.seo_description,
    )


def _health_item(health: FieldHealth) -> FieldHealthItem:
    return FieldHealthItem(status=health.status.value, message=health.message)


def _audited_item(product: AuditedProduct) -> AuditedProductItem:
    snapshot = product.snapshot
    return AuditedProductItem(
        id=snapshot.id,
        title=snapshot.title,
        description_html=snapshot.description_html,
        tags=list(snapshot.tags),
        seo_title=snapshot.seo_title,
        seo_description=snapshot.seo_description,
        health=ProductHealthItem(
            description=_health_item(product.health.description),
            tags=_health_item(product.health.tags),
            seo_title=_health_item(product.health.seo_title),
            seo_description=_health_item(product.health.seo_description),
        ),
        needs_optimization=product.needs_optimization,
        has_history=product.has_history,
        last_optimized_at=product.last_optimized_at,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/audit",
    response_model=AuditResponse,
    summary="Audit product content",
    description="Classify description, tags and SEO fields of recently updated products.",
)
async def get_audit(
    request: Request,
    store: ProductStore = Depends(get_product_store),
    shop: str = Depends(get_shop),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> AuditResponse | JSONResponse:
    request_id = _get_request_id(request)
    start_time = time.monotonic()

    try:
        report = await audit_products(
            store, shop, session_factory, first=settings.audit_page_size
        )
    except ProductOptimizationError as e:
        return _error_response(e, request_id)

    logger.info(
        "Product audit served",
        extra={
            "request_id": request_id,
            "total": report.total,
            "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
        },
    )

    return AuditResponse(
        products=[_audited_item(product) for product in report.products],
        summary=AuditSummary(
            total=report.total,
            needs_attention=report.needs_attention,
            recently_optimized=report.recently_optimized,
        ),
    )


@router.post(
    "/optimize",
    response_model=OptimizeResponse,
    summary="Optimize a product",
    description="Generate and apply new description, tags and SEO fields for one product.",
    responses={
        404: {
            "description": "Product not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Product not found: gid://shopify/Product/1",
                        "code": "NOT_FOUND",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
        422: {"description": "Update rejected by the store"},
        502: {"description": "Store unavailable"},
    },
)
async def optimize_product(
    request: Request,
    data: OptimizeRequest,
    service: ProductOptimizationService = Depends(get_product_optimization_service),
) -> OptimizeResponse | JSONResponse:
    request_id = _get_request_id(request)
    start_time = time.monotonic()

    try:
        outcome = await service.optimize_product(data.product_id)
    except ProductOptimizationError as e:
        return _error_response(e, request_id)

    logger.info(
        "Product optimization served",
        extra={
            "request_id": request_id,
            "product_id": outcome.product_id,
            "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
        },
    )

    return OptimizeResponse(
        product_id=outcome.product_id,
        record_id=outcome.record_id,
        content=_content_item(outcome.content),
    )


@router.post(
    "/bulk-optimize",
    response_model=BulkOptimizeResponse,
    summary="Optimize several products",
    description="Optimize each product independently. Failures are counted, not fatal.",
)
async def bulk_optimize_products(
    request: Request,
    data: BulkOptimizeRequest,
    service: ProductOptimizationService = Depends(get_product_optimization_service),
) -> BulkOptimizeResponse | JSONResponse:
    request_id = _get_request_id(request)

    try:
        result = await service.optimize_products(data.product_ids)
    except ProductOptimizationError as e:
        return _error_response(e, request_id)

    return BulkOptimizeResponse(
        success=result.success,
        optimized_count=result.optimized_count,
        failed_count=result.failed_count,
        message=result.message,
        error=result.error,
    )


@router.post(
    "/rollback",
    response_model=RollbackResponse,
    summary="Roll back a product",
    description="Restore the content saved before the most recent optimization.",
)
async def rollback_product(
    request: Request,
    data: RollbackRequest,
    service: ProductOptimizationService = Depends(get_product_optimization_service),
) -> RollbackResponse | JSONResponse:
    request_id = _get_request_id(request)

    try:
        content = await service.rollback_product(data.product_id)
    except ProductOptimizationError as e:
        return _error_response(e, request_id)

    return RollbackResponse(
        product_id=data.product_id,
        content=_content_item(content),
    )
