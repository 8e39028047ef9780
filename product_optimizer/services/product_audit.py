"""Product audit: field health for recently updated products.

Lists products from the store, classifies each content field and joins
the most recent optimization record per product.
"""

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from product_optimizer.core.logging import get_logger
from product_optimizer.repositories.optimization import OptimizationRepository
from product_optimizer.services.field_health import ProductHealth, evaluate_product
from product_optimizer.services.product_content import ProductSnapshot, ProductStoreError
from product_optimizer.services.product_optimization import (
    HistoryUnavailableError,
    ProductStore,
    UpstreamError,
)

logger = get_logger(__name__)


@dataclass
class AuditedProduct:
    """A product with its field health and optimization history marker."""

    snapshot: ProductSnapshot
    health: ProductHealth
    last_optimized_at: datetime | None = None

    @property
    def has_history(self) -> bool:
        return self.last_optimized_at is not None

    @property
    def needs_optimization(self) -> bool:
        return self.health.needs_optimization


@dataclass
class AuditReport:
    """Audited products plus summary counts."""

    products: list[AuditedProduct] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.products)

    @property
    def needs_attention(self) -> int:
        return sum(1 for product in self.products if product.needs_optimization)

    @property
    def recently_optimized(self) -> int:
        return sum(1 for product in self.products if product.has_history)


async def audit_products(
    store: ProductStore,
    shop: str,
    session_factory: async_sessionmaker[AsyncSession],
    first: int = 25,
) -> AuditReport:
    """Audit the most recently updated products of a shop.

    Raises:
        UpstreamError: If the product store fails
        HistoryUnavailableError: If the history store cannot be read
    """
    try:
        snapshots = await store.list_products(first)
    except ProductStoreError as e:
        raise UpstreamError(f"Failed to list products: {e}") from e

    try:
        async with session_factory() as session:
            history = await OptimizationRepository(session).get_most_recent_for_products(
                shop, [snapshot.id for snapshot in snapshots]
            )
    except (SQLAlchemyError, OSError) as e:
        logger.error(
            "Failed to read optimization history for audit",
            extra={"shop": shop, "error_type": type(e).__name__, "error_message": str(e)},
        )
        raise HistoryUnavailableError(
            "Saved versions could not be loaded, please try again"
        ) from e

    report = AuditReport(
        products=[
            AuditedProduct(
                snapshot=snapshot,
                health=evaluate_product(snapshot),
                last_optimized_at=(
                    history[snapshot.id].created_at if snapshot.id in history else None
                ),
            )
            for snapshot in snapshots
        ]
    )

    logger.info(
        "Product audit complete",
        extra={
            "shop": shop,
            "total": report.total,
            "needs_attention": report.needs_attention,
            "recently_optimized": report.recently_optimized,
        },
    )
    return report
