"""OptimizationRepository: append-only access to product optimization history.

ERROR LOGGING REQUIREMENTS:
- Log method entry/exit at DEBUG level with parameters
- Log all exceptions with full stack trace and context
- Include shop and product_id in all logs
- Add timing logs for operations >1 second
"""

import time
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from product_optimizer.core.logging import db_logger, get_logger
from product_optimizer.models.product_optimization import ProductOptimization

logger = get_logger(__name__)


class OptimizationRepository:
    """Repository for ProductOptimization records.

    Records are only ever inserted and read; there is no update or delete.
    """

    TABLE_NAME = "product_optimizations"
    SLOW_OPERATION_THRESHOLD_MS = 1000  # 1 second

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _check_slow(self, operation: str, start_time: float) -> float:
        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_operation(
                operation=operation,
                duration_ms=duration_ms,
                table=self.TABLE_NAME,
            )
        return duration_ms

    async def create(
        self,
        shop: str,
        product_id: str,
        previous_description_html: str,
        previous_tags: str,
        previous_seo_title: str,
        previous_seo_description: str,
        optimized_description_html: str,
        optimized_tags: str,
        optimized_seo_title: str,
        optimized_seo_description: str,
    ) -> ProductOptimization:
        """Append a history record.

        Tag arguments are JSON-encoded lists.

        Raises:
            SQLAlchemyError: On database errors
        """
        start_time = time.monotonic()
        logger.debug(
            "Creating optimization record",
            extra={"shop": shop, "product_id": product_id},
        )

        try:
            record = ProductOptimization(
                shop=shop,
                product_id=product_id,
                previous_description_html=previous_description_html,
                previous_tags=previous_tags,
                previous_seo_title=previous_seo_title,
                previous_seo_description=previous_seo_description,
                optimized_description_html=optimized_description_html,
                optimized_tags=optimized_tags,
                optimized_seo_title=optimized_seo_title,
                optimized_seo_description=optimized_seo_description,
            )
            self.session.add(record)
            await self.session.flush()
            await self.session.refresh(record)

            duration_ms = self._check_slow("create", start_time)
            logger.debug(
                "Optimization record created",
                extra={
                    "record_id": record.id,
                    "shop": shop,
                    "product_id": product_id,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return record

        except SQLAlchemyError as e:
            db_logger.write_failure(
                e, table=self.TABLE_NAME, product_id=product_id, shop=shop
            )
            raise

    async def get_most_recent(
        self, shop: str, product_id: str
    ) -> ProductOptimization | None:
        """Get the newest record for a product, or None when it has no history."""
        start_time = time.monotonic()

        try:
            result = await self.session.execute(
                select(ProductOptimization)
                .where(
                    ProductOptimization.shop == shop,
                    ProductOptimization.product_id == product_id,
                )
                .order_by(ProductOptimization.created_at.desc())
                .limit(1)
            )
            record = result.scalar_one_or_none()

            duration_ms = self._check_slow("get_most_recent", start_time)
            logger.debug(
                "Most recent optimization fetched",
                extra={
                    "shop": shop,
                    "product_id": product_id,
                    "found": record is not None,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return record

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch most recent optimization",
                extra={
                    "shop": shop,
                    "product_id": product_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise

    async def get_most_recent_for_products(
        self, shop: str, product_ids: Sequence[str]
    ) -> dict[str, ProductOptimization]:
        """Get the newest record per product in a single query.

        Returns:
            Mapping of product_id to its most recent record. Products without
            history are absent from the mapping.
        """
        if not product_ids:
            return {}

        start_time = time.monotonic()

        try:
            result = await self.session.execute(
                select(ProductOptimization)
                .where(
                    ProductOptimization.shop == shop,
                    ProductOptimization.product_id.in_(list(product_ids)),
                )
                .order_by(ProductOptimization.created_at.desc())
            )
            latest: dict[str, ProductOptimization] = {}
            for record in result.scalars():
                latest.setdefault(record.product_id, record)

            duration_ms = self._check_slow("get_most_recent_for_products", start_time)
            logger.debug(
                "Most recent optimizations fetched",
                extra={
                    "shop": shop,
                    "requested": len(product_ids),
                    "with_history": len(latest),
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return latest

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch optimization history",
                extra={
                    "shop": shop,
                    "product_count": len(product_ids),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise
