"""Product optimization orchestration.

One optimization attempt runs Fetching -> Generating -> Applying ->
Recording. The bulk entry point runs attempts with bounded concurrency and
isolates failures per product. Rollback restores the "previous" values of
the most recent history record for a product.

Each attempt opens its own database session, so a failed insert for one
product cannot poison the session used by another.
"""

import asyncio
import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from product_optimizer.core.logging import get_logger
from product_optimizer.repositories.optimization import OptimizationRepository
from product_optimizer.services.content_generator import ContentGenerator
from product_optimizer.services.product_content import (
    OptimizedContent,
    ProductSnapshot,
    ProductStoreError,
)

logger = get_logger(__name__)

NO_SELECTION_MESSAGE = "No products were selected for bulk optimization"
NO_HISTORY_MESSAGE = "No saved version is available for this product"


class ProductStore(Protocol):
    """Read/write access to products in the commerce platform."""

    async def fetch_product(self, product_id: str) -> ProductSnapshot | None: ...

    async def update_product(
        self, product_id: str, content: OptimizedContent
    ) -> list[str]: ...

    async def list_products(self, first: int = 25) -> list[ProductSnapshot]: ...


class ProductOptimizationError(Exception):
    """Base exception for product optimization errors."""

    def __init__(self, message: str, product_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.product_id = product_id


class PreconditionFailedError(ProductOptimizationError):
    """Raised when a request is rejected before any I/O happens."""


class ProductNotFoundError(ProductOptimizationError):
    """Raised when the product does not exist in the store."""

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product not found: {product_id}", product_id)


class NoHistoryError(ProductOptimizationError):
    """Raised when rollback is requested for a product without history."""

    def __init__(self, product_id: str) -> None:
        super().__init__(NO_HISTORY_MESSAGE, product_id)


class UpstreamError(ProductOptimizationError):
    """Raised when the product store cannot be reached or fails."""


class ValidationRejectedError(ProductOptimizationError):
    """Raised when the product store rejects the update."""

    def __init__(self, messages: Sequence[str], product_id: str | None = None) -> None:
        super().__init__(", ".join(messages), product_id)
        self.messages = list(messages)


class HistoryRecordError(ProductOptimizationError):
    """Raised when the update was applied but the history record was not saved."""


class HistoryUnavailableError(ProductOptimizationError):
    """Raised when the history store cannot be read."""


@dataclass
class OptimizationOutcome:
    """Result of one successful optimization."""

    product_id: str
    content: OptimizedContent
    record_id: str


@dataclass
class BulkOptimizationResult:
    """Aggregate result of a bulk optimization."""

    optimized_count: int
    failed_count: int

    @property
    def success(self) -> bool:
        return self.failed_count == 0

    @property
    def message(self) -> str:
        return f"Optimized {self.optimized_count} product(s)"

    @property
    def error(self) -> str | None:
        if self.failed_count == 0:
            return None
        return f"{self.failed_count} product(s) failed to optimize"


def _parse_tags(value: str, product_id: str) -> list[str]:
    """Decode a JSON-encoded tag list, falling back to [] on bad data."""
    try:
        tags = json.loads(value)
    except (TypeError, ValueError):
        logger.warning(
            "Stored tags are not valid JSON, restoring no tags",
            extra={"product_id": product_id},
        )
        return []
    if not isinstance(tags, list):
        logger.warning(
            "Stored tags are not a list, restoring no tags",
            extra={"product_id": product_id, "tags_type": type(tags).__name__},
        )
        return []
    return [str(tag) for tag in tags]


class ProductOptimizationService:
    """Runs product optimizations against a product store.

    Args:
        product_store: Store used to fetch and update products.
        shop: Shop domain used to scope history records.
        generator: Content generator (model with template fallback).
        session_factory: Factory for per-attempt database sessions.
        max_concurrent: Maximum optimizations running at once in bulk.
    """

    def __init__(
        self,
        product_store: ProductStore,
        shop: str,
        generator: ContentGenerator,
        session_factory: async_sessionmaker[AsyncSession],
        max_concurrent: int = 1,
    ) -> None:
        self._store = product_store
        self._shop = shop
        self._generator = generator
        self._session_factory = session_factory
        self._max_concurrent = max(1, max_concurrent)

    @property
    def shop(self) -> str:
        return self._shop

    async def _fetch(self, product_id: str) -> ProductSnapshot:
        try:
            snapshot = await self._store.fetch_product(product_id)
        except ProductStoreError as e:
            raise UpstreamError(f"Failed to load product: {e}", product_id) from e
        if snapshot is None:
            raise ProductNotFoundError(product_id)
        return snapshot

    async def _apply(self, product_id: str, content: OptimizedContent) -> None:
        try:
            user_errors = await self._store.update_product(product_id, content)
        except ProductStoreError as e:
            raise UpstreamError(f"Failed to update product: {e}", product_id) from e
        if user_errors:
            raise ValidationRejectedError(user_errors, product_id)

    async def _record(
        self, snapshot: ProductSnapshot, content: OptimizedContent
    ) -> str:
        async with self._session_factory() as session:
            repo = OptimizationRepository(session)
            record = await repo.create(
                shop=self._shop,
                product_id=snapshot.id,
                previous_description_html=snapshot.description_html or "",
                previous_tags=json.dumps(list(snapshot.tags), ensure_ascii=False),
                previous_seo_title=snapshot.seo_title or "",
                previous_seo_description=snapshot.seo_description or "",
                optimized_description_html=content.description_html,
                optimized_tags=json.dumps(content.tags, ensure_ascii=False),
                optimized_seo_title=content.seo_title,
                optimized_seo_description=content.seo_description,
            )
            await session.commit()
            return record.id

    async def optimize_product(self, product_id: str) -> OptimizationOutcome:
        """Optimize one product and append a history record.

        Raises:
            PreconditionFailedError: If product_id is blank
            ProductNotFoundError: If the product does not exist
            UpstreamError: If the store fails during fetch or update
            ValidationRejectedError: If the store rejects the update
            HistoryRecordError: If the update landed but recording failed
        """
        if not isinstance(product_id, str) or not product_id.strip():
            raise PreconditionFailedError("Product id is required", product_id)

        logger.info(
            "Optimizing product",
            extra={"product_id": product_id, "shop": self._shop},
        )

        snapshot = await self._fetch(product_id)
        content = await self._generator.generate(snapshot)
        await self._apply(product_id, content)

        try:
            record_id = await self._record(snapshot, content)
        except Exception as e:
            logger.error(
                "Product updated but history record failed, no rollback point saved",
                extra={
                    "product_id": product_id,
                    "shop": self._shop,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise HistoryRecordError(
                "Product was updated but its previous version could not be saved",
                product_id,
            ) from e

        logger.info(
            "Product optimized",
            extra={"product_id": product_id, "shop": self._shop, "record_id": record_id},
        )
        return OptimizationOutcome(product_id=product_id, content=content, record_id=record_id)

    async def _optimize_isolated(self, product_id: str) -> bool:
        try:
            await self.optimize_product(product_id)
        except Exception as exc:
            logger.error(
                "Bulk optimization failed for product",
                extra={
                    "product_id": product_id,
                    "shop": self._shop,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
                exc_info=not isinstance(exc, ProductOptimizationError),
            )
            return False
        return True

    async def optimize_products(
        self, product_ids: Sequence[str]
    ) -> BulkOptimizationResult:
        """Optimize many products, isolating failures per product.

        Repeated ids are processed one after another within a single task,
        so each run reads the content written by the previous run.

        Raises:
            PreconditionFailedError: If product_ids is not a non-empty sequence
        """
        if isinstance(product_ids, (str, bytes)) or not isinstance(product_ids, Sequence):
            raise PreconditionFailedError(NO_SELECTION_MESSAGE)
        if not product_ids:
            raise PreconditionFailedError(NO_SELECTION_MESSAGE)

        # Group repeated ids, keeping first-seen order
        runs: dict[str, int] = {}
        for product_id in product_ids:
            runs[product_id] = runs.get(product_id, 0) + 1

        logger.info(
            "Starting bulk optimization",
            extra={
                "shop": self._shop,
                "total": len(product_ids),
                "unique": len(runs),
                "concurrency": self._max_concurrent,
            },
        )

        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def _process_with_semaphore(product_id: str, count: int) -> list[bool]:
            async with semaphore:
                return [await self._optimize_isolated(product_id) for _ in range(count)]

        tasks = [_process_with_semaphore(pid, count) for pid, count in runs.items()]
        outcomes = [ok for group in await asyncio.gather(*tasks) for ok in group]

        result = BulkOptimizationResult(
            optimized_count=sum(1 for ok in outcomes if ok),
            failed_count=sum(1 for ok in outcomes if not ok),
        )

        logger.info(
            "Bulk optimization complete",
            extra={
                "shop": self._shop,
                "optimized": result.optimized_count,
                "failed": result.failed_count,
            },
        )
        return result

    async def rollback_product(self, product_id: str) -> OptimizedContent:
        """Restore the previous values from the most recent history record.

        Does not append a record, so repeated rollbacks restore the same state.

        Raises:
            PreconditionFailedError: If product_id is blank
            NoHistoryError: If the product has no history record
            HistoryUnavailableError: If the history store cannot be read
            UpstreamError: If the store fails during update
            ValidationRejectedError: If the store rejects the update
        """
        if not isinstance(product_id, str) or not product_id.strip():
            raise PreconditionFailedError("Product id is required", product_id)

        try:
            async with self._session_factory() as session:
                record = await OptimizationRepository(session).get_most_recent(
                    self._shop, product_id
                )
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "Failed to read optimization history",
                extra={
                    "product_id": product_id,
                    "shop": self._shop,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            raise HistoryUnavailableError(
                "Saved versions could not be loaded, please try again", product_id
            ) from e

        if record is None:
            raise NoHistoryError(product_id)

        content = OptimizedContent(
            description_html=record.previous_description_html,
            tags=_parse_tags(record.previous_tags, product_id),
            seo_title=record.previous_seo_title,
            seo_description=record.previous_seo_description,
        )
        await self._apply(product_id, content)

        logger.info(
            "Product rolled back",
            extra={"product_id": product_id, "shop": self._shop, "record_id": record.id},
        )
        return content
