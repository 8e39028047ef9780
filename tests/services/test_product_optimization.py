"""Tests for ProductOptimizationService.

- Single optimization: fetch, generate, apply, record
- Error mapping for missing products, store failures and rejections
- Bulk runs isolate failures per product
- Rollback restores the previous values without adding a record
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from product_optimizer.models import ProductOptimization
from product_optimizer.repositories.optimization import OptimizationRepository
from product_optimizer.services.content_generator import ContentGenerator
from product_optimizer.services.product_content import ProductSnapshot
from product_optimizer.services.product_optimization import (
    HistoryRecordError,
    HistoryUnavailableError,
    NoHistoryError,
    PreconditionFailedError,
    ProductNotFoundError,
    ProductOptimizationService,
    UpstreamError,
    ValidationRejectedError,
)
from tests.conftest import TEST_SHOP, FakeProductStore

PRODUCT_A = "gid://shopify/Product/1001"
PRODUCT_B = "gid://shopify/Product/1002"
PRODUCT_C = "gid://shopify/Product/1003"


async def count_records(
    session_factory: async_sessionmaker[AsyncSession], product_id: str | None = None
) -> int:
    async with session_factory() as session:
        stmt = select(func.count()).select_from(ProductOptimization)
        if product_id is not None:
            stmt = stmt.where(ProductOptimization.product_id == product_id)
        return (await session.execute(stmt)).scalar_one()


async def latest_record(
    session_factory: async_sessionmaker[AsyncSession], product_id: str
) -> ProductOptimization | None:
    async with session_factory() as session:
        return await OptimizationRepository(session).get_most_recent(TEST_SHOP, product_id)


class TestOptimizeProduct:
    @pytest.mark.asyncio
    async def test_applies_and_records(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        outcome = await optimization_service.optimize_product(PRODUCT_A)

        assert outcome.product_id == PRODUCT_A
        assert product_store.updates == [(PRODUCT_A, outcome.content)]

        record = await latest_record(async_session_factory, PRODUCT_A)
        assert record is not None
        assert record.id == outcome.record_id
        assert record.shop == TEST_SHOP
        assert record.previous_description_html == "<p>Soft tee.</p>"
        assert json.loads(record.previous_tags) == ["Tee"]
        assert record.previous_seo_title == ""
        assert record.previous_seo_description == ""
        assert record.optimized_seo_title == outcome.content.seo_title
        assert json.loads(record.optimized_tags) == outcome.content.tags

    @pytest.mark.asyncio
    @pytest.mark.parametrize("product_id", ["", "   "])
    async def test_blank_id_rejected(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
        product_id: str,
    ) -> None:
        with pytest.raises(PreconditionFailedError):
            await optimization_service.optimize_product(product_id)

        assert product_store.fetches == []

    @pytest.mark.asyncio
    async def test_missing_product(
        self, optimization_service: ProductOptimizationService
    ) -> None:
        with pytest.raises(ProductNotFoundError) as exc_info:
            await optimization_service.optimize_product("gid://shopify/Product/404")

        assert exc_info.value.product_id == "gid://shopify/Product/404"

    @pytest.mark.asyncio
    async def test_store_failure_is_upstream_error(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
    ) -> None:
        product_store.failing_ids.add(PRODUCT_A)

        with pytest.raises(UpstreamError):
            await optimization_service.optimize_product(PRODUCT_A)

    @pytest.mark.asyncio
    async def test_rejection_joins_messages_and_skips_record(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        product_store.rejections[PRODUCT_A] = ["Title is too long", "Tags are invalid"]

        with pytest.raises(ValidationRejectedError) as exc_info:
            await optimization_service.optimize_product(PRODUCT_A)

        assert str(exc_info.value) == "Title is too long, Tags are invalid"
        assert await count_records(async_session_factory) == 0

    @pytest.mark.asyncio
    async def test_record_failure_after_apply(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
    ) -> None:
        with patch(
            "product_optimizer.services.product_optimization.OptimizationRepository.create",
            new=AsyncMock(side_effect=SQLAlchemyError("disk full")),
        ):
            with pytest.raises(HistoryRecordError):
                await optimization_service.optimize_product(PRODUCT_A)

        # The write already landed in the store
        assert len(product_store.updates) == 1

    @pytest.mark.asyncio
    async def test_connection_error_after_apply_is_record_failure(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
    ) -> None:
        with patch(
            "product_optimizer.services.product_optimization.OptimizationRepository.create",
            new=AsyncMock(side_effect=ConnectionResetError("connection reset by peer")),
        ):
            with pytest.raises(HistoryRecordError) as exc_info:
                await optimization_service.optimize_product(PRODUCT_A)

        assert exc_info.value.product_id == PRODUCT_A
        assert len(product_store.updates) == 1


class TestOptimizeProducts:
    @pytest.mark.asyncio
    async def test_one_rejection_does_not_abort_batch(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        product_store.rejections[PRODUCT_B] = ["Description is invalid"]

        result = await optimization_service.optimize_products([PRODUCT_A, PRODUCT_B, PRODUCT_C])

        assert result.optimized_count == 2
        assert result.failed_count == 1
        assert result.success is False
        assert result.message == "Optimized 2 product(s)"
        assert result.error == "1 product(s) failed to optimize"
        assert await count_records(async_session_factory, PRODUCT_A) == 1
        assert await count_records(async_session_factory, PRODUCT_B) == 0
        assert await count_records(async_session_factory, PRODUCT_C) == 1

    @pytest.mark.asyncio
    async def test_all_succeed(
        self, optimization_service: ProductOptimizationService
    ) -> None:
        result = await optimization_service.optimize_products([PRODUCT_A, PRODUCT_C])

        assert result.success is True
        assert result.error is None
        assert result.optimized_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("product_ids", [[], (), PRODUCT_A, None])
    async def test_no_selection_rejected_before_io(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
        product_ids: object,
    ) -> None:
        with pytest.raises(PreconditionFailedError) as exc_info:
            await optimization_service.optimize_products(product_ids)  # type: ignore[arg-type]

        assert str(exc_info.value) == "No products were selected for bulk optimization"
        assert product_store.fetches == []

    @pytest.mark.asyncio
    async def test_repeated_id_reads_previous_write(
        self,
        optimization_service: ProductOptimizationService,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        result = await optimization_service.optimize_products([PRODUCT_A, PRODUCT_A])

        assert result.optimized_count == 2
        assert await count_records(async_session_factory, PRODUCT_A) == 2

        async with async_session_factory() as session:
            records = (
                await session.execute(
                    select(ProductOptimization)
                    .where(ProductOptimization.product_id == PRODUCT_A)
                    .order_by(ProductOptimization.created_at.asc())
                )
            ).scalars().all()

        first, second = records
        assert second.previous_description_html == first.optimized_description_html
        assert second.previous_seo_title == first.optimized_seo_title

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(
        self,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        class SlowStore(FakeProductStore):
            def __init__(self) -> None:
                super().__init__()
                self.in_flight = 0
                self.max_in_flight = 0

            async def fetch_product(self, product_id: str) -> ProductSnapshot | None:
                self.in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self.in_flight)
                await asyncio.sleep(0.01)
                self.in_flight -= 1
                return await super().fetch_product(product_id)

        store = SlowStore()
        product_ids = [f"gid://shopify/Product/{index}" for index in range(4, 10)]
        for product_id in product_ids:
            store.add(ProductSnapshot(id=product_id, title="Linen Napkin Set"))

        service = ProductOptimizationService(
            product_store=store,
            shop=TEST_SHOP,
            generator=ContentGenerator(None),
            session_factory=async_session_factory,
            max_concurrent=3,
        )

        # History writes are covered above; keep this test on scheduling only
        with patch.object(
            ProductOptimizationService, "_record", new=AsyncMock(return_value="record-id")
        ):
            result = await service.optimize_products(product_ids)

        assert result.optimized_count == 6
        assert 1 < store.max_in_flight <= 3



class TestRollbackProduct:
    @pytest.mark.asyncio
    async def test_restores_previous_values_without_new_record(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
        sample_snapshot: ProductSnapshot,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await optimization_service.optimize_product(PRODUCT_A)

        content = await optimization_service.rollback_product(PRODUCT_A)

        assert content.description_html == sample_snapshot.description_html
        assert content.tags == list(sample_snapshot.tags)
        assert content.seo_title == ""
        assert content.seo_description == ""
        restored = product_store.products[PRODUCT_A]
        assert restored.description_html == "<p>Soft tee.</p>"
        assert restored.tags == ("Tee",)
        assert await count_records(async_session_factory) == 1

    @pytest.mark.asyncio
    async def test_repeated_rollback_is_stable(
        self,
        optimization_service: ProductOptimizationService,
    ) -> None:
        await optimization_service.optimize_product(PRODUCT_A)

        first = await optimization_service.rollback_product(PRODUCT_A)
        second = await optimization_service.rollback_product(PRODUCT_A)

        assert first == second

    @pytest.mark.asyncio
    async def test_no_history(
        self, optimization_service: ProductOptimizationService
    ) -> None:
        with pytest.raises(NoHistoryError) as exc_info:
            await optimization_service.rollback_product(PRODUCT_B)

        assert str(exc_info.value) == "No saved version is available for this product"

    @pytest.mark.asyncio
    async def test_unparseable_tags_restore_empty_list(
        self,
        optimization_service: ProductOptimizationService,
        db_session: AsyncSession,
    ) -> None:
        await OptimizationRepository(db_session).create(
            shop=TEST_SHOP,
            product_id=PRODUCT_B,
            previous_description_html="<p>Old</p>",
            previous_tags="not-json",
            previous_seo_title="Old title",
            previous_seo_description="Old description",
            optimized_description_html="<p>New</p>",
            optimized_tags="[]",
            optimized_seo_title="New title",
            optimized_seo_description="New description",
        )
        await db_session.commit()

        content = await optimization_service.rollback_product(PRODUCT_B)

        assert content.tags == []
        assert content.seo_title == "Old title"

    @pytest.mark.asyncio
    async def test_rejected_rollback(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
    ) -> None:
        await optimization_service.optimize_product(PRODUCT_A)
        product_store.rejections[PRODUCT_A] = ["SEO title can't be blank"]

        with pytest.raises(ValidationRejectedError):
            await optimization_service.rollback_product(PRODUCT_A)

    @pytest.mark.asyncio
    async def test_history_read_failure(
        self,
        optimization_service: ProductOptimizationService,
        product_store: FakeProductStore,
    ) -> None:
        with patch(
            "product_optimizer.services.product_optimization.OptimizationRepository.get_most_recent",
            new=AsyncMock(
                side_effect=OperationalError("SELECT", {}, Exception("server closed the connection"))
            ),
        ):
            with pytest.raises(HistoryUnavailableError) as exc_info:
                await optimization_service.rollback_product(PRODUCT_A)

        assert exc_info.value.product_id == PRODUCT_A
        assert exc_info.value.message == "Saved versions could not be loaded, please try again"
        assert product_store.updates == []
