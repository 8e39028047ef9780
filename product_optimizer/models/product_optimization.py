"""ProductOptimization model: one before/after pair per optimization.

Rows are append-only. Rollback reads the most recent row for a
(shop, product_id) pair and restores its previous_* values.

Tags are stored as JSON-encoded text (e.g. '["Blue", "Cotton"]') and absent
previous values are stored as empty strings.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import DateTime, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from product_optimizer.core.database import Base


class ProductOptimization(Base):
    """History record of a product content optimization.

    Attributes:
        id: UUID primary key
        shop: Shop domain the product belongs to
        product_id: Product GID in the store (e.g. gid://shopify/Product/1)
        previous_description_html: Description before optimization
        previous_tags: JSON-encoded tag list before optimization
        previous_seo_title: SEO title before optimization
        previous_seo_description: SEO description before optimization
        optimized_description_html: Description written by the optimizer
        optimized_tags: JSON-encoded tag list written by the optimizer
        optimized_seo_title: SEO title written by the optimizer
        optimized_seo_description: SEO description written by the optimizer
        created_at: When the record was appended
    """

    __tablename__ = "product_optimizations"
    __table_args__ = (
        Index("ix_product_optimizations_shop_product_id", "shop", "product_id"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    shop: Mapped[str] = mapped_column(String(255), nullable=False)

    product_id: Mapped[str] = mapped_column(String(255), nullable=False)

    previous_description_html: Mapped[str] = mapped_column(Text, nullable=False, default="")
    previous_tags: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    previous_seo_title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    previous_seo_description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    optimized_description_html: Mapped[str] = mapped_column(Text, nullable=False)
    optimized_tags: Mapped[str] = mapped_column(Text, nullable=False)
    optimized_seo_title: Mapped[str] = mapped_column(Text, nullable=False)
    optimized_seo_description: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<ProductOptimization(id={self.id!r}, shop={self.shop!r}, product_id={self.product_id!r})>"
