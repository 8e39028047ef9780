"""Create product_optimizations history table.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create product_optimizations table."""
    op.create_table(
        "product_optimizations",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("shop", sa.String(length=255), nullable=False),
        sa.Column("product_id", sa.String(length=255), nullable=False),
        sa.Column("previous_description_html", sa.Text(), nullable=False),
        sa.Column("previous_tags", sa.Text(), nullable=False),
        sa.Column("previous_seo_title", sa.Text(), nullable=False),
        sa.Column("previous_seo_description", sa.Text(), nullable=False),
        sa.Column("optimized_description_html", sa.Text(), nullable=False),
        sa.Column("optimized_tags", sa.Text(), nullable=False),
        sa.Column("optimized_seo_title", sa.Text(), nullable=False),
        sa.Column("optimized_seo_description", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_product_optimizations_shop_product_id",
        "product_optimizations",
        ["shop", "product_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_product_optimizations_created_at"),
        "product_optimizations",
        ["created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Drop product_optimizations table."""
    op.drop_index(
        op.f("ix_product_optimizations_created_at"), table_name="product_optimizations"
    )
    op.drop_index(
        "ix_product_optimizations_shop_product_id", table_name="product_optimizations"
    )
    op.drop_table("product_optimizations")
