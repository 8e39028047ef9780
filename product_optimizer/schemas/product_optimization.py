"""Pydantic schemas for the product optimization API.

- OptimizeRequest / OptimizeResponse: optimize a single product
- BulkOptimizeRequest / BulkOptimizeResponse: optimize many products
- RollbackRequest / RollbackResponse: restore the previous version
- AuditResponse: field health for recently updated products

Product ids are Shopify GIDs (gid://shopify/Product/123), so they travel
in the request body rather than the URL path.

Error responses use {"error": str, "code": str, "request_id": str}.
"""

from datetime import datetime

from pydantic import BaseModel, Field

# =============================================================================
# SHARED MODELS
# =============================================================================


class OptimizedContentItem(BaseModel):
    """Content written to a product."""

    description_html: str = Field(..., description="Product description HTML")
    tags: list[str] = Field(default_factory=list, description="Product tags")
    seo_title: str = Field(..., description="SEO title")
    seo_description: str = Field(..., description="SEO meta description")


class FieldHealthItem(BaseModel):
    """Health of one content field."""

    status: str = Field(
        ...,
        description="Field status",
        examples=["ok", "weak", "missing"],
    )
    message: str = Field(..., description="Short diagnostic", examples=["42 words"])


class ProductHealthItem(BaseModel):
    """Health of all four content fields."""

    description: FieldHealthItem
    tags: FieldHealthItem
    seo_title: FieldHealthItem
    seo_description: FieldHealthItem


# =============================================================================
# OPTIMIZE
# =============================================================================


class OptimizeRequest(BaseModel):
    """Request to optimize one product."""

    product_id: str = Field(
        ...,
        description="Product GID",
        examples=["gid://shopify/Product/1234567890"],
    )


class OptimizeResponse(BaseModel):
    """Result of a single product optimization."""

    success: bool = Field(default=True)
    product_id: str
    message: str = Field(default="Product optimized")
    record_id: str = Field(..., description="History record created for rollback")
    content: OptimizedContentItem


class BulkOptimizeRequest(BaseModel):
    """Request to optimize several products."""

    product_ids: list[str] = Field(
        ...,
        description="Product GIDs to optimize",
        examples=[["gid://shopify/Product/1", "gid://shopify/Product/2"]],
    )


class BulkOptimizeResponse(BaseModel):
    """Aggregate result of a bulk optimization."""

    success: bool
    optimized_count: int = Field(..., ge=0)
    failed_count: int = Field(..., ge=0)
    message: str = Field(..., examples=["Optimized 2 product(s)"])
    error: str | None = Field(default=None, examples=["1 product(s) failed to optimize"])


# =============================================================================
# ROLLBACK
# =============================================================================


class RollbackRequest(BaseModel):
    """Request to restore a product's previous version."""

    product_id: str = Field(..., description="Product GID")


class RollbackResponse(BaseModel):
    """Result of a rollback."""

    success: bool = Field(default=True)
    product_id: str
    message: str = Field(default="Product restored to its previous version")
    content: OptimizedContentItem


# =============================================================================
# AUDIT
# =============================================================================


class AuditedProductItem(BaseModel):
    """One product in the audit."""

    id: str
    title: str
    description_html: str | None = None
    tags: list[str] = Field(default_factory=list)
    seo_title: str | None = None
    seo_description: str | None = None
    health: ProductHealthItem
    needs_optimization: bool
    has_history: bool
    last_optimized_at: datetime | None = None


class AuditSummary(BaseModel):
    """Summary counts for the audit."""

    total: int = Field(..., ge=0)
    needs_attention: int = Field(..., ge=0)
    recently_optimized: int = Field(..., ge=0)


class AuditResponse(BaseModel):
    """Audit of recently updated products."""

    products: list[AuditedProductItem] = Field(default_factory=list)
    summary: AuditSummary
