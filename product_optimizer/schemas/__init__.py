"""Schemas layer - Pydantic models for request/response validation."""

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

__all__ = [
    "AuditedProductItem",
    "AuditResponse",
    "AuditSummary",
    "BulkOptimizeRequest",
    "BulkOptimizeResponse",
    "FieldHealthItem",
    "OptimizedContentItem",
    "OptimizeRequest",
    "OptimizeResponse",
    "ProductHealthItem",
    "RollbackRequest",
    "RollbackResponse",
]
