"""Services layer - Business logic and orchestration.

Services coordinate between repositories, integrations, and other services
to implement business use cases. They contain no direct database or
external API access - that's delegated to repositories and integrations.
"""

from product_optimizer.services.content_generator import (
    ContentGenerator,
    GenerationAttempt,
    GenerationFailureReason,
)
from product_optimizer.services.content_sanitizer import sanitize_content
from product_optimizer.services.field_health import (
    FieldHealth,
    FieldStatus,
    ProductHealth,
    evaluate_product,
    needs_optimization,
)
from product_optimizer.services.product_audit import (
    AuditedProduct,
    AuditReport,
    audit_products,
)
from product_optimizer.services.product_content import (
    OptimizedContent,
    ProductSnapshot,
    ProductStoreError,
)
from product_optimizer.services.product_optimization import (
    BulkOptimizationResult,
    HistoryRecordError,
    HistoryUnavailableError,
    NoHistoryError,
    OptimizationOutcome,
    PreconditionFailedError,
    ProductNotFoundError,
    ProductOptimizationError,
    ProductOptimizationService,
    ProductStore,
    UpstreamError,
    ValidationRejectedError,
)

__all__ = [
    # Content generation
    "ContentGenerator",
    "GenerationAttempt",
    "GenerationFailureReason",
    "sanitize_content",
    # Field health
    "FieldHealth",
    "FieldStatus",
    "ProductHealth",
    "evaluate_product",
    "needs_optimization",
    # Audit
    "AuditedProduct",
    "AuditReport",
    "audit_products",
    # Content types
    "OptimizedContent",
    "ProductSnapshot",
    "ProductStoreError",
    # Optimization
    "BulkOptimizationResult",
    "HistoryRecordError",
    "HistoryUnavailableError",
    "NoHistoryError",
    "OptimizationOutcome",
    "PreconditionFailedError",
    "ProductNotFoundError",
    "ProductOptimizationError",
    "ProductOptimizationService",
    "ProductStore",
    "UpstreamError",
    "ValidationRejectedError",
]
