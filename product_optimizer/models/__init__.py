"""Models layer - SQLAlchemy ORM models.

All models inherit from the Base class defined in core.database.
"""

from product_optimizer.core.database import Base
from product_optimizer.models.product_optimization import ProductOptimization

__all__ = ["Base", "ProductOptimization"]
