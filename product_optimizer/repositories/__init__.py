"""Repositories layer - Data access and persistence.

Repositories handle all database operations using SQLAlchemy.
They abstract the database implementation from the service layer.
"""

from product_optimizer.repositories.optimization import OptimizationRepository

__all__ = ["OptimizationRepository"]
