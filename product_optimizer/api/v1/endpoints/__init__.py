"""API v1 endpoint modules."""

from product_optimizer.api.v1.endpoints import products

__all__ = ["products"]
