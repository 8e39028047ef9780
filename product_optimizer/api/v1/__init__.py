"""API v1 router and endpoint organization."""

from fastapi import APIRouter

from product_optimizer.api.v1.endpoints import products

router = APIRouter(tags=["v1"])

router.include_router(products.router, prefix="/products", tags=["Products"])
