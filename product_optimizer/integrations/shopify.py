"""Shopify Admin GraphQL client for reading and updating product content.

Uses httpx with the X-Shopify-Access-Token header. Covers the three calls
the optimizer needs: list recently updated products, fetch one product
snapshot, and write description/tags/SEO back with productUpdate.
"""

import asyncio
from typing import Any

import httpx

from product_optimizer.core.config import get_settings
from product_optimizer.core.logging import get_logger
from product_optimizer.services.product_content import (
    OptimizedContent,
    ProductSnapshot,
    ProductStoreError,
)

logger = get_logger(__name__)

# Retry settings for throttled requests
MAX_RETRIES = 3
RETRY_BASE_DELAY = 2.0  # seconds, doubles each retry

PRODUCT_FIELDS = """
    id
    title
    descriptionHtml
    tags
    seo {
      title
      description
    }
"""

PRODUCT_LIST_QUERY = (
    """
query productAudit($first: Int!) {
  products(first: $first, sortKey: UPDATED_AT, reverse: true) {
    edges {
      node {"""
    + PRODUCT_FIELDS
    + """      }
    }
  }
}
"""
)

PRODUCT_QUERY = (
    """
query productSnapshot($id: ID!) {
  product(id: $id) {"""
    + PRODUCT_FIELDS
    + """  }
}
"""
)

PRODUCT_UPDATE_MUTATION = """
mutation optimizeProduct($input: ProductInput!) {
  productUpdate(input: $input) {
    userErrors {
      field
      message
    }
  }
}
"""


class ShopifyError(ProductStoreError):
    """Raised on transport failures, HTTP errors or top-level GraphQL errors."""


def parse_product(node: dict[str, Any]) -> ProductSnapshot:
    """Parse a GraphQL product node into a ProductSnapshot."""
    seo = node.get("seo") or {}
    return ProductSnapshot(
        id=node.get("id", ""),
        title=node.get("title") or "",
        description_html=node.get("descriptionHtml"),
        tags=tuple(node.get("tags") or ()),
        seo_title=seo.get("title"),
        seo_description=seo.get("description"),
    )


class ShopifyClient:
    """Shopify Admin GraphQL client using httpx.

    Args:
        shop_domain: Shop domain, e.g. my-store.myshopify.com.
        access_token: Admin API access token.
        api_version: Admin API version, e.g. 2025-01.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = "2025-01",
        timeout: float = 30.0,
    ) -> None:
        self._shop_domain = shop_domain.removeprefix("https://").rstrip("/")
        self._endpoint = f"https://{self._shop_domain}/admin/api/{api_version}/graphql.json"
        self._client = httpx.AsyncClient(
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
        )

    @property
    def shop(self) -> str:
        return self._shop_domain

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST a GraphQL document with retry on 429 and return its data."""
        payload = {"query": query, "variables": variables}
        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await self._client.post(self._endpoint, json=payload)
            except httpx.RequestError as e:
                raise ShopifyError(f"Shopify request failed: {e}") from e

            if resp.status_code == 429 and attempt < MAX_RETRIES:
                delay = RETRY_BASE_DELAY * (2**attempt)
                logger.warning(
                    "Shopify API throttled, retrying",
                    extra={"attempt": attempt + 1, "delay": delay},
                )
                await asyncio.sleep(delay)
                continue

            if resp.status_code >= 400:
                raise ShopifyError(
                    f"Shopify request failed ({resp.status_code})",
                    status_code=resp.status_code,
                )

            try:
                body = resp.json()
            except ValueError as e:
                raise ShopifyError("Shopify response was not valid JSON") from e

            errors = body.get("errors") or []
            if errors:
                first = errors[0] if isinstance(errors, list) else errors
                message = first.get("message") if isinstance(first, dict) else str(first)
                logger.error(
                    "Shopify GraphQL errors",
                    extra={"errors": errors, "shop": self._shop_domain},
                )
                raise ShopifyError(message or "Shopify GraphQL request failed")

            return body.get("data") or {}

        raise ShopifyError("Shopify API rate limit exceeded", status_code=429)

    async def list_products(self, first: int = 25) -> list[ProductSnapshot]:
        """Fetch the most recently updated products."""
        data = await self._graphql(PRODUCT_LIST_QUERY, {"first": first})
        edges = (data.get("products") or {}).get("edges") or []
        products = [parse_product(edge["node"]) for edge in edges if edge.get("node")]

        logger.info(
            "Fetched Shopify products",
            extra={"count": len(products), "shop": self._shop_domain},
        )
        return products

    async def fetch_product(self, product_id: str) -> ProductSnapshot | None:
        """Fetch one product, or None when it does not exist."""
        data = await self._graphql(PRODUCT_QUERY, {"id": product_id})
        node = data.get("product")
        if not node:
            return None
        return parse_product(node)

    async def update_product(
        self, product_id: str, content: OptimizedContent
    ) -> list[str]:
        """Write description, tags and SEO fields.

        Returns:
            The userErrors messages reported by Shopify. Empty when the
            update was accepted.
        """
        data = await self._graphql(
            PRODUCT_UPDATE_MUTATION,
            {
                "input": {
                    "id": product_id,
                    "descriptionHtml": content.description_html,
                    "tags": list(content.tags),
                    "seo": {
                        "title": content.seo_title,
                        "description": content.seo_description,
                    },
                }
            },
        )
        user_errors = (data.get("productUpdate") or {}).get("userErrors") or []
        return [str(error.get("message", "")) for error in user_errors]

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()


# Global Shopify client instance
shopify_client: ShopifyClient | None = None


async def init_shopify() -> ShopifyClient:
    """Initialize the global Shopify client from settings."""
    global shopify_client
    if shopify_client is None:
        settings = get_settings()
        if not settings.shopify_shop_domain or not settings.shopify_access_token:
            logger.warning("Shopify not configured (missing shop domain or access token)")
        shopify_client = ShopifyClient(
            shop_domain=settings.shopify_shop_domain,
            access_token=settings.shopify_access_token or "",
            api_version=settings.shopify_api_version,
            timeout=settings.shopify_timeout,
        )
    return shopify_client


async def close_shopify() -> None:
    """Close the global Shopify client."""
    global shopify_client
    if shopify_client:
        await shopify_client.close()
        shopify_client = None


async def get_shopify() -> ShopifyClient:
    """Dependency for getting the Shopify client."""
    global shopify_client
    if shopify_client is None:
        await init_shopify()
    return shopify_client  # type: ignore[return-value]
