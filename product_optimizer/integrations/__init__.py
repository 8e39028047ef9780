"""External service integrations."""

from product_optimizer.integrations.openai import (
    CompletionResult,
    OpenAIClient,
    close_openai,
    get_openai,
    init_openai,
)
from product_optimizer.integrations.shopify import (
    ShopifyClient,
    ShopifyError,
    close_shopify,
    get_shopify,
    init_shopify,
)

__all__ = [
    # OpenAI
    "CompletionResult",
    "OpenAIClient",
    "close_openai",
    "get_openai",
    "init_openai",
    # Shopify
    "ShopifyClient",
    "ShopifyError",
    "close_shopify",
    "get_shopify",
    "init_shopify",
]
