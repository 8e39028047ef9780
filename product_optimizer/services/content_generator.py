"""Two-tier product content generation.

Tier 1 asks the language model for a JSON payload with an improved
description, tags and SEO fields. Any failure there (no credential,
transport error, timeout, unparseable output) is logged and routed to
tier 2, a deterministic template built from the product's own title and
description. Both tiers go through the sanitizer, so generate() always
returns content inside the output bounds and never raises.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from product_optimizer.core.logging import generation_logger, get_logger
from product_optimizer.integrations.openai import OpenAIClient
from product_optimizer.services.content_sanitizer import (
    fallback_seo_description,
    fallback_seo_title,
    sanitize_content,
)
from product_optimizer.services.product_content import (
    OptimizedContent,
    ProductSnapshot,
    escape_html,
    keywords_from_title,
    strip_html,
)

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an ecommerce SEO copywriter. Improve product descriptions, tags, "
    "and SEO metadata while staying accurate to the product."
)

RESPONSE_INSTRUCTIONS = (
    "Return JSON with keys descriptionHtml, tags (array of 3-8 concise keyword "
    "phrases), seoTitle (35-60 characters) and seoDescription (110-160 "
    "characters). Use simple HTML paragraphs and lists for the description. "
    "Do not invent features that are not mentioned."
)

REQUIRED_KEYS = ("descriptionHtml", "tags", "seoTitle", "seoDescription")

FALLBACK_LIST_KEYWORDS = 4
FALLBACK_CLOSING = (
    "<p>Enjoy fast shipping, secure checkout, and responsive customer support "
    "when you order today.</p>"
)

NONE_PLACEHOLDER = "(none)"


class GenerationFailureReason(str, Enum):
    """Why the model-backed tier did not produce usable content."""

    CONFIGURATION_MISSING = "configuration_missing"
    UPSTREAM_TRANSPORT = "upstream_transport"
    MALFORMED_RESPONSE = "malformed_response"
    UNEXPECTED = "unexpected"


@dataclass
class GenerationAttempt:
    """Outcome of the model-backed tier.

    On success ``content`` holds the sanitized model output. On failure
    ``reason`` and ``detail`` describe what went wrong.
    """

    success: bool
    content: OptimizedContent | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)
    reason: GenerationFailureReason | None = None
    detail: str | None = None

    @classmethod
    def failed(
        cls, reason: GenerationFailureReason, detail: str | None = None
    ) -> "GenerationAttempt":
        return cls(success=False, reason=reason, detail=detail)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json") :]
    elif cleaned.startswith("```"):
        cleaned = cleaned[len("```") :]
    if cleaned.endswith("```"):
        cleaned = cleaned[: -len("```")]
    return cleaned.strip()


class ContentGenerator:
    """Generates optimized content for a product snapshot.

    Args:
        client: OpenAI client used for the model-backed tier. When None or
            not configured, every call goes straight to the fallback tier.
    """

    def __init__(self, client: OpenAIClient | None = None) -> None:
        self._client = client

    def build_prompts(self, snapshot: ProductSnapshot) -> tuple[str, str]:
        """Build (system_prompt, user_prompt) for a snapshot."""
        description = strip_html(snapshot.description_html) or NONE_PLACEHOLDER
        tags = ", ".join(snapshot.tags) if snapshot.tags else NONE_PLACEHOLDER

        user_prompt = "\n".join(
            [
                f"Product title: {snapshot.title}",
                f"Current description: {description}",
                f"Current tags: {tags}",
                f"Current SEO title: {snapshot.seo_title or NONE_PLACEHOLDER}",
                f"Current SEO description: {snapshot.seo_description or NONE_PLACEHOLDER}",
                "",
                RESPONSE_INSTRUCTIONS,
            ]
        )
        return SYSTEM_PROMPT, user_prompt

    def _parse_json(self, text: str) -> dict[str, Any] | None:
        """Parse the model text into a payload with all required keys."""
        try:
            payload = json.loads(strip_code_fences(text))
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        if any(key not in payload for key in REQUIRED_KEYS):
            return None
        return payload

    async def attempt_model(self, snapshot: ProductSnapshot) -> GenerationAttempt:
        """Run the model-backed tier once."""
        if self._client is None or not self._client.available:
            return GenerationAttempt.failed(
                GenerationFailureReason.CONFIGURATION_MISSING,
                "OpenAI API key is not configured",
            )

        system_prompt, user_prompt = self.build_prompts(snapshot)
        result = await self._client.complete(
            user_prompt=user_prompt,
            system_prompt=system_prompt,
        )

        if not result.success:
            return GenerationAttempt.failed(
                GenerationFailureReason.UPSTREAM_TRANSPORT,
                result.error,
            )

        if not result.text:
            return GenerationAttempt.failed(
                GenerationFailureReason.MALFORMED_RESPONSE,
                "Response contained no text",
            )

        payload = self._parse_json(result.text)
        if payload is None:
            return GenerationAttempt.failed(
                GenerationFailureReason.MALFORMED_RESPONSE,
                "Response was not a JSON object with the required keys",
            )

        content = sanitize_content(payload, snapshot)
        if not content.description_html:
            return GenerationAttempt.failed(
                GenerationFailureReason.MALFORMED_RESPONSE,
                "Generated description was empty",
            )

        return GenerationAttempt(success=True, content=content, raw_payload=payload)

    def fallback(self, snapshot: ProductSnapshot) -> OptimizedContent:
        """Deterministic template content built from the product itself."""
        existing = strip_html(snapshot.description_html)
        intro = existing or f"{snapshot.title} delivers quality and value for your store."

        benefits = keywords_from_title(snapshot.title)[:FALLBACK_LIST_KEYWORDS]
        parts = [f"<p>{escape_html(intro)}</p>"]
        if benefits:
            items = "".join(f"<li>{escape_html(keyword)}</li>" for keyword in benefits)
            parts.append(f"<ul>{items}</ul>")
        parts.append(FALLBACK_CLOSING)

        raw = {
            "descriptionHtml": "".join(parts),
            "tags": list(snapshot.tags) or benefits,
            "seoTitle": fallback_seo_title(snapshot),
            "seoDescription": fallback_seo_description(snapshot),
        }
        return sanitize_content(raw, snapshot)

    async def generate(self, snapshot: ProductSnapshot) -> OptimizedContent:
        """Generate content, falling back to templates on any model failure."""
        try:
            attempt = await self.attempt_model(snapshot)
        except Exception as e:
            logger.exception(
                "Unexpected error during model generation",
                extra={"product_id": snapshot.id, "error_type": type(e).__name__},
            )
            attempt = GenerationAttempt.failed(GenerationFailureReason.UNEXPECTED, str(e))

        if attempt.success and attempt.content is not None:
            logger.info(
                "Generated content with model",
                extra={"product_id": snapshot.id, "tag_count": len(attempt.content.tags)},
            )
            return attempt.content

        reason = attempt.reason or GenerationFailureReason.UNEXPECTED
        generation_logger.fallback(snapshot.id, reason.value, attempt.detail)
        return self.fallback(snapshot)
