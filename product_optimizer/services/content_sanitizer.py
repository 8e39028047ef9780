"""Sanitization of generated product content.

Turns an untrusted candidate (model output or fallback template) into an
OptimizedContent that always satisfies the output bounds:

- description_html: trimmed, wrapped in <p> when it has no block markup
- tags: 1-8 entries, deduplicated case-insensitively, first letter upper-cased
- seo_title: 35-60 characters
- seo_description: 110-160 characters

Each field is handled independently. Running the sanitizer over content it
already produced returns the same content.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from product_optimizer.core.logging import get_logger
from product_optimizer.services.product_content import (
    MAX_TAGS,
    SEO_DESCRIPTION_MAX_LENGTH,
    SEO_DESCRIPTION_MIN_LENGTH,
    SEO_TITLE_MAX_LENGTH,
    SEO_TITLE_MIN_LENGTH,
    OptimizedContent,
    ProductSnapshot,
    capitalize,
    keywords_from_title,
    strip_html,
    wrap_in_paragraph,
)

logger = get_logger(__name__)

DEFAULT_SEO_TEXT = "Shop our curated collection today."
PADDING_SENTENCE = "Discover more in our store."
ELLIPSIS = "…"

SEO_DESCRIPTION_CLOSING = (
    " Shop now for quick shipping, secure checkout, and helpful customer service."
)

_BLOCK_MARKUP = re.compile(r"<p|<ul|<ol|<div", re.IGNORECASE)
_TAG_SEPARATORS = re.compile(r"[,\n]")


def normalize_description(value: Any) -> str:
    """Trim and make sure the description carries block-level markup.

    Returns an empty string for empty or non-string input.
    """
    if not isinstance(value, str):
        return ""
    trimmed = value.strip()
    if not trimmed:
        return ""
    if not _BLOCK_MARKUP.search(trimmed):
        return wrap_in_paragraph(trimmed)
    return trimmed


def _coerce_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        candidates = _TAG_SEPARATORS.split(value)
    elif isinstance(value, Sequence):
        candidates = [str(tag) for tag in value]
    else:
        return []
    return [tag.strip() for tag in candidates if tag.strip()]


def normalize_tags(value: Any, title: str) -> list[str]:
    """Normalize tags, deriving them from the title when none are usable."""
    tags = _coerce_tags(value)
    if not tags:
        tags = keywords_from_title(title)
    if not tags and title.strip():
        tags = [title.strip()]

    seen: set[str] = set()
    normalized: list[str] = []
    for tag in tags:
        key = tag.lower()
        if key in seen:
            continue
        seen.add(key)
        normalized.append(capitalize(tag))

    return normalized[:MAX_TAGS]


def _truncate(text: str, maximum: int) -> str:
    return f"{text[: maximum - 1].rstrip()}{ELLIPSIS}"


def enforce_length(
    value: Any,
    minimum: int,
    maximum: int,
    fallback: str | None = None,
) -> str:
    """Force a text into [minimum, maximum] characters.

    Empty input uses the fallback, then a generic sentence. Long text is cut
    to maximum - 1 characters plus an ellipsis. Short text is padded with a
    closing sentence; every padding round adds more than 25 characters, so
    the loop ends after a handful of rounds.
    """
    text = value.strip() if isinstance(value, str) else ""

    if not text and fallback:
        text = fallback.strip()

    if not text:
        text = DEFAULT_SEO_TEXT

    if len(text) > maximum:
        text = _truncate(text, maximum)

    while len(text) < minimum:
        separator = "" if text.endswith(".") else "."
        text = f"{text}{separator} {PADDING_SENTENCE}"
        if len(text) > maximum:
            text = _truncate(text, maximum)
            break

    return text


def fallback_seo_title(snapshot: ProductSnapshot) -> str:
    keywords = keywords_from_title(snapshot.title)[:3]
    suffix = f" | {' · '.join(keywords)}" if keywords else " | Shop Now"
    return f"{snapshot.title}{suffix}"


def fallback_seo_description(snapshot: ProductSnapshot) -> str:
    description = strip_html(snapshot.description_html)
    base = description or (
        f"{snapshot.title} is crafted to help customers feel confident in their purchase."
    )
    return f"{base}{SEO_DESCRIPTION_CLOSING}"


def sanitize_content(
    raw: Mapping[str, Any], snapshot: ProductSnapshot
) -> OptimizedContent:
    """Build bounded OptimizedContent from a raw candidate mapping.

    Accepts both the model's camelCase keys (descriptionHtml, seoTitle, ...)
    and snake_case keys. An empty description is returned as "" and must be
    treated as a failure by the caller.
    """
    description = raw.get("descriptionHtml", raw.get("description_html"))
    seo_title = raw.get("seoTitle", raw.get("seo_title"))
    seo_description = raw.get("seoDescription", raw.get("seo_description"))

    content = OptimizedContent(
        description_html=normalize_description(description),
        tags=normalize_tags(raw.get("tags"), snapshot.title),
        seo_title=enforce_length(
            seo_title,
            SEO_TITLE_MIN_LENGTH,
            SEO_TITLE_MAX_LENGTH,
            fallback_seo_title(snapshot),
        ),
        seo_description=enforce_length(
            seo_description,
            SEO_DESCRIPTION_MIN_LENGTH,
            SEO_DESCRIPTION_MAX_LENGTH,
            fallback_seo_description(snapshot),
        ),
    )

    logger.debug(
        "Content sanitized",
        extra={
            "product_id": snapshot.id,
            "tag_count": len(content.tags),
            "seo_title_length": len(content.seo_title),
            "seo_description_length": len(content.seo_description),
        },
    )
    return content
