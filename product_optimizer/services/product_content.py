"""Product content types, thresholds and text helpers.

Shared by the health checks, the sanitizer and the content generator so
that the audit and the generation pipeline agree on what "good" means.
"""

import html
import re
from dataclasses import dataclass, field

# Health / sanitization thresholds
MIN_DESCRIPTION_WORDS = 60
MIN_TAGS = 3
MAX_TAGS = 8
SEO_TITLE_MIN_LENGTH = 35
SEO_TITLE_MAX_LENGTH = 60
SEO_DESCRIPTION_MIN_LENGTH = 110
SEO_DESCRIPTION_MAX_LENGTH = 160

MAX_TITLE_KEYWORDS = 6

_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_NON_KEYWORD_CHARS = re.compile(r"[^a-z0-9-]", re.IGNORECASE)


class ProductStoreError(Exception):
    """Raised when the product store cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ProductSnapshot:
    """Read-only view of a product's content fields at optimization time."""

    id: str
    title: str
    description_html: str | None = None
    tags: tuple[str, ...] = ()
    seo_title: str | None = None
    seo_description: str | None = None


@dataclass
class OptimizedContent:
    """Content written back to the product store."""

    description_html: str
    tags: list[str] = field(default_factory=list)
    seo_title: str = ""
    seo_description: str = ""

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""
        return {
            "description_html": self.description_html,
            "tags": list(self.tags),
            "seo_title": self.seo_title,
            "seo_description": self.seo_description,
        }


def strip_html(value: str | None) -> str:
    """Replace markup with spaces and collapse whitespace."""
    if not value:
        return ""
    text = _TAG_PATTERN.sub(" ", value)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def escape_html(value: str) -> str:
    return html.escape(value, quote=True).replace("&#x27;", "&#39;")


def wrap_in_paragraph(value: str) -> str:
    """Wrap plain text in a single escaped <p> element."""
    trimmed = value.strip()
    if not trimmed:
        return ""
    return f"<p>{escape_html(trimmed)}</p>"


def keywords_from_title(title: str) -> list[str]:
    """Extract up to six lowercase keywords (longer than 2 chars) from a title."""
    keywords: list[str] = []
    for word in (title or "").split():
        cleaned = _NON_KEYWORD_CHARS.sub("", word).lower()
        if len(cleaned) > 2:
            keywords.append(cleaned)
    return keywords[:MAX_TITLE_KEYWORDS]


def capitalize(value: str) -> str:
    """Upper-case the first character only, leaving the rest untouched."""
    if not value:
        return value
    return value[0].upper() + value[1:]
