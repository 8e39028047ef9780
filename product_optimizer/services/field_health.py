"""Field health checks for product listings.

Classifies the description, tags, SEO title and SEO description of a
product as ok, weak or missing against fixed thresholds. Deterministic,
no I/O. A product needs optimization whenever any field is not ok.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from product_optimizer.services.product_content import (
    MIN_DESCRIPTION_WORDS,
    MIN_TAGS,
    SEO_DESCRIPTION_MAX_LENGTH,
    SEO_DESCRIPTION_MIN_LENGTH,
    SEO_TITLE_MAX_LENGTH,
    SEO_TITLE_MIN_LENGTH,
    ProductSnapshot,
    strip_html,
)


class FieldStatus(str, Enum):
    """Health status of a single content field."""

    OK = "ok"
    WEAK = "weak"
    MISSING = "missing"


@dataclass(frozen=True)
class FieldHealth:
    """Classification of one field plus a short diagnostic message."""

    status: FieldStatus
    message: str

    @property
    def is_ok(self) -> bool:
        return self.status == FieldStatus.OK

    def to_dict(self) -> dict[str, str]:
        return {"status": self.status.value, "message": self.message}


@dataclass(frozen=True)
class ProductHealth:
    """Health of all four content fields of a product."""

    description: FieldHealth
    tags: FieldHealth
    seo_title: FieldHealth
    seo_description: FieldHealth

    @property
    def needs_optimization(self) -> bool:
        return not all(
            health.is_ok
            for health in (
                self.description,
                self.tags,
                self.seo_title,
                self.seo_description,
            )
        )


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def evaluate_description(description_html: str | None) -> FieldHealth:
    text = strip_html(description_html)
    if not text:
        return FieldHealth(FieldStatus.MISSING, "No description")

    word_count = len(text.split())
    if word_count < MIN_DESCRIPTION_WORDS:
        return FieldHealth(FieldStatus.WEAK, _plural(word_count, "word"))

    return FieldHealth(FieldStatus.OK, f"{word_count} words")


def evaluate_tags(tags: Sequence[str] | None) -> FieldHealth:
    if not tags:
        return FieldHealth(FieldStatus.MISSING, "No tags")

    if len(tags) < MIN_TAGS:
        return FieldHealth(FieldStatus.WEAK, _plural(len(tags), "tag"))

    return FieldHealth(FieldStatus.OK, f"{len(tags)} tags")


def _evaluate_length(
    value: str | None, minimum: int, maximum: int, missing_message: str
) -> FieldHealth:
    if not value:
        return FieldHealth(FieldStatus.MISSING, missing_message)

    length = len(value)
    status = FieldStatus.OK if minimum <= length <= maximum else FieldStatus.WEAK
    return FieldHealth(status, f"{length} characters")


def evaluate_seo_title(seo_title: str | None) -> FieldHealth:
    return _evaluate_length(
        seo_title, SEO_TITLE_MIN_LENGTH, SEO_TITLE_MAX_LENGTH, "No SEO title"
    )


def evaluate_seo_description(seo_description: str | None) -> FieldHealth:
    return _evaluate_length(
        seo_description,
        SEO_DESCRIPTION_MIN_LENGTH,
        SEO_DESCRIPTION_MAX_LENGTH,
        "No meta description",
    )


def evaluate_product(snapshot: ProductSnapshot) -> ProductHealth:
    """Classify every content field of a product."""
    return ProductHealth(
        description=evaluate_description(snapshot.description_html),
        tags=evaluate_tags(snapshot.tags),
        seo_title=evaluate_seo_title(snapshot.seo_title),
        seo_description=evaluate_seo_description(snapshot.seo_description),
    )


def needs_optimization(snapshot: ProductSnapshot) -> bool:
    """True when any of the four fields is weak or missing."""
    return evaluate_product(snapshot).needs_optimization
