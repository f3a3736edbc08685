"""
Input validation shared by the ledger components.

Lengths are counted in code points (``len`` of a ``str``). Every check raises
a `ValidationError` carrying the specific error code and the offending value's
bounds, and none of them touch state.
"""

from __future__ import annotations

from typing import Any, Optional

from model_ledger.domain.errors import ValidationError
from model_ledger.domain.models import Category

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
COMMENT_MAX_LENGTH = 200
CONTENT_HASH_LENGTH = 64
MIN_RATING = 1
MAX_RATING = 10


def check_length(field: str, value: str, minimum: int, maximum: int, code: str = "InvalidLength") -> str:
    if not isinstance(value, str) or not minimum <= len(value) <= maximum:
        length = len(value) if isinstance(value, str) else None
        raise ValidationError(
            f"{field} must be {minimum}-{maximum} characters",
            error_code=code,
            details={"field": field, "length": length, "min": minimum, "max": maximum},
        )
    return value


def validate_name(name: str) -> str:
    return check_length("name", name, 1, NAME_MAX_LENGTH)


def validate_description(description: str) -> str:
    return check_length("description", description, 1, DESCRIPTION_MAX_LENGTH)


def validate_content_hash(content_hash: str) -> str:
    return check_length("content_hash", content_hash, CONTENT_HASH_LENGTH, CONTENT_HASH_LENGTH)


def validate_comment(comment: Optional[str]) -> Optional[str]:
    """An absent comment always passes."""
    if comment is None:
        return None
    return check_length("comment", comment, 1, COMMENT_MAX_LENGTH, code="InvalidCommentLength")


def validate_rating(score: Any) -> int:
    # bool is an int subclass; True is not a rating
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_RATING <= score <= MAX_RATING:
        raise ValidationError(
            f"rating must be an integer in [{MIN_RATING}, {MAX_RATING}]",
            error_code="InvalidRating",
            details={"score": score},
        )
    return score


def is_category_valid(category: Any) -> bool:
    if isinstance(category, Category):
        return True
    return isinstance(category, str) and category in Category.values()


def parse_category(category: Any) -> Category:
    if not is_category_valid(category):
        raise ValidationError(
            f"unknown category {category!r}",
            error_code="InvalidCategory",
            details={"category": category, "allowed": Category.values()},
        )
    return Category(category)


def validate_identity(field: str, identity: Any) -> str:
    if not isinstance(identity, str) or not identity.strip():
        raise ValidationError(
            f"{field} must be a non-empty identity",
            error_code="InvalidIdentity",
            details={"field": field},
        )
    return identity


__all__ = [
    "COMMENT_MAX_LENGTH",
    "CONTENT_HASH_LENGTH",
    "DESCRIPTION_MAX_LENGTH",
    "MAX_RATING",
    "MIN_RATING",
    "NAME_MAX_LENGTH",
    "check_length",
    "is_category_valid",
    "parse_category",
    "validate_comment",
    "validate_content_hash",
    "validate_description",
    "validate_identity",
    "validate_name",
    "validate_rating",
]
