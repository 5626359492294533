"""Shared schema building blocks.

Learn: `Annotated[str, BeforeValidator(...)]` normalizes input before
pydantic applies the Field constraints, so `Field(min_length=1)` on a
Trimmed field rejects whitespace-only strings, and a Lowered slug is
checked against the pattern after it has been lowercased.
"""

from typing import Annotated, Any, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, BeforeValidator

SLUG_PATTERN = r"^[a-z0-9-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

T = TypeVar("T")


def _strip(value: Any) -> Any:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else value


def _strip_lower(value: Any) -> Any:
    value = _strip(value)
    return value.lower() if isinstance(value, str) else value


def clean_strings(values: list[str]) -> list[str]:
    """Trim every entry and drop the blank ones."""
    return [v.strip() for v in values if v.strip()]


Trimmed = Annotated[str, BeforeValidator(_strip)]
Lowered = Annotated[str, BeforeValidator(_strip_lower)]
CleanList = Annotated[list[str], AfterValidator(clean_strings)]


class ItemList(BaseModel, Generic[T]):
    """List responses are wrapped: {"items": [...]}."""

    items: list[T]
