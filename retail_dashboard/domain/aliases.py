"""Utilities for normalising order-type and category labels across the dashboard."""

from __future__ import annotations

import math
from typing import Any

import pandas as pd

from ..core.config import CATEGORIES, ORDER_TYPES

# Centralised alias mapping so that all inputs converge to a single canonical
# label. Extend these dictionaries when new spellings appear upstream.
ORDER_TYPE_ALIAS: dict[str, str] = {
    "dine-in": "dine-in",
    "Dine In": "dine-in",
    "dinein": "dine-in",
    "dine_in": "dine-in",
    "eat-in": "dine-in",
    "takeout": "takeout",
    "Take Out": "takeout",
    "take-out": "takeout",
    "takeaway": "takeout",
    "pickup": "takeout",
    "delivery": "delivery",
    "Deliveries": "delivery",
}

CATEGORY_ALIAS: dict[str, str] = {
    "dairy": "dairy",
    "produce": "produce",
    "cones_cups": "cones_cups",
    "Cones & Cups": "cones_cups",
    "cones and cups": "cones_cups",
    "cones": "cones_cups",
    "cups": "cones_cups",
    "toppings": "toppings",
    "topping": "toppings",
    "syrups": "syrups",
    "syrup": "syrups",
}

_PLACEHOLDERS = {"", "nan", "none", "null", "<na>"}


def _alias_key(value: str) -> str:
    """Create a normalised lookup key by stripping separators and lowering case."""

    return "".join(ch for ch in value.casefold() if ch.isalnum())


_ORDER_TYPE_LOOKUP = {_alias_key(k): v for k, v in ORDER_TYPE_ALIAS.items()}
_CATEGORY_LOOKUP = {_alias_key(k): v for k, v in CATEGORY_ALIAS.items()}


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if not isinstance(value, str) and pd.isna(value):
        return ""
    text = str(value).strip()
    if text.casefold() in _PLACEHOLDERS:
        return ""
    return text


def _fallback_slug(text: str) -> str:
    # "Ice Cream" -> "ice_cream"
    chunks = []
    current = []
    for ch in text.casefold():
        if ch.isalnum():
            current.append(ch)
        elif current:
            chunks.append("".join(current))
            current = []
    if current:
        chunks.append("".join(current))
    return "_".join(chunks)


def normalize_order_type(value: Any) -> str:
    """Return the canonical order type (``dine-in``/``takeout``/``delivery``).

    Unknown labels are lower-cased and slugged so that they still group
    consistently; missing values become an empty string.
    """

    text = _clean_text(value)
    if not text:
        return ""
    key = _alias_key(text)
    if key in _ORDER_TYPE_LOOKUP:
        return _ORDER_TYPE_LOOKUP[key]
    for canonical in ORDER_TYPES:
        if _alias_key(canonical) in key:
            return canonical
    return _fallback_slug(text)


def normalize_category(value: Any) -> str:
    """Return the canonical inventory category for *value*."""

    text = _clean_text(value)
    if not text:
        return ""
    canonical = _CATEGORY_LOOKUP.get(_alias_key(text))
    if canonical:
        return canonical
    return _fallback_slug(text)


def canonical_rank(value: str, canonical: tuple[str, ...]) -> tuple[int, str]:
    """Sort key placing canonical labels first (in order), unknown ones after."""

    try:
        return (canonical.index(value), "")
    except ValueError:
        return (len(canonical), str(value))


def order_type_rank(value: str) -> tuple[int, str]:
    return canonical_rank(value, ORDER_TYPES)


def category_rank(value: str) -> tuple[int, str]:
    return canonical_rank(value, CATEGORIES)
