"""
Value coercion helpers for loosely-shaped cart payloads.

Everything here is pure: arbitrary JSON values in, display strings or numbers
out. Nothing raises on unexpected shapes.
"""
import math
import re
from typing import Any

NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")
PLACEHOLDER_PATTERN = re.compile(r"item\s*\d+", re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]*>")

NAME_FIELDS = ("name", "label", "title", "value", "text")
PRICE_FIELDS = ("price", "amount", "addon", "value")


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a quantity or price
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_number(value: float) -> str:
    """Render a number the way a storefront would: 90.0 -> "90", 90.5 -> "90.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_number(value: Any) -> float:
    if _is_number(value):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        match = NUMBER_PATTERN.search(TAG_PATTERN.sub(" ", value))
        if match:
            return float(match.group())
    return 0


def title_case(key: str) -> str:
    """mug_color, mug-color and mugColor all become "Mug Color"."""
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", str(key))
    words = re.split(r"[\s_\-]+", spaced)
    return " ".join(w[:1].upper() + w[1:] for w in words if w)


def is_placeholder(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return PLACEHOLDER_PATTERN.fullmatch(value.strip()) is not None


def _coerce_mapping(value: dict) -> str:
    name_key = None
    name = ""
    for key in NAME_FIELDS:
        text = coerce_text(value.get(key))
        if text and not is_placeholder(text):
            name_key, name = key, text
            break

    if name:
        for key in PRICE_FIELDS:
            if key == name_key:
                continue
            amount = value.get(key)
            if _is_number(amount) and amount != 0 and math.isfinite(amount):
                return f"{name} +R{format_number(amount)}"
        return name

    pairs = []
    for key, raw in value.items():
        text = coerce_text(raw)
        if text and not is_placeholder(text):
            pairs.append(f"{title_case(key)}: {text}")
    return ", ".join(pairs)


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if _is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return TAG_PATTERN.sub("", value).strip()
    if isinstance(value, (list, tuple)):
        parts = [coerce_text(v) for v in value]
        return ", ".join(p for p in parts if p)
    if isinstance(value, dict):
        return _coerce_mapping(value)
    return str(value).strip()
