"""
Cart normalization and summary encoding.

Cart items come from a storefront whose item shape changed several times, so
normalize_item never rejects an item: unknown shapes degrade to a generic
description instead of blocking checkout.
"""
import logging
import math
import re
from typing import Any, Iterable, List, Optional

from app.models.checkout import CartSummary, NormalizedItem
from app.services.coercion import (
    coerce_number,
    coerce_text,
    format_number,
    is_placeholder,
    title_case,
)

logger = logging.getLogger(__name__)

# (label, accepted keys) in the order they appear in a description
DESCRIBED_FIELDS = (
    ("Preset", ("preset",)),
    ("Handle Type", ("handleType", "handle_type")),
    ("Mug Type", ("mugType", "mug_type")),
    ("Mug Color", ("mugColor", "mug_color")),
    ("Replacement Name", ("replacementName", "replacement_name")),
    ("Variant", ("variant",)),
    ("Size", ("size",)),
    ("Color", ("color",)),
    ("Engraving", ("engraving",)),
    ("Notes", ("notes",)),
)

SKIPPED_FIELDS = {
    "quantity", "qty", "price", "total", "lineTotal", "id", "sku",
    "image", "images", "thumb", "lineIndex", "preset", "description",
}

SUMMARY_SEPARATOR = " | "
EMPTY_SUMMARY = "No items"

SEGMENT_PATTERN = re.compile(
    r"^Item (\d+): (.*) \(x(\d+)\) @ R(-?\d+(?:\.\d+)?(?:e[+-]?\d+)?)$", re.S
)
LABELLED_SEGMENT_PATTERN = re.compile(r"^Item (\d+): (.*)$", re.S)
SEGMENT_SPLIT_PATTERN = re.compile(r" \| (?=Item \d+: )")


def _placeholder(index: int) -> str:
    return f"Item {index}"


def _field(raw: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def _quantity(raw: Any) -> int:
    if not isinstance(raw, dict):
        return 1
    value = raw.get("quantity", raw.get("qty"))
    if isinstance(value, bool):
        return 1
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, (int, float)) and math.isfinite(value) and value >= 1:
        return int(value)
    return 1


def describe_item(raw: Any, index: int) -> str:
    """Human readable description of one raw cart item; never empty."""
    if raw is None or raw == "":
        return _placeholder(index)

    if isinstance(raw, str):
        text = coerce_text(raw)
        if not text or is_placeholder(text):
            return _placeholder(index)
        return text

    if not isinstance(raw, dict):
        text = coerce_text(raw)
        if not text or is_placeholder(text):
            return _placeholder(index)
        return text

    parts: List[str] = []
    for label, keys in DESCRIBED_FIELDS:
        value = _field(raw, keys)
        if value is None:
            continue
        text = coerce_text(value)
        # "Item N" labels are auto-generated, not content
        if text and not is_placeholder(text):
            parts.append(f"{label}: {text}")

    if not parts:
        # already-normalized records carry their description verbatim
        existing = coerce_text(raw.get("description"))
        if existing and not is_placeholder(existing):
            return existing

        described_keys = {k for _, keys in DESCRIBED_FIELDS for k in keys}
        for key, value in raw.items():
            if key in SKIPPED_FIELDS or key in described_keys:
                continue
            text = coerce_text(value)
            if text and not is_placeholder(text):
                parts.append(f"{title_case(key)}: {text}")

    return ", ".join(parts) or _placeholder(index)


def normalize_item(raw: Any, index: int) -> NormalizedItem:
    price = coerce_number(raw.get("price")) if isinstance(raw, dict) else 0
    return NormalizedItem(
        description=describe_item(raw, index),
        quantity=_quantity(raw),
        price=price,
        line_index=index,
    )


def normalize_items(raw_items: Iterable[Any]) -> List[NormalizedItem]:
    return [normalize_item(raw, i) for i, raw in enumerate(raw_items, start=1)]


def cart_total(items: Iterable[NormalizedItem]) -> float:
    return sum(item.price * item.quantity for item in items)


def summarize_cart(raw_items: Iterable[Any], amount: Optional[Any] = None) -> CartSummary:
    """
    Normalize a cart and settle its total.

    A client-declared amount wins when it coerces to a positive finite number;
    otherwise the total is the sum of price x quantity over the items.
    """
    items = normalize_items(raw_items)
    declared = coerce_number(amount)
    total = declared if declared > 0 else cart_total(items)
    return CartSummary(items=items, total_amount=total)


def encode_item(item: NormalizedItem) -> str:
    return (
        f"Item {item.line_index}: {item.description} "
        f"(x{item.quantity}) @ R{format_number(float(item.price))}"
    )


def encode_summary(items: List[NormalizedItem]) -> str:
    """Pipe-delimited text form of a cart, stored in gateway metadata."""
    if not items:
        return EMPTY_SUMMARY
    return SUMMARY_SEPARATOR.join(encode_item(item) for item in items)


def decode_summary(summary: Any) -> List[NormalizedItem]:
    """
    Rebuild items from encode_summary output.

    Lossy fallback: segments that do not end in "(xN) @ RP" keep their text
    as the description with quantity 1 and price 0. Never raises.
    """
    if not isinstance(summary, str) or not summary.strip() or summary.strip() == EMPTY_SUMMARY:
        return []

    items: List[NormalizedItem] = []
    for position, segment in enumerate(SEGMENT_SPLIT_PATTERN.split(summary.strip()), start=1):
        match = SEGMENT_PATTERN.match(segment)
        if match:
            items.append(NormalizedItem(
                description=match.group(2) or _placeholder(position),
                quantity=max(int(match.group(3)), 1),
                price=float(match.group(4)),
                line_index=position,
            ))
            continue

        logger.warning(f"[Cart] Could not fully parse summary segment {position}: {segment!r}")
        labelled = LABELLED_SEGMENT_PATTERN.match(segment)
        text = labelled.group(2) if labelled else segment
        items.append(NormalizedItem(
            description=text.strip() or _placeholder(position),
            quantity=1,
            price=0,
            line_index=position,
        ))
    return items
