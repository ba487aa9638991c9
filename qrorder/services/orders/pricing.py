"""
Order Validation & Pricing

Turns client-supplied line items into immutable OrderLine snapshots and
computes the order total. Money is Decimal with two places throughout;
floats only appear at the JSON boundary.
"""

import secrets
import string
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence

from qrorder.core.errors import FieldError, ValidationFailed
from qrorder.domain import OrderLine

CENT = Decimal("0.01")
# Column is Numeric(12, 2)
MAX_PRICE = Decimal("99999999.99")
MAX_QUANTITY = 10_000
MAX_ORDER_TOTAL = Decimal("9999999999.99")
ORDER_NUMBER_PREFIX = "ORD"

_BASE36 = string.digits + string.ascii_uppercase


def parse_price(value: Any) -> Optional[Decimal]:
    """Parse a positive price rounded to cents, or None if it is not one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price > MAX_PRICE:
        return None
    price = price.quantize(CENT, rounding=ROUND_HALF_UP)
    return price if price > 0 else None


def parse_quantity(value: Any) -> Optional[int]:
    """
    Parse a quantity.

    A missing quantity means one. Anything present must be a whole number
    between one and MAX_QUANTITY; fractional or non-numeric values are
    rejected rather than silently replaced.
    """
    if value is None:
        return 1
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        qty = value
    else:
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        if not number.is_finite() or number != number.to_integral_value():
            return None
        qty = int(number)
    return qty if 1 <= qty <= MAX_QUANTITY else None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_items(items: Optional[Sequence[Mapping[str, Any]]]) -> list[OrderLine]:
    """
    Validate raw items and snapshot them.

    Raises:
        ValidationFailed: with one FieldError per offending field, named
            ``items[<index>].<field>``
    """
    if not items:
        raise ValidationFailed.for_field("items", "Order must contain at least one item")

    errors: list[FieldError] = []
    lines: list[OrderLine] = []

    for index, raw in enumerate(items):
        if not isinstance(raw, Mapping):
            errors.append(FieldError(f"items[{index}]", f"Item at index {index} is not an object"))
            continue

        name = str(raw.get("name") or "").strip()
        if not name:
            errors.append(FieldError(f"items[{index}].name", f"Item at index {index} is missing a name"))

        label = f"'{name}' " if name else ""
        price = parse_price(raw.get("price"))
        if price is None:
            errors.append(FieldError(
                f"items[{index}].price",
                f"Item {label}at index {index} has an invalid price",
            ))

        qty = parse_quantity(raw.get("qty"))
        if qty is None:
            errors.append(FieldError(
                f"items[{index}].qty",
                f"Item {label}at index {index} has an invalid quantity",
            ))

        if name and price is not None and qty is not None:
            lines.append(OrderLine(
                menu_item_id=_optional_text(raw.get("menu_item_id")),
                name=name,
                price=price,
                qty=qty,
                note=str(raw.get("note") or ""),
            ))

    if errors:
        raise ValidationFailed(errors[0].message, errors)
    if compute_totals(lines) > MAX_ORDER_TOTAL:
        raise ValidationFailed.for_field("items", "Order total is too large")
    return lines


def compute_totals(lines: Sequence[OrderLine]) -> Decimal:
    """Σ price × qty, in cents."""
    return sum((line.line_total for line in lines), Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Convert a two-place amount to an integer number of cents."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_table_id(table_id: Any) -> Optional[str]:
    """Trimmed table id, or None for "no table"."""
    return _optional_text(table_id)


def _to_base36(number: int) -> str:
    digits = []
    while True:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
        if number == 0:
            break
    return "".join(reversed(digits))


def generate_order_number(prefix: str = ORDER_NUMBER_PREFIX, now_ms: Optional[int] = None) -> str:
    """
    Human-readable order number: ``ORD-<base36 millis>-<6 random chars>``.

    Collisions are unlikely but possible; storage enforces uniqueness.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}-{_to_base36(now_ms)}-{suffix}"
