"""
Business-rule validation for the laundry orders service.

Provides validation beyond schema parsing. Validators return
`(is_valid, error_message)` and callers raise ValidationError on failure.
"""
from typing import List, Optional, Tuple
from decimal import Decimal
from . import schemas


# Amounts are stored as Numeric(10, 2)
AMOUNT_DECIMAL_PLACES = 2


def has_valid_scale(amount: Decimal) -> bool:
    """True when `amount` fits the stored scale exactly (no sub-cent digits)."""
    amount = Decimal(str(amount))
    if not amount.is_finite():
        return False
    return amount.normalize().as_tuple().exponent >= -AMOUNT_DECIMAL_PLACES


def normalize_label(label: str) -> str:
    """Catalog comparison key: surrounding whitespace dropped, case folded."""
    return label.strip().lower()


def validate_order_items(items: List[schemas.OrderItemInput]) -> Tuple[bool, str]:
    """
    Validate order lines for business rules.

    Args:
        items: List of submitted order lines

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not items:
        return False, "Order must contain at least one item"

    for index, item in enumerate(items, start=1):
        if not item.label or not item.label.strip():
            return False, f"Item {index}: label is required"

        if item.quantity < 1:
            return False, f"Item {index} ({item.label}): quantity must be at least 1"

        if item.price < 0:
            return False, f"Item {index} ({item.label}): price cannot be negative"

        if not has_valid_scale(item.price):
            return False, (
                f"Item {index} ({item.label}): price cannot have more than "
                f"{AMOUNT_DECIMAL_PLACES} decimal places"
            )

    return True, ""


def calculate_order_total(items: List[schemas.OrderItemInput]) -> Decimal:
    """
    Sum of quantity x price over the submitted lines.

    The submitted prices are authoritative for the order, whatever the catalog says.
    """
    return sum(
        (Decimal(str(item.price)) * item.quantity for item in items),
        Decimal("0"),
    )


def validate_minimum_amount(total: Decimal, minimum: Optional[Decimal]) -> Tuple[bool, str]:
    """
    Validate an order total against the pressing's minimum order amount.

    Args:
        total: Computed order total
        minimum: Pressing minimum, or None when the pressing has no minimum

    Returns:
        Tuple of (is_valid, error_message)
    """
    if minimum is None:
        return True, ""

    if total < Decimal(str(minimum)):
        return False, f"Order total {total} is below the pressing minimum of {minimum}"

    return True, ""


def validate_catalog_item(label: Optional[str], price: Optional[Decimal]) -> Tuple[bool, str]:
    """Validate the fields of a catalog entry; None means the field is not being set."""
    if label is not None and not label.strip():
        return False, "Label is required"

    if price is not None and price < 0:
        return False, "Price cannot be negative"

    if price is not None and not has_valid_scale(price):
        return False, f"Price cannot have more than {AMOUNT_DECIMAL_PLACES} decimal places"

    return True, ""
