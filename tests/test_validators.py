from decimal import Decimal

from laundry_orders import schemas, validators


def line(label="Shirt", quantity=1, price="500"):
    return schemas.OrderItemInput(label=label, quantity=quantity, price=Decimal(price))


def test_valid_lines_pass():
    assert validators.validate_order_items([line(), line("Pants", 2, "0")]) == (True, "")


def test_empty_order_is_rejected():
    is_valid, message = validators.validate_order_items([])
    assert not is_valid
    assert "at least one item" in message


def test_blank_label_is_rejected():
    is_valid, message = validators.validate_order_items([line(), line(label="   ")])
    assert not is_valid
    assert message == "Item 2: label is required"


def test_non_positive_quantity_is_rejected():
    is_valid, message = validators.validate_order_items([line(quantity=0)])
    assert not is_valid
    assert "quantity must be at least 1" in message


def test_negative_price_is_rejected():
    is_valid, message = validators.validate_order_items([line(price="-0.01")])
    assert not is_valid
    assert "price cannot be negative" in message


def test_total_uses_submitted_prices():
    total = validators.calculate_order_total([line("Shirt", 3, "500"), line("Pants", 2, "400")])
    assert total == Decimal("2300")


def test_total_keeps_cents_exact():
    assert validators.calculate_order_total([line(quantity=3, price="0.10")]) == Decimal("0.30")


def test_minimum_amount():
    assert validators.validate_minimum_amount(Decimal("999"), None) == (True, "")
    assert validators.validate_minimum_amount(Decimal("1000"), Decimal("1000")) == (True, "")
    is_valid, message = validators.validate_minimum_amount(Decimal("999"), Decimal("1000"))
    assert not is_valid
    assert "below the pressing minimum" in message


def test_normalize_label():
    assert validators.normalize_label("  Shirt ") == "shirt"
    assert validators.normalize_label("SHIRT") == validators.normalize_label("shirt")


def test_catalog_item_validation():
    assert validators.validate_catalog_item("Coat", Decimal("0")) == (True, "")
    assert validators.validate_catalog_item(None, None) == (True, "")
    assert validators.validate_catalog_item(" ", None)[0] is False
    assert validators.validate_catalog_item(None, Decimal("-1"))[0] is False


def test_sub_cent_line_price_is_rejected():
    is_valid, message = validators.validate_order_items([line("Sock", 3, "0.335")])
    assert not is_valid
    assert message == "Item 1 (Sock): price cannot have more than 2 decimal places"


def test_trailing_zeros_do_not_count_as_extra_places():
    assert validators.validate_order_items([line(price="0.3400")]) == (True, "")
    assert validators.has_valid_scale(Decimal("1E+3"))
    assert not validators.has_valid_scale(Decimal("0.001"))
    assert not validators.has_valid_scale(Decimal("NaN"))


def test_sub_cent_catalog_price_is_rejected():
    is_valid, message = validators.validate_catalog_item("Sock", Decimal("0.335"))
    assert not is_valid
    assert "2 decimal places" in message
