"""
Input validation utilities
"""
from decimal import Decimal
from typing import Optional


HUNDRED = Decimal("100")


def validate_rate(value: Optional[Decimal]) -> Optional[Decimal]:
    """Validate that a percentage rate is within 0-100"""
    if value is None:
        return value
    if value < 0 or value > HUNDRED:
        raise ValueError("Rate must be between 0 and 100")
    return value


def validate_quantity(quantity: Decimal) -> Decimal:
    """Validate that a line quantity is positive"""
    if quantity <= 0:
        raise ValueError("Quantity must be positive")
    return quantity


def validate_price(amount: Decimal) -> Decimal:
    """Validate that a price is not negative"""
    if amount < 0:
        raise ValueError("Price must not be negative")
    return amount


def validate_payment_amount(amount: Decimal) -> Decimal:
    """Validate that a payment amount is a positive number"""
    if not amount.is_finite() or amount <= 0:
        raise ValueError("Payment amount must be a positive number")
    return amount
