"""
Payload builders shared by the tests
"""
from datetime import date, timedelta

# Header the test ASGI wrapper reads to pick the caller identity
IDENTITY_HEADER = "X-Test-Identity"


def quote_payload(**overrides):
    payload = {
        "valid_until": (date.today() + timedelta(days=30)).isoformat(),
        "items": [{"product_name": "Widget", "quantity": 2, "unit_price": "10.00"}],
    }
    payload.update(overrides)
    return payload


def order_payload(**overrides):
    """Order worth 100.00: 10 x 10.00, no tax"""
    payload = {
        "order_date": date.today().isoformat(),
        "items": [{"product_name": "Crate", "quantity": 10, "unit_price": "10.00"}],
    }
    payload.update(overrides)
    return payload


def invoice_payload(**overrides):
    """Invoice worth 100.00 due in two weeks"""
    payload = {
        "due_date": (date.today() + timedelta(days=14)).isoformat(),
        "items": [{"product_name": "Service", "quantity": 1, "unit_price": "100.00"}],
    }
    payload.update(overrides)
    return payload


def delivery_payload(**overrides):
    payload = {
        "shipping_address": "Main Street 1, 3511 Utrecht",
        "items": [{"product_name": "Crate", "quantity": 10, "unit_price": "10.00"}],
    }
    payload.update(overrides)
    return payload
