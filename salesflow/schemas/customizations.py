"""
Per-conversion customization payloads.

One model per conversion kind; unknown fields are rejected, so a field that
is only legal on one conversion (e.g. `partial`) cannot leak into another.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class OrderCustomization(BaseModel):
    order_number: Optional[str] = Field(default=None, min_length=1)
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    purchase_order_number: Optional[str] = None

    class Config:
        extra = "forbid"


class InvoiceCustomization(BaseModel):
    invoice_number: Optional[str] = Field(default=None, min_length=1)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_terms: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None

    class Config:
        extra = "forbid"


class PartialInvoice(BaseModel):
    """Invoice part of an order, by percentage or by fixed amount"""
    percentage: Optional[Decimal] = None
    amount: Optional[Decimal] = None

    class Config:
        extra = "forbid"

    @model_validator(mode="after")
    def _check_one_measure(self):
        if (self.percentage is None) == (self.amount is None):
            raise ValueError("Specify exactly one of percentage or amount")
        if self.percentage is not None and not (0 < self.percentage <= 100):
            raise ValueError("Percentage must be greater than 0 and at most 100")
        if self.amount is not None and self.amount <= 0:
            raise ValueError("Amount must be positive")
        return self


class OrderInvoiceCustomization(InvoiceCustomization):
    partial: Optional[PartialInvoice] = None


class DeliveryNoteCustomization(BaseModel):
    delivery_number: Optional[str] = Field(default=None, min_length=1)
    ship_date: Optional[date] = None
    delivery_date: Optional[date] = None
    shipping_address: Optional[str] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        extra = "forbid"
