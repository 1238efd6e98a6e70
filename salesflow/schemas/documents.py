"""
Create / update / read schemas per document type
"""
from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, Field

from salesflow.schemas.common import (
    DeliveryItemIn,
    DeliveryItemRead,
    DocumentRead,
    LineItemIn,
    LineItemRead,
    Rate,
)
from salesflow.utils.validators import validate_payment_amount


class DocumentCreate(BaseModel):
    # Must match the resolved scope when given
    company_id: Optional[str] = None
    contact_id: Optional[str] = None
    seller_company_id: Optional[str] = None
    status: Optional[str] = Field(default=None, min_length=1, max_length=20)
    tax_rate: Rate = Decimal("0")
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    notes: Optional[str] = None
    terms: Optional[str] = None

    class Config:
        extra = "forbid"


class DocumentUpdate(BaseModel):
    contact_id: Optional[str] = None
    status: Optional[str] = Field(default=None, min_length=1, max_length=20)
    tax_rate: Optional[Rate] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    notes: Optional[str] = None
    terms: Optional[str] = None

    class Config:
        extra = "forbid"


# ===================== QUOTE =====================


class QuoteCreate(DocumentCreate):
    issue_date: Optional[date] = None
    valid_until: date
    items: List[LineItemIn] = Field(min_length=1)


class QuoteUpdate(DocumentUpdate):
    issue_date: Optional[date] = None
    valid_until: Optional[date] = None
    items: Optional[List[LineItemIn]] = Field(default=None, min_length=1)


class QuoteRead(DocumentRead):
    quote_number: str
    issue_date: date
    valid_until: date
    items: List[LineItemRead]


# ===================== ORDER =====================


class OrderCreate(DocumentCreate):
    order_date: date
    expected_delivery_date: Optional[date] = None
    purchase_order_number: Optional[str] = None
    source_quote_id: Optional[str] = None
    items: List[LineItemIn] = Field(min_length=1)


class OrderUpdate(DocumentUpdate):
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    purchase_order_number: Optional[str] = None
    items: Optional[List[LineItemIn]] = Field(default=None, min_length=1)


class OrderRead(DocumentRead):
    order_number: str
    source_quote_id: Optional[str]
    order_date: date
    expected_delivery_date: Optional[date]
    purchase_order_number: Optional[str]
    invoiced_amount: Decimal
    items: List[LineItemRead]


# ===================== INVOICE =====================


class InvoiceCreate(DocumentCreate):
    issue_date: Optional[date] = None
    due_date: date
    payment_terms: Optional[int] = Field(default=None, ge=0)
    vat_rate: Optional[Rate] = None
    quote_id: Optional[str] = None
    order_id: Optional[str] = None
    template_settings: Optional[Dict[str, Any]] = None
    items: List[LineItemIn] = Field(min_length=1)


class InvoiceUpdate(DocumentUpdate):
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_terms: Optional[int] = Field(default=None, ge=0)
    vat_rate: Optional[Rate] = None
    template_settings: Optional[Dict[str, Any]] = None
    items: Optional[List[LineItemIn]] = Field(default=None, min_length=1)


class InvoiceRead(DocumentRead):
    invoice_number: str
    quote_id: Optional[str]
    order_id: Optional[str]
    issue_date: date
    due_date: date
    payment_terms: Optional[int]
    vat_rate: Decimal
    vat: Decimal
    paid_amount: Decimal
    template_settings: Optional[Dict[str, Any]]
    items: List[LineItemRead]


class PaymentCreate(BaseModel):
    amount: Annotated[Decimal, AfterValidator(validate_payment_amount)]
    note: Optional[str] = None

    class Config:
        extra = "forbid"


# ===================== DELIVERY NOTE =====================


class DeliveryNoteCreate(DocumentCreate):
    shipping_address: str = Field(min_length=1)
    ship_date: Optional[date] = None
    delivery_date: Optional[date] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    invoice_id: Optional[str] = None
    order_id: Optional[str] = None
    items: List[DeliveryItemIn] = Field(min_length=1)


class DeliveryNoteUpdate(DocumentUpdate):
    shipping_address: Optional[str] = Field(default=None, min_length=1)
    ship_date: Optional[date] = None
    delivery_date: Optional[date] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    items: Optional[List[DeliveryItemIn]] = Field(default=None, min_length=1)


class DeliveryNoteRead(DocumentRead):
    delivery_number: str
    invoice_id: Optional[str]
    order_id: Optional[str]
    ship_date: Optional[date]
    delivery_date: Optional[date]
    shipping_address: str
    carrier: Optional[str]
    tracking_number: Optional[str]
    items: List[DeliveryItemRead]
