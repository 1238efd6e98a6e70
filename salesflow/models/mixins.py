"""
Shared column sets for sales documents and their line items
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, ForeignKey, JSON
from sqlalchemy.orm import declared_attr


MONEY = Numeric(12, 2)
QUANTITY = Numeric(12, 3)
RATE = Numeric(5, 2)


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentMixin:
    """Header columns every sales document carries"""

    id = Column(String(36), primary_key=True, default=new_id)

    @declared_attr
    def tenant_id(cls):
        return Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)

    # Customer company
    @declared_attr
    def company_id(cls):
        return Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)

    # The tenant's own selling company
    @declared_attr
    def seller_company_id(cls):
        return Column(String(36), ForeignKey("companies.id"), nullable=True)

    contact_id = Column(String(36), nullable=True)
    status = Column(String(20), nullable=False)

    # Financial (derived, cached on the row)
    subtotal = Column(MONEY, nullable=False, default=0)
    tax_rate = Column(RATE, nullable=False, default=0)
    tax = Column(MONEY, nullable=False, default=0)
    total = Column(MONEY, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="EUR")

    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    # Frozen company snapshots taken at creation time
    from_details = Column(JSON, nullable=True)
    customer_details = Column(JSON, nullable=True)

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class LineItemMixin:
    """Columns shared by every document line"""

    id = Column(String(36), primary_key=True, default=new_id)
    sort_order = Column(Integer, nullable=False, default=0)
    product_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(QUANTITY, nullable=False)
    unit = Column(String(20), nullable=False, default="pcs")
    unit_price = Column(MONEY, nullable=False, default=0)
    total = Column(MONEY, nullable=False, default=0)


class PricedLineItemMixin(LineItemMixin):
    """Lines that carry commercial terms (quotes, orders, invoices)"""

    discount = Column(RATE, nullable=False, default=0)
    vat_rate = Column(RATE, nullable=True)  # per-item override
