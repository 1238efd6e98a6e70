"""
Invoice and payment models
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from salesflow.database import Base
from salesflow.models.mixins import DocumentMixin, PricedLineItemMixin, MONEY, RATE, new_id, utcnow


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(DocumentMixin, Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
    )

    invoice_number = Column(String(50), nullable=False)

    # Back-references to the documents this invoice was raised from
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True, index=True)

    # Dates
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    payment_terms = Column(Integer, nullable=True)  # days

    # VAT is computed independently of tax
    vat_rate = Column(RATE, nullable=False, default=0)
    vat = Column(MONEY, nullable=False, default=0)

    # Only ever increased by payment recording
    paid_amount = Column(MONEY, nullable=False, default=0)

    template_settings = Column(JSON, nullable=True)

    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.sort_order",
    )
    payments = relationship(
        "Payment", back_populates="invoice", order_by="Payment.paid_at", passive_deletes=True
    )


class InvoiceItem(PricedLineItemMixin, Base):
    __tablename__ = "invoice_items"

    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    invoice = relationship("Invoice", back_populates="items")


class Payment(Base):
    """A single payment recorded against an invoice"""
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    invoice_id = Column(String(36), ForeignKey("invoices.id"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    paid_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    recorded_by = Column(String(36), nullable=True)
    note = Column(Text, nullable=True)

    invoice = relationship("Invoice", back_populates="payments")
