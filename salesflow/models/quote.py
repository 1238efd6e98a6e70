"""
Quote (offer) models
"""
from enum import Enum

from sqlalchemy import Column, String, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from salesflow.database import Base
from salesflow.models.mixins import DocumentMixin, PricedLineItemMixin


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class Quote(DocumentMixin, Base):
    __tablename__ = "quotes"
    __table_args__ = (
        UniqueConstraint("quote_number", name="uq_quotes_quote_number"),
    )

    quote_number = Column(String(50), nullable=False)
    issue_date = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=False)

    items = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.sort_order",
    )


class QuoteItem(PricedLineItemMixin, Base):
    __tablename__ = "quote_items"

    quote_id = Column(String(36), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)

    quote = relationship("Quote", back_populates="items")
