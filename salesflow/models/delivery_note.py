"""
Delivery note models
"""
from enum import Enum

from sqlalchemy import Column, String, Text, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from salesflow.database import Base
from salesflow.models.mixins import DocumentMixin, LineItemMixin


class DeliveryNoteStatus(str, Enum):
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


class DeliveryNote(DocumentMixin, Base):
    __tablename__ = "delivery_notes"
    __table_args__ = (
        UniqueConstraint("delivery_number", name="uq_delivery_notes_delivery_number"),
    )

    delivery_number = Column(String(50), nullable=False)

    # Back-references
    invoice_id = Column(String(36), ForeignKey("invoices.id"), nullable=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True, index=True)

    # Shipping
    ship_date = Column(Date, nullable=True)
    delivery_date = Column(Date, nullable=True)
    shipping_address = Column(Text, nullable=False)
    carrier = Column(String(100), nullable=True)
    tracking_number = Column(String(100), nullable=True)

    items = relationship(
        "DeliveryNoteItem",
        back_populates="delivery_note",
        cascade="all, delete-orphan",
        order_by="DeliveryNoteItem.sort_order",
    )


class DeliveryNoteItem(LineItemMixin, Base):
    """Delivery line: quantity, unit and unit price only"""
    __tablename__ = "delivery_note_items"

    delivery_note_id = Column(
        String(36), ForeignKey("delivery_notes.id", ondelete="CASCADE"), nullable=False, index=True
    )

    delivery_note = relationship("DeliveryNote", back_populates="items")
