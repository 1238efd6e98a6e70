"""
Sales order models
"""
from sqlalchemy import Column, String, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from salesflow.database import Base
from salesflow.models.mixins import DocumentMixin, PricedLineItemMixin, MONEY


class Order(DocumentMixin, Base):
    """Commercial carrier between a quote and its invoices/deliveries"""
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("order_number", name="uq_orders_order_number"),
    )

    order_number = Column(String(50), nullable=False)
    source_quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=True, index=True)

    # Dates
    order_date = Column(Date, nullable=False)
    expected_delivery_date = Column(Date, nullable=True)

    purchase_order_number = Column(String(100), nullable=True)

    # Running sum of invoices raised against this order
    invoiced_amount = Column(MONEY, nullable=False, default=0)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.sort_order",
    )


class OrderItem(PricedLineItemMixin, Base):
    __tablename__ = "order_items"

    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    order = relationship("Order", back_populates="items")
