from salesflow.schemas.chain import ChainNode
from salesflow.schemas.customizations import (
    DeliveryNoteCustomization,
    InvoiceCustomization,
    OrderCustomization,
    OrderInvoiceCustomization,
    PartialInvoice,
)
from salesflow.schemas.documents import (
    DeliveryNoteCreate,
    DeliveryNoteRead,
    DeliveryNoteUpdate,
    InvoiceCreate,
    InvoiceRead,
    InvoiceUpdate,
    OrderCreate,
    OrderRead,
    OrderUpdate,
    PaymentCreate,
    QuoteCreate,
    QuoteRead,
    QuoteUpdate,
)
from salesflow.schemas.listing import DocumentFilters, Page

__all__ = [
    "ChainNode",
    "DeliveryNoteCustomization",
    "InvoiceCustomization",
    "OrderCustomization",
    "OrderInvoiceCustomization",
    "PartialInvoice",
    "DeliveryNoteCreate",
    "DeliveryNoteRead",
    "DeliveryNoteUpdate",
    "InvoiceCreate",
    "InvoiceRead",
    "InvoiceUpdate",
    "OrderCreate",
    "OrderRead",
    "OrderUpdate",
    "PaymentCreate",
    "QuoteCreate",
    "QuoteRead",
    "QuoteUpdate",
    "DocumentFilters",
    "Page",
]
