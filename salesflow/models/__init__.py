from salesflow.models.tenant import Tenant
from salesflow.models.company import Company, CompanyMember, CompanyKind
from salesflow.models.quote import Quote, QuoteItem, QuoteStatus
from salesflow.models.order import Order, OrderItem
from salesflow.models.invoice import Invoice, InvoiceItem, InvoiceStatus, Payment
from salesflow.models.delivery_note import DeliveryNote, DeliveryNoteItem, DeliveryNoteStatus
from salesflow.models.document_link import DocumentLink

__all__ = [
    "Tenant",
    "Company",
    "CompanyMember",
    "CompanyKind",
    "Quote",
    "QuoteItem",
    "QuoteStatus",
    "Order",
    "OrderItem",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "DeliveryNote",
    "DeliveryNoteItem",
    "DeliveryNoteStatus",
    "DocumentLink",
]
