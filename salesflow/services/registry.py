"""
Document type registry - one descriptor per sales document type
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Type

from pydantic import BaseModel

from salesflow.models import (
    DeliveryNote,
    DeliveryNoteItem,
    DeliveryNoteStatus,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Order,
    OrderItem,
    Payment,
    Quote,
    QuoteItem,
    QuoteStatus,
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
    QuoteCreate,
    QuoteRead,
    QuoteUpdate,
)


class DocumentType(str, Enum):
    QUOTE = "quote"
    ORDER = "order"
    INVOICE = "invoice"
    DELIVERY_NOTE = "delivery_note"


@dataclass(frozen=True)
class Dependent:
    """Rows of another table that point back at a document"""
    label: str
    model: type
    column: str


@dataclass(frozen=True)
class DocumentDescriptor:
    type: DocumentType
    label: str
    model: type
    item_model: type
    number_field: str
    constraint: str
    prefix: str
    cache_prefix: str
    create_schema: Type[BaseModel]
    update_schema: Type[BaseModel]
    read_schema: Type[BaseModel]
    initial_status: str
    # None means any status string is accepted
    initial_statuses: Optional[FrozenSet[str]]
    transitions: Optional[Dict[str, FrozenSet[str]]]
    date_field: str
    priced: bool = True
    has_vat: bool = False
    # create-payload field -> document type it must reference within the tenant
    references: Dict[str, DocumentType] = field(default_factory=dict)
    dependents: Tuple[Dependent, ...] = ()

    @property
    def number_column(self):
        return getattr(self.model, self.number_field)

    def allows(self, current: str, target: str) -> bool:
        if self.transitions is None:
            return True
        return target in self.transitions.get(current, frozenset())


# Quote statuses that can no longer be converted
QUOTE_TERMINAL = frozenset({QuoteStatus.REJECTED.value, QuoteStatus.EXPIRED.value})


DOCUMENT_TYPES: Dict[DocumentType, DocumentDescriptor] = {
    DocumentType.QUOTE: DocumentDescriptor(
        type=DocumentType.QUOTE,
        label="quote",
        model=Quote,
        item_model=QuoteItem,
        number_field="quote_number",
        constraint="uq_quotes_quote_number",
        prefix="QUO",
        cache_prefix="quotes",
        create_schema=QuoteCreate,
        update_schema=QuoteUpdate,
        read_schema=QuoteRead,
        initial_status=QuoteStatus.DRAFT.value,
        initial_statuses=frozenset({QuoteStatus.DRAFT.value, QuoteStatus.SENT.value}),
        transitions={
            QuoteStatus.DRAFT.value: frozenset({
                QuoteStatus.SENT.value,
                QuoteStatus.ACCEPTED.value,
                QuoteStatus.REJECTED.value,
                QuoteStatus.EXPIRED.value,
            }),
            QuoteStatus.SENT.value: frozenset({
                QuoteStatus.ACCEPTED.value,
                QuoteStatus.REJECTED.value,
                QuoteStatus.EXPIRED.value,
            }),
        },
        date_field="issue_date",
        dependents=(
            Dependent("orders", Order, "source_quote_id"),
            Dependent("invoices", Invoice, "quote_id"),
        ),
    ),
    DocumentType.ORDER: DocumentDescriptor(
        type=DocumentType.ORDER,
        label="order",
        model=Order,
        item_model=OrderItem,
        number_field="order_number",
        constraint="uq_orders_order_number",
        prefix="ORD",
        cache_prefix="orders",
        create_schema=OrderCreate,
        update_schema=OrderUpdate,
        read_schema=OrderRead,
        initial_status="pending",
        initial_statuses=None,
        transitions=None,
        date_field="order_date",
        references={"source_quote_id": DocumentType.QUOTE},
        dependents=(
            Dependent("invoices", Invoice, "order_id"),
            Dependent("delivery_notes", DeliveryNote, "order_id"),
        ),
    ),
    DocumentType.INVOICE: DocumentDescriptor(
        type=DocumentType.INVOICE,
        label="invoice",
        model=Invoice,
        item_model=InvoiceItem,
        number_field="invoice_number",
        constraint="uq_invoices_invoice_number",
        prefix="INV",
        cache_prefix="invoices",
        create_schema=InvoiceCreate,
        update_schema=InvoiceUpdate,
        read_schema=InvoiceRead,
        initial_status=InvoiceStatus.DRAFT.value,
        initial_statuses=frozenset({InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value}),
        transitions={
            InvoiceStatus.DRAFT.value: frozenset({InvoiceStatus.SENT.value}),
            InvoiceStatus.SENT.value: frozenset({
                InvoiceStatus.PAID.value,
                InvoiceStatus.OVERDUE.value,
                InvoiceStatus.CANCELLED.value,
            }),
            InvoiceStatus.OVERDUE.value: frozenset({
                InvoiceStatus.PAID.value,
                InvoiceStatus.CANCELLED.value,
            }),
        },
        date_field="issue_date",
        has_vat=True,
        references={"quote_id": DocumentType.QUOTE, "order_id": DocumentType.ORDER},
        dependents=(
            Dependent("delivery_notes", DeliveryNote, "invoice_id"),
            Dependent("payments", Payment, "invoice_id"),
        ),
    ),
    DocumentType.DELIVERY_NOTE: DocumentDescriptor(
        type=DocumentType.DELIVERY_NOTE,
        label="delivery note",
        model=DeliveryNote,
        item_model=DeliveryNoteItem,
        number_field="delivery_number",
        constraint="uq_delivery_notes_delivery_number",
        prefix="DEL",
        cache_prefix="delivery-notes",
        create_schema=DeliveryNoteCreate,
        update_schema=DeliveryNoteUpdate,
        read_schema=DeliveryNoteRead,
        initial_status=DeliveryNoteStatus.PENDING.value,
        initial_statuses=frozenset({DeliveryNoteStatus.PENDING.value, DeliveryNoteStatus.IN_TRANSIT.value}),
        transitions={
            DeliveryNoteStatus.PENDING.value: frozenset({DeliveryNoteStatus.IN_TRANSIT.value}),
            DeliveryNoteStatus.IN_TRANSIT.value: frozenset({DeliveryNoteStatus.DELIVERED.value}),
        },
        date_field="ship_date",
        priced=False,
        references={"invoice_id": DocumentType.INVOICE, "order_id": DocumentType.ORDER},
    ),
}


def get_descriptor(doc_type) -> DocumentDescriptor:
    return DOCUMENT_TYPES[DocumentType(doc_type)]
