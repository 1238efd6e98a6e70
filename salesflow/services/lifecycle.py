"""
Document lifecycle service.

Create, update, delete, status transitions and payment recording for quotes,
orders, invoices and delivery notes. Every public operation returns a Result;
writes run in a single transaction and caches are invalidated after commit.
"""
import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from salesflow.config import get_settings
from salesflow.models import DeliveryNote, DeliveryNoteStatus, Invoice, InvoiceStatus, Payment
from salesflow.models.mixins import new_id, utcnow
from salesflow.schemas.documents import InvoiceRead, PaymentCreate
from salesflow.schemas.listing import DocumentFilters, Page
from salesflow.services import calculator
from salesflow.services.cache import DocumentCache
from salesflow.services.numbering import NumberGenerator, with_fixed_number, with_number_retry
from salesflow.services.registry import DocumentDescriptor, DocumentType, get_descriptor
from salesflow.services.repository import DocumentRepository, company_snapshot
from salesflow.services.scope import Scope
from salesflow.utils.errors import HasDependents, InvalidInput, MissingScope, NotFound, ScopeMismatch
from salesflow.utils.result import service_operation

settings = get_settings()
logger = logging.getLogger(__name__)

T = TypeVar("T")

# Create-payload fields handled explicitly rather than copied onto the row
_MANAGED_FIELDS = {"items", "company_id", "seller_company_id", "status", "currency"}

# Only invoices that went out can take payments
PAYABLE_INVOICE_STATUSES = frozenset({InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value})

# (earlier, later) date pairs that must be ordered
_DATE_ORDER = {
    DocumentType.QUOTE: ("issue_date", "valid_until"),
    DocumentType.INVOICE: ("issue_date", "due_date"),
    DocumentType.ORDER: ("order_date", "expected_delivery_date"),
    DocumentType.DELIVERY_NOTE: ("ship_date", "delivery_date"),
}


class DocumentLifecycleService:
    """Per-type CRUD and state machines over the document registry"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        cache: DocumentCache,
        numbers: Optional[NumberGenerator] = None,
        repository: Optional[DocumentRepository] = None,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.numbers = numbers or NumberGenerator()
        self.repository = repository or DocumentRepository()

    # ===================== Building blocks =====================

    def calculate(
        self,
        descriptor: DocumentDescriptor,
        lines: Iterable[calculator.LineItem],
        tax_rate,
        vat_rate=None,
    ) -> calculator.Calculation:
        if not descriptor.priced:
            lines = [replace(line, discount=Decimal("0"), vat_rate=None) for line in lines]
        if descriptor.has_vat:
            return calculator.calculate(lines, tax_rate, vat_rate or 0)
        return calculator.calculate(lines, tax_rate)

    @staticmethod
    def apply_totals(descriptor: DocumentDescriptor, document, calc: calculator.Calculation) -> None:
        document.subtotal = calc.subtotal
        document.tax = calc.tax
        document.total = calc.total
        if descriptor.has_vat:
            document.vat = calc.vat if calc.vat is not None else calculator.ZERO

    @staticmethod
    def _fill_item(descriptor: DocumentDescriptor, row, line: calculator.LineItem, position: int) -> None:
        row.sort_order = position
        row.product_name = line.product_name
        row.description = line.description
        row.quantity = line.quantity
        row.unit = line.unit or settings.DEFAULT_UNIT
        row.unit_price = line.unit_price
        row.total = line.total if line.total is not None else calculator.line_total(
            line.quantity, line.unit_price, line.discount if descriptor.priced else 0
        )
        if descriptor.priced:
            row.discount = line.discount
            row.vat_rate = line.vat_rate

    def build_items(self, descriptor: DocumentDescriptor, lines: Iterable[calculator.LineItem]) -> list:
        """Fresh item rows for a new document"""
        rows = []
        for position, line in enumerate(lines):
            row = descriptor.item_model(id=new_id())
            self._fill_item(descriptor, row, line, position)
            rows.append(row)
        return rows

    def replace_items(self, descriptor: DocumentDescriptor, document, lines: Iterable[calculator.LineItem]) -> None:
        """
        Replace the item set. Lines that name an existing item id keep that row;
        rows no longer listed are deleted as orphans.
        """
        existing = {item.id: item for item in document.items}
        rows = []
        for position, line in enumerate(lines):
            row = existing.pop(line.id, None) if line.id else None
            if row is None:
                row = descriptor.item_model(id=new_id())
            self._fill_item(descriptor, row, line, position)
            rows.append(row)
        document.items = rows

    @staticmethod
    def initial_status(descriptor: DocumentDescriptor, requested: Optional[str]) -> str:
        if requested is None:
            return descriptor.initial_status
        if descriptor.initial_statuses is not None and requested not in descriptor.initial_statuses:
            allowed = ", ".join(sorted(descriptor.initial_statuses))
            raise InvalidInput(
                f"A new {descriptor.label} cannot start as {requested}",
                field_errors={"status": [f"Allowed initial statuses: {allowed}"]},
            )
        return requested

    @staticmethod
    def apply_status(descriptor: DocumentDescriptor, document, target: str, today: Optional[date] = None) -> bool:
        """Move document to target status; False when it already is there"""
        current = document.status
        if target == current:
            return False

        if descriptor.transitions is not None:
            known = set(descriptor.transitions)
            for targets in descriptor.transitions.values():
                known |= targets
            if target not in known:
                raise InvalidInput(
                    f"Unknown {descriptor.label} status: {target}",
                    field_errors={"status": ["Unknown status"]},
                )
            if not descriptor.allows(current, target):
                raise InvalidInput(
                    f"Cannot change {descriptor.label} status from {current} to {target}",
                    field_errors={"status": ["Transition not allowed"]},
                )

        document.status = target

        if descriptor.type == DocumentType.DELIVERY_NOTE:
            today = today or date.today()
            if target == DeliveryNoteStatus.IN_TRANSIT.value and document.ship_date is None:
                document.ship_date = today
            if target == DeliveryNoteStatus.DELIVERED.value and document.delivery_date is None:
                document.delivery_date = today
        return True

    @staticmethod
    def check_dates(descriptor: DocumentDescriptor, values: Dict[str, Any]) -> None:
        earlier, later = _DATE_ORDER[descriptor.type]
        start, end = values.get(earlier), values.get(later)
        if start is not None and end is not None and end < start:
            raise InvalidInput(
                f"{later} must not be before {earlier}",
                field_errors={later: [f"Must not be before {earlier}"]},
            )

    async def insert_with_number(
        self,
        descriptor: DocumentDescriptor,
        stage: Callable[[AsyncSession, str], Awaitable[T]],
        custom_number: Optional[str] = None,
    ) -> T:
        """
        Run `stage(session, number)` in its own transaction with a freshly minted
        number, retrying the whole transaction on a number collision. A
        caller-supplied number is tried once.
        """

        async def attempt() -> T:
            async with self.session_factory() as session, session.begin():
                number = custom_number or await self.numbers.next_number(session, descriptor)
                return await stage(session, number)

        if custom_number:
            return await with_fixed_number(attempt, descriptor.constraint, descriptor.number_field, custom_number)
        return await with_number_retry(attempt, descriptor.constraint, descriptor.type.value)

    # ===================== Create / update / delete =====================

    @service_operation("create document")
    async def create(self, doc_type, scope: Scope, data: Dict[str, Any]):
        descriptor = get_descriptor(doc_type)
        if not scope.company_id:
            raise MissingScope("A company must be selected to create a document")

        payload = descriptor.create_schema.model_validate(data)
        if payload.company_id and payload.company_id != scope.company_id:
            raise ScopeMismatch("Document company does not match the selected company")

        status = self.initial_status(descriptor, payload.status)
        fields = payload.model_dump(exclude=_MANAGED_FIELDS, exclude_none=True)
        if descriptor.type in (DocumentType.QUOTE, DocumentType.INVOICE):
            fields.setdefault("issue_date", date.today())
        if descriptor.type == DocumentType.INVOICE and "payment_terms" not in fields:
            fields["payment_terms"] = (fields["due_date"] - fields["issue_date"]).days
        if descriptor.type == DocumentType.DELIVERY_NOTE and status == DeliveryNoteStatus.IN_TRANSIT.value:
            fields.setdefault("ship_date", date.today())
        self.check_dates(descriptor, fields)

        lines = [calculator.LineItem.from_obj(item, settings.DEFAULT_UNIT) for item in payload.items]
        calc = self.calculate(descriptor, lines, payload.tax_rate, fields.get("vat_rate"))

        async def stage(session: AsyncSession, number: str):
            customer = await self.repository.get_company(session, scope.tenant_id, scope.company_id)
            seller = await self.repository.resolve_seller(session, scope.tenant_id, payload.seller_company_id)
            await self.repository.check_references(session, descriptor, scope.tenant_id, fields)

            document = descriptor.model(
                id=new_id(),
                tenant_id=scope.tenant_id,
                company_id=scope.company_id,
                seller_company_id=seller.id if seller else None,
                status=status,
                currency=payload.currency or settings.DEFAULT_CURRENCY,
                customer_details=company_snapshot(customer),
                from_details=company_snapshot(seller),
                created_by=scope.user_id,
                **{descriptor.number_field: number},
                **fields,
            )
            document.items = self.build_items(descriptor, calc.items)
            self.apply_totals(descriptor, document, calc)
            session.add(document)
            await session.flush()
            return descriptor.read_schema.model_validate(document)

        created = await self.insert_with_number(descriptor, stage)
        await self.cache.invalidate(descriptor.cache_prefix, scope.tenant_id)
        logger.info(f"Created {descriptor.label} {getattr(created, descriptor.number_field)}")
        return created

    @service_operation("update document")
    async def update(self, doc_type, scope: Scope, doc_id: str, data: Dict[str, Any]):
        descriptor = get_descriptor(doc_type)
        payload = descriptor.update_schema.model_validate(data)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"items", "status"})

        async with self.session_factory() as session, session.begin():
            document = await self.repository.get(session, descriptor, scope, doc_id, for_update=True)

            for name, value in changes.items():
                setattr(document, name, value)
            earlier, later = _DATE_ORDER[descriptor.type]
            self.check_dates(descriptor, {
                earlier: getattr(document, earlier),
                later: getattr(document, later),
            })

            touched = bool(changes)
            if payload.status is not None:
                touched = self.apply_status(descriptor, document, payload.status) or touched

            if payload.items is not None or "tax_rate" in changes or "vat_rate" in changes:
                source = payload.items if payload.items is not None else document.items
                lines = [calculator.LineItem.from_obj(item, settings.DEFAULT_UNIT) for item in source]
                calc = self.calculate(
                    descriptor, lines, document.tax_rate, getattr(document, "vat_rate", None)
                )
                self.replace_items(descriptor, document, calc.items)
                self.apply_totals(descriptor, document, calc)
                touched = True

            if touched:
                document.updated_at = utcnow()
                await session.flush()
            updated = descriptor.read_schema.model_validate(document)

        if touched:
            await self.cache.invalidate(descriptor.cache_prefix, scope.tenant_id, doc_id)
        return updated

    async def _release_invoiced_amount(
        self, session: AsyncSession, descriptor: DocumentDescriptor, scope: Scope, document
    ) -> Optional[str]:
        """Give a deleted invoice's total back to its order's open balance"""
        if descriptor.type != DocumentType.INVOICE or not document.order_id:
            return None
        order = await self.repository.find(
            session, DocumentType.ORDER, scope.tenant_id, document.order_id, for_update=True
        )
        if order is None:
            return None
        released = calculator.to_decimal(order.invoiced_amount) - calculator.to_decimal(document.total)
        order.invoiced_amount = max(calculator.round2(released), calculator.ZERO)
        order.updated_at = utcnow()
        return order.id

    @service_operation("delete document")
    async def delete(self, doc_type, scope: Scope, doc_id: str):
        descriptor = get_descriptor(doc_type)

        async with self.session_factory() as session, session.begin():
            document = await self.repository.get(session, descriptor, scope, doc_id, for_update=True)
            number = getattr(document, descriptor.number_field)

            dependents = await self.repository.count_dependents(session, descriptor, scope.tenant_id, doc_id)
            if dependents:
                summary = ", ".join(f"{count} {label}" for label, count in dependents.items())
                raise HasDependents(
                    f"Cannot delete {descriptor.label} {number}: referenced by {summary}",
                    dependents,
                    context={"document_type": descriptor.type.value, "id": doc_id},
                )

            order_id = await self._release_invoiced_amount(session, descriptor, scope, document)
            await session.delete(document)

        await self.cache.invalidate(descriptor.cache_prefix, scope.tenant_id, doc_id)
        if order_id:
            await self.cache.invalidate(get_descriptor(DocumentType.ORDER).cache_prefix, scope.tenant_id, order_id)
        logger.info(f"Deleted {descriptor.label} {number}")
        return {"id": doc_id}

    # ===================== Status and payments =====================

    @service_operation("update status")
    async def update_status(self, doc_type, scope: Scope, doc_id: str, status: str):
        descriptor = get_descriptor(doc_type)
        if not status:
            raise InvalidInput("Status is required", field_errors={"status": ["Field required"]})

        async with self.session_factory() as session, session.begin():
            document = await self.repository.get(session, descriptor, scope, doc_id, for_update=True)
            changed = self.apply_status(descriptor, document, status)
            if changed:
                document.updated_at = utcnow()
                await session.flush()
            updated = descriptor.read_schema.model_validate(document)

        if changed:
            await self.cache.invalidate(descriptor.cache_prefix, scope.tenant_id, doc_id)
        return updated

    @service_operation("record payment")
    async def record_payment(self, scope: Scope, invoice_id: str, amount, note: Optional[str] = None):
        descriptor = get_descriptor(DocumentType.INVOICE)
        payload = PaymentCreate.model_validate({"amount": amount, "note": note})
        paid = calculator.round2(payload.amount)
        if paid <= 0:
            raise InvalidInput("Payment amount must be a positive number", field_errors={"amount": ["Too small"]})

        async with self.session_factory() as session, session.begin():
            invoice = await self.repository.get(session, descriptor, scope, invoice_id, for_update=True)
            if invoice.status not in PAYABLE_INVOICE_STATUSES:
                raise InvalidInput(
                    f"Cannot record a payment on a {invoice.status} invoice",
                    field_errors={"status": ["Invoice must be sent or overdue"]},
                )

            invoice.paid_amount = calculator.round2(calculator.to_decimal(invoice.paid_amount) + paid)
            session.add(Payment(
                id=new_id(),
                invoice_id=invoice.id,
                amount=paid,
                recorded_by=scope.user_id,
                note=payload.note,
            ))
            if invoice.paid_amount >= calculator.to_decimal(invoice.total):
                invoice.status = InvoiceStatus.PAID.value
            invoice.updated_at = utcnow()
            await session.flush()
            updated = InvoiceRead.model_validate(invoice)

        await self.cache.invalidate(descriptor.cache_prefix, scope.tenant_id, invoice_id)
        logger.info(f"Recorded payment of {paid} on invoice {updated.invoice_number}")
        return updated

    # ===================== Reads =====================

    @service_operation("get document")
    async def get(self, doc_type, scope: Scope, doc_id: str):
        descriptor = get_descriptor(doc_type)
        key = DocumentCache.item_key(descriptor.cache_prefix, scope.tenant_id, doc_id)

        cached = await self.cache.read(key)
        if cached is not None:
            document = descriptor.read_schema.model_validate(cached)
            if scope.company_id and document.company_id != scope.company_id:
                raise NotFound(f"{descriptor.label.capitalize()} {doc_id} not found")
            return document

        async with self.session_factory() as session:
            document = descriptor.read_schema.model_validate(
                await self.repository.get(session, descriptor, scope, doc_id)
            )

        await self.cache.write(key, document.model_dump(mode="json"))
        return document

    @service_operation("list documents")
    async def list(self, doc_type, scope: Scope, filters: Optional[Dict[str, Any]] = None):
        descriptor = get_descriptor(doc_type)
        params = DocumentFilters.model_validate(filters or {})
        key = DocumentCache.list_key(
            descriptor.cache_prefix,
            scope.tenant_id,
            {**params.model_dump(mode="json"), "scope_company_id": scope.company_id},
        )

        cached = await self.cache.read(key)
        if cached is not None:
            return Page(
                items=[descriptor.read_schema.model_validate(item) for item in cached["items"]],
                total=cached["total"],
                page=cached["page"],
                page_size=cached["page_size"],
            )

        async with self.session_factory() as session:
            rows, total = await self.repository.list(session, descriptor, scope, params)
            page = Page(
                items=[descriptor.read_schema.model_validate(row) for row in rows],
                total=total,
                page=params.page,
                page_size=params.page_size,
            )

        await self.cache.write(key, page.model_dump(mode="json"))
        return page

    async def _read_where(self, doc_type, scope: Scope, *conditions) -> List[Any]:
        descriptor = get_descriptor(doc_type)
        async with self.session_factory() as session:
            rows = await self.repository.select_where(session, descriptor, scope, *conditions)
            return [descriptor.read_schema.model_validate(row) for row in rows]

    @service_operation("list overdue invoices")
    async def overdue_invoices(self, scope: Scope, today: Optional[date] = None):
        """Sent invoices whose due date has passed"""
        today = today or date.today()
        return await self._read_where(
            DocumentType.INVOICE,
            scope,
            Invoice.status == InvoiceStatus.SENT.value,
            Invoice.due_date < today,
        )

    @service_operation("mark overdue invoices")
    async def mark_overdue(self, scope: Scope, today: Optional[date] = None):
        today = today or date.today()
        descriptor = get_descriptor(DocumentType.INVOICE)

        async with self.session_factory() as session, session.begin():
            invoices = await self.repository.select_where(
                session,
                descriptor,
                scope,
                Invoice.status == InvoiceStatus.SENT.value,
                Invoice.due_date < today,
            )
            for invoice in invoices:
                self.apply_status(descriptor, invoice, InvoiceStatus.OVERDUE.value)
                invoice.updated_at = utcnow()
            await session.flush()
            updated = [InvoiceRead.model_validate(invoice) for invoice in invoices]

        for invoice in updated:
            await self.cache.invalidate(descriptor.cache_prefix, scope.tenant_id, invoice.id)
        if updated:
            logger.info(f"Marked {len(updated)} invoice(s) overdue")
        return updated

    @service_operation("list pending deliveries")
    async def pending_deliveries(self, scope: Scope):
        return await self._read_where(
            DocumentType.DELIVERY_NOTE, scope, DeliveryNote.status == DeliveryNoteStatus.PENDING.value
        )

    @service_operation("list deliveries in transit")
    async def in_transit_deliveries(self, scope: Scope):
        return await self._read_where(
            DocumentType.DELIVERY_NOTE, scope, DeliveryNote.status == DeliveryNoteStatus.IN_TRANSIT.value
        )
