"""
Workflow conversion engine.

Turns a quote into an order or invoice, an order into an invoice (optionally a
partial one) or a delivery note, and an invoice into a delivery note. Each
conversion runs as one transaction: the new document, its items, any change
to the source and the chain edge commit together or not at all.
"""
import logging
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.config import get_settings
from salesflow.models import Company, DeliveryNote, Invoice, Order
from salesflow.models.mixins import new_id, utcnow
from salesflow.schemas.customizations import (
    DeliveryNoteCustomization,
    InvoiceCustomization,
    OrderCustomization,
    OrderInvoiceCustomization,
)
from salesflow.schemas.documents import OrderRead
from salesflow.services import calculator
from salesflow.services.lifecycle import DocumentLifecycleService
from salesflow.services.registry import QUOTE_TERMINAL, DocumentType, get_descriptor
from salesflow.services.repository import company_snapshot
from salesflow.services.scope import Identity, Scope, tenant_scope
from salesflow.utils.errors import InvalidInput
from salesflow.utils.result import service_operation

settings = get_settings()
logger = logging.getLogger(__name__)


def _shipping_address(snapshot: Optional[Dict[str, Any]]) -> Optional[str]:
    if not snapshot:
        return None
    locality = " ".join(part for part in (snapshot.get("zip_code"), snapshot.get("city")) if part)
    parts = [snapshot.get("address"), locality, snapshot.get("country")]
    return ", ".join(part for part in parts if part) or None


class WorkflowConversionEngine:
    """The five document conversions, all tenant-scoped"""

    def __init__(self, lifecycle: DocumentLifecycleService):
        self.lifecycle = lifecycle
        self.repository = lifecycle.repository
        self.cache = lifecycle.cache

    # ===================== Helpers =====================

    async def _header(self, session: AsyncSession, scope: Scope, source) -> Dict[str, Any]:
        """Header fields every converted document inherits from its source"""
        customer = await self.repository.get_company(session, scope.tenant_id, source.company_id)
        if source.seller_company_id:
            seller = await session.get(Company, source.seller_company_id)
        else:
            seller = await self.repository.resolve_seller(session, scope.tenant_id)

        return {
            "id": new_id(),
            "tenant_id": scope.tenant_id,
            "company_id": source.company_id,
            "seller_company_id": seller.id if seller else None,
            "contact_id": source.contact_id,
            "currency": source.currency,
            "terms": source.terms,
            "customer_details": company_snapshot(customer),
            "from_details": company_snapshot(seller),
            "created_by": scope.user_id,
        }

    @staticmethod
    def _carry_totals(source) -> Dict[str, Any]:
        return {
            "subtotal": source.subtotal,
            "tax_rate": source.tax_rate,
            "tax": source.tax,
            "total": source.total,
        }

    @staticmethod
    def _lines(source) -> list:
        return [calculator.LineItem.from_obj(item, settings.DEFAULT_UNIT) for item in source.items]

    @staticmethod
    def _invoice_dates(options: InvoiceCustomization) -> Dict[str, Any]:
        issue_date = options.issue_date or date.today()
        if options.payment_terms is not None:
            terms = options.payment_terms
        elif options.due_date is not None:
            terms = (options.due_date - issue_date).days
        else:
            terms = settings.DEFAULT_PAYMENT_TERMS_DAYS
        due_date = options.due_date or issue_date + timedelta(days=terms)

        if due_date < issue_date:
            raise InvalidInput(
                "due_date must not be before issue_date",
                field_errors={"due_date": ["Must not be before issue_date"]},
            )
        return {"issue_date": issue_date, "due_date": due_date, "payment_terms": terms}

    @staticmethod
    def _check_quote_convertible(quote) -> None:
        if quote.status in QUOTE_TERMINAL:
            raise InvalidInput(f"A {quote.status} quote cannot be converted")

    async def _finish(self, target_type: DocumentType, scope: Scope, message: str) -> None:
        await self.cache.invalidate(get_descriptor(target_type).cache_prefix, scope.tenant_id)
        logger.info(message)

    def _delivery_note(self, header: Dict[str, Any], number: str, lines, options: DeliveryNoteCustomization, **refs):
        """Delivery note carrying quantities, units and prices only; no tax"""
        descriptor = get_descriptor(DocumentType.DELIVERY_NOTE)
        shipping_address = options.shipping_address or _shipping_address(header["customer_details"])
        if not shipping_address:
            raise InvalidInput(
                "A shipping address is required",
                field_errors={"shipping_address": ["Field required"]},
            )

        calc = self.lifecycle.calculate(
            descriptor, [replace(line, id=None, total=None) for line in lines], tax_rate=0
        )
        note = DeliveryNote(
            delivery_number=number,
            status=descriptor.initial_status,
            ship_date=options.ship_date or date.today(),
            delivery_date=options.delivery_date,
            shipping_address=shipping_address,
            carrier=options.carrier,
            tracking_number=options.tracking_number,
            notes=options.notes,
            tax_rate=Decimal("0"),
            **header,
            **refs,
        )
        note.items = self.lifecycle.build_items(descriptor, calc.items)
        self.lifecycle.apply_totals(descriptor, note, calc)
        return note

    # ===================== Conversions =====================

    @service_operation("convert quote to order")
    async def quote_to_order(
        self, identity: Identity, quote_id: str, customizations: Optional[Dict[str, Any]] = None
    ):
        """Order with the quote's items and totals carried forward unchanged"""
        scope = tenant_scope(identity)
        options = OrderCustomization.model_validate(customizations or {})
        source = get_descriptor(DocumentType.QUOTE)
        target = get_descriptor(DocumentType.ORDER)

        async def stage(session: AsyncSession, number: str):
            quote = await self.repository.get(session, source, scope, quote_id)
            self._check_quote_convertible(quote)

            header = await self._header(session, scope, quote)

            order = Order(
                order_number=number,
                status=target.initial_status,
                source_quote_id=quote.id,
                order_date=options.order_date or date.today(),
                expected_delivery_date=options.expected_delivery_date,
                purchase_order_number=options.purchase_order_number,
                notes=options.notes if options.notes is not None else quote.notes,
                invoiced_amount=Decimal("0"),
                **self._carry_totals(quote),
                **header,
            )
            order.items = self.lifecycle.build_items(target, self._lines(quote))
            session.add(order)
            await self.repository.add_link(
                session, scope.tenant_id, DocumentType.QUOTE, quote.id, DocumentType.ORDER, order.id, scope.user_id
            )
            await session.flush()
            return OrderRead.model_validate(order), quote.quote_number

        order, quote_number = await self.lifecycle.insert_with_number(target, stage, options.order_number)
        await self._finish(DocumentType.ORDER, scope, f"Converted quote {quote_number} to order {order.order_number}")
        return order

    @service_operation("convert quote to invoice")
    async def quote_to_invoice(
        self, identity: Identity, quote_id: str, customizations: Optional[Dict[str, Any]] = None
    ):
        scope = tenant_scope(identity)
        options = InvoiceCustomization.model_validate(customizations or {})
        dates = self._invoice_dates(options)
        source = get_descriptor(DocumentType.QUOTE)
        target = get_descriptor(DocumentType.INVOICE)

        async def stage(session: AsyncSession, number: str):
            quote = await self.repository.get(session, source, scope, quote_id)
            self._check_quote_convertible(quote)

            header = await self._header(session, scope, quote)

            invoice = Invoice(
                invoice_number=number,
                status=target.initial_status,
                quote_id=quote.id,
                vat_rate=Decimal("0"),
                vat=Decimal("0"),
                paid_amount=Decimal("0"),
                notes=options.notes if options.notes is not None else quote.notes,
                **dates,
                **self._carry_totals(quote),
                **header,
            )
            invoice.items = self.lifecycle.build_items(target, self._lines(quote))
            session.add(invoice)
            await self.repository.add_link(
                session, scope.tenant_id, DocumentType.QUOTE, quote.id, DocumentType.INVOICE, invoice.id, scope.user_id
            )
            await session.flush()
            return invoice.id, quote.quote_number, number

        invoice_id, quote_number, number = await self.lifecycle.insert_with_number(
            target, stage, options.invoice_number
        )
        await self._finish(DocumentType.INVOICE, scope, f"Converted quote {quote_number} to invoice {number}")
        return {"invoice_id": invoice_id}

    @service_operation("convert order to invoice")
    async def order_to_invoice(
        self, identity: Identity, order_id: str, customizations: Optional[Dict[str, Any]] = None
    ):
        """
        Invoice an order, in full or in part.

        Without `partial` the remaining balance is invoiced. `partial.percentage`
        scales every quantity and prices the lines from the exact scaled
        quantity; `partial.amount` scales every line total by amount / order
        total. Scaled lines are settled to the rounded target subtotal, and the
        invoice total is pinned to the amount or remaining balance.
        """
        scope = tenant_scope(identity)
        options = OrderInvoiceCustomization.model_validate(customizations or {})
        dates = self._invoice_dates(options)
        source = get_descriptor(DocumentType.ORDER)
        target = get_descriptor(DocumentType.INVOICE)

        async def stage(session: AsyncSession, number: str):
            order = await self.repository.get(session, source, scope, order_id, for_update=True)
            order_total = calculator.to_decimal(order.total)
            invoiced = calculator.to_decimal(order.invoiced_amount)
            remaining = order_total - invoiced
            if remaining <= 0:
                raise InvalidInput(f"Order {order.order_number} is already fully invoiced")

            partial = options.partial
            lines = self._lines(order)
            order_subtotal = calculator.to_decimal(order.subtotal)
            measure = None
            if partial is None and invoiced == 0:
                calc = calculator.Calculation(
                    items=lines,
                    subtotal=order_subtotal,
                    tax=calculator.to_decimal(order.tax),
                    vat=None,
                    total=order_total,
                )
            elif partial is None:
                factor = remaining / order_total
                calc = calculator.scale_totals(lines, factor, order.tax_rate, subtotal=order_subtotal * factor)
                calc = calculator.settle_total(calc, remaining)
            elif partial.percentage is not None:
                measure = "partial.percentage"
                factor = partial.percentage / calculator.HUNDRED
                calc = calculator.scale_quantities(lines, factor, order.tax_rate, subtotal=order_subtotal * factor)
            else:
                measure = "partial.amount"
                amount = calculator.round2(partial.amount)
                if amount > remaining:
                    raise InvalidInput(
                        f"Partial amount exceeds the remaining order balance of {remaining}",
                        field_errors={measure: [f"Must not exceed {remaining}"]},
                    )
                factor = amount / order_total
                calc = calculator.scale_totals(lines, factor, order.tax_rate, subtotal=order_subtotal * factor)
                calc = calculator.settle_total(calc, amount)

            if measure is not None and calc.total <= 0:
                raise InvalidInput(
                    "Partial invoice total rounds to zero",
                    field_errors={measure: ["Too small to invoice"]},
                )
            if calc.total > remaining:
                raise InvalidInput(
                    f"Invoice total {calc.total} exceeds the remaining order balance of {remaining}",
                    field_errors={measure or "partial": ["Exceeds the remaining order balance"]},
                )

            header = await self._header(session, scope, order)

            invoice = Invoice(
                invoice_number=number,
                status=target.initial_status,
                order_id=order.id,
                quote_id=order.source_quote_id,
                tax_rate=order.tax_rate,
                subtotal=calc.subtotal,
                tax=calc.tax,
                total=calc.total,
                vat_rate=Decimal("0"),
                vat=Decimal("0"),
                paid_amount=Decimal("0"),
                notes=options.notes if options.notes is not None else order.notes,
                **dates,
                **header,
            )
            invoice.items = self.lifecycle.build_items(target, calc.items)
            session.add(invoice)

            order.invoiced_amount = calculator.round2(invoiced + calc.total)
            order.updated_at = utcnow()

            await self.repository.add_link(
                session, scope.tenant_id, DocumentType.ORDER, order.id, DocumentType.INVOICE, invoice.id, scope.user_id
            )
            await session.flush()
            return invoice.id, order.order_number, number

        invoice_id, order_number, number = await self.lifecycle.insert_with_number(
            target, stage, options.invoice_number
        )
        await self.cache.invalidate(source.cache_prefix, scope.tenant_id, order_id)
        await self._finish(DocumentType.INVOICE, scope, f"Converted order {order_number} to invoice {number}")
        return {"invoice_id": invoice_id}

    @service_operation("convert order to delivery note")
    async def order_to_delivery_note(
        self, identity: Identity, order_id: str, customizations: Optional[Dict[str, Any]] = None
    ):
        scope = tenant_scope(identity)
        options = DeliveryNoteCustomization.model_validate(customizations or {})
        source = get_descriptor(DocumentType.ORDER)
        target = get_descriptor(DocumentType.DELIVERY_NOTE)

        async def stage(session: AsyncSession, number: str):
            order = await self.repository.get(session, source, scope, order_id)
            header = await self._header(session, scope, order)
            note = self._delivery_note(header, number, self._lines(order), options, order_id=order.id)
            session.add(note)
            await self.repository.add_link(
                session, scope.tenant_id, DocumentType.ORDER, order.id, DocumentType.DELIVERY_NOTE, note.id,
                scope.user_id,
            )
            await session.flush()
            return note.id, order.order_number, number

        note_id, order_number, number = await self.lifecycle.insert_with_number(
            target, stage, options.delivery_number
        )
        await self._finish(
            DocumentType.DELIVERY_NOTE, scope, f"Converted order {order_number} to delivery note {number}"
        )
        return {"delivery_note_id": note_id}

    @service_operation("convert invoice to delivery note")
    async def invoice_to_delivery_note(
        self, identity: Identity, invoice_id: str, customizations: Optional[Dict[str, Any]] = None
    ):
        scope = tenant_scope(identity)
        options = DeliveryNoteCustomization.model_validate(customizations or {})
        source = get_descriptor(DocumentType.INVOICE)
        target = get_descriptor(DocumentType.DELIVERY_NOTE)

        async def stage(session: AsyncSession, number: str):
            invoice = await self.repository.get(session, source, scope, invoice_id)
            header = await self._header(session, scope, invoice)
            note = self._delivery_note(
                header, number, self._lines(invoice), options, invoice_id=invoice.id, order_id=invoice.order_id
            )
            session.add(note)
            await self.repository.add_link(
                session, scope.tenant_id, DocumentType.INVOICE, invoice.id, DocumentType.DELIVERY_NOTE, note.id,
                scope.user_id,
            )
            await session.flush()
            return note.id, invoice.invoice_number, number

        note_id, invoice_number, number = await self.lifecycle.insert_with_number(
            target, stage, options.delivery_number
        )
        await self._finish(
            DocumentType.DELIVERY_NOTE, scope, f"Converted invoice {invoice_number} to delivery note {number}"
        )
        return {"delivery_note_id": note_id}
