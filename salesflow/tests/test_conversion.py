"""
Workflow conversions: quote -> order/invoice, order -> invoice/delivery note, invoice -> delivery note
"""
import asyncio
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql

from salesflow.models import DocumentLink, Invoice, Order
from salesflow.services import DocumentType, Scope
from salesflow.services.registry import get_descriptor
from salesflow.services.repository import DocumentRepository
from salesflow.utils.errors import ErrorKind


async def get_document(sales, scope, doc_type, doc_id):
    result = await sales.lifecycle.get(doc_type, scope, doc_id)
    assert result.ok, result.msg
    return result.data


async def count(session_factory, model):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


# ===================== QUOTE -> ORDER =====================


async def test_quote_to_order_carries_items_and_totals(sales, session_factory, identities, seed_data, create_quote):
    quote = await create_quote(tax_rate="10")

    result = await sales.conversions.quote_to_order(identities["user_a"], quote.id)

    assert result.ok, result.msg
    order = result.data
    assert order.source_quote_id == quote.id
    assert order.status == "pending"
    assert order.order_date == date.today()
    assert order.subtotal == Decimal("20.00")
    assert order.tax == Decimal("2.00")
    assert order.total == Decimal("22.00")
    assert order.invoiced_amount == Decimal("0")
    assert [(item.product_name, item.quantity) for item in order.items] == [("Widget", Decimal("2"))]
    assert {item.id for item in order.items}.isdisjoint(item.id for item in quote.items)
    assert order.company_id == seed_data["customer_a"].id
    assert order.customer_details["name"] == "Customer A"
    assert order.from_details["name"] == "Seller A"

    async with session_factory() as session:
        link = (await session.execute(select(DocumentLink))).scalar_one()
    assert (link.from_type, link.from_id, link.to_type, link.to_id) == ("quote", quote.id, "order", order.id)


async def test_quote_to_order_customizations(sales, identities, create_quote):
    quote = await create_quote(notes="from the quote")
    delivery = date.today() + timedelta(days=7)

    result = await sales.conversions.quote_to_order(identities["user_a"], quote.id, {
        "order_number": "ORD-CUSTOM-1",
        "expected_delivery_date": delivery.isoformat(),
        "purchase_order_number": "PO-778",
    })

    assert result.ok, result.msg
    assert result.data.order_number == "ORD-CUSTOM-1"
    assert result.data.expected_delivery_date == delivery
    assert result.data.purchase_order_number == "PO-778"
    assert result.data.notes == "from the quote"


async def test_customizations_reject_foreign_fields(sales, identities, create_quote):
    quote = await create_quote()

    result = await sales.conversions.quote_to_order(
        identities["user_a"], quote.id, {"partial": {"percentage": 50}}
    )

    assert result.kind == ErrorKind.VALIDATION
    assert "partial" in result.field_errors


async def test_rejected_or_expired_quote_cannot_be_converted(sales, scope_a, identities, create_quote):
    for status in ("rejected", "expired"):
        quote = await create_quote()
        await sales.lifecycle.update_status(DocumentType.QUOTE, scope_a, quote.id, status)

        to_order = await sales.conversions.quote_to_order(identities["user_a"], quote.id)
        to_invoice = await sales.conversions.quote_to_invoice(identities["user_a"], quote.id)

        assert to_order.kind == ErrorKind.VALIDATION, status
        assert f"{status} quote" in to_order.msg
        assert to_invoice.kind == ErrorKind.VALIDATION, status


async def test_custom_number_collision_leaves_nothing_behind(sales, session_factory, identities, create_quote):
    quote = await create_quote()
    first = await sales.conversions.quote_to_order(identities["user_a"], quote.id, {"order_number": "ORD-X"})

    second = await sales.conversions.quote_to_order(identities["user_a"], quote.id, {"order_number": "ORD-X"})

    assert first.ok, first.msg
    assert second.kind == ErrorKind.VALIDATION
    assert second.get_field_error("order_number")
    assert await count(session_factory, Order) == 1
    assert await count(session_factory, DocumentLink) == 1


# ===================== QUOTE -> INVOICE =====================


async def test_quote_to_invoice_uses_default_terms(sales, scope_a, identities, create_quote):
    quote = await create_quote()

    result = await sales.conversions.quote_to_invoice(identities["user_a"], quote.id)

    assert result.ok, result.msg
    invoice = await get_document(sales, scope_a, DocumentType.INVOICE, result.data["invoice_id"])
    assert invoice.quote_id == quote.id
    assert invoice.status == "draft"
    assert invoice.issue_date == date.today()
    assert invoice.due_date == date.today() + timedelta(days=30)
    assert invoice.payment_terms == 30
    assert invoice.vat_rate == Decimal("0")
    assert invoice.total == Decimal("20.00")


async def test_quote_to_invoice_payment_terms(sales, scope_a, identities, create_quote):
    quote = await create_quote()

    result = await sales.conversions.quote_to_invoice(identities["user_a"], quote.id, {"payment_terms": 10})

    invoice = await get_document(sales, scope_a, DocumentType.INVOICE, result.data["invoice_id"])
    assert invoice.due_date == date.today() + timedelta(days=10)


async def test_quote_to_invoice_rejects_inverted_dates(sales, identities, create_quote):
    quote = await create_quote()

    result = await sales.conversions.quote_to_invoice(identities["user_a"], quote.id, {
        "issue_date": "2030-02-01",
        "due_date": "2030-01-01",
    })

    assert result.kind == ErrorKind.VALIDATION
    assert "due_date" in result.field_errors


# ===================== ORDER -> INVOICE =====================


async def test_partial_invoices_until_fully_invoiced(sales, scope_a, identities, create_order):
    order = await create_order()

    half = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"percentage": 50}}
    )
    remainder = await sales.conversions.order_to_invoice(identities["user_a"], order.id)
    extra = await sales.conversions.order_to_invoice(identities["user_a"], order.id)

    first = await get_document(sales, scope_a, DocumentType.INVOICE, half.data["invoice_id"])
    second = await get_document(sales, scope_a, DocumentType.INVOICE, remainder.data["invoice_id"])
    assert first.total == Decimal("50.00")
    assert first.items[0].quantity == Decimal("5")
    assert first.order_id == order.id
    assert second.total == Decimal("50.00")
    assert extra.kind == ErrorKind.VALIDATION
    assert "fully invoiced" in extra.msg

    refreshed = await get_document(sales, scope_a, DocumentType.ORDER, order.id)
    assert refreshed.invoiced_amount == Decimal("100.00")


async def test_partial_percentage_recalculates_tax(sales, scope_a, identities, create_order):
    order = await create_order(tax_rate="10")

    result = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"percentage": "50"}}
    )

    invoice = await get_document(sales, scope_a, DocumentType.INVOICE, result.data["invoice_id"])
    assert invoice.subtotal == Decimal("50.00")
    assert invoice.tax == Decimal("5.00")
    assert invoice.total == Decimal("55.00")


async def test_partial_by_amount(sales, scope_a, identities, create_order):
    order = await create_order()

    by_amount = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"amount": "30"}}
    )
    too_much = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"amount": "80"}}
    )
    too_many_percent = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"percentage": "80"}}
    )

    invoice = await get_document(sales, scope_a, DocumentType.INVOICE, by_amount.data["invoice_id"])
    assert invoice.total == Decimal("30.00")
    assert too_much.kind == ErrorKind.VALIDATION
    assert "partial.amount" in too_much.field_errors
    assert too_many_percent.kind == ErrorKind.VALIDATION
    assert "partial.percentage" in too_many_percent.field_errors

    refreshed = await get_document(sales, scope_a, DocumentType.ORDER, order.id)
    assert refreshed.invoiced_amount == Decimal("30.00")


async def test_partial_percentage_prices_exact_quantity(sales, scope_a, identities, create_order):
    order = await create_order(items=[{"product_name": "Retainer", "quantity": 1, "unit_price": "100.00"}])

    third = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"percentage": "33.3333"}}
    )
    rest = await sales.conversions.order_to_invoice(identities["user_a"], order.id)

    invoice = await get_document(sales, scope_a, DocumentType.INVOICE, third.data["invoice_id"])
    assert invoice.items[0].quantity == Decimal("0.333")
    assert invoice.items[0].total == Decimal("33.33")
    assert invoice.total == Decimal("33.33")
    closing = await get_document(sales, scope_a, DocumentType.INVOICE, rest.data["invoice_id"])
    assert closing.total == Decimal("66.67")


async def test_partial_amount_settles_line_rounding(sales, scope_a, identities, create_order):
    items = [{"product_name": f"Sample {n}", "quantity": 1, "unit_price": "0.05"} for n in range(3)]
    order = await create_order(items=items)

    first = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"amount": "0.05"}}
    )
    second = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"amount": "0.01"}}
    )

    invoice = await get_document(sales, scope_a, DocumentType.INVOICE, first.data["invoice_id"])
    assert invoice.total == Decimal("0.05")
    assert sum(Decimal(str(line.total)) for line in invoice.items) == Decimal("0.05")
    small = await get_document(sales, scope_a, DocumentType.INVOICE, second.data["invoice_id"])
    assert small.total == Decimal("0.01")

    refreshed = await get_document(sales, scope_a, DocumentType.ORDER, order.id)
    assert refreshed.invoiced_amount == Decimal("0.06")


async def test_partial_amount_with_tax_matches_amount(sales, scope_a, identities, create_order):
    order = await create_order(tax_rate="21")

    result = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"amount": "10.00"}}
    )
    remainder = await sales.conversions.order_to_invoice(identities["user_a"], order.id)

    invoice = await get_document(sales, scope_a, DocumentType.INVOICE, result.data["invoice_id"])
    assert invoice.total == Decimal("10.00")
    assert invoice.subtotal + invoice.tax == invoice.total
    closing = await get_document(sales, scope_a, DocumentType.INVOICE, remainder.data["invoice_id"])
    assert closing.total == Decimal("111.00")

    refreshed = await get_document(sales, scope_a, DocumentType.ORDER, order.id)
    assert refreshed.invoiced_amount == refreshed.total


async def test_partial_rounding_to_zero_is_refused(sales, session_factory, identities, create_order):
    order = await create_order()

    by_amount = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"amount": "0.001"}}
    )
    by_percentage = await sales.conversions.order_to_invoice(
        identities["user_a"], order.id, {"partial": {"percentage": "0.001"}}
    )

    assert by_amount.kind == ErrorKind.VALIDATION
    assert "partial.amount" in by_amount.field_errors
    assert by_percentage.kind == ErrorKind.VALIDATION
    assert "partial.percentage" in by_percentage.field_errors
    assert await count(session_factory, Invoice) == 0


async def test_partial_needs_exactly_one_valid_measure(sales, identities, create_order):
    order = await create_order()

    for partial in ({"percentage": 0}, {"percentage": 150}, {"amount": -1}, {},
                    {"percentage": 10, "amount": 10}):
        result = await sales.conversions.order_to_invoice(identities["user_a"], order.id, {"partial": partial})
        assert result.kind == ErrorKind.VALIDATION, partial


async def test_order_invoice_keeps_quote_reference(sales, scope_a, identities, create_quote):
    quote = await create_quote()
    order = (await sales.conversions.quote_to_order(identities["user_a"], quote.id)).data

    result = await sales.conversions.order_to_invoice(identities["user_a"], order.id)

    invoice = await get_document(sales, scope_a, DocumentType.INVOICE, result.data["invoice_id"])
    assert invoice.quote_id == quote.id
    assert invoice.total == Decimal("20.00")


# ===================== DELIVERY NOTES =====================


async def test_order_to_delivery_note_uses_customer_address(sales, scope_a, identities, create_order):
    order = await create_order(tax_rate="10")

    result = await sales.conversions.order_to_delivery_note(identities["user_a"], order.id)

    assert result.ok, result.msg
    note = await get_document(sales, scope_a, DocumentType.DELIVERY_NOTE, result.data["delivery_note_id"])
    assert note.order_id == order.id
    assert note.status == "pending"
    assert note.shipping_address == "Main Street 1, 3511 Utrecht, NL"
    assert note.tax == Decimal("0")
    assert [(item.product_name, item.quantity) for item in note.items] == [("Crate", Decimal("10"))]


async def test_delivery_note_address_override(sales, scope_a, identities, create_order):
    order = await create_order()

    result = await sales.conversions.order_to_delivery_note(identities["user_a"], order.id, {
        "shipping_address": "Dock 4, Rotterdam",
        "carrier": "DHL",
    })

    note = await get_document(sales, scope_a, DocumentType.DELIVERY_NOTE, result.data["delivery_note_id"])
    assert note.shipping_address == "Dock 4, Rotterdam"
    assert note.carrier == "DHL"


async def test_delivery_note_needs_an_address(sales, identities, seed_data, create_order):
    no_address = Scope(
        tenant_id=seed_data["tenant_a"].id, company_id=seed_data["other_customer_a"].id, user_id="admin-a"
    )
    order = await create_order(scope=no_address)

    result = await sales.conversions.order_to_delivery_note(identities["admin_a"], order.id)

    assert result.kind == ErrorKind.VALIDATION
    assert "shipping_address" in result.field_errors


async def test_invoice_to_delivery_note(sales, scope_a, identities, create_order):
    order = await create_order()
    invoice_id = (await sales.conversions.order_to_invoice(identities["user_a"], order.id)).data["invoice_id"]

    result = await sales.conversions.invoice_to_delivery_note(identities["user_a"], invoice_id)

    assert result.ok, result.msg
    note = await get_document(sales, scope_a, DocumentType.DELIVERY_NOTE, result.data["delivery_note_id"])
    assert note.invoice_id == invoice_id
    assert note.order_id == order.id


# ===================== TENANCY =====================


async def test_conversions_are_tenant_scoped(sales, identities, create_quote, create_order):
    quote = await create_quote()
    order = await create_order()

    foreign = await sales.conversions.quote_to_order(identities["user_b"], quote.id)
    foreign_order = await sales.conversions.order_to_delivery_note(identities["user_b"], order.id)
    homeless = await sales.conversions.quote_to_invoice(identities["no_tenant"], quote.id)

    assert foreign.kind == ErrorKind.NOT_FOUND
    assert foreign_order.kind == ErrorKind.NOT_FOUND
    assert homeless.kind == ErrorKind.UNAUTHORIZED_TENANT


# ===================== CONCURRENCY =====================


def test_source_rows_are_locked_for_update():
    descriptor = get_descriptor(DocumentType.ORDER)
    scope = Scope(tenant_id="tenant-a", company_id="company-a")

    locked = DocumentRepository.document_query(descriptor, scope, "order-1", for_update=True)
    plain = DocumentRepository.document_query(descriptor, scope, "order-1")

    assert "FOR UPDATE" in str(locked.compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE" not in str(plain.compile(dialect=postgresql.dialect()))


async def test_concurrent_partial_invoices_cannot_overrun_the_order(sales, scope_a, identities, create_order):
    order = await create_order()

    results = await asyncio.gather(*(
        sales.conversions.order_to_invoice(identities["user_a"], order.id, {"partial": {"percentage": 60}})
        for _ in range(2)
    ))

    assert sorted(result.ok for result in results) == [False, True]
    refreshed = await get_document(sales, scope_a, DocumentType.ORDER, order.id)
    assert refreshed.invoiced_amount == Decimal("60.00")
