"""
Document chain resolution over the conversion edge log
"""
from salesflow.models import DocumentLink
from salesflow.services import DocumentType
from salesflow.services.chain import DocumentChainResolver
from salesflow.utils.errors import ErrorKind


def summary(node):
    return (node.type, sorted(summary(child) for child in node.children))


async def test_full_chain(sales, scope_a, identities, create_quote):
    user = identities["user_a"]
    quote = await create_quote()
    order = (await sales.conversions.quote_to_order(user, quote.id)).data
    invoice_id = (await sales.conversions.order_to_invoice(user, order.id)).data["invoice_id"]
    await sales.conversions.invoice_to_delivery_note(user, invoice_id)
    await sales.conversions.quote_to_invoice(user, quote.id)

    result = await sales.chains.get_document_chain(quote.id, scope_a.tenant_id)

    assert result.ok, result.msg
    root = result.data
    assert (root.type, root.id, root.number) == ("quote", quote.id, quote.quote_number)
    assert summary(root) == ("quote", [
        ("invoice", []),
        ("order", [("invoice", [("delivery_note", [])])]),
    ])
    order_node = next(child for child in root.children if child.type == "order")
    assert order_node.id == order.id
    assert order_node.number == order.order_number
    assert order_node.status == "pending"
    assert order_node.children[0].id == invoice_id


async def test_quote_without_conversions(sales, scope_a, create_quote):
    quote = await create_quote()

    result = await sales.chains.get_document_chain(quote.id, scope_a.tenant_id)

    assert result.data.children == []
    assert not result.data.missing


async def test_deleted_target_becomes_missing_leaf(sales, scope_a, identities, create_quote):
    quote = await create_quote()
    order = (await sales.conversions.quote_to_order(identities["user_a"], quote.id)).data
    note_id = (await sales.conversions.order_to_delivery_note(identities["user_a"], order.id)).data["delivery_note_id"]
    deleted = await sales.lifecycle.delete(DocumentType.DELIVERY_NOTE, scope_a, note_id)
    assert deleted.ok, deleted.msg

    result = await sales.chains.get_document_chain(quote.id, scope_a.tenant_id)

    leaf = result.data.children[0].children[0]
    assert leaf.type == "delivery_note"
    assert leaf.id == note_id
    assert leaf.missing
    assert leaf.status == "missing"
    assert leaf.number is None


async def test_cycle_stops_at_max_depth(session_factory, sales, scope_a, identities, create_quote):
    quote = await create_quote()
    order = (await sales.conversions.quote_to_order(identities["user_a"], quote.id)).data
    async with session_factory() as session, session.begin():
        session.add(DocumentLink(
            tenant_id=scope_a.tenant_id, from_type="order", from_id=order.id, to_type="quote", to_id=quote.id
        ))

    resolver = DocumentChainResolver(session_factory, max_depth=3)
    result = await resolver.get_document_chain(quote.id, scope_a.tenant_id)

    assert result.kind == ErrorKind.CHAIN_TOO_DEEP
    assert result.context == {"root_id": quote.id, "tenant_id": scope_a.tenant_id, "max_depth": 3}


async def test_chain_is_tenant_scoped(sales, scope_a, scope_b, create_quote):
    quote = await create_quote()

    foreign = await sales.chains.get_document_chain(quote.id, scope_b.tenant_id)
    unknown = await sales.chains.get_document_chain("no-such-quote", scope_a.tenant_id)
    homeless = await sales.chains.get_document_chain(quote.id, None)

    assert foreign.kind == ErrorKind.NOT_FOUND
    assert unknown.kind == ErrorKind.NOT_FOUND
    assert homeless.kind == ErrorKind.UNAUTHORIZED_TENANT
