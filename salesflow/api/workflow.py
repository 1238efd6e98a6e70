"""
Workflow API - document conversions and the document chain
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from salesflow.api.deps import get_engine, get_identity, unwrap
from salesflow.services import Identity, SalesEngine

router = APIRouter()


@router.post("/quotes/{quote_id}/order")
async def convert_quote_to_order(
    quote_id: str,
    customizations: Optional[Dict[str, Any]] = Body(default=None),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    return unwrap(await engine.conversions.quote_to_order(identity, quote_id, customizations))


@router.post("/quotes/{quote_id}/invoice")
async def convert_quote_to_invoice(
    quote_id: str,
    customizations: Optional[Dict[str, Any]] = Body(default=None),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    return unwrap(await engine.conversions.quote_to_invoice(identity, quote_id, customizations))


@router.post("/orders/{order_id}/invoice")
async def convert_order_to_invoice(
    order_id: str,
    customizations: Optional[Dict[str, Any]] = Body(default=None),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    """Full or partial ({"partial": {"percentage"|"amount": ...}}) invoice of an order"""
    return unwrap(await engine.conversions.order_to_invoice(identity, order_id, customizations))


@router.post("/orders/{order_id}/delivery-note")
async def convert_order_to_delivery_note(
    order_id: str,
    customizations: Optional[Dict[str, Any]] = Body(default=None),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    return unwrap(await engine.conversions.order_to_delivery_note(identity, order_id, customizations))


@router.post("/invoices/{invoice_id}/delivery-note")
async def convert_invoice_to_delivery_note(
    invoice_id: str,
    customizations: Optional[Dict[str, Any]] = Body(default=None),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    return unwrap(await engine.conversions.invoice_to_delivery_note(identity, invoice_id, customizations))


@router.get("/quotes/{quote_id}/chain")
async def get_document_chain(
    quote_id: str,
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    """Quote -> orders -> invoices -> delivery notes tree"""
    return unwrap(await engine.chains.get_document_chain(quote_id, identity.effective_tenant_id))
