"""
Sales documents API - CRUD, listing, status and payments for every document type
"""
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from salesflow.api.deps import document_type, get_engine, get_identity, resolve_scope, unwrap
from salesflow.services import Identity, SalesEngine

router = APIRouter()


# ===================== Invoice / delivery specials =====================
# Declared before the generic routes so "/invoices/overdue" is not read as an id.


@router.get("/invoices/overdue")
async def list_overdue_invoices(
    request: Request,
    today: Optional[date] = None,
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    scope = await resolve_scope(request, engine, identity)
    return unwrap(await engine.lifecycle.overdue_invoices(scope, today))


@router.post("/invoices/mark-overdue")
async def mark_invoices_overdue(
    request: Request,
    today: Optional[date] = None,
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    scope = await resolve_scope(request, engine, identity)
    return unwrap(await engine.lifecycle.mark_overdue(scope, today))


@router.post("/invoices/{invoice_id}/payments")
async def record_payment(
    invoice_id: str,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    """Record a payment; the invoice becomes paid once payments reach its total"""
    scope = await resolve_scope(request, engine, identity, payload)
    return unwrap(await engine.lifecycle.record_payment(
        scope, invoice_id, payload.get("amount"), payload.get("note")
    ))


@router.get("/delivery-notes/pending")
async def list_pending_deliveries(
    request: Request,
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    scope = await resolve_scope(request, engine, identity)
    return unwrap(await engine.lifecycle.pending_deliveries(scope))


@router.get("/delivery-notes/in-transit")
async def list_in_transit_deliveries(
    request: Request,
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    scope = await resolve_scope(request, engine, identity)
    return unwrap(await engine.lifecycle.in_transit_deliveries(scope))


# ===================== Generic document routes =====================


@router.get("/{kind}")
async def list_documents(
    kind: str,
    request: Request,
    status: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1),
    page_size: int = Query(20),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    """List documents of one type, newest first"""
    doc_type = document_type(kind)
    scope = await resolve_scope(request, engine, identity)
    filters = {
        "status": status,
        "search": search,
        "date_from": date_from,
        "date_to": date_to,
        "page": page,
        "page_size": page_size,
    }
    return unwrap(await engine.lifecycle.list(doc_type, scope, filters))


@router.post("/{kind}")
async def create_document(
    kind: str,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    doc_type = document_type(kind)
    scope = await resolve_scope(request, engine, identity, payload, required=True)
    return unwrap(await engine.lifecycle.create(doc_type, scope, payload))


@router.get("/{kind}/{doc_id}")
async def get_document(
    kind: str,
    doc_id: str,
    request: Request,
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    doc_type = document_type(kind)
    scope = await resolve_scope(request, engine, identity)
    return unwrap(await engine.lifecycle.get(doc_type, scope, doc_id))


@router.put("/{kind}/{doc_id}")
async def update_document(
    kind: str,
    doc_id: str,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    doc_type = document_type(kind)
    scope = await resolve_scope(request, engine, identity)
    return unwrap(await engine.lifecycle.update(doc_type, scope, doc_id, payload))


@router.delete("/{kind}/{doc_id}")
async def delete_document(
    kind: str,
    doc_id: str,
    request: Request,
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    doc_type = document_type(kind)
    scope = await resolve_scope(request, engine, identity)
    return unwrap(await engine.lifecycle.delete(doc_type, scope, doc_id))


@router.patch("/{kind}/{doc_id}/status")
async def update_document_status(
    kind: str,
    doc_id: str,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    doc_type = document_type(kind)
    scope = await resolve_scope(request, engine, identity)
    return unwrap(await engine.lifecycle.update_status(doc_type, scope, doc_id, payload.get("status")))
