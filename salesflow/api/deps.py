"""
Shared API dependencies: engine, caller identity, scope and result translation
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from salesflow.database import AsyncSessionLocal
from salesflow.services import DocumentType, Identity, SalesEngine, Scope
from salesflow.services.scope import extract_company_id
from salesflow.utils.errors import ErrorKind
from salesflow.utils.result import Result

sales_engine = SalesEngine(AsyncSessionLocal)

STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.HAS_DEPENDENTS: 400,
    ErrorKind.UNAUTHORIZED_TENANT: 401,
    ErrorKind.MISSING_SCOPE: 403,
    ErrorKind.SCOPE_MISMATCH: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.COMPANY_NOT_FOUND: 404,
    ErrorKind.NUMBER_GENERATION_EXHAUSTED: 500,
    ErrorKind.CHAIN_TOO_DEEP: 500,
    ErrorKind.STORAGE: 500,
}

DOCUMENT_ROUTES = {
    "quotes": DocumentType.QUOTE,
    "orders": DocumentType.ORDER,
    "invoices": DocumentType.INVOICE,
    "delivery-notes": DocumentType.DELIVERY_NOTE,
}


def get_engine() -> SalesEngine:
    return sales_engine


def get_identity(request: Request) -> Identity:
    """Identity placed on request.state by the authentication middleware"""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if isinstance(identity, dict):
        identity = Identity(**identity)
    return identity


def document_type(kind: str) -> DocumentType:
    doc_type = DOCUMENT_ROUTES.get(kind)
    if doc_type is None:
        raise HTTPException(status_code=404, detail=f"Unknown document type: {kind}")
    return doc_type


def unwrap(result: Result):
    """Return the payload of a successful result or raise the matching HTTP error"""
    if result.ok:
        return result.data

    status_code = STATUS_CODES.get(result.kind, 500)
    # Server faults are reported without internal detail
    message = result.msg if status_code < 500 else "Internal server error"
    detail: Dict[str, Any] = {"kind": result.kind.value, "msg": message}
    if result.field_errors:
        detail["field_errors"] = result.field_errors
    raise HTTPException(status_code=status_code, detail=detail)


async def resolve_scope(
    request: Request,
    engine: SalesEngine,
    identity: Identity,
    body: Optional[Dict[str, Any]] = None,
    required: Optional[bool] = None,
) -> Scope:
    """
    Resolve the caller's company scope from route, query, header or body.

    Unless told otherwise, privileged callers may act tenant-wide without
    naming a company.
    """
    candidate = extract_company_id(request.path_params, request.query_params, request.headers, body)
    if required is None:
        required = not identity.is_privileged
    return unwrap(await engine.scope_guard.resolve(candidate, identity, required=required))

