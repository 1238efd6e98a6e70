"""
Companies API
"""
from fastapi import APIRouter, Depends

from salesflow.api.deps import get_engine, get_identity, unwrap
from salesflow.services import Identity, SalesEngine

router = APIRouter()


@router.delete("/{company_id}")
async def delete_company(
    company_id: str,
    engine: SalesEngine = Depends(get_engine),
    identity: Identity = Depends(get_identity),
):
    """Delete a company that no sales document references"""
    return unwrap(await engine.companies.delete_company(identity, company_id))
