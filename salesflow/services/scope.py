"""
Tenant/company scope guard.

Every engine operation runs against a Scope resolved here once per request;
downstream code filters by the Scope and never derives a company id on its own.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from salesflow.models.company import Company, CompanyMember
from salesflow.utils.errors import CompanyNotFound, MissingScope, ScopeMismatch, UnauthorizedTenant
from salesflow.utils.result import service_operation

COMPANY_HEADER = "X-Company-Id"


class Role(str, Enum):
    USER = "user"
    TENANT_ADMIN = "tenant_admin"
    SUPERADMIN = "superadmin"


PRIVILEGED_ROLES = frozenset({Role.TENANT_ADMIN, Role.SUPERADMIN})


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as handed over by the auth middleware"""
    user_id: str
    role: Role = Role.USER
    tenant_id: Optional[str] = None
    active_tenant_id: Optional[str] = None

    @property
    def effective_tenant_id(self) -> Optional[str]:
        # A superadmin may be working inside a tenant other than their own
        return self.active_tenant_id or self.tenant_id

    @property
    def is_privileged(self) -> bool:
        return Role(self.role) in PRIVILEGED_ROLES


@dataclass(frozen=True)
class Scope:
    tenant_id: str
    company_id: Optional[str] = None
    user_id: Optional[str] = None


def extract_company_id(
    route: Optional[Mapping[str, Any]] = None,
    query: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, Any]] = None,
    body: Optional[Mapping[str, Any]] = None,
) -> Optional[str]:
    """First company id found in route params, query, headers, then body"""
    candidates = (
        (route or {}).get("company_id"),
        (query or {}).get("company_id"),
        (headers or {}).get(COMPANY_HEADER) or (headers or {}).get(COMPANY_HEADER.lower()),
        (body or {}).get("company_id"),
    )
    for candidate in candidates:
        if candidate:
            return str(candidate)
    return None


def tenant_scope(identity: Identity) -> Scope:
    """Tenant-level scope (no company) for tenant-wide operations such as conversions"""
    tenant_id = identity.effective_tenant_id
    if not tenant_id:
        raise UnauthorizedTenant("Caller is not bound to a tenant")
    return Scope(tenant_id=tenant_id, user_id=identity.user_id)


class ScopeGuard:
    """Resolve a company candidate into a Scope (wrapped in a Result) for the calling identity"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @service_operation("resolve scope")
    async def resolve(
        self,
        company_id: Optional[str],
        identity: Identity,
        required: bool = True,
    ) -> Scope:
        base = tenant_scope(identity)

        if not company_id:
            if required:
                raise MissingScope("A company must be selected for this operation")
            return base

        async with self.session_factory() as session:
            company = await session.get(Company, company_id)
            if company is None:
                raise CompanyNotFound(f"Company {company_id} not found")

            # Tenant equality binds every role
            if company.tenant_id != base.tenant_id:
                raise ScopeMismatch("Company does not belong to the caller's tenant")

            if not identity.is_privileged:
                result = await session.execute(
                    select(CompanyMember.id).where(
                        CompanyMember.company_id == company_id,
                        CompanyMember.user_id == identity.user_id,
                    )
                )
                if result.first() is None:
                    raise ScopeMismatch("Caller is not a member of this company")

        return Scope(tenant_id=base.tenant_id, company_id=company_id, user_id=identity.user_id)
