"""
Company service - deletion guard for customer and seller companies
"""
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from salesflow.models import Company
from salesflow.services.registry import DOCUMENT_TYPES
from salesflow.services.scope import Identity, tenant_scope
from salesflow.utils.errors import CompanyNotFound, HasDependents, ScopeMismatch
from salesflow.utils.result import service_operation

logger = logging.getLogger(__name__)


class CompanyService:

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @service_operation("delete company")
    async def delete_company(self, identity: Identity, company_id: str):
        """Delete a company unless any sales document names it as customer or seller"""
        scope = tenant_scope(identity)
        if not identity.is_privileged:
            raise ScopeMismatch("Only tenant administrators can delete companies")

        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                select(Company)
                .options(selectinload(Company.members))
                .where(Company.id == company_id, Company.tenant_id == scope.tenant_id)
            )
            company = result.scalar_one_or_none()
            if company is None:
                raise CompanyNotFound(f"Company {company_id} not found")

            dependents = {}
            for descriptor in DOCUMENT_TYPES.values():
                model = descriptor.model
                count = await session.scalar(
                    select(func.count()).select_from(model).where(
                        or_(model.company_id == company_id, model.seller_company_id == company_id)
                    )
                )
                if count:
                    dependents[descriptor.cache_prefix.replace("-", "_")] = count

            if dependents:
                summary = ", ".join(f"{count} {label}" for label, count in dependents.items())
                raise HasDependents(
                    f"Cannot delete company {company.name}: referenced by {summary}",
                    dependents,
                    context={"company_id": company_id},
                )

            name = company.name
            await session.delete(company)

        logger.info(f"Deleted company {name}")
        return {"id": company_id}
