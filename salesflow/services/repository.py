"""
Persistence facade shared by the lifecycle service, conversion engine and chain resolver.

All methods run inside a session owned by the caller, so several of them can
share one transaction.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salesflow.models import Company, CompanyKind, DocumentLink
from salesflow.schemas.listing import DocumentFilters
from salesflow.services.registry import DocumentDescriptor, DocumentType, get_descriptor
from salesflow.services.scope import Scope
from salesflow.utils.errors import CompanyNotFound, InvalidInput, NotFound


def company_snapshot(company: Optional[Company]) -> Optional[Dict[str, Any]]:
    """Frozen copy of the company fields printed on a document"""
    if company is None:
        return None
    return {
        "id": company.id,
        "name": company.name,
        "address": company.address,
        "city": company.city,
        "zip_code": company.zip_code,
        "country": company.country,
        "email": company.email,
        "phone": company.phone,
        "website": company.website,
        "vat_number": company.vat_number,
    }


class DocumentRepository:

    @staticmethod
    def document_query(descriptor: DocumentDescriptor, scope: Scope, doc_id: str, for_update: bool = False):
        model = descriptor.model
        query = (
            select(model)
            .options(selectinload(model.items))
            .where(model.id == doc_id, model.tenant_id == scope.tenant_id)
        )
        if scope.company_id:
            query = query.where(model.company_id == scope.company_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return query

    async def get(
        self,
        session: AsyncSession,
        descriptor: DocumentDescriptor,
        scope: Scope,
        doc_id: str,
        for_update: bool = False,
    ):
        """
        Load one document with its items, or raise NotFound outside the scope.

        `for_update` locks the row until the transaction ends (SELECT ... FOR
        UPDATE); use it wherever the loaded values feed a write.
        """
        result = await session.execute(self.document_query(descriptor, scope, doc_id, for_update))
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFound(f"{descriptor.label.capitalize()} {doc_id} not found")
        return document

    async def find(
        self, session: AsyncSession, doc_type: DocumentType, tenant_id: str, doc_id: str, for_update: bool = False
    ):
        """Tenant-filtered lookup without items; None when absent"""
        model = get_descriptor(doc_type).model
        query = select(model).where(model.id == doc_id, model.tenant_id == tenant_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def list(
        self,
        session: AsyncSession,
        descriptor: DocumentDescriptor,
        scope: Scope,
        filters: DocumentFilters,
    ) -> Tuple[List[Any], int]:
        model = descriptor.model
        conditions = [model.tenant_id == scope.tenant_id]

        company_id = scope.company_id or filters.company_id
        if company_id:
            conditions.append(model.company_id == company_id)
        if filters.status:
            conditions.append(model.status == filters.status)
        if filters.search:
            conditions.append(descriptor.number_column.ilike(f"%{filters.search}%"))

        date_column = getattr(model, descriptor.date_field)
        if filters.date_from:
            conditions.append(date_column >= filters.date_from)
        if filters.date_to:
            conditions.append(date_column <= filters.date_to)

        total = await session.scalar(select(func.count()).select_from(model).where(*conditions))

        result = await session.execute(
            select(model)
            .options(selectinload(model.items))
            .where(*conditions)
            .order_by(model.created_at.desc(), descriptor.number_column.desc())
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
        )
        return list(result.scalars().all()), total or 0

    async def count_dependents(
        self,
        session: AsyncSession,
        descriptor: DocumentDescriptor,
        tenant_id: str,
        doc_id: str,
    ) -> Dict[str, int]:
        """Non-zero counts of chain edges and back-referencing rows"""
        counts = {}

        links = await session.scalar(
            select(func.count()).select_from(DocumentLink).where(
                DocumentLink.tenant_id == tenant_id,
                DocumentLink.from_type == descriptor.type.value,
                DocumentLink.from_id == doc_id,
            )
        )
        if links:
            counts["document_links"] = links

        for dependent in descriptor.dependents:
            column = getattr(dependent.model, dependent.column)
            count = await session.scalar(
                select(func.count()).select_from(dependent.model).where(column == doc_id)
            )
            if count:
                counts[dependent.label] = count

        return counts

    async def get_company(self, session: AsyncSession, tenant_id: str, company_id: str) -> Company:
        company = await session.get(Company, company_id)
        if company is None or company.tenant_id != tenant_id:
            raise CompanyNotFound(f"Company {company_id} not found")
        return company

    async def resolve_seller(
        self,
        session: AsyncSession,
        tenant_id: str,
        seller_company_id: Optional[str] = None,
    ) -> Optional[Company]:
        """The given seller company when it is one of the tenant's, else the tenant's first seller"""
        if seller_company_id:
            company = await session.get(Company, seller_company_id)
            if company is None or company.tenant_id != tenant_id or company.kind != CompanyKind.SELLER.value:
                raise InvalidInput(
                    "Seller company is not one of the tenant's selling companies",
                    field_errors={"seller_company_id": ["Unknown seller company"]},
                )
            return company

        result = await session.execute(
            select(Company)
            .where(Company.tenant_id == tenant_id, Company.kind == CompanyKind.SELLER.value)
            .order_by(Company.created_at, Company.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def check_references(
        self,
        session: AsyncSession,
        descriptor: DocumentDescriptor,
        tenant_id: str,
        values: Dict[str, Any],
    ) -> None:
        """Back-reference ids on a new document must point inside the tenant"""
        errors = {}
        for field_name, doc_type in descriptor.references.items():
            ref_id = values.get(field_name)
            if ref_id and await self.find(session, doc_type, tenant_id, ref_id) is None:
                errors[field_name] = [f"Unknown {get_descriptor(doc_type).label}"]
        if errors:
            raise InvalidInput("Invalid document reference", field_errors=errors)

    async def add_link(
        self,
        session: AsyncSession,
        tenant_id: str,
        source_type: DocumentType,
        source_id: str,
        target_type: DocumentType,
        target_id: str,
        created_by: Optional[str] = None,
    ) -> DocumentLink:
        link = DocumentLink(
            tenant_id=tenant_id,
            from_type=source_type.value,
            from_id=source_id,
            to_type=target_type.value,
            to_id=target_id,
            created_by=created_by,
        )
        session.add(link)
        return link

    async def outgoing_links(
        self,
        session: AsyncSession,
        tenant_id: str,
        sources: List[Tuple[str, str]],
    ) -> List[DocumentLink]:
        """Edges leaving any of the (type, id) sources, oldest first"""
        if not sources:
            return []
        ids = {doc_id for _, doc_id in sources}
        result = await session.execute(
            select(DocumentLink)
            .where(DocumentLink.tenant_id == tenant_id, DocumentLink.from_id.in_(ids))
            .order_by(DocumentLink.created_at, DocumentLink.id)
        )
        wanted = set(sources)
        return [link for link in result.scalars() if (link.from_type, link.from_id) in wanted]

    async def find_many(
        self,
        session: AsyncSession,
        doc_type: DocumentType,
        tenant_id: str,
        ids: List[str],
    ) -> Dict[str, Any]:
        if not ids:
            return {}
        model = get_descriptor(doc_type).model
        result = await session.execute(
            select(model).where(model.tenant_id == tenant_id, model.id.in_(set(ids)))
        )
        return {document.id: document for document in result.scalars()}

    async def select_where(
        self,
        session: AsyncSession,
        descriptor: DocumentDescriptor,
        scope: Scope,
        *conditions,
    ) -> List[Any]:
        """Documents (with items) inside the scope matching extra conditions"""
        model = descriptor.model
        query = (
            select(model)
            .options(selectinload(model.items))
            .where(model.tenant_id == scope.tenant_id, *conditions)
            .order_by(getattr(model, descriptor.date_field), descriptor.number_column)
        )
        if scope.company_id:
            query = query.where(model.company_id == scope.company_id)
        result = await session.execute(query)
        return list(result.scalars().all())
