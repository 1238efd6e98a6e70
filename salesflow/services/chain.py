"""
Document chain resolver - breadth-first walk of the conversion edge log
"""
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from salesflow.config import get_settings
from salesflow.schemas.chain import MISSING_STATUS, ChainNode
from salesflow.services.registry import DocumentType, get_descriptor
from salesflow.services.repository import DocumentRepository
from salesflow.utils.errors import ChainTooDeep, NotFound, UnauthorizedTenant
from salesflow.utils.result import service_operation

settings = get_settings()
logger = logging.getLogger(__name__)

_KNOWN_TYPES = {doc_type.value for doc_type in DocumentType}


def _node(doc_type: str, document) -> ChainNode:
    descriptor = get_descriptor(doc_type)
    return ChainNode(
        type=doc_type,
        id=document.id,
        status=document.status,
        number=getattr(document, descriptor.number_field),
    )


def _missing(doc_type: str, doc_id: str) -> ChainNode:
    return ChainNode(type=doc_type, id=doc_id, status=MISSING_STATUS, missing=True)


class DocumentChainResolver:
    """Quote -> orders -> invoices -> delivery notes, as recorded by conversions"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        repository: Optional[DocumentRepository] = None,
        max_depth: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.repository = repository or DocumentRepository()
        self.max_depth = max_depth or settings.CHAIN_MAX_DEPTH

    @service_operation("resolve document chain")
    async def get_document_chain(self, quote_id: str, tenant_id: Optional[str]) -> ChainNode:
        """
        Build the tree rooted at a quote.

        Targets that no longer exist become "missing" leaves. The walk stops
        with ChainTooDeep once it would go past max_depth hops, so a cycle in
        the edge log cannot loop forever.
        """
        if not tenant_id:
            raise UnauthorizedTenant("Caller is not bound to a tenant")

        async with self.session_factory() as session:
            quote = await self.repository.find(session, DocumentType.QUOTE, tenant_id, quote_id)
            if quote is None:
                raise NotFound(f"Quote {quote_id} not found")

            root = _node(DocumentType.QUOTE.value, quote)
            frontier: List[ChainNode] = [root]
            depth = 0

            while frontier:
                parents: Dict[Tuple[str, str], List[ChainNode]] = defaultdict(list)
                for node in frontier:
                    if not node.missing:
                        parents[(node.type, node.id)].append(node)

                links = await self.repository.outgoing_links(session, tenant_id, list(parents))
                if not links:
                    break

                depth += 1
                if depth > self.max_depth:
                    raise ChainTooDeep(
                        f"Document chain of quote {quote_id} exceeds {self.max_depth} hops",
                        context={"root_id": quote_id, "tenant_id": tenant_id, "max_depth": self.max_depth},
                    )

                wanted: Dict[str, List[str]] = defaultdict(list)
                for link in links:
                    if link.to_type in _KNOWN_TYPES:
                        wanted[link.to_type].append(link.to_id)
                found = {
                    doc_type: await self.repository.find_many(session, DocumentType(doc_type), tenant_id, ids)
                    for doc_type, ids in wanted.items()
                }

                next_frontier = []
                for link in links:
                    document = found.get(link.to_type, {}).get(link.to_id)
                    child = _node(link.to_type, document) if document is not None else _missing(
                        link.to_type, link.to_id
                    )
                    for parent in parents[(link.from_type, link.from_id)]:
                        parent.children.append(child)
                    next_frontier.append(child)
                frontier = next_frontier

        return root
