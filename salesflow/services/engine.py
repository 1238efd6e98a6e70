"""
Sales engine - wires the document services around one session factory and cache
"""
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from salesflow.config import get_settings
from salesflow.services.cache import CacheBackend, DocumentCache, InMemoryCache
from salesflow.services.chain import DocumentChainResolver
from salesflow.services.companies import CompanyService
from salesflow.services.conversion import WorkflowConversionEngine
from salesflow.services.lifecycle import DocumentLifecycleService
from salesflow.services.numbering import NumberGenerator
from salesflow.services.repository import DocumentRepository
from salesflow.services.scope import ScopeGuard

settings = get_settings()


class SalesEngine:
    """
    Entry point for callers (HTTP routers, scripts, tests).

    Stateless between calls apart from the pass-through cache client.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        cache_backend: Optional[CacheBackend] = None,
        numbers: Optional[NumberGenerator] = None,
    ):
        self.session_factory = session_factory
        self.cache = DocumentCache(cache_backend or InMemoryCache(), settings.CACHE_TTL_SECONDS)
        self.repository = DocumentRepository()

        self.scope_guard = ScopeGuard(session_factory)
        self.lifecycle = DocumentLifecycleService(session_factory, self.cache, numbers, self.repository)
        self.conversions = WorkflowConversionEngine(self.lifecycle)
        self.chains = DocumentChainResolver(session_factory, self.repository)
        self.companies = CompanyService(session_factory)
