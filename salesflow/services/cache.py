"""
Cache collaborator - read-through document/list cache with pattern invalidation
"""
import fnmatch
import json
import logging
import time
from typing import Any, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def invalidate_pattern(self, pattern: str) -> None: ...


class InMemoryCache:
    """Process-local cache with per-entry TTL and glob-style invalidation"""

    def __init__(self):
        self._entries: Dict[str, Tuple[float, Any]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < time.monotonic():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = (time.monotonic() + ttl, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def invalidate_pattern(self, pattern: str) -> None:
        for key in [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]:
            self._entries.pop(key, None)

    def keys(self):
        return list(self._entries)


class DocumentCache:
    """
    Tenant-qualified keys over a CacheBackend.

    Every call is best-effort: a failing backend is logged and treated as a
    miss, it never fails the operation that triggered it.
    """

    def __init__(self, backend: CacheBackend, ttl: int):
        self.backend = backend
        self.ttl = ttl

    @staticmethod
    def item_key(prefix: str, tenant_id: str, doc_id: str) -> str:
        return f"{prefix}:{tenant_id}:{doc_id}"

    @staticmethod
    def list_key(prefix: str, tenant_id: str, filters: Dict[str, Any]) -> str:
        encoded = json.dumps(filters, sort_keys=True, default=str, separators=(",", ":"))
        return f"{prefix}:list:{tenant_id}:{encoded}"

    async def read(self, key: str) -> Optional[Any]:
        try:
            return await self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def write(self, key: str, value: Any) -> None:
        try:
            await self.backend.set(key, value, self.ttl)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def invalidate(self, prefix: str, tenant_id: str, doc_id: Optional[str] = None) -> None:
        """Drop the single-document key (when given) and every list page of the type"""
        try:
            if doc_id is not None:
                await self.backend.delete(self.item_key(prefix, tenant_id, doc_id))
            await self.backend.invalidate_pattern(f"{prefix}:list:{tenant_id}:*")
        except Exception as e:
            logger.warning(
                f"Cache invalidation failed for {prefix}: {e}",
                extra={"context": {"tenant_id": tenant_id, "doc_id": doc_id}},
            )
