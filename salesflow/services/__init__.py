from salesflow.services.engine import SalesEngine
from salesflow.services.registry import DocumentType
from salesflow.services.scope import Identity, Role, Scope

__all__ = ["SalesEngine", "DocumentType", "Identity", "Role", "Scope"]
