"""
Error kinds raised inside the engine.

Services raise these; the service boundary turns them into tagged results
(see salesflow.utils.result) so no exception reaches the caller.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    MISSING_SCOPE = "MissingScope"
    UNAUTHORIZED_TENANT = "UnauthorizedTenant"
    SCOPE_MISMATCH = "ScopeMismatch"
    COMPANY_NOT_FOUND = "CompanyNotFound"
    NOT_FOUND = "NotFound"
    HAS_DEPENDENTS = "HasDependents"
    NUMBER_GENERATION_EXHAUSTED = "NumberGenerationExhausted"
    CHAIN_TOO_DEEP = "ChainTooDeep"
    STORAGE = "StorageError"


# Kinds that indicate a server-side fault rather than normal control flow
SERVER_FAULT_KINDS = frozenset({
    ErrorKind.NUMBER_GENERATION_EXHAUSTED,
    ErrorKind.CHAIN_TOO_DEEP,
    ErrorKind.STORAGE,
})


class SalesError(Exception):
    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(
        self,
        msg: str,
        field_errors: Optional[Dict[str, List[str]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(msg)
        self.msg = msg
        self.field_errors = field_errors or {}
        self.context = context or {}


class InvalidInput(SalesError):
    kind = ErrorKind.VALIDATION


class MissingScope(SalesError):
    kind = ErrorKind.MISSING_SCOPE


class UnauthorizedTenant(SalesError):
    kind = ErrorKind.UNAUTHORIZED_TENANT


class ScopeMismatch(SalesError):
    kind = ErrorKind.SCOPE_MISMATCH


class CompanyNotFound(SalesError):
    kind = ErrorKind.COMPANY_NOT_FOUND


class NotFound(SalesError):
    kind = ErrorKind.NOT_FOUND


class HasDependents(SalesError):
    kind = ErrorKind.HAS_DEPENDENTS

    def __init__(self, msg: str, dependents: Dict[str, int], context=None):
        super().__init__(msg, context={**(context or {}), "dependents": dependents})
        self.dependents = dependents


class NumberGenerationExhausted(SalesError):
    kind = ErrorKind.NUMBER_GENERATION_EXHAUSTED


class ChainTooDeep(SalesError):
    kind = ErrorKind.CHAIN_TOO_DEEP


class StorageError(SalesError):
    kind = ErrorKind.STORAGE
