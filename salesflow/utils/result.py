"""
Tagged success/error result returned by every engine operation
"""
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from salesflow.utils.errors import ErrorKind, SalesError, SERVER_FAULT_KINDS

logger = logging.getLogger(__name__)


@dataclass
class Result:
    """
    Unified response for all engine operations.

    The engine never builds HTTP responses; routers translate `kind` into a
    status code.
    """
    ok: bool
    kind: Optional[ErrorKind] = None
    msg: str = ''
    data: Any = None
    field_errors: Dict[str, List[str]] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, data=None, msg='Operation successful'):
        return cls(ok=True, msg=msg, data=data)

    @classmethod
    def error(cls, kind: ErrorKind, msg: str, field_errors=None, context=None):
        return cls(
            ok=False,
            kind=kind,
            msg=msg,
            field_errors=field_errors or {},
            context=context or {},
        )

    @classmethod
    def from_exception(cls, exc: SalesError):
        return cls.error(exc.kind, exc.msg, field_errors=exc.field_errors, context=exc.context)

    def has_field_errors(self) -> bool:
        return bool(self.field_errors)

    def get_field_error(self, field_name: str) -> List[str]:
        return self.field_errors.get(field_name, [])

    def is_validation_error(self) -> bool:
        return self.kind == ErrorKind.VALIDATION


def field_errors_from_pydantic(exc: PydanticValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        name = ".".join(str(part) for part in err["loc"]) or "__root__"
        errors.setdefault(name, []).append(err["msg"])
    return errors


def service_operation(operation: str):
    """
    Wrap an async service method so it always returns a Result.

    SalesError subclasses become tagged errors; server faults are logged with
    their context. Any other database failure is reported as a generic
    StorageError without leaking driver detail.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Result:
            try:
                data = await func(*args, **kwargs)
            except SalesError as e:
                if e.kind in SERVER_FAULT_KINDS:
                    logger.error(
                        f"{operation} failed: {e.kind.value}: {e.msg}",
                        extra={"context": {"operation": operation, **e.context}},
                    )
                else:
                    logger.debug(f"{operation} rejected: {e.kind.value}: {e.msg}")
                return Result.from_exception(e)
            except PydanticValidationError as e:
                return Result.error(
                    ErrorKind.VALIDATION,
                    "Invalid input",
                    field_errors=field_errors_from_pydantic(e),
                )
            except SQLAlchemyError as e:
                logger.error(
                    f"{operation} failed with a storage error: {e}",
                    extra={"context": {"operation": operation}},
                )
                return Result.error(ErrorKind.STORAGE, "Storage operation failed")
            return Result.success(data)

        return wrapper

    return decorator
