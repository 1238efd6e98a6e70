"""
Database compatibility helpers for SQLite and PostgreSQL.

Integrity errors look different per driver; these helpers turn them into a
structured Conflict so callers can match on the constraint name.
"""
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, Optional, Tuple

from sqlalchemy import MetaData, UniqueConstraint
from sqlalchemy.exc import IntegrityError

from salesflow.database import Base


class ConflictKind(str, Enum):
    UNIQUE = "unique"
    FOREIGN_KEY = "foreign_key"
    NOT_NULL = "not_null"
    OTHER = "other"


@dataclass(frozen=True)
class Conflict:
    kind: ConflictKind
    constraint: Optional[str] = None

    def is_unique_violation(self, constraint: str) -> bool:
        return self.kind == ConflictKind.UNIQUE and self.constraint == constraint


_PG_SQLSTATES = {
    "23505": ConflictKind.UNIQUE,
    "23503": ConflictKind.FOREIGN_KEY,
    "23502": ConflictKind.NOT_NULL,
}

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w.]+(?:, [\w.]+)*)")


@lru_cache(maxsize=None)
def _unique_constraint_lookup(metadata: MetaData) -> Dict[Tuple[str, Tuple[str, ...]], str]:
    """(table, columns) -> constraint name, for every named unique constraint"""
    lookup = {}
    for table in metadata.tables.values():
        for constraint in table.constraints:
            if isinstance(constraint, UniqueConstraint) and constraint.name:
                columns = tuple(column.name for column in constraint.columns)
                lookup[(table.name, columns)] = constraint.name
    return lookup


def _classify_postgres(orig) -> Optional[Conflict]:
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if not sqlstate:
        return None

    # asyncpg keeps the driver exception as the cause; psycopg exposes diag
    constraint = getattr(orig.__cause__, "constraint_name", None)
    if constraint is None:
        constraint = getattr(getattr(orig, "diag", None), "constraint_name", None)

    return Conflict(_PG_SQLSTATES.get(str(sqlstate), ConflictKind.OTHER), constraint)


def _classify_sqlite(message: str, metadata: MetaData) -> Conflict:
    match = _SQLITE_UNIQUE.search(message)
    if match:
        qualified = [part.strip() for part in match.group("columns").split(",")]
        table = qualified[0].split(".")[0]
        columns = tuple(part.split(".")[-1] for part in qualified)
        constraint = _unique_constraint_lookup(metadata).get((table, columns))
        return Conflict(ConflictKind.UNIQUE, constraint or f"{table}.{'_'.join(columns)}")
    if "FOREIGN KEY constraint failed" in message:
        return Conflict(ConflictKind.FOREIGN_KEY)
    if "NOT NULL constraint failed" in message:
        return Conflict(ConflictKind.NOT_NULL)
    return Conflict(ConflictKind.OTHER)


def classify_integrity_error(exc: IntegrityError, metadata: MetaData = Base.metadata) -> Conflict:
    """Describe which constraint an IntegrityError violated"""
    orig = getattr(exc, "orig", None)
    if orig is not None:
        conflict = _classify_postgres(orig)
        if conflict is not None:
            return conflict
    return _classify_sqlite(str(orig if orig is not None else exc), metadata)
