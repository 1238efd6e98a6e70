"""
Document number generation and the bounded collision-retry combinator
"""
import asyncio
import logging
import random
from datetime import date
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.config import get_settings
from salesflow.utils.db_compat import classify_integrity_error
from salesflow.utils.errors import InvalidInput, NumberGenerationExhausted

settings = get_settings()
logger = logging.getLogger(__name__)

T = TypeVar("T")

# How many of the highest numbers to scan for a numeric suffix; custom
# numbers sharing the prefix may sort above the generated ones.
_SCAN_LIMIT = 20


class NumberGenerator:
    """
    Mint `<PREFIX>-<YEAR>-<NNNNN>` numbers, counted per document type and year.

    The read-max-then-add-one step can race between concurrent writers; the
    unique constraint on the number column catches that and
    `with_number_retry` mints a fresh one.
    """

    def __init__(self, padding: Optional[int] = None):
        self.padding = padding or settings.NUMBER_PADDING

    def format(self, prefix: str, year: int, sequence: int) -> str:
        return f"{prefix}-{year}-{sequence:0{self.padding}d}"

    async def next_number(self, session: AsyncSession, descriptor, on: Optional[date] = None) -> str:
        year = (on or date.today()).year
        stem = f"{descriptor.prefix}-{year}-"
        column = descriptor.number_column

        result = await session.execute(
            select(column)
            .where(column.like(f"{stem}%"))
            .order_by(func.length(column).desc(), column.desc())
            .limit(_SCAN_LIMIT)
        )

        last = 0
        for number in result.scalars():
            suffix = number[len(stem):]
            if suffix.isdigit():
                last = int(suffix)
                break

        return self.format(descriptor.prefix, year, last + 1)


async def with_number_retry(
    unit_of_work: Callable[[], Awaitable[T]],
    constraint: str,
    document_type: str,
    attempts: Optional[int] = None,
    max_delay_ms: Optional[int] = None,
) -> T:
    """
    Run `unit_of_work` (a whole transaction that mints a number and inserts
    with it) until it commits without violating `constraint`.

    Any other error propagates on the first attempt. When every attempt
    collides, NumberGenerationExhausted is raised.
    """
    attempts = attempts or settings.NUMBER_RETRY_ATTEMPTS
    max_delay_ms = settings.NUMBER_RETRY_MAX_DELAY_MS if max_delay_ms is None else max_delay_ms

    for attempt in range(1, attempts + 1):
        try:
            return await unit_of_work()
        except IntegrityError as e:
            if not classify_integrity_error(e).is_unique_violation(constraint):
                raise
            logger.debug(f"{document_type} number collision on attempt {attempt}/{attempts}")
            if attempt < attempts:
                await asyncio.sleep(random.uniform(0, max_delay_ms) / 1000)

    raise NumberGenerationExhausted(
        f"Could not generate a unique {document_type} number",
        context={"document_type": document_type, "attempts": attempts},
    )


async def with_fixed_number(
    unit_of_work: Callable[[], Awaitable[T]],
    constraint: str,
    number_field: str,
    number: str,
) -> T:
    """Run once with a caller-chosen number; a collision is the caller's input error"""
    try:
        return await unit_of_work()
    except IntegrityError as e:
        if not classify_integrity_error(e).is_unique_violation(constraint):
            raise
        raise InvalidInput(
            f"Number {number} is already in use",
            field_errors={number_field: ["Number is already in use"]},
        ) from e
