"""
Monetary calculator for sales documents.

Pure functions over fixed-point decimals. Each line total is rounded half-up
to cents where it is computed; subtotal is the plain sum of rounded lines;
tax and VAT are computed independently against the subtotal.
"""
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Sequence, Union

Number = Union[Decimal, int, str, float]

CENTS = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert to Decimal via str() so floats do not carry binary noise"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def round_quantity(value: Number) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def line_total(quantity: Number, unit_price: Number, discount: Number = 0) -> Decimal:
    """quantity * unit_price * (1 - discount/100), rounded to cents"""
    factor = 1 - to_decimal(discount) / HUNDRED
    return round2(to_decimal(quantity) * to_decimal(unit_price) * factor)


def percentage_of(amount: Number, rate: Optional[Number]) -> Decimal:
    return round2(to_decimal(amount) * to_decimal(rate) / HUNDRED)


@dataclass(frozen=True)
class LineItem:
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal = Decimal("0")
    unit: str = "pcs"
    description: Optional[str] = None
    vat_rate: Optional[Decimal] = None
    id: Optional[str] = None
    total: Optional[Decimal] = None

    @classmethod
    def from_obj(cls, obj: Any, default_unit: str = "pcs") -> "LineItem":
        """Build from any object exposing line attributes (schema, ORM row)"""
        return cls(
            product_name=obj.product_name,
            quantity=to_decimal(obj.quantity),
            unit_price=to_decimal(obj.unit_price),
            discount=to_decimal(getattr(obj, "discount", None) or 0),
            unit=getattr(obj, "unit", None) or default_unit,
            description=getattr(obj, "description", None),
            vat_rate=getattr(obj, "vat_rate", None),
            id=getattr(obj, "id", None),
            total=getattr(obj, "total", None),
        )


@dataclass(frozen=True)
class Calculation:
    items: List[LineItem]
    subtotal: Decimal
    tax: Decimal
    vat: Optional[Decimal]
    total: Decimal


def _summarise(items: List[LineItem], tax_rate: Optional[Number], vat_rate: Optional[Number]) -> Calculation:
    subtotal = sum((item.total for item in items), ZERO)
    tax = percentage_of(subtotal, tax_rate)
    vat = percentage_of(subtotal, vat_rate) if vat_rate is not None else None
    total = subtotal + tax + (vat or ZERO)
    return Calculation(items=items, subtotal=subtotal, tax=tax, vat=vat, total=total)


def calculate(
    items: Iterable[Any],
    tax_rate: Optional[Number] = 0,
    vat_rate: Optional[Number] = None,
) -> Calculation:
    """
    Compute line totals and document totals.

    Args:
        items: line drafts (LineItem or anything LineItem.from_obj accepts)
        tax_rate: percentage applied to the subtotal
        vat_rate: invoices only; percentage applied to the subtotal,
            independent of tax

    Returns:
        Calculation with recomputed items. An empty list yields zero totals.
    """
    computed = []
    for item in items:
        line = item if isinstance(item, LineItem) else LineItem.from_obj(item)
        computed.append(replace(line, total=line_total(line.quantity, line.unit_price, line.discount)))
    return _summarise(computed, tax_rate, vat_rate)


def _settle(scaled: List[LineItem], subtotal: Optional[Number]) -> List[LineItem]:
    """Put the rounding residual against `subtotal` on the largest line"""
    if subtotal is None or not scaled:
        return scaled
    residual = round2(subtotal) - sum((item.total for item in scaled), ZERO)
    if residual:
        index = max(range(len(scaled)), key=lambda i: scaled[i].total)
        scaled[index] = replace(scaled[index], total=scaled[index].total + residual)
    return scaled


def scale_quantities(
    items: Sequence[LineItem],
    factor: Decimal,
    tax_rate: Optional[Number] = 0,
    subtotal: Optional[Number] = None,
) -> Calculation:
    """
    Scale every quantity by factor and price the scaled lines.

    Line totals are priced from the full-precision scaled quantity; the quantity on
    the returned line is rounded to QUANTITY_STEP for display only. When
    `subtotal` is given the lines are settled to sum to it exactly.
    """
    scaled = []
    for item in items:
        quantity = item.quantity * factor
        scaled.append(replace(
            item,
            quantity=round_quantity(quantity),
            total=line_total(quantity, item.unit_price, item.discount),
        ))
    return _summarise(_settle(scaled, subtotal), tax_rate, None)


def scale_totals(
    items: Sequence[LineItem],
    factor: Decimal,
    tax_rate: Optional[Number] = 0,
    subtotal: Optional[Number] = None,
) -> Calculation:
    """
    Scale each line total by factor (quantities follow for display) and
    summarise with the usual subtotal/tax rules. When `subtotal` is given
    the lines are settled to sum to it exactly.
    """
    scaled = []
    for item in items:
        base_total = item.total if item.total is not None else line_total(
            item.quantity, item.unit_price, item.discount
        )
        scaled.append(replace(
            item,
            quantity=round_quantity(item.quantity * factor),
            total=round2(to_decimal(base_total) * factor),
        ))
    return _summarise(_settle(scaled, subtotal), tax_rate, None)


def settle_total(calc: Calculation, total: Number) -> Calculation:
    """Pin a scaled calculation to `total`, carrying the cent difference on tax"""
    total = round2(total)
    if calc.total == total:
        return calc
    return replace(calc, tax=total - calc.subtotal - (calc.vat or ZERO), total=total)
