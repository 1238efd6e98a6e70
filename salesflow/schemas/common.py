"""
Shared schema pieces: line items and constrained numeric types
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, Field

from salesflow.utils.validators import validate_price, validate_quantity, validate_rate

Quantity = Annotated[Decimal, AfterValidator(validate_quantity)]
Price = Annotated[Decimal, AfterValidator(validate_price)]
Rate = Annotated[Decimal, AfterValidator(validate_rate)]


class LineItemIn(BaseModel):
    id: Optional[str] = None  # stable id of an existing line, for updates
    product_name: str = Field(min_length=1)
    description: Optional[str] = None
    quantity: Quantity
    unit_price: Price
    discount: Rate = Decimal("0")
    unit: Optional[str] = None
    vat_rate: Optional[Rate] = None

    class Config:
        extra = "forbid"


class DeliveryItemIn(BaseModel):
    """Delivery lines carry no discount and no per-item tax"""
    id: Optional[str] = None
    product_name: str = Field(min_length=1)
    description: Optional[str] = None
    quantity: Quantity
    unit_price: Price = Decimal("0")
    unit: Optional[str] = None

    class Config:
        extra = "forbid"


class LineItemRead(BaseModel):
    id: str
    product_name: str
    description: Optional[str]
    quantity: Decimal
    unit: str
    unit_price: Decimal
    discount: Decimal
    vat_rate: Optional[Decimal]
    total: Decimal

    class Config:
        from_attributes = True


class DeliveryItemRead(BaseModel):
    id: str
    product_name: str
    description: Optional[str]
    quantity: Decimal
    unit: str
    unit_price: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class DocumentRead(BaseModel):
    """Header fields common to every document type"""
    id: str
    tenant_id: str
    company_id: str
    seller_company_id: Optional[str]
    contact_id: Optional[str]
    status: str
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    notes: Optional[str]
    terms: Optional[str]
    from_details: Optional[Dict[str, Any]]
    customer_details: Optional[Dict[str, Any]]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
