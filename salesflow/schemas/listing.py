"""
Listing filters and page envelope
"""
from datetime import date
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class DocumentFilters(BaseModel):
    status: Optional[str] = None
    company_id: Optional[str] = None
    search: Optional[str] = None  # document number contains
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    class Config:
        extra = "forbid"


class Page(BaseModel):
    items: List[Any]
    total: int
    page: int
    page_size: int
