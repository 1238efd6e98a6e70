"""
Tenant model - top-level isolation boundary
"""
from sqlalchemy import Column, String, DateTime, Boolean
from salesflow.database import Base
from salesflow.models.mixins import new_id, utcnow


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
