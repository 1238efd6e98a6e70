"""
Company models - the tenant's own selling entities and its customers
"""
from enum import Enum

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from salesflow.database import Base
from salesflow.models.mixins import new_id, utcnow


class CompanyKind(str, Enum):
    SELLER = "seller"
    CUSTOMER = "customer"


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    kind = Column(String(20), nullable=False, default=CompanyKind.CUSTOMER.value)
    name = Column(String, nullable=False)

    # Address
    address = Column(Text, nullable=True)
    city = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    country = Column(String, nullable=True)

    # Contact
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    website = Column(String, nullable=True)
    vat_number = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    members = relationship("CompanyMember", back_populates="company", cascade="all, delete-orphan")


class CompanyMember(Base):
    """CRM membership of a user in a company"""
    __tablename__ = "company_members"
    __table_args__ = (
        UniqueConstraint("company_id", "user_id", name="uq_company_members_company_user"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member")

    company = relationship("Company", back_populates="members")
