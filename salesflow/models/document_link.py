"""
Document chain edges - append-only provenance log
"""
from sqlalchemy import Column, String, DateTime, Index
from salesflow.database import Base
from salesflow.models.mixins import new_id, utcnow


class DocumentLink(Base):
    """
    Directed edge recorded whenever a document is converted into another.

    No foreign keys: edges outlive their target documents, and the chain
    resolver reports dangling targets as missing.
    """
    __tablename__ = "document_links"
    __table_args__ = (
        Index("ix_document_links_source", "tenant_id", "from_type", "from_id"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False)
    from_type = Column(String(20), nullable=False)
    from_id = Column(String(36), nullable=False)
    to_type = Column(String(20), nullable=False)
    to_id = Column(String(36), nullable=False, index=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
