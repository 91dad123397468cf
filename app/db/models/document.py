from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.base import BaseModel


class Document(BaseModel):
    __tablename__ = "documents"

    title = Column(String(255), nullable=False)
    content = Column(Text, default="", nullable=False)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    owner = relationship("User", back_populates="owned_documents")
    grants = relationship("CollaboratorGrant", back_populates="document", cascade="all, delete-orphan")


class CollaboratorGrant(BaseModel):
    __tablename__ = "collaborator_grants"
    __table_args__ = (
        UniqueConstraint("document_id", "user_id", name="uq_grant_document_user"),
    )

    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.uuid"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False, index=True)
    tier = Column(String(16), nullable=False)

    # Relationships
    document = relationship("Document", back_populates="grants")
    user = relationship("User")
