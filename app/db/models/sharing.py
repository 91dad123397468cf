from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Uuid, Index, text
from sqlalchemy.orm import relationship

from app.db.base import BaseModel


class ShareLink(BaseModel):
    __tablename__ = "share_links"

    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.uuid"), nullable=False, index=True)
    tier = Column(String(16), nullable=False)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False)
    expires_at = Column(DateTime, nullable=True)
    single_use = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    revoke_reason = Column(String(32), nullable=True)

    # Relationships
    document = relationship("Document")


class Invitation(BaseModel):
    __tablename__ = "invitations"
    __table_args__ = (
        # Не больше одного pending приглашения на пару (документ, email)
        Index(
            "uq_invitation_pending",
            "document_id", "email",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    email = Column(String(255), nullable=False, index=True)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.uuid"), nullable=False, index=True)
    tier = Column(String(16), nullable=False)
    invited_by = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    share_link_id = Column(Uuid(as_uuid=True), ForeignKey("share_links.uuid"), nullable=True)
    expires_at = Column(DateTime, nullable=True)
    accepted_by = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=True)
    accepted_at = Column(DateTime, nullable=True)

    # Relationships
    document = relationship("Document")
    share_link = relationship("ShareLink")
