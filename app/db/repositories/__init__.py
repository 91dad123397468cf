from app.db.repositories.user_repository import UserRepository, AuthSessionRepository
from app.db.repositories.document_repository import DocumentRepository, GrantRepository
from app.db.repositories.share_link_repository import ShareLinkRepository
from app.db.repositories.invitation_repository import InvitationRepository

__all__ = [
    "UserRepository",
    "AuthSessionRepository",
    "DocumentRepository",
    "GrantRepository",
    "ShareLinkRepository",
    "InvitationRepository"
]
