from app.db.models.user import User, AuthSession
from app.db.models.document import Document, CollaboratorGrant
from app.db.models.sharing import ShareLink, Invitation

__all__ = [
    "User",
    "AuthSession",
    "Document",
    "CollaboratorGrant",
    "ShareLink",
    "Invitation"
]
