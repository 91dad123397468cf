from app.domains.documents.entities import Document, CollaboratorGrant, DocumentAccess
from app.domains.documents.schemas import (
    DocumentBase, DocumentCreate, DocumentUpdate, DocumentResponse,
    DocumentListResponse, DocumentAccessResponse, GrantRequest, CollaboratorResponse
)
from app.domains.documents.services import DocumentStore

__all__ = [
    "Document", "CollaboratorGrant", "DocumentAccess",
    "DocumentBase", "DocumentCreate", "DocumentUpdate", "DocumentResponse",
    "DocumentListResponse", "DocumentAccessResponse", "GrantRequest", "CollaboratorResponse",
    "DocumentStore"
]
