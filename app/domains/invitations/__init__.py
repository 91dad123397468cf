from app.domains.invitations.entities import Invitation, InvitationStatus, InvitationResult
from app.domains.invitations.schemas import (
    InvitationCreate, InvitationResponse, InvitationSentResponse, InvitationListResponse
)
from app.domains.invitations.services import InvitationService, normalize_email

__all__ = [
    "Invitation", "InvitationStatus", "InvitationResult",
    "InvitationCreate", "InvitationResponse", "InvitationSentResponse", "InvitationListResponse",
    "InvitationService", "normalize_email"
]
