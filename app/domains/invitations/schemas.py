from pydantic import BaseModel, Field
from typing import Optional, List
import uuid
from datetime import datetime

from app.domains.invitations.entities import InvitationStatus
from app.domains.permissions.tiers import Tier


class InvitationCreate(BaseModel):
    """Схема для приглашения по email.

    Адрес проверяется сервисом, чтобы ошибка была InvalidEmail (400), а не 422.
    """
    email: str = Field(..., max_length=320)
    permission: Tier = Tier.VIEWER


class InvitationResponse(BaseModel):
    """Схема приглашения"""
    uuid: uuid.UUID
    email: str
    document_id: uuid.UUID
    permission: Tier
    invited_by: uuid.UUID
    status: InvitationStatus
    created_at: datetime
    expires_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None


class InvitationSentResponse(BaseModel):
    """Ответ на приглашение: ссылка отдается всегда, как запасной путь"""
    success: bool = True
    message: str
    delivered: bool
    invitation: InvitationResponse
    share_link: str
    shareLink: str


class InvitationListResponse(BaseModel):
    invitations: List[InvitationResponse]
