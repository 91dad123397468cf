import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from app.core.security import utcnow
from app.domains.permissions.tiers import Tier


class InvitationStatus(str, Enum):
    """Состояние приглашения. Из accepted и expired переходов нет"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Invitation:
    """Приглашение на адрес email, превращаемое в выдачу при принятии"""

    def __init__(
        self,
        uuid: uuid.UUID,
        email: str,
        document_id: uuid.UUID,
        tier: Tier,
        invited_by: uuid.UUID,
        status: InvitationStatus = InvitationStatus.PENDING,
        share_link_id: Optional[uuid.UUID] = None,
        expires_at: Optional[datetime] = None,
        accepted_by: Optional[uuid.UUID] = None,
        accepted_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.email = email
        self.document_id = document_id
        self.tier = tier
        self.invited_by = invited_by
        self.status = status
        self.share_link_id = share_link_id
        self.expires_at = expires_at
        self.accepted_by = accepted_by
        self.accepted_at = accepted_at
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    def effective_status(self, now: Optional[datetime] = None) -> InvitationStatus:
        """Статус с учетом TTL; истечение вычисляется при чтении"""
        if self.status == InvitationStatus.PENDING and self.expires_at is not None:
            if (now or utcnow()) >= self.expires_at:
                return InvitationStatus.EXPIRED
        return self.status

    def is_pending(self, now: Optional[datetime] = None) -> bool:
        return self.effective_status(now) == InvitationStatus.PENDING

    def __repr__(self) -> str:
        return f"Invitation(uuid={self.uuid}, email={self.email}, status={self.status.value})"


@dataclass
class InvitationResult:
    """Результат приглашения: письмо доставляется отдельно от выдачи"""
    invitation: Invitation
    token: str
    delivered: bool
    refreshed: bool
    message: str
