import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.core.errors import ShareLinkExpired, ShareLinkRevoked
from app.core.security import utcnow
from app.domains.documents.entities import CollaboratorGrant
from app.domains.permissions.tiers import Tier


class ShareLink:
    """Ссылка доступа: предъявитель получает фиксированный уровень"""

    def __init__(
        self,
        uuid: uuid.UUID,
        document_id: uuid.UUID,
        tier: Tier,
        created_by: uuid.UUID,
        created_at: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
        single_use: bool = False,
        revoked_at: Optional[datetime] = None,
        revoke_reason: Optional[str] = None
    ):
        self.uuid = uuid
        self.document_id = document_id
        self.tier = tier
        self.created_by = created_by
        self.created_at = created_at or utcnow()
        self.expires_at = expires_at
        self.single_use = single_use
        self.revoked_at = revoked_at
        self.revoke_reason = revoke_reason

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def ensure_usable(self, now: Optional[datetime] = None) -> None:
        """Проверка в момент обращения, а не в момент записи"""
        if self.is_revoked:
            raise ShareLinkRevoked()
        if self.is_expired(now):
            raise ShareLinkExpired()

    def __repr__(self) -> str:
        return f"ShareLink(uuid={self.uuid}, document_id={self.document_id}, tier={self.tier.value})"


@dataclass
class IssuedShareLink:
    """Только что выпущенная ссылка. Токен в открытом виде есть только здесь"""
    link: ShareLink
    token: str


@dataclass
class Acceptance:
    """Результат погашения ссылки"""
    document_id: uuid.UUID
    user_id: uuid.UUID
    tier: Tier
    grant: Optional[CollaboratorGrant] = None
