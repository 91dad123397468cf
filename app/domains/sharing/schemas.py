from pydantic import BaseModel
from typing import Optional, List
import uuid
from datetime import datetime

from app.domains.permissions.tiers import Tier


class ShareLinkCreate(BaseModel):
    """Схема для выпуска ссылки доступа"""
    permission: Tier = Tier.VIEWER
    expires_at: Optional[datetime] = None
    single_use: bool = False


class ShareLinkInfo(BaseModel):
    """Ссылка в списке ссылок документа (без токена)"""
    uuid: uuid.UUID
    document_id: uuid.UUID
    permission: Tier
    created_by: uuid.UUID
    created_at: datetime
    expires_at: Optional[datetime] = None
    single_use: bool


class ShareLinkIssued(BaseModel):
    """Ответ на выпуск ссылки.

    Модальное окно фронтенда читает shareLink, поэтому отдаются оба имени.
    """
    success: bool = True
    link: ShareLinkInfo
    share_link: str
    shareLink: str


class ShareLinkResolved(BaseModel):
    """Проверка ссылки перед принятием"""
    document_id: uuid.UUID
    permission: Tier
    expires_at: Optional[datetime] = None
    single_use: bool


class AcceptanceResponse(BaseModel):
    """Результат погашения ссылки или принятия приглашения"""
    success: bool = True
    document_id: uuid.UUID
    permission: Tier


class ShareLinkListResponse(BaseModel):
    links: List[ShareLinkInfo]
