import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.core.security import utcnow
from app.domains.permissions.tiers import Tier


class Document:
    """Сущность документа домена Documents"""

    def __init__(
        self,
        uuid: uuid.UUID,
        title: str,
        content: str = "",
        owner_id: uuid.UUID = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        deleted_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.title = title
        self.content = content
        self.owner_id = owner_id
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()
        self.deleted_at = deleted_at

    def apply_patch(self, title: Optional[str] = None, content: Optional[str] = None) -> bool:
        """Изменение заголовка и/или содержимого. Возвращает, было ли изменение"""
        changed = False
        if title is not None and title != self.title:
            self.title = title
            changed = True
        if content is not None and content != self.content:
            self.content = content
            changed = True
        if changed:
            self.updated_at = utcnow()
        return changed

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def get_content_length(self) -> int:
        """Получение длины содержимого документа"""
        return len(self.content)

    def get_word_count(self) -> int:
        """Подсчет количества слов в документе"""
        if not self.content.strip():
            return 0
        return len(self.content.split())

    @classmethod
    def create_document(cls, title: str, owner_id: uuid.UUID, content: str = "") -> "Document":
        """Создание нового документа"""
        return cls(
            uuid=uuid.uuid4(),
            title=title,
            content=content,
            owner_id=owner_id
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Document):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"Document(uuid={self.uuid}, title={self.title})"


@dataclass
class CollaboratorGrant:
    """Постоянный доступ пользователя к документу"""
    document_id: uuid.UUID
    user_id: uuid.UUID
    tier: Tier
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class DocumentAccess:
    """Документ вместе с уровнем доступа запрашивающего"""
    document: Document
    tier: Tier
    collaborators_count: Optional[int] = None

    @property
    def is_owner(self) -> bool:
        return self.tier == Tier.OWNER

    @property
    def can_edit(self) -> bool:
        return self.tier in (Tier.OWNER, Tier.EDITOR)
