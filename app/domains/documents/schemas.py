from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
import uuid
from datetime import datetime

from app.domains.permissions.tiers import Tier


class DocumentBase(BaseModel):
    """Базовая схема документа"""
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(default="", max_length=1000000)  # 1MB max content

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()


class DocumentCreate(DocumentBase):
    """Схема для создания документа"""
    pass


class DocumentUpdate(BaseModel):
    """Схема для обновления документа"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, max_length=1000000)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip() if v else v


class DocumentResponse(DocumentBase):
    """Схема для ответа с данными документа"""
    uuid: uuid.UUID
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    word_count: int
    content_length: int
    access: Optional[Tier] = None
    collaborators_count: Optional[int] = None


class DocumentListResponse(BaseModel):
    """Схема для списка документов"""
    documents: List[DocumentResponse]
    total: int
    page: int
    per_page: int


class DocumentAccessResponse(BaseModel):
    """Схема для ответа с информацией о доступе к документу"""
    document_id: uuid.UUID
    owner_id: uuid.UUID
    tier: Tier
    can_edit: bool
    is_owner: bool
    collaborators_count: int


class GrantRequest(BaseModel):
    """Схема для выдачи доступа соавтору"""
    permission: Tier = Tier.VIEWER


class CollaboratorResponse(BaseModel):
    """Схема соавтора документа"""
    user_id: uuid.UUID
    username: str
    email: str
    avatar_url: Optional[str] = None
    tier: Tier
    granted_at: datetime
