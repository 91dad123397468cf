from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import uuid

from app.api.http.errors import to_http_exception
from app.core.auth import get_current_subject
from app.core.db import get_db
from app.core.errors import DomainError
from app.domains.documents.entities import Document
from app.domains.documents.schemas import (
    DocumentCreate, DocumentUpdate, DocumentResponse, DocumentListResponse,
    DocumentAccessResponse, GrantRequest, CollaboratorResponse
)
from app.domains.documents.services import DocumentStore
from app.domains.identity.entities import Subject
from app.domains.permissions.tiers import Tier

router = APIRouter(prefix="/documents", tags=["documents"])


def _document_response(
    document: Document,
    access: Optional[Tier] = None,
    collaborators_count: Optional[int] = None
) -> DocumentResponse:
    return DocumentResponse(
        uuid=document.uuid,
        title=document.title,
        content=document.content,
        owner_id=document.owner_id,
        created_at=document.created_at,
        updated_at=document.updated_at,
        word_count=document.get_word_count(),
        content_length=document.get_content_length(),
        access=access,
        collaborators_count=collaborators_count
    )


@router.post("/", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    document_data: DocumentCreate,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Создание нового документа"""
    document = await DocumentStore(db).create(subject, document_data.title, document_data.content)
    return _document_response(document, Tier.OWNER, 0)


@router.get("/", response_model=DocumentListResponse)
async def get_user_documents(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Документы пользователя: свои и общие, недавно измененные первыми"""
    offset = (page - 1) * per_page
    documents, total = await DocumentStore(db).list(subject, limit=per_page, offset=offset)

    return DocumentListResponse(
        documents=[
            _document_response(access.document, access.tier, access.collaborators_count)
            for access in documents
        ],
        total=total,
        page=page,
        per_page=per_page
    )


@router.get("/{document_uuid}", response_model=DocumentResponse)
async def get_document(
    document_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Получение документа по UUID"""
    store = DocumentStore(db)
    try:
        access = await store.get(document_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)

    return _document_response(access.document, access.tier, await store.count_grants(document_uuid))


@router.put("/{document_uuid}", response_model=DocumentResponse)
async def update_document(
    document_uuid: uuid.UUID,
    update_data: DocumentUpdate,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Обновление документа"""
    try:
        access = await DocumentStore(db).update(document_uuid, subject, update_data)
    except DomainError as e:
        raise to_http_exception(e)

    return _document_response(access.document, access.tier)


@router.delete("/{document_uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Удаление документа владельцем"""
    try:
        await DocumentStore(db).delete(document_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)


@router.get("/{document_uuid}/access", response_model=DocumentAccessResponse)
async def get_document_access(
    document_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Информация о доступе текущего пользователя к документу"""
    store = DocumentStore(db)
    try:
        access = await store.get(document_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)

    return DocumentAccessResponse(
        document_id=access.document.uuid,
        owner_id=access.document.owner_id,
        tier=access.tier,
        can_edit=access.can_edit,
        is_owner=access.is_owner,
        collaborators_count=await store.count_grants(document_uuid)
    )


@router.get("/{document_uuid}/collaborators", response_model=List[CollaboratorResponse])
async def get_collaborators(
    document_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Соавторы документа"""
    try:
        grants = await DocumentStore(db).list_grants(document_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)

    return [
        CollaboratorResponse(
            user_id=user.uuid,
            username=user.username,
            email=user.email,
            avatar_url=user.avatar_url,
            tier=grant.tier,
            granted_at=grant.created_at
        )
        for grant, user in grants
    ]


@router.put("/{document_uuid}/collaborators/{user_uuid}", response_model=CollaboratorResponse)
async def set_collaborator(
    document_uuid: uuid.UUID,
    user_uuid: uuid.UUID,
    grant_data: GrantRequest,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Выдача или изменение доступа соавтора (только владелец)"""
    store = DocumentStore(db)
    try:
        grant = await store.upsert_grant(document_uuid, subject, user_uuid, grant_data.permission)
        user = await store.user_repository.get_by_uuid(user_uuid)
    except (DomainError, ValueError) as e:
        raise to_http_exception(e)

    return CollaboratorResponse(
        user_id=user.uuid,
        username=user.username,
        email=user.email,
        avatar_url=user.avatar_url,
        tier=grant.tier,
        granted_at=grant.created_at
    )


@router.delete("/{document_uuid}/collaborators/{user_uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_collaborator(
    document_uuid: uuid.UUID,
    user_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Отзыв доступа соавтора; соавтор может удалить себя сам"""
    try:
        removed = await DocumentStore(db).remove_grant(document_uuid, subject, user_uuid)
    except DomainError as e:
        raise to_http_exception(e)

    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Collaborator not found"
        )
