from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from app.api.http.errors import to_http_exception
from app.core.auth import get_current_subject
from app.core.config import settings
from app.core.db import get_db
from app.core.errors import DomainError
from app.domains.identity.entities import Subject
from app.domains.sharing.entities import ShareLink
from app.domains.sharing.schemas import (
    ShareLinkCreate, ShareLinkInfo, ShareLinkIssued, ShareLinkResolved,
    AcceptanceResponse, ShareLinkListResponse
)
from app.domains.sharing.services import ShareLinkManager

router = APIRouter(tags=["sharing"])


def _link_info(link: ShareLink) -> ShareLinkInfo:
    return ShareLinkInfo(
        uuid=link.uuid,
        document_id=link.document_id,
        permission=link.tier,
        created_by=link.created_by,
        created_at=link.created_at,
        expires_at=link.expires_at,
        single_use=link.single_use
    )


@router.post(
    "/documents/{document_uuid}/share-link",
    response_model=ShareLinkIssued,
    status_code=status.HTTP_201_CREATED
)
async def create_share_link(
    document_uuid: uuid.UUID,
    link_data: ShareLinkCreate,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Выпуск ссылки доступа (editor и выше)"""
    try:
        issued = await ShareLinkManager(db).issue(
            document_uuid,
            subject,
            link_data.permission,
            expires_at=link_data.expires_at,
            single_use=link_data.single_use
        )
    except (DomainError, ValueError) as e:
        raise to_http_exception(e)

    url = settings.share_url(issued.token)
    return ShareLinkIssued(link=_link_info(issued.link), share_link=url, shareLink=url)


@router.get("/documents/{document_uuid}/share-links", response_model=ShareLinkListResponse)
async def list_share_links(
    document_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Действующие ссылки документа"""
    try:
        links = await ShareLinkManager(db).list_for_document(document_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)

    return ShareLinkListResponse(links=[_link_info(link) for link in links])


@router.delete("/documents/{document_uuid}/share-links/{link_uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_share_link_by_id(
    document_uuid: uuid.UUID,
    link_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Отзыв ссылки из списка ссылок документа"""
    try:
        await ShareLinkManager(db).revoke_by_id(document_uuid, link_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)


@router.get("/share/{token}", response_model=ShareLinkResolved)
async def resolve_share_link(
    token: str,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Проверка ссылки перед принятием"""
    try:
        link = await ShareLinkManager(db).resolve(token)
    except DomainError as e:
        raise to_http_exception(e)

    return ShareLinkResolved(
        document_id=link.document_id,
        permission=link.tier,
        expires_at=link.expires_at,
        single_use=link.single_use
    )


@router.post("/share/{token}/accept", response_model=AcceptanceResponse)
async def accept_share_link(
    token: str,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Погашение ссылки: текущий пользователь становится соавтором"""
    try:
        acceptance = await ShareLinkManager(db).consume(token, subject)
    except DomainError as e:
        raise to_http_exception(e)

    return AcceptanceResponse(document_id=acceptance.document_id, permission=acceptance.tier)


@router.delete("/share/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_share_link(
    token: str,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Отзыв ссылки по токену"""
    try:
        await ShareLinkManager(db).revoke(token, subject)
    except DomainError as e:
        raise to_http_exception(e)
