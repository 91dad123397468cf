from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from app.api.http.errors import to_http_exception
from app.core.auth import get_current_subject
from app.core.config import settings
from app.core.db import get_db
from app.core.errors import DomainError
from app.domains.identity.entities import Subject
from app.domains.invitations.entities import Invitation
from app.domains.invitations.schemas import (
    InvitationCreate, InvitationResponse, InvitationSentResponse, InvitationListResponse
)
from app.domains.invitations.services import InvitationService
from app.domains.sharing.schemas import AcceptanceResponse
from app.infrastructure.email import EmailSender, get_email_sender

router = APIRouter(tags=["invitations"])


def _invitation_response(invitation: Invitation) -> InvitationResponse:
    return InvitationResponse(
        uuid=invitation.uuid,
        email=invitation.email,
        document_id=invitation.document_id,
        permission=invitation.tier,
        invited_by=invitation.invited_by,
        status=invitation.effective_status(),
        created_at=invitation.created_at,
        expires_at=invitation.expires_at,
        accepted_at=invitation.accepted_at
    )


@router.post("/documents/{document_uuid}/send-invitation", response_model=InvitationSentResponse)
async def send_invitation(
    document_uuid: uuid.UUID,
    invitation_data: InvitationCreate,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender)
):
    """Приглашение по email. Неудачная отправка письма не ошибка: ссылка возвращается всегда"""
    service = InvitationService(db, email_sender=email_sender)
    try:
        result = await service.invite(
            document_uuid, subject, invitation_data.email, invitation_data.permission
        )
    except (DomainError, ValueError) as e:
        raise to_http_exception(e)

    url = settings.share_url(result.token)
    return InvitationSentResponse(
        message=result.message,
        delivered=result.delivered,
        invitation=_invitation_response(result.invitation),
        share_link=url,
        shareLink=url
    )


@router.get("/documents/{document_uuid}/invitations", response_model=InvitationListResponse)
async def list_document_invitations(
    document_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Приглашения документа (editor и выше)"""
    try:
        invitations = await InvitationService(db).list_for_document(document_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)

    return InvitationListResponse(invitations=[_invitation_response(inv) for inv in invitations])


@router.get("/invitations/", response_model=InvitationListResponse)
async def list_my_invitations(
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Ожидающие приглашения на email текущего пользователя"""
    invitations = await InvitationService(db).list_for_email(subject)
    return InvitationListResponse(invitations=[_invitation_response(inv) for inv in invitations])


@router.post("/invitations/{invitation_uuid}/accept", response_model=AcceptanceResponse)
async def accept_invitation(
    invitation_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Принятие приглашения адресатом"""
    try:
        acceptance = await InvitationService(db).accept(invitation_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)

    return AcceptanceResponse(document_id=acceptance.document_id, permission=acceptance.tier)


@router.delete("/invitations/{invitation_uuid}", response_model=InvitationResponse)
async def revoke_invitation(
    invitation_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Отзыв ожидающего приглашения"""
    try:
        invitation = await InvitationService(db).revoke(invitation_uuid, subject)
    except DomainError as e:
        raise to_http_exception(e)

    return _invitation_response(invitation)
