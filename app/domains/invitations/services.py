import asyncio
import logging
from datetime import timedelta
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from email_validator import validate_email, EmailNotValidError

from app.core.config import settings
from app.core.db import commit_with_retries
from app.core.errors import (
    AccessDenied, DeliveryFailure, InvalidEmail, InvitationClosed, InvitationNotFound
)
from app.core.locks import document_locks
from app.core.security import utcnow
from app.db.repositories.invitation_repository import InvitationRepository
from app.db.repositories.share_link_repository import ShareLinkRepository
from app.domains.documents.services import DocumentStore
from app.domains.identity.entities import Subject
from app.domains.invitations.entities import Invitation, InvitationResult, InvitationStatus
from app.domains.permissions.tiers import Tier, tier_satisfies, parse_grantable_tier
from app.domains.sharing.entities import Acceptance
from app.domains.sharing.services import ShareLinkManager
from app.infrastructure.email import EmailSender, render_invitation

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Проверка синтаксиса адреса и приведение к нижнему регистру"""
    try:
        result = validate_email(email or "", check_deliverability=False)
    except EmailNotValidError as e:
        raise InvalidEmail(str(e)) from e
    return result.normalized.lower()


class InvitationService:
    """Приглашения по email.

    Принятие всегда сводится к погашению прикрепленной ссылки через
    ShareLinkManager; выдачи напрямую сервис не пишет.
    """

    def __init__(self, session: AsyncSession, email_sender: Optional[EmailSender] = None):
        self.session = session
        self.email_sender = email_sender
        self.invitation_repository = InvitationRepository(session)
        self.link_repository = ShareLinkRepository(session)
        self.document_store = DocumentStore(session)

    async def invite(self, document_uuid: uuid.UUID, subject: Subject, email: str, tier) -> InvitationResult:
        """Приглашение адреса на документ; нужен уровень не ниже editor.

        Повторное приглашение той же пары, пока предыдущее ожидает,
        обновляет существующую запись: старая ссылка отзывается,
        прикрепляется новая. Письмо отправляется после коммита и вне
        блокировки документа; неудача доставки не отменяет приглашение.
        """
        address = normalize_email(email)
        tier = parse_grantable_tier(tier)
        links = ShareLinkManager(self.session)

        async def operation():
            now = utcnow()
            expires_at = now + timedelta(hours=settings.invitation_ttl_hours)

            access = await self.document_store.authorize(document_uuid, subject, Tier.EDITOR)
            if not tier_satisfies(access.tier, tier):
                raise AccessDenied("Cannot invite above your own access level")

            pending = await self.invitation_repository.get_pending(document_uuid, address)
            if pending is not None and not pending.is_pending(now):
                # Истекшая по TTL запись закрывается, чтобы освободить пару
                await self._close(pending, "expired")
                pending = None

            issued = await links.create_link(document_uuid, subject.user_id, tier, expires_at)

            if pending is None:
                invitation = await self.invitation_repository.create(
                    email=address,
                    document_id=document_uuid,
                    tier=tier,
                    invited_by=subject.user_id,
                    share_link_id=issued.link.uuid,
                    expires_at=expires_at
                )
                return access.document, invitation, issued.token, False

            if pending.share_link_id is not None:
                await self.link_repository.revoke(pending.share_link_id, "replaced")
            invitation = await self.invitation_repository.refresh(
                pending.uuid,
                tier=tier,
                invited_by=subject.user_id,
                share_link_id=issued.link.uuid,
                expires_at=expires_at
            )
            return access.document, invitation, issued.token, True

        async with document_locks.get(document_uuid):
            document, invitation, token, refreshed = await commit_with_retries(self.session, operation)

        logger.info(
            "Invitation %s %s for %s (%s) by %s",
            invitation.uuid, "refreshed" if refreshed else "created",
            document_uuid, tier.value, subject.user_id
        )

        delivered = await self._deliver(invitation, document.title, subject.email, token)
        if delivered:
            message = f"Invitation sent to {address}"
        else:
            message = f"Could not email {address}; share the link manually"

        return InvitationResult(
            invitation=invitation,
            token=token,
            delivered=delivered,
            refreshed=refreshed,
            message=message
        )

    async def _deliver(self, invitation: Invitation, title: str, inviter_email: str, token: str) -> bool:
        """Best-effort отправка письма. Ошибки логируются и не пробрасываются"""
        if self.email_sender is None:
            return False

        subject_line, text_body, html_body = render_invitation(
            title, inviter_email, invitation.tier.value, settings.share_url(token)
        )
        try:
            message_id = await asyncio.wait_for(
                asyncio.to_thread(
                    self.email_sender.send, invitation.email, subject_line, text_body, html_body
                ),
                timeout=settings.email_timeout_seconds
            )
        except DeliveryFailure as e:
            logger.warning("Invitation %s not delivered: %s", invitation.uuid, e.message)
            return False
        except asyncio.TimeoutError:
            logger.error("Invitation %s delivery timed out", invitation.uuid)
            return False
        except Exception:
            logger.exception("Invitation %s delivery failed", invitation.uuid)
            return False

        logger.info("Invitation %s delivered: %s", invitation.uuid, message_id)
        return True

    async def accept(self, invitation_uuid: uuid.UUID, subject: Subject) -> Acceptance:
        """Принятие приглашения адресатом.

        Сводится к тому же погашению ссылки, что и переход по ссылке,
        поэтому порядок двух путей значения не имеет.
        """
        invitation = await self.invitation_repository.get_by_uuid(invitation_uuid)
        if invitation is None:
            raise InvitationNotFound()
        if invitation.email != subject.email.lower():
            raise AccessDenied("This invitation is addressed to another email")

        status = invitation.effective_status()
        if status == InvitationStatus.EXPIRED or invitation.share_link_id is None:
            raise InvitationClosed()
        if status == InvitationStatus.ACCEPTED and invitation.accepted_by != subject.user_id:
            raise InvitationClosed()

        return await ShareLinkManager(self.session).consume_by_id(invitation.share_link_id, subject)

    async def revoke(self, invitation_uuid: uuid.UUID, subject: Subject) -> Invitation:
        """Отзыв ожидающего приглашения; нужен уровень не ниже editor"""
        invitation = await self.invitation_repository.get_by_uuid(invitation_uuid)
        if invitation is None:
            raise InvitationNotFound()

        async with document_locks.get(invitation.document_id):
            await self.document_store.authorize(invitation.document_id, subject, Tier.EDITOR)
            current = await self.invitation_repository.get_by_uuid(invitation_uuid)
            if current.status != InvitationStatus.PENDING:
                raise InvitationClosed()
            await self._close(current, "revoked")
            await self.session.commit()

        logger.info("Invitation %s revoked by %s", invitation_uuid, subject.user_id)
        return await self.invitation_repository.get_by_uuid(invitation_uuid)

    async def list_for_document(self, document_uuid: uuid.UUID, subject: Subject) -> List[Invitation]:
        """Приглашения документа; нужен уровень не ниже editor"""
        await self.document_store.authorize(document_uuid, subject, Tier.EDITOR)
        return await self.invitation_repository.list_for_document(document_uuid)

    async def list_for_email(self, subject: Subject) -> List[Invitation]:
        """Ожидающие приглашения на адрес субъекта"""
        now = utcnow()
        invitations = await self.invitation_repository.list_pending_for_email(subject.email.lower())
        return [invitation for invitation in invitations if invitation.is_pending(now)]

    async def expire_for_document(self, document_uuid: uuid.UUID) -> int:
        """Каскад при удалении документа; без проверки прав и без коммита"""
        return await self.invitation_repository.expire_for_document(document_uuid)

    async def expire_for_link(self, link_uuid: uuid.UUID) -> bool:
        """Ссылка отозвана: ожидающее приглашение на ней истекает"""
        invitation = await self.invitation_repository.get_pending_by_link(link_uuid)
        if invitation is None:
            return False
        return await self.invitation_repository.mark_expired(invitation.uuid)

    async def mark_accepted_for_link(self, link_uuid: uuid.UUID, subject: Subject) -> bool:
        """Ссылка погашена: ожидающее приглашение на ней принято"""
        invitation = await self.invitation_repository.get_pending_by_link(link_uuid)
        if invitation is None:
            return False
        accepted = await self.invitation_repository.mark_accepted(invitation.uuid, subject.user_id)
        if accepted:
            logger.info("Invitation %s accepted by %s", invitation.uuid, subject.user_id)
        return accepted

    async def _close(self, invitation: Invitation, reason: str) -> None:
        await self.invitation_repository.mark_expired(invitation.uuid)
        if invitation.share_link_id is not None:
            await self.link_repository.revoke(invitation.share_link_id, reason)
