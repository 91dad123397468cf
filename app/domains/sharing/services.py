import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from app.core.db import commit_with_retries
from app.core.errors import AccessDenied, ShareLinkNotFound, ShareLinkRevoked
from app.core.locks import document_locks
from app.core.security import generate_share_token, hash_share_token, utcnow
from app.db.repositories.share_link_repository import ShareLinkRepository
from app.domains.documents.services import DocumentStore
from app.domains.identity.entities import Subject
from app.domains.permissions.tiers import Tier, tier_satisfies, parse_grantable_tier
from app.domains.sharing.entities import ShareLink, IssuedShareLink, Acceptance

logger = logging.getLogger(__name__)


class ShareLinkManager:
    """Выпуск, проверка, погашение и отзыв ссылок доступа"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.link_repository = ShareLinkRepository(session)
        self.document_store = DocumentStore(session)

    async def issue(
        self,
        document_uuid: uuid.UUID,
        subject: Subject,
        tier,
        expires_at: Optional[datetime] = None,
        single_use: bool = False
    ) -> IssuedShareLink:
        """Выпуск ссылки. Нужен уровень не ниже editor, и ссылка не выше уровня выпускающего"""
        tier = parse_grantable_tier(tier)

        async def operation():
            access = await self.document_store.authorize(document_uuid, subject, Tier.EDITOR)
            if not tier_satisfies(access.tier, tier):
                raise AccessDenied("Cannot issue a link above your own access level")
            return await self.create_link(document_uuid, subject.user_id, tier, expires_at, single_use)

        async with document_locks.get(document_uuid):
            issued = await commit_with_retries(self.session, operation)

        logger.info(
            "Share link %s issued for %s (%s) by %s",
            issued.link.uuid, document_uuid, tier.value, subject.user_id
        )
        return issued

    async def create_link(
        self,
        document_uuid: uuid.UUID,
        created_by: uuid.UUID,
        tier: Tier,
        expires_at: Optional[datetime] = None,
        single_use: bool = False
    ) -> IssuedShareLink:
        """Запись новой ссылки без проверки прав и без коммита.

        Токен случайный (secrets); при совпадении хеша flush падает на
        уникальном индексе, и вызывающий повторяет операцию с новым токеном.
        """
        token = generate_share_token()
        link = await self.link_repository.create(
            token_hash=hash_share_token(token),
            document_id=document_uuid,
            tier=tier,
            created_by=created_by,
            expires_at=expires_at,
            single_use=single_use
        )
        return IssuedShareLink(link=link, token=token)

    async def resolve(self, token: str) -> ShareLink:
        """Проверка ссылки: срок и отзыв оцениваются в момент вызова"""
        link = await self._find(token)
        link.ensure_usable(utcnow())
        return link

    async def consume(self, token: str, subject: Subject) -> Acceptance:
        """Погашение ссылки: выдача субъекту уровня ссылки. Идемпотентно"""
        token_hash = hash_share_token(token or "")
        return await self._consume(lambda: self.link_repository.get_by_hash(token_hash), subject)

    async def consume_by_id(self, link_uuid: uuid.UUID, subject: Subject) -> Acceptance:
        """Погашение ссылки по UUID, для принятия приглашения"""
        return await self._consume(lambda: self.link_repository.get_by_uuid(link_uuid), subject)

    async def _consume(self, lookup: Callable[[], Awaitable[Optional[ShareLink]]], subject: Subject) -> Acceptance:
        from app.domains.invitations.services import InvitationService

        link = await lookup()
        if link is None:
            raise ShareLinkNotFound()
        link.ensure_usable(utcnow())

        async def operation():
            # Повторная проверка под блокировкой: удаление или отзыв
            # могли завершиться, пока мы ждали
            current = await lookup()
            if current is None:
                raise ShareLinkNotFound()
            current.ensure_usable(utcnow())

            document = await self.document_store.document_repository.get_by_uuid(current.document_id)
            if document is None:
                raise ShareLinkRevoked()

            tier, grant = await self.document_store.write_grant(document, subject.user_id, current.tier)

            # Переход владельца по ссылке не тратит ни ссылку, ни приглашение
            if tier != Tier.OWNER:
                if current.single_use:
                    await self.link_repository.revoke(current.uuid, "consumed")
                await InvitationService(self.session).mark_accepted_for_link(current.uuid, subject)

            return Acceptance(document_id=document.uuid, user_id=subject.user_id, tier=tier, grant=grant)

        async with document_locks.get(link.document_id):
            acceptance = await commit_with_retries(self.session, operation)

        logger.info(
            "Share link %s consumed by %s: %s on %s",
            link.uuid, subject.user_id, acceptance.tier.value, acceptance.document_id
        )
        return acceptance

    async def revoke(self, token: str, subject: Subject) -> ShareLink:
        """Отзыв ссылки по токену; нужен уровень не ниже editor"""
        link = await self._find(token)
        return await self._revoke(link, subject)

    async def revoke_by_id(self, document_uuid: uuid.UUID, link_uuid: uuid.UUID, subject: Subject) -> ShareLink:
        """Отзыв ссылки по UUID из списка ссылок документа"""
        link = await self.link_repository.get_by_uuid(link_uuid)
        if link is None or link.document_id != document_uuid:
            raise ShareLinkNotFound()
        return await self._revoke(link, subject)

    async def _revoke(self, link: ShareLink, subject: Subject) -> ShareLink:
        from app.domains.invitations.services import InvitationService

        async with document_locks.get(link.document_id):
            await self.document_store.authorize(link.document_id, subject, Tier.EDITOR)
            revoked = await self.link_repository.revoke(link.uuid, "revoked")
            await InvitationService(self.session).expire_for_link(link.uuid)
            await self.session.commit()

        if revoked:
            logger.info("Share link %s revoked by %s", link.uuid, subject.user_id)
        return await self.link_repository.get_by_uuid(link.uuid)

    async def revoke_for_document(self, document_uuid: uuid.UUID) -> int:
        """Каскадный отзыв всех ссылок документа при удалении.

        Внутренняя операция: без проверки прав и без коммита.
        """
        return await self.link_repository.revoke_for_document(document_uuid, "document_deleted")

    async def list_for_document(self, document_uuid: uuid.UUID, subject: Subject) -> List[ShareLink]:
        """Действующие ссылки документа; нужен уровень не ниже editor"""
        await self.document_store.authorize(document_uuid, subject, Tier.EDITOR)
        now = utcnow()
        links = await self.link_repository.list_for_document(document_uuid)
        return [link for link in links if not link.is_expired(now)]

    async def _find(self, token: str) -> ShareLink:
        if not token:
            raise ShareLinkNotFound()
        link = await self.link_repository.get_by_hash(hash_share_token(token))
        if link is None:
            raise ShareLinkNotFound()
        return link

