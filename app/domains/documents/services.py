import logging
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from app.core.db import commit_with_retries
from app.core.errors import DocumentNotFound, InvalidGrant, UserNotFound
from app.core.locks import document_locks
from app.db.repositories.document_repository import DocumentRepository, GrantRepository
from app.db.repositories.user_repository import UserRepository
from app.domains.documents.entities import Document, CollaboratorGrant, DocumentAccess
from app.domains.documents.schemas import DocumentUpdate
from app.domains.identity.entities import Subject, User
from app.domains.permissions.tiers import (
    Tier, effective_tier, require_tier, tier_satisfies, parse_grantable_tier
)

logger = logging.getLogger(__name__)


class DocumentStore:
    """Хранилище документов и выдач доступа соавторам.

    Все изменения выдач и удаление документа сериализуются блокировкой
    документа и коммитятся одной транзакцией.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.document_repository = DocumentRepository(session)
        self.grant_repository = GrantRepository(session)
        self.user_repository = UserRepository(session)

    async def load_access(self, document_uuid: uuid.UUID, subject: Subject) -> DocumentAccess:
        """Документ и итоговый уровень доступа субъекта"""
        found = await self.document_repository.get_with_grant(document_uuid, subject.user_id)
        if found is None:
            raise DocumentNotFound()
        document, grant_tier = found
        return DocumentAccess(
            document=document,
            tier=effective_tier(document.owner_id, subject.user_id, grant_tier)
        )

    async def authorize(self, document_uuid: uuid.UUID, subject: Subject, required: Tier) -> DocumentAccess:
        """Проверка, что субъект имеет на документ не ниже required"""
        access = await self.load_access(document_uuid, subject)
        require_tier(access.tier, required)
        return access

    async def create(self, subject: Subject, title: str, content: str = "") -> Document:
        """Создание нового документа; владельцем становится субъект"""
        document = Document.create_document(title=title, owner_id=subject.user_id, content=content)
        created = await self.document_repository.create(document)
        await self.session.commit()
        logger.info("Document %s created by %s", created.uuid, subject.user_id)
        return created

    async def get(self, document_uuid: uuid.UUID, subject: Subject) -> DocumentAccess:
        """Получение документа, требуется хотя бы viewer"""
        return await self.authorize(document_uuid, subject, Tier.VIEWER)

    async def update(self, document_uuid: uuid.UUID, subject: Subject, patch: DocumentUpdate) -> DocumentAccess:
        """Обновление документа, требуется editor или владение"""
        access = await self.authorize(document_uuid, subject, Tier.EDITOR)
        document = access.document

        if document.apply_patch(title=patch.title, content=patch.content):
            await self.document_repository.update(document)
            await self.session.commit()

        return access

    async def delete(self, document_uuid: uuid.UUID, subject: Subject) -> None:
        """Удаление документа владельцем с каскадом.

        Выдачи удаляются, ссылки отзываются, ожидающие приглашения
        истекают; всё в одной транзакции с пометкой удаления.
        """
        from app.domains.invitations.services import InvitationService
        from app.domains.sharing.services import ShareLinkManager

        async with document_locks.get(document_uuid):
            access = await self.load_access(document_uuid, subject)
            require_tier(access.tier, Tier.OWNER, "Only the owner can delete this document")

            grants_removed = await self.grant_repository.delete_for_document(document_uuid)
            links_revoked = await ShareLinkManager(self.session).revoke_for_document(document_uuid)
            invitations_expired = await InvitationService(self.session).expire_for_document(document_uuid)
            await self.document_repository.mark_deleted(document_uuid)
            await self.session.commit()

        logger.info(
            "Document %s deleted by owner: %d grants removed, %d links revoked, %d invitations expired",
            document_uuid, grants_removed, links_revoked, invitations_expired
        )

    async def upsert_grant(
        self,
        document_uuid: uuid.UUID,
        subject: Subject,
        target_user_id: uuid.UUID,
        tier
    ) -> CollaboratorGrant:
        """Выдача или замена доступа соавтору; только владелец"""
        tier = parse_grantable_tier(tier)

        async def operation():
            access = await self.load_access(document_uuid, subject)
            require_tier(access.tier, Tier.OWNER, "Only the owner can manage collaborators")
            if target_user_id == access.document.owner_id:
                raise InvalidGrant()
            if await self.user_repository.get_by_uuid(target_user_id) is None:
                raise UserNotFound()
            return await self.grant_repository.upsert(document_uuid, target_user_id, tier)

        async with document_locks.get(document_uuid):
            grant = await commit_with_retries(self.session, operation)

        logger.info("Grant %s on %s set to %s", target_user_id, document_uuid, tier.value)
        return grant

    async def write_grant(self, document: Document, user_id: uuid.UUID, tier: Tier) -> Tuple[Tier, Optional[CollaboratorGrant]]:
        """Выдача доступа без проверки прав, для погашения ссылок.

        Вызывается под блокировкой документа, коммит за вызывающим.
        Владельцу выдача не пишется, существующий более высокий уровень
        не понижается. Возвращает итоговый уровень и выдачу.
        """
        if user_id == document.owner_id:
            return Tier.OWNER, None

        existing = await self.grant_repository.get(document.uuid, user_id)
        if existing is not None and tier_satisfies(existing.tier, tier):
            return existing.tier, existing

        grant = await self.grant_repository.upsert(document.uuid, user_id, tier)
        return grant.tier, grant

    async def remove_grant(self, document_uuid: uuid.UUID, subject: Subject, target_user_id: uuid.UUID) -> bool:
        """Отзыв выдачи владельцем; соавтор может удалить себя сам"""
        async with document_locks.get(document_uuid):
            access = await self.load_access(document_uuid, subject)
            if subject.user_id != target_user_id:
                require_tier(access.tier, Tier.OWNER, "Only the owner can manage collaborators")
            removed = await self.grant_repository.delete(document_uuid, target_user_id)
            await self.session.commit()

        if removed:
            logger.info("Grant %s on %s removed", target_user_id, document_uuid)
        return removed

    async def list_grants(self, document_uuid: uuid.UUID, subject: Subject) -> List[Tuple[CollaboratorGrant, User]]:
        """Соавторы документа с данными пользователей"""
        await self.authorize(document_uuid, subject, Tier.VIEWER)
        grants = await self.grant_repository.list_for_document(document_uuid)
        users = {
            user.uuid: user
            for user in await self.user_repository.get_many([g.user_id for g in grants])
        }
        return [(grant, users[grant.user_id]) for grant in grants if grant.user_id in users]

    async def count_grants(self, document_uuid: uuid.UUID) -> int:
        return await self.grant_repository.count_for_document(document_uuid)

    async def list(self, subject: Subject, limit: int = 100, offset: int = 0) -> Tuple[List[DocumentAccess], int]:
        """Документы субъекта (свои и общие), недавно измененные первыми"""
        rows = await self.document_repository.list_for_user(subject.user_id, limit, offset)
        total = await self.document_repository.count_for_user(subject.user_id)
        documents = [
            DocumentAccess(
                document=document,
                tier=effective_tier(document.owner_id, subject.user_id, grant_tier),
                collaborators_count=collaborators_count
            )
            for document, grant_tier, collaborators_count in rows
        ]
        return documents, total

