from typing import Optional, List, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from datetime import datetime
import uuid

from app.core.security import utcnow
from app.db.models.document import Document as DocumentModel
from app.db.models.sharing import ShareLink as ShareLinkModel
from app.domains.permissions.tiers import Tier

if TYPE_CHECKING:
    from app.domains.sharing.entities import ShareLink


class ShareLinkRepository:
    """Репозиторий ссылок доступа. Хранит только хеши токенов"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        token_hash: str,
        document_id: uuid.UUID,
        tier: Tier,
        created_by: uuid.UUID,
        expires_at: Optional[datetime] = None,
        single_use: bool = False
    ) -> "ShareLink":
        """Создание ссылки; совпадение хеша ловит уникальный индекс"""
        db_link = ShareLinkModel(
            uuid=uuid.uuid4(),
            token_hash=token_hash,
            document_id=document_id,
            tier=tier.value,
            created_by=created_by,
            expires_at=expires_at,
            single_use=single_use
        )
        self.session.add(db_link)
        await self.session.flush()
        return self._to_domain(db_link)

    async def get_by_hash(self, token_hash: str) -> Optional["ShareLink"]:
        """Ссылка по хешу токена.

        Ссылка удаленного документа возвращается отозванной, даже если
        каскад еще не записал revoked_at.
        """
        result = await self.session.execute(
            select(ShareLinkModel, DocumentModel.deleted_at)
            .join(DocumentModel, DocumentModel.uuid == ShareLinkModel.document_id)
            .where(ShareLinkModel.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        row = result.first()
        return self._row_to_domain(row) if row else None

    async def get_by_uuid(self, link_uuid: uuid.UUID) -> Optional["ShareLink"]:
        """Ссылка по UUID"""
        result = await self.session.execute(
            select(ShareLinkModel, DocumentModel.deleted_at)
            .join(DocumentModel, DocumentModel.uuid == ShareLinkModel.document_id)
            .where(ShareLinkModel.uuid == link_uuid)
            .execution_options(populate_existing=True)
        )
        row = result.first()
        return self._row_to_domain(row) if row else None

    async def revoke(self, link_uuid: uuid.UUID, reason: str) -> bool:
        """Отзыв ссылки; повторный отзыв ничего не меняет"""
        stmt = (
            update(ShareLinkModel)
            .where(
                ShareLinkModel.uuid == link_uuid,
                ShareLinkModel.revoked_at.is_(None)
            )
            .values(revoked_at=utcnow(), revoke_reason=reason)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def revoke_for_document(self, document_id: uuid.UUID, reason: str) -> int:
        """Отзыв всех действующих ссылок документа"""
        stmt = (
            update(ShareLinkModel)
            .where(
                ShareLinkModel.document_id == document_id,
                ShareLinkModel.revoked_at.is_(None)
            )
            .values(revoked_at=utcnow(), revoke_reason=reason)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def list_for_document(self, document_id: uuid.UUID) -> List["ShareLink"]:
        """Неотозванные ссылки документа, новые первыми"""
        result = await self.session.execute(
            select(ShareLinkModel)
            .where(
                ShareLinkModel.document_id == document_id,
                ShareLinkModel.revoked_at.is_(None)
            )
            .order_by(ShareLinkModel.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(link) for link in result.scalars().all()]

    def _row_to_domain(self, row) -> "ShareLink":
        db_link, document_deleted_at = row
        link = self._to_domain(db_link)
        if document_deleted_at is not None and link.revoked_at is None:
            link.revoked_at = document_deleted_at
            link.revoke_reason = "document_deleted"
        return link

    def _to_domain(self, db_link: ShareLinkModel) -> "ShareLink":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.sharing.entities import ShareLink

        return ShareLink(
            uuid=db_link.uuid,
            document_id=db_link.document_id,
            tier=Tier(db_link.tier),
            created_by=db_link.created_by,
            created_at=db_link.created_at,
            expires_at=db_link.expires_at,
            single_use=db_link.single_use,
            revoked_at=db_link.revoked_at,
            revoke_reason=db_link.revoke_reason
        )
