from typing import Optional, List, Tuple, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_, or_
from sqlalchemy.orm import aliased
import uuid

from app.core.security import utcnow
from app.db.models.document import Document as DocumentModel, CollaboratorGrant as GrantModel
from app.domains.permissions.tiers import Tier

if TYPE_CHECKING:
    from app.domains.documents.entities import Document, CollaboratorGrant


class DocumentRepository:
    """Репозиторий для работы с документами.

    Удаленные (deleted_at) документы для всех методов чтения отсутствуют.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, document: "Document") -> "Document":
        """Создание нового документа"""
        db_document = DocumentModel(
            uuid=document.uuid,
            title=document.title,
            content=document.content,
            owner_id=document.owner_id,
            created_at=document.created_at,
            updated_at=document.updated_at
        )

        self.session.add(db_document)
        await self.session.flush()
        return self._to_domain(db_document)

    async def get_by_uuid(self, document_uuid: uuid.UUID) -> Optional["Document"]:
        """Получение документа по UUID"""
        result = await self.session.execute(
            select(DocumentModel).where(
                DocumentModel.uuid == document_uuid,
                DocumentModel.deleted_at.is_(None)
            ).execution_options(populate_existing=True)
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    async def get_with_grant(
        self,
        document_uuid: uuid.UUID,
        user_id: uuid.UUID
    ) -> Optional[Tuple["Document", Optional[Tier]]]:
        """Документ и выдача пользователя одним запросом.

        Один SELECT видит согласованный снимок, поэтому параллельное
        удаление наблюдается либо целиком, либо никак.
        """
        result = await self.session.execute(
            select(DocumentModel, GrantModel.tier)
            .outerjoin(
                GrantModel,
                and_(
                    GrantModel.document_id == DocumentModel.uuid,
                    GrantModel.user_id == user_id
                )
            )
            .where(
                DocumentModel.uuid == document_uuid,
                DocumentModel.deleted_at.is_(None)
            )
            .execution_options(populate_existing=True)
        )
        row = result.first()
        if row is None:
            return None
        db_document, grant_tier = row
        return self._to_domain(db_document), (Tier(grant_tier) if grant_tier else None)

    def _visible_to(self, user_id: uuid.UUID):
        """Документы, которыми пользователь владеет или на которые имеет выдачу"""
        return (
            select(DocumentModel)
            .outerjoin(
                GrantModel,
                and_(
                    GrantModel.document_id == DocumentModel.uuid,
                    GrantModel.user_id == user_id
                )
            )
            .where(
                DocumentModel.deleted_at.is_(None),
                or_(DocumentModel.owner_id == user_id, GrantModel.user_id.is_not(None))
            )
        )

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0
    ) -> List[Tuple["Document", Optional[Tier], int]]:
        """Документы пользователя, свежие первыми.

        Для каждого документа: выдача пользователя (None для своих) и
        число соавторов.
        """
        counted = aliased(GrantModel)
        collaborators_count = (
            select(func.count(counted.uuid))
            .where(counted.document_id == DocumentModel.uuid)
            .correlate(DocumentModel)
            .scalar_subquery()
        )
        result = await self.session.execute(
            self._visible_to(user_id)
            .add_columns(GrantModel.tier, collaborators_count)
            .order_by(DocumentModel.updated_at.desc(), DocumentModel.uuid)
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [
            (self._to_domain(db_document), Tier(grant_tier) if grant_tier else None, count or 0)
            for db_document, grant_tier, count in result.all()
        ]

    async def count_for_user(self, user_id: uuid.UUID) -> int:
        """Подсчет количества документов пользователя"""
        result = await self.session.execute(
            select(func.count()).select_from(self._visible_to(user_id).subquery())
        )
        return result.scalar()

    async def update(self, document: "Document") -> "Document":
        """Обновление документа"""
        stmt = (
            update(DocumentModel)
            .where(DocumentModel.uuid == document.uuid)
            .values(
                title=document.title,
                content=document.content,
                updated_at=document.updated_at
            )
        )

        await self.session.execute(stmt)
        await self.session.flush()

        return document

    async def mark_deleted(self, document_uuid: uuid.UUID) -> bool:
        """Мягкое удаление документа"""
        stmt = (
            update(DocumentModel)
            .where(
                DocumentModel.uuid == document_uuid,
                DocumentModel.deleted_at.is_(None)
            )
            .values(deleted_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    def _to_domain(self, db_document: DocumentModel) -> "Document":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.documents.entities import Document

        return Document(
            uuid=db_document.uuid,
            title=db_document.title,
            content=db_document.content or "",
            owner_id=db_document.owner_id,
            created_at=db_document.created_at,
            updated_at=db_document.updated_at,
            deleted_at=db_document.deleted_at
        )


class GrantRepository:
    """Репозиторий выдач доступа соавторам"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, document_id: uuid.UUID, user_id: uuid.UUID) -> Optional["CollaboratorGrant"]:
        """Выдача пользователя на документ"""
        result = await self.session.execute(
            select(GrantModel).where(
                GrantModel.document_id == document_id,
                GrantModel.user_id == user_id
            ).execution_options(populate_existing=True)
        )
        db_grant = result.scalar_one_or_none()
        return self._to_domain(db_grant) if db_grant else None

    async def upsert(self, document_id: uuid.UUID, user_id: uuid.UUID, tier: Tier) -> "CollaboratorGrant":
        """Создание или замена выдачи для пары (документ, пользователь)"""
        # Сначала пытаемся обновить существующую выдачу
        stmt = (
            update(GrantModel)
            .where(
                GrantModel.document_id == document_id,
                GrantModel.user_id == user_id
            )
            .values(tier=tier.value, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)

        # Если выдачи нет, создаем новую; гонку ловит уникальный индекс
        if result.rowcount == 0:
            self.session.add(GrantModel(
                uuid=uuid.uuid4(),
                document_id=document_id,
                user_id=user_id,
                tier=tier.value
            ))

        await self.session.flush()
        return await self.get(document_id, user_id)

    async def delete(self, document_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Удаление выдачи"""
        stmt = delete(GrantModel).where(
            GrantModel.document_id == document_id,
            GrantModel.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def delete_for_document(self, document_id: uuid.UUID) -> int:
        """Удаление всех выдач документа"""
        stmt = delete(GrantModel).where(GrantModel.document_id == document_id)
        result = await self.session.execute(stmt)
        return result.rowcount

    async def list_for_document(self, document_id: uuid.UUID) -> List["CollaboratorGrant"]:
        """Выдачи документа в порядке создания"""
        result = await self.session.execute(
            select(GrantModel)
            .where(GrantModel.document_id == document_id)
            .order_by(GrantModel.created_at.asc())
        )
        return [self._to_domain(grant) for grant in result.scalars().all()]

    async def count_for_document(self, document_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(GrantModel.uuid)).where(GrantModel.document_id == document_id)
        )
        return result.scalar()

    def _to_domain(self, db_grant: GrantModel) -> "CollaboratorGrant":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.documents.entities import CollaboratorGrant

        return CollaboratorGrant(
            document_id=db_grant.document_id,
            user_id=db_grant.user_id,
            tier=Tier(db_grant.tier),
            created_at=db_grant.created_at,
            updated_at=db_grant.updated_at
        )
