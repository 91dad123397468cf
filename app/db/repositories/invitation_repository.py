from typing import Optional, List, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from datetime import datetime
import uuid

from app.core.security import utcnow
from app.db.models.document import Document as DocumentModel
from app.db.models.sharing import Invitation as InvitationModel
from app.domains.permissions.tiers import Tier

if TYPE_CHECKING:
    from app.domains.invitations.entities import Invitation

PENDING = "pending"
ACCEPTED = "accepted"
EXPIRED = "expired"


class InvitationRepository:
    """Репозиторий приглашений"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        email: str,
        document_id: uuid.UUID,
        tier: Tier,
        invited_by: uuid.UUID,
        share_link_id: uuid.UUID,
        expires_at: Optional[datetime]
    ) -> "Invitation":
        """Создание приглашения; второе pending на ту же пару ловит индекс"""
        db_invitation = InvitationModel(
            uuid=uuid.uuid4(),
            email=email,
            document_id=document_id,
            tier=tier.value,
            invited_by=invited_by,
            status=PENDING,
            share_link_id=share_link_id,
            expires_at=expires_at
        )
        self.session.add(db_invitation)
        await self.session.flush()
        return self._to_domain(db_invitation)

    async def get_by_uuid(self, invitation_uuid: uuid.UUID) -> Optional["Invitation"]:
        """Получение приглашения по UUID"""
        result = await self.session.execute(
            select(InvitationModel)
            .where(InvitationModel.uuid == invitation_uuid)
            .execution_options(populate_existing=True)
        )
        db_invitation = result.scalar_one_or_none()
        return self._to_domain(db_invitation) if db_invitation else None

    async def get_pending(self, document_id: uuid.UUID, email: str) -> Optional["Invitation"]:
        """Запись в статусе pending для пары (документ, email), без учета TTL"""
        result = await self.session.execute(
            select(InvitationModel)
            .where(
                InvitationModel.document_id == document_id,
                InvitationModel.email == email,
                InvitationModel.status == PENDING
            )
            .execution_options(populate_existing=True)
        )
        db_invitation = result.scalar_one_or_none()
        return self._to_domain(db_invitation) if db_invitation else None

    async def get_pending_by_link(self, share_link_id: uuid.UUID) -> Optional["Invitation"]:
        result = await self.session.execute(
            select(InvitationModel)
            .where(
                InvitationModel.share_link_id == share_link_id,
                InvitationModel.status == PENDING
            )
            .execution_options(populate_existing=True)
        )
        db_invitation = result.scalar_one_or_none()
        return self._to_domain(db_invitation) if db_invitation else None

    async def refresh(
        self,
        invitation_uuid: uuid.UUID,
        tier: Tier,
        invited_by: uuid.UUID,
        share_link_id: uuid.UUID,
        expires_at: Optional[datetime]
    ) -> Optional["Invitation"]:
        """Новая ссылка, уровень и срок для ожидающего приглашения"""
        stmt = (
            update(InvitationModel)
            .where(InvitationModel.uuid == invitation_uuid)
            .values(
                tier=tier.value,
                invited_by=invited_by,
                share_link_id=share_link_id,
                expires_at=expires_at,
                updated_at=utcnow()
            )
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return await self.get_by_uuid(invitation_uuid)

    async def mark_accepted(self, invitation_uuid: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Переход pending -> accepted"""
        now = utcnow()
        stmt = (
            update(InvitationModel)
            .where(
                InvitationModel.uuid == invitation_uuid,
                InvitationModel.status == PENDING
            )
            .values(status=ACCEPTED, accepted_by=user_id, accepted_at=now, updated_at=now)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_expired(self, invitation_uuid: uuid.UUID) -> bool:
        """Переход pending -> expired"""
        stmt = (
            update(InvitationModel)
            .where(
                InvitationModel.uuid == invitation_uuid,
                InvitationModel.status == PENDING
            )
            .values(status=EXPIRED, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def expire_for_document(self, document_id: uuid.UUID) -> int:
        """Все ожидающие приглашения документа переходят в expired"""
        stmt = (
            update(InvitationModel)
            .where(
                InvitationModel.document_id == document_id,
                InvitationModel.status == PENDING
            )
            .values(status=EXPIRED, updated_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def list_for_document(self, document_id: uuid.UUID) -> List["Invitation"]:
        """Приглашения документа, новые первыми"""
        result = await self.session.execute(
            select(InvitationModel)
            .where(InvitationModel.document_id == document_id)
            .order_by(InvitationModel.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(inv) for inv in result.scalars().all()]

    async def list_pending_for_email(self, email: str) -> List["Invitation"]:
        """Ожидающие приглашения на адрес по неудаленным документам"""
        result = await self.session.execute(
            select(InvitationModel)
            .join(DocumentModel, DocumentModel.uuid == InvitationModel.document_id)
            .where(
                InvitationModel.email == email,
                InvitationModel.status == PENDING,
                DocumentModel.deleted_at.is_(None)
            )
            .order_by(InvitationModel.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(inv) for inv in result.scalars().all()]

    def _to_domain(self, db_invitation: InvitationModel) -> "Invitation":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.invitations.entities import Invitation, InvitationStatus

        return Invitation(
            uuid=db_invitation.uuid,
            email=db_invitation.email,
            document_id=db_invitation.document_id,
            tier=Tier(db_invitation.tier),
            invited_by=db_invitation.invited_by,
            status=InvitationStatus(db_invitation.status),
            share_link_id=db_invitation.share_link_id,
            expires_at=db_invitation.expires_at,
            accepted_by=db_invitation.accepted_by,
            accepted_at=db_invitation.accepted_at,
            created_at=db_invitation.created_at,
            updated_at=db_invitation.updated_at
        )
