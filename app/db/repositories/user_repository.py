from typing import Optional, List, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_
import uuid

from app.core.security import utcnow
from app.db.models.user import User as UserModel, AuthSession as AuthSessionModel

if TYPE_CHECKING:
    from app.domains.identity.entities import User


class UserRepository:
    """Репозиторий для работы с пользователями"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: "User") -> "User":
        """Создание нового пользователя"""
        db_user = UserModel(
            uuid=user.uuid,
            email=user.email,
            username=user.username,
            avatar_url=user.avatar_url,
            password_hash=user.password_hash,
            is_active=user.is_active
        )

        self.session.add(db_user)
        await self.session.flush()
        await self.session.refresh(db_user)
        return self._to_domain(db_user)

    async def get_by_uuid(self, user_uuid: uuid.UUID) -> Optional["User"]:
        """Получение пользователя по UUID"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.uuid == user_uuid)
        )
        db_user = result.scalar_one_or_none()
        return self._to_domain(db_user) if db_user else None

    async def get_by_email(self, email: str) -> Optional["User"]:
        """Получение пользователя по email"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email.lower())
        )
        db_user = result.scalar_one_or_none()
        return self._to_domain(db_user) if db_user else None

    async def get_many(self, user_uuids: List[uuid.UUID]) -> List["User"]:
        """Получение пользователей по списку UUID"""
        if not user_uuids:
            return []
        result = await self.session.execute(
            select(UserModel).where(UserModel.uuid.in_(user_uuids))
        )
        return [self._to_domain(user) for user in result.scalars().all()]

    async def update(self, user: "User") -> "User":
        """Обновление пользователя"""
        stmt = (
            update(UserModel)
            .where(UserModel.uuid == user.uuid)
            .values(
                username=user.username,
                avatar_url=user.avatar_url,
                is_active=user.is_active,
                updated_at=user.updated_at
            )
        )

        await self.session.execute(stmt)
        await self.session.flush()

        return await self.get_by_uuid(user.uuid)

    async def exists(self, email: str, username: str) -> bool:
        """Проверка занятости email или username"""
        result = await self.session.execute(
            select(UserModel.uuid).where(
                or_(UserModel.email == email.lower(), UserModel.username == username)
            )
        )
        return result.first() is not None

    async def username_exists(self, username: str) -> bool:
        """Проверка существования username"""
        result = await self.session.execute(
            select(UserModel.uuid).where(UserModel.username == username)
        )
        return result.scalar_one_or_none() is not None

    def _to_domain(self, db_user: UserModel) -> "User":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.identity.entities import User

        return User(
            uuid=db_user.uuid,
            email=db_user.email,
            username=db_user.username,
            password_hash=db_user.password_hash,
            avatar_url=db_user.avatar_url,
            is_active=db_user.is_active,
            created_at=db_user.created_at,
            updated_at=db_user.updated_at
        )


class AuthSessionRepository:
    """Репозиторий сессий входа, на которые ссылаются токены"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user_id: uuid.UUID) -> uuid.UUID:
        """Открытие новой сессии"""
        db_session = AuthSessionModel(uuid=uuid.uuid4(), user_id=user_id)
        self.session.add(db_session)
        await self.session.flush()
        return db_session.uuid

    async def get(self, session_id: uuid.UUID) -> Optional[AuthSessionModel]:
        result = await self.session.execute(
            select(AuthSessionModel).where(AuthSessionModel.uuid == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def revoke(self, session_id: uuid.UUID) -> bool:
        """Завершение сессии"""
        stmt = (
            update(AuthSessionModel)
            .where(
                AuthSessionModel.uuid == session_id,
                AuthSessionModel.revoked_at.is_(None)
            )
            .values(revoked_at=utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
