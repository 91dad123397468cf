import logging
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from app.core.errors import InvalidCredential, RevokedCredential, UserNotFound
from app.core.security import create_access_token, decode_access_token
from app.db.repositories.user_repository import UserRepository, AuthSessionRepository
from app.domains.identity.entities import User, Subject
from app.domains.identity.schemas import UserCreate, UserUpdate, UserLogin

logger = logging.getLogger(__name__)


class IdentityContext:
    """Определяет, кто выполняет запрос, по предъявленному токену.

    Единственный вход для всех операций, работающих с данными
    пользователя. Ничего не изменяет.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repository = UserRepository(session)
        self.auth_session_repository = AuthSessionRepository(session)

    async def resolve(self, credential: str) -> Subject:
        """Проверка токена: подпись, срок действия, активность сессии"""
        if not credential:
            raise InvalidCredential("Missing credential")

        payload = decode_access_token(credential)

        auth_session = await self.auth_session_repository.get(payload["sid"])
        if auth_session is None or auth_session.user_id != payload["sub"]:
            raise InvalidCredential("Unknown session")
        if auth_session.revoked_at is not None:
            raise RevokedCredential()

        user = await self.user_repository.get_by_uuid(payload["sub"])
        if user is None or not user.is_active:
            raise InvalidCredential("User not found or inactive")

        return user.to_subject(session_id=auth_session.uuid)


class IdentityService:
    """Сервис для регистрации, входа и профиля пользователя"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repository = UserRepository(session)
        self.auth_session_repository = AuthSessionRepository(session)

    async def register_user(self, user_data: UserCreate) -> User:
        """Регистрация нового пользователя"""
        if await self.user_repository.exists(user_data.email, user_data.username):
            raise ValueError("Email or username already registered")

        user = User.create_user(
            email=user_data.email,
            username=user_data.username,
            password=user_data.password,
            avatar_url=user_data.avatar_url
        )

        try:
            created = await self.user_repository.create(user)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ValueError("Email or username already registered")

        logger.info("User registered: %s", created.uuid)
        return created

    async def authenticate_user(self, login_data: UserLogin) -> Optional[User]:
        """Аутентификация пользователя"""
        user = await self.user_repository.get_by_email(login_data.email)

        if not user or not user.is_active:
            return None

        if not user.authenticate(login_data.password):
            return None

        return user

    async def login_user(self, login_data: UserLogin) -> Optional[str]:
        """Вход пользователя: новая сессия и JWT токен, ссылающийся на нее"""
        user = await self.authenticate_user(login_data)

        if not user:
            return None

        session_id = await self.auth_session_repository.create(user.uuid)
        await self.session.commit()

        return create_access_token(user_id=user.uuid, session_id=session_id, email=user.email)

    async def logout(self, subject: Subject) -> bool:
        """Завершение сессии; все токены этой сессии становятся отозванными"""
        if subject.session_id is None:
            return False
        revoked = await self.auth_session_repository.revoke(subject.session_id)
        await self.session.commit()
        if revoked:
            logger.info("Session %s of user %s terminated", subject.session_id, subject.user_id)
        return revoked

    async def get_user(self, user_uuid: uuid.UUID) -> User:
        """Получение пользователя по UUID"""
        user = await self.user_repository.get_by_uuid(user_uuid)
        if user is None:
            raise UserNotFound()
        return user

    async def get_user_by_email(self, email: str) -> User:
        """Получение пользователя по email"""
        user = await self.user_repository.get_by_email(email)
        if user is None:
            raise UserNotFound()
        return user

    async def update_user_profile(self, user_uuid: uuid.UUID, update_data: UserUpdate) -> User:
        """Обновление профиля пользователя"""
        user = await self.get_user(user_uuid)

        if update_data.username and update_data.username != user.username:
            if await self.user_repository.username_exists(update_data.username):
                raise ValueError("Username already taken")

        user.update_profile(
            username=update_data.username,
            avatar_url=update_data.avatar_url
        )

        updated = await self.user_repository.update(user)
        await self.session.commit()
        return updated
