import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.core.security import get_password_hash, verify_password, utcnow


@dataclass(frozen=True)
class Subject:
    """Тот, кто выполняет запрос: результат проверки учетных данных"""
    user_id: uuid.UUID
    email: str
    session_id: Optional[uuid.UUID] = None


class User:
    """Сущность пользователя домена Identity"""

    def __init__(
        self,
        uuid: uuid.UUID,
        email: str,
        username: str,
        password_hash: str,
        avatar_url: Optional[str] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.email = email
        self.username = username
        self.password_hash = password_hash
        self.avatar_url = avatar_url
        self.is_active = is_active
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    def authenticate(self, password: str) -> bool:
        """Проверка пароля пользователя"""
        return verify_password(password, self.password_hash)

    def update_profile(self, username: Optional[str] = None, avatar_url: Optional[str] = None) -> None:
        """Обновление отображаемых полей профиля"""
        if username:
            self.username = username
        if avatar_url is not None:
            self.avatar_url = avatar_url or None
        self.updated_at = utcnow()

    def to_subject(self, session_id: Optional[uuid.UUID] = None) -> Subject:
        return Subject(user_id=self.uuid, email=self.email, session_id=session_id)

    @classmethod
    def create_user(
        cls,
        email: str,
        username: str,
        password: str,
        avatar_url: Optional[str] = None
    ) -> "User":
        """Создание нового пользователя с хешированием пароля"""
        return cls(
            uuid=uuid.uuid4(),
            email=email.lower(),
            username=username,
            password_hash=get_password_hash(password),
            avatar_url=avatar_url
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, User):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"User(uuid={self.uuid}, email={self.email}, username={self.username})"
