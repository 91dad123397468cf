import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.errors import ExpiredCredential, InvalidCredential

# Контекст для хеширования паролей
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def utcnow() -> datetime:
    """Текущее время UTC без tzinfo, в таком виде оно хранится в БД"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверка пароля"""
    # bcrypt имеет ограничение 72 байта
    return pwd_context.verify(plain_password[:72], hashed_password)


def get_password_hash(password: str) -> str:
    """Хеширование пароля"""
    return pwd_context.hash(password[:72])


def create_access_token(
    user_id: uuid.UUID,
    session_id: uuid.UUID,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Создание JWT токена доступа, привязанного к сессии"""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": str(user_id),
        "sid": str(session_id),
        "email": email,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Проверка подписи и срока действия JWT токена"""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise ExpiredCredential()
    except JWTError:
        raise InvalidCredential()

    if "exp" not in payload:
        raise InvalidCredential("Credential has no expiry")

    try:
        payload["sub"] = uuid.UUID(payload["sub"])
        payload["sid"] = uuid.UUID(payload["sid"])
    except (KeyError, TypeError, ValueError):
        raise InvalidCredential("Malformed credential claims")

    return payload


def generate_share_token(nbytes: int = None) -> str:
    """Случайный URL-safe токен ссылки доступа"""
    return secrets.token_urlsafe(nbytes or settings.share_link_token_bytes)


def hash_share_token(token: str) -> str:
    """SHA-256 от токена. В БД хранится только хеш"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
