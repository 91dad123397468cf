import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings
from app.core.errors import Conflict

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Базовый класс для моделей
class Base(DeclarativeBase):
    pass


# Асинхронный движок
engine = create_async_engine(settings.database_url, echo=settings.sql_echo)

# Сессии
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


# Функция для dependency injection в FastAPI
async def get_db():
    async with SessionLocal() as session:
        yield session


async def create_tables() -> None:
    """Создание таблиц при старте приложения"""
    import app.db.models  # noqa: F401  регистрирует модели в metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def commit_with_retries(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    retries: Optional[int] = None,
) -> T:
    """Выполнение операции в транзакции с повтором при нарушении уникальности.

    Операция целиком повторяется после rollback, поэтому она должна заново
    читать всё состояние, от которого зависит.
    """
    attempts = retries or settings.conflict_retries
    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
            await session.commit()
            return result
        except IntegrityError as e:
            await session.rollback()
            logger.warning("Integrity conflict (attempt %d/%d): %s", attempt, attempts, e.orig)
    raise Conflict("Concurrent modification, please retry")
