from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from app.api.http.errors import to_http_exception
from app.core.auth import get_current_subject
from app.core.db import get_db
from app.core.errors import DomainError
from app.domains.identity.entities import Subject, User
from app.domains.identity.schemas import PublicUserResponse
from app.domains.identity.services import IdentityService

router = APIRouter(prefix="/users", tags=["users"])


def _public(user: User) -> PublicUserResponse:
    return PublicUserResponse(
        uuid=user.uuid,
        username=user.username,
        email=user.email,
        avatar_url=user.avatar_url
    )


@router.get("/lookup", response_model=PublicUserResponse)
async def lookup_user(
    email: str = Query(..., min_length=3),
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Поиск пользователя по email, чтобы выдать ему доступ"""
    try:
        user = await IdentityService(db).get_user_by_email(email)
    except DomainError as e:
        raise to_http_exception(e)

    return _public(user)


@router.get("/{user_uuid}", response_model=PublicUserResponse)
async def get_user(
    user_uuid: uuid.UUID,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Получение информации о пользователе"""
    try:
        user = await IdentityService(db).get_user(user_uuid)
    except DomainError as e:
        raise to_http_exception(e)

    return _public(user)
