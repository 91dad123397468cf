from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.http.errors import to_http_exception
from app.core.auth import get_current_subject
from app.core.db import get_db
from app.core.errors import DomainError
from app.domains.identity.entities import Subject, User
from app.domains.identity.schemas import UserCreate, UserLogin, UserResponse, Token, UserUpdate
from app.domains.identity.services import IdentityService

router = APIRouter(prefix="/auth", tags=["authentication"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        uuid=user.uuid,
        email=user.email,
        username=user.username,
        avatar_url=user.avatar_url,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Регистрация нового пользователя"""
    identity_service = IdentityService(db)

    try:
        user = await identity_service.register_user(user_data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return _user_response(user)


@router.post("/login", response_model=Token)
async def login(
    login_data: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Вход пользователя"""
    identity_service = IdentityService(db)

    token = await identity_service.login_user(login_data)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"access_token": token, "token_type": "bearer"}


@router.post("/logout")
async def logout(
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Выход пользователя: токен текущей сессии перестает действовать"""
    await IdentityService(db).logout(subject)
    return {"message": "Successfully logged out"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Получение информации о текущем пользователе"""
    try:
        user = await IdentityService(db).get_user(subject.user_id)
    except (DomainError, ValueError) as e:
        raise to_http_exception(e)

    return _user_response(user)


@router.put("/me", response_model=UserResponse)
async def update_current_user(
    update_data: UserUpdate,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Обновление профиля текущего пользователя"""
    try:
        user = await IdentityService(db).update_user_profile(subject.user_id, update_data)
    except (DomainError, ValueError) as e:
        raise to_http_exception(e)

    return _user_response(user)
