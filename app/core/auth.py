from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.db import get_db
from app.core.errors import AuthError
from app.domains.identity.entities import Subject
from app.domains.identity.services import IdentityContext

security = HTTPBearer(auto_error=False)


async def get_current_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Subject:
    """Зависимость для получения текущего субъекта по Bearer токену"""
    token = credentials.credentials if credentials else ""
    try:
        return await IdentityContext(db).resolve(token)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
