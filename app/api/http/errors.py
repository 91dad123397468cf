from fastapi import HTTPException, status

from app.core.errors import (
    AccessDenied, AuthError, Conflict, DomainError, InvitationClosed, NotFound,
    ShareLinkExpired, ShareLinkRevoked
)

# Порядок важен: первое совпадение по isinstance
_STATUS_BY_ERROR = (
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ShareLinkExpired, status.HTTP_410_GONE),
    (ShareLinkRevoked, status.HTTP_410_GONE),
    (InvitationClosed, status.HTTP_409_CONFLICT),
    (Conflict, status.HTTP_409_CONFLICT),
    (ValueError, status.HTTP_400_BAD_REQUEST),
)


def to_http_exception(error: Exception) -> HTTPException:
    """Преобразование доменной ошибки в HTTP ответ"""
    detail = error.message if isinstance(error, DomainError) else str(error)
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
            return HTTPException(status_code=status_code, detail=detail, headers=headers)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
