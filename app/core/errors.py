"""Доменные ошибки.

Каждая ошибка относится к одному запросу и не является фатальной для
процесса. Роутеры переводят их в HTTP-ответы через ``to_http_exception``.
"""


class DomainError(Exception):
    """Базовая ошибка домена"""

    def __init__(self, message: str = None):
        super().__init__(message or self.__doc__)
        self.message = message or self.__doc__


# Идентификация

class AuthError(DomainError):
    """Could not validate credentials"""


class InvalidCredential(AuthError):
    """Invalid credential"""


class ExpiredCredential(AuthError):
    """Credential has expired"""


class RevokedCredential(AuthError):
    """Session has been terminated"""


# Доступ

class AccessDenied(DomainError, PermissionError):
    """You don't have permission to perform this action"""


# Поиск

class NotFound(DomainError):
    """Resource not found"""


class DocumentNotFound(NotFound):
    """Document not found"""


class UserNotFound(NotFound):
    """User not found"""


class ShareLinkNotFound(NotFound):
    """Share link not found"""


class InvitationNotFound(NotFound):
    """Invitation not found"""


# Ссылки

class ShareLinkExpired(DomainError):
    """Share link has expired"""


class ShareLinkRevoked(DomainError):
    """Share link has been revoked"""


# Входные данные

class InvalidEmail(DomainError, ValueError):
    """Invalid email address"""


class InvalidTier(DomainError, ValueError):
    """Invalid permission tier"""


class InvalidGrant(DomainError, ValueError):
    """The owner cannot be given a collaborator grant"""


class InvitationClosed(DomainError):
    """Invitation is no longer pending"""


class Conflict(DomainError):
    """Concurrent modification, please retry"""


class DeliveryFailure(DomainError):
    """Email could not be delivered"""
