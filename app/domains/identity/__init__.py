from app.domains.identity.entities import User, Subject
from app.domains.identity.schemas import (
    UserBase, UserCreate, UserLogin, UserUpdate,
    UserResponse, PublicUserResponse, Token
)
from app.domains.identity.services import IdentityService, IdentityContext

__all__ = [
    "User", "Subject",
    "UserBase", "UserCreate", "UserLogin", "UserUpdate",
    "UserResponse", "PublicUserResponse", "Token",
    "IdentityService", "IdentityContext"
]
