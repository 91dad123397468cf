"""Уровни доступа к документу и их сравнение.

Порядок полный: owner > editor > viewer > none. Все проверки прав в
системе проходят через ``tier_satisfies``.
"""
import uuid
from enum import Enum
from typing import Optional

from app.core.errors import AccessDenied, InvalidTier


class Tier(str, Enum):
    """Уровень доступа субъекта к документу"""
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
    NONE = "none"


_RANK = {
    Tier.NONE: 0,
    Tier.VIEWER: 1,
    Tier.EDITOR: 2,
    Tier.OWNER: 3,
}

# Уровни, которые можно выдать соавтору или ссылке
GRANTABLE_TIERS = (Tier.VIEWER, Tier.EDITOR)


def tier_satisfies(held: Tier, required: Tier) -> bool:
    """Покрывает ли уровень held требование required"""
    return _RANK[held] >= _RANK[required]


def effective_tier(owner_id: uuid.UUID, subject_id: uuid.UUID, grant_tier: Optional[Tier]) -> Tier:
    """Итоговый уровень субъекта: владелец, затем выдача, иначе none"""
    if subject_id == owner_id:
        return Tier.OWNER
    if grant_tier is not None:
        return grant_tier
    return Tier.NONE


def require_tier(held: Tier, required: Tier, message: str = None) -> None:
    if not tier_satisfies(held, required):
        raise AccessDenied(message or f"This action requires {required.value} access")


def parse_grantable_tier(value) -> Tier:
    """Уровень для выдачи соавтору или ссылке: только viewer или editor"""
    try:
        tier = Tier(value)
    except ValueError:
        raise InvalidTier(f"Unknown permission tier: {value!r}")
    if tier not in GRANTABLE_TIERS:
        raise InvalidTier(f"Tier {tier.value!r} cannot be granted")
    return tier
