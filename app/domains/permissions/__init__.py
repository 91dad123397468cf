from app.domains.permissions.tiers import (
    Tier, GRANTABLE_TIERS, tier_satisfies, effective_tier, require_tier,
    parse_grantable_tier
)

__all__ = [
    "Tier", "GRANTABLE_TIERS", "tier_satisfies", "effective_tier",
    "require_tier", "parse_grantable_tier"
]
