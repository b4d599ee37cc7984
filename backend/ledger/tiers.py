from .models import Customer, LoyaltyTier

# checked top-down, first match wins
TIER_THRESHOLDS = (
    (15000, LoyaltyTier.PLATINUM),
    (5000, LoyaltyTier.GOLD),
    (1000, LoyaltyTier.SILVER),
    (0, LoyaltyTier.BRONZE),
)

TIER_RANK = {
    LoyaltyTier.BRONZE: 0,
    LoyaltyTier.SILVER: 1,
    LoyaltyTier.GOLD: 2,
    LoyaltyTier.PLATINUM: 3,
}


def classify_tier(lifetime_points: int) -> str:
    for threshold, tier in TIER_THRESHOLDS:
        if lifetime_points >= threshold:
            return tier
    return LoyaltyTier.BRONZE


def tier_rank(tier: str) -> int:
    return TIER_RANK[LoyaltyTier(tier)]


def refresh_tier(customer: Customer) -> bool:
    """Recompute the tier from lifetime points and persist it if it moved."""
    new_tier = classify_tier(customer.lifetime_points)
    if new_tier == customer.tier:
        return False
    customer.tier = new_tier
    customer.save(update_fields=["tier", "updated_at"])
    return True
