"""Tier matching and proportional accounting.

All arithmetic is integer and truncates toward zero, the same way the
program computes it. Anything that rounds up here would drift from the
ledger by a base unit.
"""
import math
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Union

from raise_client.constants import (
    BPS_DENOMINATOR,
    MAX_TIERS,
    MILESTONE_PERCENTAGE_SUM,
    MIN_TIER_AMOUNT,
    MIN_TIER_MAX_LOTS,
    MIN_TIER_TOKEN_RATIO,
    MIN_TIER_VOTE_MULTIPLIER,
    MIN_TIERS,
    USDC_DECIMALS,
)
from raise_client.errors import ErrorCode, RaiseError
from raise_client.models.milestone import Milestone, MilestoneState
from raise_client.models.project import Tier

USDC_UNIT = 10 ** USDC_DECIMALS


def find_tier_index(tiers: Sequence[Tier], amount: int) -> Optional[int]:
    """Highest tier whose per-lot amount is <= amount, or None.

    Threshold match, scanned from the top so a larger investment lands in the
    highest tier it qualifies for.
    """
    for i in range(len(tiers) - 1, -1, -1):
        if amount >= tiers[i].amount:
            return i
    return None


def vote_weight(amount: int, tier: Tier) -> int:
    return amount * tier.vote_multiplier // 100


def token_allocation(amount: int, tier: Tier) -> int:
    return amount * tier.token_ratio


def percent_to_bps(percent: float) -> int:
    return math.floor(percent * BPS_DENOMINATOR)


def bps_to_percent(bps: int) -> float:
    return bps / BPS_DENOMINATOR


def percentage_of(amount: int, percentage: float) -> int:
    """amount * pct%, with pct truncated to two decimals first"""
    return amount * math.floor(percentage * 100) // BPS_DENOMINATOR


def bps_share(total: int, bps: int) -> int:
    return total * bps // BPS_DENOMINATOR


def validate_tiers(tiers: Sequence[Tier]) -> None:
    """Raise INVALID_TIER unless the tier list is acceptable to the program"""
    if not MIN_TIERS <= len(tiers) <= MAX_TIERS:
        raise RaiseError(ErrorCode.INVALID_TIER, f"Projects need between {MIN_TIERS} and {MAX_TIERS} tiers")
    previous: Optional[int] = None
    for i, tier in enumerate(tiers):
        if tier.amount < MIN_TIER_AMOUNT:
            raise RaiseError(ErrorCode.INVALID_TIER, f"Tier {i} amount below {MIN_TIER_AMOUNT}")
        if tier.max_lots < MIN_TIER_MAX_LOTS:
            raise RaiseError(ErrorCode.INVALID_TIER, f"Tier {i} must offer at least one lot")
        if tier.token_ratio < MIN_TIER_TOKEN_RATIO:
            raise RaiseError(ErrorCode.INVALID_TIER, f"Tier {i} token ratio below {MIN_TIER_TOKEN_RATIO}")
        if tier.vote_multiplier < MIN_TIER_VOTE_MULTIPLIER:
            raise RaiseError(ErrorCode.INVALID_TIER, f"Tier {i} vote multiplier below {MIN_TIER_VOTE_MULTIPLIER}")
        if tier.filled_lots > tier.max_lots:
            raise RaiseError(ErrorCode.INVALID_TIER, f"Tier {i} has more filled lots than it offers")
        if previous is not None and tier.amount <= previous:
            raise RaiseError(ErrorCode.INVALID_TIER, "Tiers must be sorted by strictly ascending amount")
        previous = tier.amount


def validate_milestone_percentages(percentages: Iterable[int]) -> bool:
    return sum(percentages) == MILESTONE_PERCENTAGE_SUM


def unreleased_percentage(milestones: Iterable[Milestone]) -> int:
    """Share of the raise still in escrow: every milestone not yet unlocked"""
    return sum(m.percentage for m in milestones if m.state != MilestoneState.UNLOCKED)


def pro_rata_refund(amount: int, unreleased_pct: int) -> int:
    return amount * unreleased_pct // 100


def milestone_token_unlock(allocation: int, percentages: Sequence[int], index: int) -> int:
    """Tokens released to an investor when milestone `index` passes.

    Computed as the difference of cumulative truncated shares, so the unlocks
    of all milestones add up to the full allocation.
    """
    if not 0 <= index < len(percentages):
        raise RaiseError(ErrorCode.INVALID_MILESTONE_INDEX)
    before = sum(percentages[:index])
    through = before + percentages[index]
    return allocation * through // 100 - allocation * before // 100


def milestone_token_unlocks(allocation: int, percentages: Sequence[int]) -> List[int]:
    return [milestone_token_unlock(allocation, percentages, i) for i in range(len(percentages))]


def usdc_to_base_units(amount: Union[int, str, Decimal]) -> int:
    """Whole or fractional USDC to base units, truncating below 1e-6"""
    value = Decimal(str(amount)) * USDC_UNIT
    return int(value.quantize(Decimal(1), rounding=ROUND_DOWN))


def base_units_to_usdc(units: int) -> Decimal:
    return Decimal(units) / USDC_UNIT


# Fixed tiers used before projects carried their own tier list


class LegacyTier(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"


LEGACY_TIER_MINIMUMS = {
    LegacyTier.BRONZE: 100_000_000,  # 100 USDC
    LegacyTier.SILVER: 500_000_000,
    LegacyTier.GOLD: 1_000_000_000,
    LegacyTier.PLATINUM: 5_000_000_000,
    LegacyTier.DIAMOND: 10_000_000_000,
}

# Scaled by 100; token multipliers are the same values
LEGACY_TIER_MULTIPLIERS = {
    LegacyTier.BRONZE: 100,
    LegacyTier.SILVER: 120,
    LegacyTier.GOLD: 150,
    LegacyTier.PLATINUM: 200,
    LegacyTier.DIAMOND: 300,
}


def legacy_tier_for_amount(amount: int) -> LegacyTier:
    """Deprecated: projects now define their own tiers"""
    for tier in reversed(list(LegacyTier)):
        if amount >= LEGACY_TIER_MINIMUMS[tier]:
            return tier
    return LegacyTier.BRONZE


def legacy_vote_multiplier(amount: int) -> int:
    return LEGACY_TIER_MULTIPLIERS[legacy_tier_for_amount(amount)]
