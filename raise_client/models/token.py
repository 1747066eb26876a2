"""Tokenomics, distribution vault, vesting and TGE escrow records"""
from dataclasses import dataclass
from typing import Optional

from solders.pubkey import Pubkey

from raise_client.constants import BPS_DENOMINATOR


@dataclass(frozen=True)
class Tokenomics:
    project: Pubkey
    token_symbol: str
    total_supply: int
    investor_allocation_bps: int
    lp_token_allocation_bps: int
    lp_usdc_allocation_bps: int
    founder_allocation_bps: int
    treasury_allocation_bps: int
    founder_wallet: Optional[Pubkey] = None
    vesting_duration_months: int = 0
    cliff_months: int = 0
    bump: int = 0

    @property
    def allocated_bps(self) -> int:
        """Share of supply handed out (LP USDC is a share of the raise, not supply)"""
        return (
            self.investor_allocation_bps
            + self.lp_token_allocation_bps
            + self.founder_allocation_bps
            + self.treasury_allocation_bps
        )

    @property
    def investor_tokens(self) -> int:
        return self.total_supply * self.investor_allocation_bps // BPS_DENOMINATOR

    @property
    def founder_tokens(self) -> int:
        return self.total_supply * self.founder_allocation_bps // BPS_DENOMINATOR


@dataclass(frozen=True)
class TokenVault:
    project: Pubkey
    mint: Pubkey
    total_deposited: int = 0
    distribution_pending: bool = False
    pending_milestone: Optional[int] = None
    distribution_started_at: Optional[int] = None
    distributed_count: int = 0
    force_completed_milestones: int = 0  # bitmask by milestone index
    bump: int = 0

    def was_force_completed(self, milestone_index: int) -> bool:
        return bool(self.force_completed_milestones & (1 << milestone_index))


@dataclass(frozen=True)
class FounderVesting:
    project: Pubkey
    founder: Pubkey
    total_amount: int
    start_time: int
    cliff_end: int
    vesting_end: int
    claimed_amount: int = 0
    bump: int = 0

    @property
    def remaining(self) -> int:
        return self.total_amount - self.claimed_amount


@dataclass(frozen=True)
class TgeEscrow:
    """Holdback of the founder's USDC kept until the scam report period ends"""
    project: Pubkey
    holdback_amount: int
    scam_reports: int = 0
    scam_weight: int = 0
    scam_confirmed: bool = False
    holdback_released: bool = False
    bump: int = 0
