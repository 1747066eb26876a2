"""NFT-bound investment record"""
from dataclasses import dataclass

from solders.pubkey import Pubkey


@dataclass(frozen=True)
class Investment:
    project: Pubkey
    investor: Pubkey
    nft_mint: Pubkey
    amount: int
    vote_weight: int
    token_allocation: int
    tier: int
    invested_at: int
    tokens_claimed: bool = False
    withdrawn_from_pivot: bool = False
    refund_claimed: bool = False
    claimed_milestones: int = 0  # bit i set once milestone i tokens are paid out
    bump: int = 0

    @property
    def is_active(self) -> bool:
        """Still backing the project (not refunded or withdrawn)"""
        return not (self.refund_claimed or self.withdrawn_from_pivot)

    def has_claimed_milestone(self, milestone_index: int) -> bool:
        return bool(self.claimed_milestones & (1 << milestone_index))
