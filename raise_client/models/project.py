"""Project and tier records"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from solders.pubkey import Pubkey


class ProjectState(str, Enum):
    """Project lifecycle state (declaration order is the on-chain variant index)"""
    DRAFT = "draft"
    PENDING_APPROVAL = "pendingApproval"
    OPEN = "open"
    FUNDED = "funded"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    FAILED = "failed"
    TGE_FAILED = "tgeFailed"
    CANCELLED = "cancelled"


TERMINAL_PROJECT_STATES = frozenset({
    ProjectState.COMPLETED,
    ProjectState.ABANDONED,
    ProjectState.FAILED,
    ProjectState.TGE_FAILED,
    ProjectState.CANCELLED,
})


@dataclass(frozen=True)
class Tier:
    """Founder-configured investment tier"""
    amount: int  # USDC base units per lot
    max_lots: int
    filled_lots: int
    token_ratio: int  # tokens per base unit invested
    vote_multiplier: int  # 100 = 1.0x

    @property
    def lots_remaining(self) -> int:
        return self.max_lots - self.filled_lots

    @property
    def is_sold_out(self) -> bool:
        return self.filled_lots >= self.max_lots


@dataclass(frozen=True)
class Project:
    founder: Pubkey
    project_id: int
    funding_goal: int
    amount_raised: int
    state: ProjectState
    metadata_uri: str
    escrow: Pubkey
    current_milestone: int
    total_milestones: int
    tiers: Tuple[Tier, ...]
    token_mint: Optional[Pubkey] = None
    tge_date: Optional[int] = None
    tokens_deposited: int = 0
    token_allocation_bps: int = 0
    total_token_allocation: int = 0
    consecutive_failures: int = 0
    investor_count: int = 0
    investment_count: int = 0
    pivot_count: int = 0
    active_pivot: Optional[Pubkey] = None
    exit_window_ends_at: Optional[int] = None
    first_milestone_deadline: Optional[int] = None
    bump: int = 0

    @property
    def tier_count(self) -> int:
        return len(self.tiers)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_PROJECT_STATES

    @property
    def is_fully_funded(self) -> bool:
        return self.amount_raised >= self.funding_goal

    @property
    def remaining_capacity(self) -> int:
        return self.funding_goal - self.amount_raised

    def exit_window_open(self, now: int) -> bool:
        return self.exit_window_ends_at is not None and now < self.exit_window_ends_at
