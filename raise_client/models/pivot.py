"""Pivot proposal records"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from solders.pubkey import Pubkey


class PivotState(str, Enum):
    PENDING_MODERATOR_APPROVAL = "pendingModeratorApproval"
    APPROVED_AWAITING_INVESTOR_WINDOW = "approvedAwaitingInvestorWindow"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class PivotMilestone:
    percentage: int
    description: str


@dataclass(frozen=True)
class PivotProposal:
    project: Pubkey
    new_metadata_uri: str
    new_milestones: Tuple[PivotMilestone, ...]
    state: PivotState
    proposed_at: int
    approved_at: Optional[int] = None
    withdrawal_window_ends_at: Optional[int] = None
    withdrawn_amount: int = 0
    withdrawn_count: int = 0
    bump: int = 0
