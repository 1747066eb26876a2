"""Milestone and vote records"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from solders.pubkey import Pubkey


class MilestoneState(str, Enum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    IN_PROGRESS = "inProgress"
    UNDER_REVIEW = "underReview"
    PASSED = "passed"
    FAILED = "failed"
    UNLOCKED = "unlocked"


class VoteChoice(str, Enum):
    GOOD = "good"
    BAD = "bad"


@dataclass(frozen=True)
class Milestone:
    project: Pubkey
    milestone_index: int
    percentage: int
    description: str
    state: MilestoneState
    yes_votes: int = 0
    no_votes: int = 0
    total_weight: int = 0
    voter_count: int = 0
    voting_ends_at: Optional[int] = None
    deadline: Optional[int] = None
    extension_count: int = 0
    voting_round: int = 0
    bump: int = 0

    @property
    def is_released(self) -> bool:
        """Funds for this milestone have left escrow"""
        return self.state == MilestoneState.UNLOCKED

    @property
    def approval_bps(self) -> int:
        """Weighted yes share in basis points (truncated)"""
        if self.total_weight == 0:
            return 0
        return self.yes_votes * 10_000 // self.total_weight


@dataclass(frozen=True)
class Vote:
    milestone: Pubkey
    voter: Pubkey
    choice: VoteChoice
    weight: int
    voting_round: int
    voted_at: int
    bump: int = 0
