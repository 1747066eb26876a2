"""Milestone lifecycle: review, weighted voting, fund release, deadlines,
rework, abandonment and the refund paths that follow a collapse.

States: Proposed -> Approved -> InProgress -> UnderReview -> Passed -> Unlocked,
or UnderReview -> Failed -> (rework) -> InProgress.
"""
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

import structlog
from solders.pubkey import Pubkey

from raise_client.config import get_settings
from raise_client.constants import (
    CONSECUTIVE_FAILURES_THRESHOLD,
    MAX_DEADLINE_EXTENSIONS,
    MILESTONE_APPROVAL_THRESHOLD_PERCENT,
    ProtocolTiming,
)
from raise_client.errors import ErrorCode, LocalErrorCode, RaiseError, require
from raise_client.models.investment import Investment
from raise_client.models.milestone import Milestone, MilestoneState, Vote, VoteChoice
from raise_client.models.project import Project, ProjectState
from raise_client.models.token import Tokenomics, TokenVault
from raise_client.services.codec import U8_MAX
from raise_client.services.projects import require_founder, validate_deadline
from raise_client.services.tiers import bps_share, percentage_of, pro_rata_refund, unreleased_percentage

logger = structlog.get_logger()
settings = get_settings()

DEADLINE_SETTABLE_STATES = (
    MilestoneState.PROPOSED,
    MilestoneState.APPROVED,
    MilestoneState.IN_PROGRESS,
)


@dataclass(frozen=True)
class VoteOutcome:
    milestone: Milestone
    vote: Vote


@dataclass(frozen=True)
class FinalizeOutcome:
    project: Project
    milestone: Milestone
    passed: bool
    token_vault: Optional[TokenVault] = None

    @property
    def exit_window_open(self) -> bool:
        return not self.passed and self.project.exit_window_ends_at is not None


@dataclass(frozen=True)
class ReleaseOutcome:
    project: Project
    milestone: Milestone
    next_milestone: Optional[Milestone]
    amount: int  # USDC sent to the founder
    lp_reserved: int = 0  # USDC kept back for liquidity on the final milestone


@dataclass(frozen=True)
class RefundOutcome:
    investment: Investment
    amount: int
    unreleased_percentage: int


def is_passing(yes_votes: int, total_weight: int) -> bool:
    """Strict weighted majority; an empty or tied vote fails"""
    if total_weight == 0:
        return False
    return yes_votes * 100 > total_weight * MILESTONE_APPROVAL_THRESHOLD_PERCENT


def submit_milestone(
    project: Project,
    milestone: Milestone,
    actor: Pubkey,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> Tuple[Project, Milestone]:
    """InProgress -> UnderReview and open the voting window.

    The first submission also moves a Funded project to InProgress.
    """
    timing = timing or settings.timing
    require_founder(project, actor)
    require(
        project.state in (ProjectState.FUNDED, ProjectState.IN_PROGRESS),
        ErrorCode.PROJECT_NOT_IN_PROGRESS,
    )
    require(milestone.milestone_index == project.current_milestone, ErrorCode.INVALID_MILESTONE_INDEX)
    require(milestone.state == MilestoneState.IN_PROGRESS, ErrorCode.MILESTONE_NOT_IN_PROGRESS)

    reviewed = replace(
        milestone,
        state=MilestoneState.UNDER_REVIEW,
        voting_ends_at=now + timing.voting_period,
    )
    if project.state == ProjectState.FUNDED:
        project = replace(project, state=ProjectState.IN_PROGRESS)
    return project, reviewed


def cast_vote(
    project: Project,
    milestone: Milestone,
    investment: Investment,
    voter: Pubkey,
    choice: VoteChoice,
    now: int,
    milestone_address: Pubkey,
    existing_vote: Optional[Vote] = None,
) -> VoteOutcome:
    """One vote per (milestone, voter, round), weighted by the investment.

    Ownership of the investment NFT is checked by the program, not here.
    """
    require(project.state == ProjectState.IN_PROGRESS, ErrorCode.PROJECT_NOT_IN_PROGRESS)
    require(milestone.state == MilestoneState.UNDER_REVIEW, ErrorCode.MILESTONE_NOT_UNDER_REVIEW)
    require(
        milestone.voting_ends_at is not None and now < milestone.voting_ends_at,
        ErrorCode.VOTING_PERIOD_ENDED,
    )
    require(investment.is_active, ErrorCode.NOT_INVESTOR)
    if existing_vote is not None and existing_vote.voting_round == milestone.voting_round:
        raise RaiseError(ErrorCode.ALREADY_VOTED)

    weight = investment.vote_weight
    if choice == VoteChoice.GOOD:
        tallied = replace(milestone, yes_votes=milestone.yes_votes + weight)
    else:
        tallied = replace(milestone, no_votes=milestone.no_votes + weight)
    tallied = replace(
        tallied,
        total_weight=milestone.total_weight + weight,
        voter_count=milestone.voter_count + 1,
    )
    vote = Vote(
        milestone=milestone_address,
        voter=voter,
        choice=choice,
        weight=weight,
        voting_round=milestone.voting_round,
        voted_at=now,
    )
    return VoteOutcome(milestone=tallied, vote=vote)


def finalize_voting(
    project: Project,
    milestone: Milestone,
    now: int,
    token_vault: Optional[TokenVault] = None,
    timing: Optional[ProtocolTiming] = None,
) -> FinalizeOutcome:
    """Close the vote once the window has elapsed.

    A pass resets the failure streak and opens the milestone's token
    distribution. A failure extends the streak; the third in a row opens
    the voluntary exit window.
    """
    timing = timing or settings.timing
    require(milestone.state == MilestoneState.UNDER_REVIEW, ErrorCode.MILESTONE_NOT_UNDER_REVIEW)
    require(
        milestone.voting_ends_at is not None and now >= milestone.voting_ends_at,
        ErrorCode.VOTING_PERIOD_NOT_ENDED,
    )

    passed = is_passing(milestone.yes_votes, milestone.total_weight)
    if passed:
        milestone = replace(milestone, state=MilestoneState.PASSED)
        project = replace(project, consecutive_failures=0)
        if token_vault is not None:
            require(not token_vault.distribution_pending, LocalErrorCode.DISTRIBUTION_ALREADY_PENDING)
            token_vault = replace(
                token_vault,
                distribution_pending=True,
                pending_milestone=milestone.milestone_index,
                distribution_started_at=now,
                distributed_count=0,
            )
    else:
        milestone = replace(milestone, state=MilestoneState.FAILED)
        failures = project.consecutive_failures + 1
        project = replace(project, consecutive_failures=failures)
        if failures >= CONSECUTIVE_FAILURES_THRESHOLD and not project.exit_window_open(now):
            project = replace(project, exit_window_ends_at=now + timing.exit_window)
            logger.info(
                "Exit window opened",
                project_id=project.project_id,
                consecutive_failures=failures,
                ends_at=project.exit_window_ends_at,
            )

    logger.debug(
        "Predicted vote finalization",
        project_id=project.project_id,
        milestone_index=milestone.milestone_index,
        yes_votes=milestone.yes_votes,
        total_weight=milestone.total_weight,
        passed=passed,
    )
    return FinalizeOutcome(project=project, milestone=milestone, passed=passed, token_vault=token_vault)


def resubmit_milestone(project: Project, milestone: Milestone, actor: Pubkey) -> Milestone:
    """Failed -> InProgress with a fresh tally and the next voting round.

    The project's consecutive failure count is left alone.
    """
    require_founder(project, actor)
    require(project.state == ProjectState.IN_PROGRESS, ErrorCode.PROJECT_NOT_IN_PROGRESS)
    require(milestone.state == MilestoneState.FAILED, LocalErrorCode.MILESTONE_NOT_FAILED)
    require(
        milestone.voting_round < U8_MAX,
        ErrorCode.INVALID_STATE_TRANSITION,
        "Voting round limit reached",
    )
    return replace(
        milestone,
        state=MilestoneState.IN_PROGRESS,
        yes_votes=0,
        no_votes=0,
        total_weight=0,
        voter_count=0,
        voting_ends_at=None,
        voting_round=milestone.voting_round + 1,
    )


def claim_milestone_funds(
    project: Project,
    milestone: Milestone,
    actor: Pubkey,
    now: int,
    next_milestone: Optional[Milestone] = None,
    next_milestone_deadline: Optional[int] = None,
    tokenomics: Optional[Tokenomics] = None,
    timing: Optional[ProtocolTiming] = None,
) -> ReleaseOutcome:
    """Passed -> Unlocked, paying the milestone's share of the raise.

    Non-final milestones must hand over a deadline for the next one, which
    starts immediately. The final milestone keeps back the LP USDC share and
    completes the project.
    """
    require_founder(project, actor)
    require(milestone.state != MilestoneState.UNLOCKED, ErrorCode.MILESTONE_ALREADY_UNLOCKED)
    require(milestone.state == MilestoneState.PASSED, ErrorCode.MILESTONE_NOT_PASSED)
    require(project.state == ProjectState.IN_PROGRESS, ErrorCode.PROJECT_NOT_IN_PROGRESS)

    amount = percentage_of(project.amount_raised, milestone.percentage)
    unlocked = replace(milestone, state=MilestoneState.UNLOCKED)
    is_final = milestone.milestone_index == project.total_milestones - 1

    if is_final:
        lp_reserved = 0
        if tokenomics is not None:
            lp_reserved = min(bps_share(project.amount_raised, tokenomics.lp_usdc_allocation_bps), amount)
        project = replace(project, state=ProjectState.COMPLETED)
        logger.info("Final milestone released, project completed", project_id=project.project_id)
        return ReleaseOutcome(
            project=project,
            milestone=unlocked,
            next_milestone=None,
            amount=amount - lp_reserved,
            lp_reserved=lp_reserved,
        )

    if next_milestone is None or next_milestone.milestone_index != milestone.milestone_index + 1:
        raise RaiseError(ErrorCode.INVALID_MILESTONE_INDEX, "Next milestone is required")
    if next_milestone_deadline is None:
        raise RaiseError(LocalErrorCode.DEADLINE_NOT_SET)
    validate_deadline(next_milestone_deadline, now, timing)

    started = replace(next_milestone, state=MilestoneState.IN_PROGRESS, deadline=next_milestone_deadline)
    project = replace(project, current_milestone=milestone.milestone_index + 1)
    return ReleaseOutcome(project=project, milestone=unlocked, next_milestone=started, amount=amount)


def set_milestone_deadline(
    project: Project,
    milestone: Milestone,
    actor: Pubkey,
    deadline: int,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> Milestone:
    require_founder(project, actor)
    require(milestone.state in DEADLINE_SETTABLE_STATES, LocalErrorCode.DEADLINE_STATE_INVALID)
    validate_deadline(deadline, now, timing)
    return replace(milestone, deadline=deadline)


def extend_milestone_deadline(
    project: Project,
    milestone: Milestone,
    actor: Pubkey,
    new_deadline: int,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> Milestone:
    """Push a still-future deadline later, at most three times"""
    timing = timing or settings.timing
    require_founder(project, actor)
    require(milestone.state in DEADLINE_SETTABLE_STATES, LocalErrorCode.DEADLINE_STATE_INVALID)
    if milestone.deadline is None:
        raise RaiseError(LocalErrorCode.DEADLINE_NOT_SET)
    require(milestone.extension_count < MAX_DEADLINE_EXTENSIONS, LocalErrorCode.DEADLINE_EXTENSIONS_EXHAUSTED)
    require(now < milestone.deadline, LocalErrorCode.DEADLINE_PASSED)
    require(new_deadline > milestone.deadline, LocalErrorCode.DEADLINE_NOT_EXTENDED)
    require(new_deadline <= now + timing.max_deadline_duration, LocalErrorCode.DEADLINE_TOO_FAR)
    return replace(milestone, deadline=new_deadline, extension_count=milestone.extension_count + 1)


def check_abandonment(
    project: Project,
    milestone: Milestone,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> Project:
    """Abandoned once deadline + inactivity timeout passes without a submission"""
    timing = timing or settings.timing
    require(
        project.state in (ProjectState.FUNDED, ProjectState.IN_PROGRESS),
        ErrorCode.PROJECT_NOT_IN_PROGRESS,
    )
    require(milestone.state == MilestoneState.IN_PROGRESS, ErrorCode.MILESTONE_NOT_IN_PROGRESS)
    if milestone.deadline is None:
        raise RaiseError(LocalErrorCode.DEADLINE_NOT_SET)
    require(now > milestone.deadline + timing.inactivity_timeout, LocalErrorCode.ABANDONMENT_NOT_REACHED)
    logger.info("Project abandoned", project_id=project.project_id, milestone_index=milestone.milestone_index)
    return replace(project, state=ProjectState.ABANDONED)


def _refund(investment: Investment, milestones: Sequence[Milestone]) -> RefundOutcome:
    require(not investment.refund_claimed, ErrorCode.REFUND_ALREADY_CLAIMED)
    require(not investment.withdrawn_from_pivot, ErrorCode.REFUND_NOT_AVAILABLE)
    pct = unreleased_percentage(milestones)
    amount = pro_rata_refund(investment.amount, pct)
    require(amount > 0, ErrorCode.REFUND_NOT_AVAILABLE)
    return RefundOutcome(
        investment=replace(investment, refund_claimed=True),
        amount=amount,
        unreleased_percentage=pct,
    )


def claim_refund(project: Project, investment: Investment, milestones: Sequence[Milestone]) -> RefundOutcome:
    """Pro-rata share of unreleased escrow after abandonment"""
    require(project.state == ProjectState.ABANDONED, ErrorCode.PROJECT_NOT_ABANDONED)
    return _refund(investment, milestones)


def claim_exit_window_refund(
    project: Project,
    investment: Investment,
    milestones: Sequence[Milestone],
    now: int,
) -> RefundOutcome:
    if project.exit_window_ends_at is None:
        raise RaiseError(LocalErrorCode.EXIT_WINDOW_NOT_OPEN)
    require(now < project.exit_window_ends_at, LocalErrorCode.EXIT_WINDOW_CLOSED)
    return _refund(investment, milestones)
