"""Pivot proposals: moderator approval, investor withdrawal window and
replacement of the milestone plan.
"""
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

import structlog
from solders.pubkey import Pubkey

from raise_client.config import get_settings
from raise_client.constants import MAX_METADATA_URI_LENGTH, ProtocolTiming
from raise_client.errors import ErrorCode, LocalErrorCode, RaiseError, require
from raise_client.models.admin import AdminConfig
from raise_client.models.investment import Investment
from raise_client.models.milestone import Milestone, MilestoneState
from raise_client.models.pivot import PivotMilestone, PivotProposal, PivotState
from raise_client.models.project import Project, ProjectState
from raise_client.services.projects import require_admin, require_founder, validate_milestone_set
from raise_client.services.tiers import pro_rata_refund, unreleased_percentage

logger = structlog.get_logger()
settings = get_settings()


@dataclass(frozen=True)
class PivotWithdrawal:
    proposal: PivotProposal
    investment: Investment
    amount: int


@dataclass(frozen=True)
class FinalizedPivot:
    project: Project
    proposal: PivotProposal
    milestones: List[Milestone]
    reuses_milestone_accounts: bool  # same count, old PDAs are rewritten in place


def propose_pivot(
    project: Project,
    actor: Pubkey,
    new_metadata_uri: str,
    new_milestones: Sequence[PivotMilestone],
    now: int,
    proposal_address: Pubkey,
    project_address: Pubkey,
) -> Tuple[Project, PivotProposal]:
    require_founder(project, actor)
    require(project.state == ProjectState.IN_PROGRESS, ErrorCode.PROJECT_NOT_IN_PROGRESS)
    if project.active_pivot is not None:
        raise RaiseError(ErrorCode.PIVOT_ALREADY_PROPOSED)
    require(len(new_metadata_uri) <= MAX_METADATA_URI_LENGTH, LocalErrorCode.INVALID_METADATA_URI)
    validate_milestone_set([(m.percentage, m.description) for m in new_milestones])

    proposal = PivotProposal(
        project=project_address,
        new_metadata_uri=new_metadata_uri,
        new_milestones=tuple(new_milestones),
        state=PivotState.PENDING_MODERATOR_APPROVAL,
        proposed_at=now,
    )
    return replace(project, active_pivot=proposal_address), proposal


def approve_pivot(
    proposal: PivotProposal,
    admin_config: AdminConfig,
    actor: Pubkey,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> PivotProposal:
    """Opens the investor withdrawal window"""
    timing = timing or settings.timing
    require_admin(admin_config, actor)
    require(proposal.state == PivotState.PENDING_MODERATOR_APPROVAL, LocalErrorCode.PIVOT_NOT_PENDING)
    return replace(
        proposal,
        state=PivotState.APPROVED_AWAITING_INVESTOR_WINDOW,
        approved_at=now,
        withdrawal_window_ends_at=now + timing.pivot_withdrawal_window,
    )


def withdraw_from_pivot(
    proposal: PivotProposal,
    investment: Investment,
    milestones: Sequence[Milestone],
    now: int,
) -> PivotWithdrawal:
    """Exit with a pro-rata share of unreleased escrow while the window is open"""
    require(proposal.state == PivotState.APPROVED_AWAITING_INVESTOR_WINDOW, ErrorCode.PIVOT_NOT_APPROVED)
    require(
        proposal.withdrawal_window_ends_at is not None and now < proposal.withdrawal_window_ends_at,
        ErrorCode.PIVOT_WINDOW_ENDED,
    )
    require(not investment.withdrawn_from_pivot, ErrorCode.ALREADY_WITHDRAWN_FROM_PIVOT)
    require(not investment.refund_claimed, ErrorCode.REFUND_ALREADY_CLAIMED)

    amount = pro_rata_refund(investment.amount, unreleased_percentage(milestones))
    return PivotWithdrawal(
        proposal=replace(
            proposal,
            withdrawn_amount=proposal.withdrawn_amount + amount,
            withdrawn_count=proposal.withdrawn_count + 1,
        ),
        investment=replace(investment, withdrawn_from_pivot=True),
        amount=amount,
    )


def finalize_pivot(
    project: Project,
    proposal: PivotProposal,
    old_milestone_count: int,
    now: int,
    project_address: Pubkey,
) -> FinalizedPivot:
    """Swap in the new plan once the withdrawal window has closed.

    The new first milestone starts straight away; the rest wait as Approved.
    Deadlines must be set again by the founder.
    """
    require(proposal.state == PivotState.APPROVED_AWAITING_INVESTOR_WINDOW, ErrorCode.PIVOT_NOT_APPROVED)
    require(
        proposal.withdrawal_window_ends_at is not None and now >= proposal.withdrawal_window_ends_at,
        ErrorCode.PIVOT_WINDOW_NOT_ENDED,
    )

    milestones = [
        Milestone(
            project=project_address,
            milestone_index=i,
            percentage=m.percentage,
            description=m.description,
            state=MilestoneState.IN_PROGRESS if i == 0 else MilestoneState.APPROVED,
        )
        for i, m in enumerate(proposal.new_milestones)
    ]
    updated = replace(
        project,
        metadata_uri=proposal.new_metadata_uri,
        total_milestones=len(milestones),
        current_milestone=0,
        consecutive_failures=0,
        exit_window_ends_at=None,
        pivot_count=project.pivot_count + 1,
        active_pivot=None,
    )
    logger.info(
        "Pivot finalized",
        project_id=project.project_id,
        withdrawn_amount=proposal.withdrawn_amount,
        withdrawn_count=proposal.withdrawn_count,
        milestones=len(milestones),
    )
    return FinalizedPivot(
        project=updated,
        proposal=replace(proposal, state=PivotState.FINALIZED),
        milestones=milestones,
        reuses_milestone_accounts=len(milestones) == old_milestone_count,
    )
