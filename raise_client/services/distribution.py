"""Token release after milestones pass, founder vesting, the distribution
circuit breaker and the older TGE/holdback path.

Investors normally claim their own milestone unlocks. The batch push path
is kept for compatibility only; both paths write the same per-investment
claimed-milestone bits.
"""
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

import structlog
from solders.pubkey import Pubkey

from raise_client.config import get_settings
from raise_client.constants import SCAM_THRESHOLD_PERCENT, SECONDS_PER_MONTH, ProtocolTiming
from raise_client.errors import ErrorCode, LocalErrorCode, RaiseError, require
from raise_client.models.admin import AdminConfig
from raise_client.models.investment import Investment
from raise_client.models.milestone import Milestone, MilestoneState
from raise_client.models.project import Project, ProjectState
from raise_client.models.token import FounderVesting, TgeEscrow, Tokenomics, TokenVault
from raise_client.services.projects import require_admin, require_founder
from raise_client.services.tiers import milestone_token_unlock

logger = structlog.get_logger()
settings = get_settings()

RELEASED_MILESTONE_STATES = (MilestoneState.PASSED, MilestoneState.UNLOCKED)


@dataclass(frozen=True)
class TokenClaim:
    investment: Investment
    amount: int


@dataclass(frozen=True)
class DistributionBatch:
    token_vault: TokenVault
    investments: List[Investment]
    amounts: List[int]

    @property
    def total(self) -> int:
        return sum(self.amounts)


@dataclass(frozen=True)
class VestingClaim:
    vesting: FounderVesting
    amount: int


def _mark_claimed(investment: Investment, milestone_index: int) -> Investment:
    return replace(investment, claimed_milestones=investment.claimed_milestones | (1 << milestone_index))


def _unlock_for(investment: Investment, percentages: Sequence[int], milestone_index: int) -> int:
    require(investment.is_active, ErrorCode.NOT_INVESTOR)
    require(not investment.has_claimed_milestone(milestone_index), ErrorCode.TOKENS_ALREADY_CLAIMED)
    return milestone_token_unlock(investment.token_allocation, percentages, milestone_index)


# Investor token release


def claim_investor_tokens(
    milestone: Milestone,
    investment: Investment,
    percentages: Sequence[int],
) -> TokenClaim:
    """Self-service claim of one milestone's unlock.

    percentages is the project's full milestone plan, in index order.
    """
    require(milestone.state in RELEASED_MILESTONE_STATES, ErrorCode.MILESTONE_NOT_PASSED)
    index = milestone.milestone_index
    amount = _unlock_for(investment, percentages, index)
    return TokenClaim(investment=_mark_claimed(investment, index), amount=amount)


def distribute_tokens(
    token_vault: TokenVault,
    milestone_index: int,
    investments: Sequence[Investment],
    percentages: Sequence[int],
    max_batch: Optional[int] = None,
) -> DistributionBatch:
    """Legacy batch push of one milestone's unlock.

    A batch containing an investment that already claimed this milestone is
    refused outright rather than partially applied.
    """
    max_batch = max_batch or settings.max_distribution_batch
    require(
        token_vault.distribution_pending and token_vault.pending_milestone == milestone_index,
        LocalErrorCode.DISTRIBUTION_NOT_PENDING,
    )
    require(len(investments) <= max_batch, LocalErrorCode.DISTRIBUTION_BATCH_TOO_LARGE)

    amounts = [_unlock_for(inv, percentages, milestone_index) for inv in investments]
    logger.warning(
        "Using deprecated batch distribution",
        milestone_index=milestone_index,
        batch_size=len(investments),
    )
    return DistributionBatch(
        token_vault=replace(token_vault, distributed_count=token_vault.distributed_count + len(investments)),
        investments=[_mark_claimed(inv, milestone_index) for inv in investments],
        amounts=amounts,
    )


def complete_distribution(token_vault: TokenVault, milestone_index: int) -> TokenVault:
    require(
        token_vault.distribution_pending and token_vault.pending_milestone == milestone_index,
        LocalErrorCode.DISTRIBUTION_NOT_PENDING,
    )
    return replace(
        token_vault,
        distribution_pending=False,
        pending_milestone=None,
        distribution_started_at=None,
    )


# Circuit breaker


def is_distribution_stalled(token_vault: TokenVault, now: int, timing: Optional[ProtocolTiming] = None) -> bool:
    timing = timing or settings.timing
    if not token_vault.distribution_pending or token_vault.distribution_started_at is None:
        return False
    return now - token_vault.distribution_started_at > timing.distribution_stall_threshold


def force_complete_distribution(
    token_vault: TokenVault,
    admin_config: AdminConfig,
    actor: Pubkey,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> TokenVault:
    """Admin override for a distribution stuck past the stall threshold"""
    require_admin(admin_config, actor)
    require(token_vault.distribution_pending, LocalErrorCode.DISTRIBUTION_NOT_PENDING)
    require(is_distribution_stalled(token_vault, now, timing), LocalErrorCode.DISTRIBUTION_NOT_STALLED)
    milestone_index = token_vault.pending_milestone
    logger.warning("Force completing stalled distribution", milestone_index=milestone_index)
    return replace(
        token_vault,
        distribution_pending=False,
        pending_milestone=None,
        distribution_started_at=None,
        force_completed_milestones=token_vault.force_completed_milestones | (1 << milestone_index),
    )


def claim_missed_unlock(
    token_vault: TokenVault,
    investment: Investment,
    milestone_index: int,
    percentages: Sequence[int],
) -> TokenClaim:
    """Recovery path for investors skipped by a force-completed distribution"""
    require(token_vault.was_force_completed(milestone_index), LocalErrorCode.DISTRIBUTION_NOT_FORCE_COMPLETED)
    amount = _unlock_for(investment, percentages, milestone_index)
    return TokenClaim(investment=_mark_claimed(investment, milestone_index), amount=amount)


# Founder vesting


def initialize_founder_vesting(
    project: Project,
    tokenomics: Tokenomics,
    now: int,
    project_address: Pubkey,
) -> FounderVesting:
    """Starts at the market access event, i.e. project completion"""
    require(project.state == ProjectState.COMPLETED, LocalErrorCode.PROJECT_NOT_COMPLETED)
    require(tokenomics.founder_allocation_bps > 0, LocalErrorCode.NO_FOUNDER_ALLOCATION)
    cliff_end = now + tokenomics.cliff_months * SECONDS_PER_MONTH
    vesting_end = now + tokenomics.vesting_duration_months * SECONDS_PER_MONTH
    return FounderVesting(
        project=project_address,
        founder=tokenomics.founder_wallet or project.founder,
        total_amount=tokenomics.founder_tokens,
        start_time=now,
        cliff_end=cliff_end,
        vesting_end=max(vesting_end, cliff_end),
    )


def vested_amount(vesting: FounderVesting, now: int) -> int:
    """Linear from the cliff to the vesting end; nothing before the cliff"""
    if now < vesting.cliff_end:
        return 0
    if now >= vesting.vesting_end:
        return vesting.total_amount
    elapsed = now - vesting.cliff_end
    duration = vesting.vesting_end - vesting.cliff_end
    return vesting.total_amount * elapsed // duration


def claim_vested_tokens(vesting: FounderVesting, actor: Pubkey, now: int) -> VestingClaim:
    require(actor == vesting.founder, ErrorCode.UNAUTHORIZED_FOUNDER)
    require(now >= vesting.cliff_end, LocalErrorCode.VESTING_CLIFF_NOT_REACHED)
    claimable = vested_amount(vesting, now) - vesting.claimed_amount
    require(claimable > 0, LocalErrorCode.NOTHING_TO_CLAIM)
    return VestingClaim(
        vesting=replace(vesting, claimed_amount=vesting.claimed_amount + claimable),
        amount=claimable,
    )


# TGE and holdback (pre-vault token path)


def set_tge_date(
    project: Project,
    actor: Pubkey,
    tge_date: int,
    token_mint: Pubkey,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> Project:
    timing = timing or settings.timing
    require_founder(project, actor)
    require(
        project.state in (ProjectState.FUNDED, ProjectState.IN_PROGRESS, ProjectState.COMPLETED),
        ErrorCode.PROJECT_NOT_FUNDED,
    )
    require(project.tge_date is None, ErrorCode.TGE_DATE_ALREADY_SET)
    require(tge_date >= now + timing.tge_min_delay, ErrorCode.TGE_DATE_TOO_SOON)
    require(tge_date <= now + timing.tge_max_delay, ErrorCode.TGE_DATE_TOO_LATE)
    return replace(project, tge_date=tge_date, token_mint=token_mint)


def deposit_tokens(project: Project, actor: Pubkey, amount: int) -> Project:
    require_founder(project, actor)
    if project.tge_date is None:
        raise RaiseError(ErrorCode.TGE_DATE_NOT_SET)
    return replace(project, tokens_deposited=project.tokens_deposited + amount)


def claim_tokens(project: Project, investment: Investment, now: int) -> TokenClaim:
    """Claim the full allocation once the TGE date is reached"""
    if project.tge_date is None:
        raise RaiseError(ErrorCode.TGE_DATE_NOT_SET)
    require(now >= project.tge_date, ErrorCode.TGE_NOT_REACHED)
    require(not investment.tokens_claimed, ErrorCode.TOKENS_ALREADY_CLAIMED)
    require(investment.is_active, ErrorCode.NOT_INVESTOR)
    require(
        project.tokens_deposited >= project.total_token_allocation,
        ErrorCode.INSUFFICIENT_TOKENS_DEPOSITED,
    )
    return TokenClaim(investment=replace(investment, tokens_claimed=True), amount=investment.token_allocation)


def report_scam(
    project: Project,
    escrow: TgeEscrow,
    investment: Investment,
    already_reported: bool,
    total_vote_weight: int,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> TgeEscrow:
    """Weighted scam report; confirmed once reports reach 30% of all vote weight"""
    timing = timing or settings.timing
    if project.tge_date is None:
        raise RaiseError(ErrorCode.TGE_DATE_NOT_SET)
    require(now >= project.tge_date, ErrorCode.TGE_NOT_REACHED)
    require(now <= project.tge_date + timing.scam_report_period, ErrorCode.SCAM_REPORT_PERIOD_ENDED)
    require(not already_reported, ErrorCode.SCAM_ALREADY_REPORTED)
    require(investment.is_active, ErrorCode.NOT_INVESTOR)

    weight = escrow.scam_weight + investment.vote_weight
    confirmed = escrow.scam_confirmed or (
        total_vote_weight > 0 and weight * 100 >= total_vote_weight * SCAM_THRESHOLD_PERCENT
    )
    if confirmed and not escrow.scam_confirmed:
        logger.warning("Scam report threshold reached", project_id=project.project_id, scam_weight=weight)
    return replace(escrow, scam_reports=escrow.scam_reports + 1, scam_weight=weight, scam_confirmed=confirmed)


def release_holdback(
    project: Project,
    escrow: TgeEscrow,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> Tuple[TgeEscrow, int]:
    timing = timing or settings.timing
    require(not escrow.holdback_released, ErrorCode.HOLDBACK_ALREADY_RELEASED)
    if project.tge_date is None:
        raise RaiseError(ErrorCode.TGE_DATE_NOT_SET)
    require(now >= project.tge_date + timing.post_tge_holdback, ErrorCode.HOLDBACK_PERIOD_NOT_ENDED)
    require(
        not escrow.scam_confirmed,
        ErrorCode.INVALID_STATE_TRANSITION,
        "Holdback is frozen by a confirmed scam report",
    )
    return replace(escrow, holdback_released=True), escrow.holdback_amount


def mark_tge_failed(project: Project, now: int, timing: Optional[ProtocolTiming] = None) -> Project:
    """TGEFailed when the TGE date plus the holdback grace passes without a full deposit"""
    timing = timing or settings.timing
    require(
        project.tge_date is not None
        and now > project.tge_date + timing.post_tge_holdback
        and project.tokens_deposited < project.total_token_allocation,
        LocalErrorCode.TGE_FAILURE_NOT_REACHED,
    )
    return replace(project, state=ProjectState.TGE_FAILED)
