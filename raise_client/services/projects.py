"""Project lifecycle: creation, approval, investment and cancellation.

Every function validates against freshly fetched records and returns the
records as the program would leave them. Nothing is mutated in place, so a
rejected action leaves the caller's state untouched.
"""
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import structlog
from solders.pubkey import Pubkey

from raise_client.config import get_settings
from raise_client.constants import (
    MAX_METADATA_URI_LENGTH,
    MAX_MILESTONE_DESCRIPTION_LENGTH,
    MAX_MILESTONES,
    MAX_TOKEN_SYMBOL_LEN,
    MILESTONE_PERCENTAGE_SUM,
    MIN_LP_USDC_ALLOCATION_BPS,
    MIN_MILESTONES,
    MIN_TOKEN_SYMBOL_LEN,
    BPS_DENOMINATOR,
    ProtocolTiming,
)
from raise_client.errors import ErrorCode, LocalErrorCode, RaiseError, require
from raise_client.models.admin import AdminConfig
from raise_client.models.investment import Investment
from raise_client.models.milestone import Milestone, MilestoneState
from raise_client.models.project import Project, ProjectState, Tier
from raise_client.models.token import Tokenomics
from raise_client.services.tiers import (
    find_tier_index,
    token_allocation,
    validate_milestone_percentages,
    validate_tiers,
    vote_weight,
)

logger = structlog.get_logger()
settings = get_settings()


@dataclass(frozen=True)
class CreatedProject:
    project: Project
    tokenomics: Tokenomics


@dataclass(frozen=True)
class InvestOutcome:
    project: Project
    investment: Investment
    first_milestone: Milestone
    tier_index: int

    @property
    def funded(self) -> bool:
        return self.project.state == ProjectState.FUNDED


# Authorization


def require_founder(project: Project, actor: Pubkey) -> None:
    require(actor == project.founder, ErrorCode.UNAUTHORIZED_FOUNDER)


def require_admin(admin_config: AdminConfig, actor: Pubkey) -> None:
    require(actor == admin_config.admin, ErrorCode.UNAUTHORIZED_ADMIN)


# Input validation


def validate_metadata_uri(uri: str, max_length: int = MAX_METADATA_URI_LENGTH) -> bool:
    if len(uri) > max_length:
        return False
    parsed = urlparse(uri)
    return bool(parsed.scheme and (parsed.netloc or parsed.path))


def validate_tokenomics(tokenomics: Tokenomics) -> None:
    """Raise INVALID_TOKENOMICS unless the program would accept the split"""
    symbol = tokenomics.token_symbol
    require(
        MIN_TOKEN_SYMBOL_LEN <= len(symbol) <= MAX_TOKEN_SYMBOL_LEN and symbol.isalnum() and symbol == symbol.upper(),
        LocalErrorCode.INVALID_TOKENOMICS,
        f"Token symbol must be {MIN_TOKEN_SYMBOL_LEN}-{MAX_TOKEN_SYMBOL_LEN} uppercase characters",
    )
    require(tokenomics.total_supply > 0, LocalErrorCode.INVALID_TOKENOMICS, "Total supply must be positive")
    require(
        tokenomics.allocated_bps <= BPS_DENOMINATOR,
        LocalErrorCode.INVALID_TOKENOMICS,
        "Token allocations exceed 100%",
    )
    require(
        MIN_LP_USDC_ALLOCATION_BPS <= tokenomics.lp_usdc_allocation_bps <= BPS_DENOMINATOR,
        LocalErrorCode.INVALID_TOKENOMICS,
        f"LP USDC allocation must be at least {MIN_LP_USDC_ALLOCATION_BPS} bps",
    )
    if tokenomics.founder_allocation_bps > 0:
        require(
            tokenomics.founder_wallet is not None,
            LocalErrorCode.INVALID_TOKENOMICS,
            "Founder wallet is required with a founder allocation",
        )
        require(
            tokenomics.vesting_duration_months > 0,
            LocalErrorCode.INVALID_TOKENOMICS,
            "Vesting duration is required with a founder allocation",
        )
        require(
            tokenomics.cliff_months <= tokenomics.vesting_duration_months,
            LocalErrorCode.INVALID_TOKENOMICS,
            "Cliff cannot be longer than the vesting duration",
        )


def validate_deadline(deadline: int, now: int, timing: Optional[ProtocolTiming] = None) -> None:
    timing = timing or settings.timing
    require(deadline >= now + timing.min_deadline_duration, LocalErrorCode.DEADLINE_TOO_SOON)
    require(deadline <= now + timing.max_deadline_duration, LocalErrorCode.DEADLINE_TOO_FAR)


def calculate_deadline(now: int, days_from_now: float, timing: Optional[ProtocolTiming] = None) -> int:
    """A deadline days_from_now ahead, clamped into the allowed range"""
    timing = timing or settings.timing
    wanted = now + max(int(days_from_now * 86_400), timing.min_deadline_duration)
    return min(wanted, now + timing.max_deadline_duration)


def validate_milestone_set(milestones: Sequence[Tuple[int, str]]) -> None:
    """(percentage, description) pairs for a complete milestone plan"""
    require(MIN_MILESTONES <= len(milestones) <= MAX_MILESTONES, LocalErrorCode.INVALID_MILESTONE_COUNT)
    for percentage, description in milestones:
        require(1 <= percentage <= 100, ErrorCode.MILESTONE_PERCENTAGE_INVALID)
        require(
            len(description) <= MAX_MILESTONE_DESCRIPTION_LENGTH,
            LocalErrorCode.MILESTONE_DESCRIPTION_TOO_LONG,
        )
    require(
        validate_milestone_percentages(p for p, _ in milestones),
        LocalErrorCode.MILESTONE_PERCENTAGE_SUM_INVALID,
    )


# Transitions


def create_project(
    founder: Pubkey,
    project_id: int,
    funding_goal: int,
    metadata_uri: str,
    tiers: Sequence[Tier],
    tokenomics: Tokenomics,
    milestone_1_deadline: int,
    escrow: Pubkey,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> CreatedProject:
    """New project in Draft with its tokenomics"""
    require(funding_goal > 0, LocalErrorCode.INVALID_FUNDING_GOAL)
    require(len(metadata_uri) <= MAX_METADATA_URI_LENGTH, LocalErrorCode.INVALID_METADATA_URI)
    validate_tiers(tiers)
    validate_tokenomics(tokenomics)
    validate_deadline(milestone_1_deadline, now, timing)

    project = Project(
        founder=founder,
        project_id=project_id,
        funding_goal=funding_goal,
        amount_raised=0,
        state=ProjectState.DRAFT,
        metadata_uri=metadata_uri,
        escrow=escrow,
        current_milestone=0,
        total_milestones=0,
        tiers=tuple(replace(t, filled_lots=0) for t in tiers),
        token_allocation_bps=tokenomics.investor_allocation_bps,
        first_milestone_deadline=milestone_1_deadline,
    )
    logger.debug("Predicted project creation", project_id=project_id, funding_goal=funding_goal)
    return CreatedProject(project=project, tokenomics=tokenomics)


def create_milestone(
    project: Project,
    existing: Sequence[Milestone],
    actor: Pubkey,
    milestone_index: int,
    percentage: int,
    description: str,
    project_address: Pubkey,
) -> Tuple[Project, Milestone]:
    require(project.state == ProjectState.DRAFT, LocalErrorCode.PROJECT_NOT_DRAFT)
    require_founder(project, actor)
    require(
        milestone_index == project.total_milestones and milestone_index < MAX_MILESTONES,
        ErrorCode.INVALID_MILESTONE_INDEX,
    )
    require(1 <= percentage <= 100, ErrorCode.MILESTONE_PERCENTAGE_INVALID)
    require(len(description) <= MAX_MILESTONE_DESCRIPTION_LENGTH, LocalErrorCode.MILESTONE_DESCRIPTION_TOO_LONG)
    allocated = sum(m.percentage for m in existing)
    require(allocated + percentage <= MILESTONE_PERCENTAGE_SUM, ErrorCode.TOTAL_PERCENTAGE_EXCEEDED)

    milestone = Milestone(
        project=project_address,
        milestone_index=milestone_index,
        percentage=percentage,
        description=description,
        state=MilestoneState.PROPOSED,
        deadline=project.first_milestone_deadline if milestone_index == 0 else None,
    )
    return replace(project, total_milestones=project.total_milestones + 1), milestone


def submit_for_approval(project: Project, milestones: Sequence[Milestone], actor: Pubkey) -> Project:
    require(project.state == ProjectState.DRAFT, LocalErrorCode.PROJECT_NOT_DRAFT)
    require_founder(project, actor)
    require(MIN_MILESTONES <= len(milestones) <= MAX_MILESTONES, LocalErrorCode.INVALID_MILESTONE_COUNT)
    require(
        validate_milestone_percentages(m.percentage for m in milestones),
        LocalErrorCode.MILESTONE_PERCENTAGE_SUM_INVALID,
    )
    return replace(project, state=ProjectState.PENDING_APPROVAL)


def approve_project(
    project: Project,
    milestones: Sequence[Milestone],
    admin_config: AdminConfig,
    actor: Pubkey,
) -> Tuple[Project, List[Milestone]]:
    """PendingApproval -> Open; every milestone becomes Approved"""
    require_admin(admin_config, actor)
    require(project.state == ProjectState.PENDING_APPROVAL, LocalErrorCode.PROJECT_NOT_PENDING_APPROVAL)
    approved = [replace(m, state=MilestoneState.APPROVED) for m in milestones]
    return replace(project, state=ProjectState.OPEN), approved


def cancel_project(project: Project, actor: Pubkey) -> Project:
    require_founder(project, actor)
    require(
        project.state in (ProjectState.DRAFT, ProjectState.PENDING_APPROVAL),
        ErrorCode.INVALID_STATE_TRANSITION,
        "Only draft or pending projects can be cancelled",
    )
    return replace(project, state=ProjectState.CANCELLED)


def invest(
    project: Project,
    first_milestone: Milestone,
    investor: Pubkey,
    amount: int,
    nft_mint: Pubkey,
    project_address: Pubkey,
    now: int,
) -> InvestOutcome:
    """Consume one lot of the matched tier.

    The investment that brings amount_raised to the goal also moves the
    project to Funded and the first milestone to InProgress.
    """
    require(project.state == ProjectState.OPEN, ErrorCode.PROJECT_NOT_IN_OPEN_STATE)
    tier_index = find_tier_index(project.tiers, amount)
    if tier_index is None:
        raise RaiseError(ErrorCode.INVESTMENT_BELOW_MINIMUM)
    tier = project.tiers[tier_index]
    require(not tier.is_sold_out, LocalErrorCode.TIER_LOTS_EXHAUSTED)
    require(project.amount_raised + amount <= project.funding_goal, ErrorCode.FUNDING_GOAL_EXCEEDED)

    weight = vote_weight(amount, tier)
    allocation = token_allocation(amount, tier)
    investment = Investment(
        project=project_address,
        investor=investor,
        nft_mint=nft_mint,
        amount=amount,
        vote_weight=weight,
        token_allocation=allocation,
        tier=tier_index,
        invested_at=now,
    )

    tiers = list(project.tiers)
    tiers[tier_index] = replace(tier, filled_lots=tier.filled_lots + 1)
    updated = replace(
        project,
        amount_raised=project.amount_raised + amount,
        tiers=tuple(tiers),
        investor_count=project.investor_count + 1,
        investment_count=project.investment_count + 1,
        total_token_allocation=project.total_token_allocation + allocation,
    )

    if updated.amount_raised == updated.funding_goal:
        require(first_milestone.state == MilestoneState.APPROVED, ErrorCode.MILESTONE_NOT_APPROVED)
        updated = replace(updated, state=ProjectState.FUNDED)
        first_milestone = replace(first_milestone, state=MilestoneState.IN_PROGRESS)
        logger.info("Investment completes funding goal", project_id=project.project_id)

    logger.debug(
        "Predicted investment",
        project_id=project.project_id,
        amount=amount,
        tier=tier_index,
        vote_weight=weight,
    )
    return InvestOutcome(
        project=updated,
        investment=investment,
        first_milestone=first_milestone,
        tier_index=tier_index,
    )


def cancel_investment(
    project: Project,
    investment: Investment,
    actor: Pubkey,
    now: int,
    timing: Optional[ProtocolTiming] = None,
) -> Tuple[Project, Investment]:
    """Undo an investment inside the cooling-off period; the lot is returned"""
    timing = timing or settings.timing
    require(project.state == ProjectState.OPEN, ErrorCode.PROJECT_NOT_IN_OPEN_STATE)
    require(actor == investment.investor, ErrorCode.NOT_INVESTOR)
    require(not investment.refund_claimed, ErrorCode.REFUND_ALREADY_CLAIMED)
    require(now <= investment.invested_at + timing.cooling_off_period, ErrorCode.COOLING_OFF_PERIOD_EXPIRED)

    tiers = list(project.tiers)
    tier = tiers[investment.tier]
    tiers[investment.tier] = replace(tier, filled_lots=tier.filled_lots - 1)
    updated = replace(
        project,
        amount_raised=project.amount_raised - investment.amount,
        tiers=tuple(tiers),
        investor_count=project.investor_count - 1,
        total_token_allocation=project.total_token_allocation - investment.token_allocation,
    )
    return updated, replace(investment, refund_claimed=True)


# Admin handover


def initialize_admin(admin: Pubkey) -> AdminConfig:
    return AdminConfig(admin=admin)


def transfer_admin(admin_config: AdminConfig, actor: Pubkey, new_admin: Pubkey) -> AdminConfig:
    """Step one of a two-step handover"""
    require_admin(admin_config, actor)
    return replace(admin_config, pending_admin=new_admin)


def accept_admin(admin_config: AdminConfig, actor: Pubkey) -> AdminConfig:
    require(
        admin_config.pending_admin is not None and actor == admin_config.pending_admin,
        ErrorCode.UNAUTHORIZED_ADMIN,
    )
    return AdminConfig(admin=actor, pending_admin=None, bump=admin_config.bump)
