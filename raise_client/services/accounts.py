"""Account decoding and fetching.

Every Raise account is an 8-byte discriminator followed by Borsh fields in
struct order. Decoding is table-driven through ACCOUNT_LAYOUTS; there is no
IDL at runtime.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

import structlog
from solders.pubkey import Pubkey

from raise_client.constants import MAX_TIERS, MAX_TOKEN_SYMBOL_LEN
from raise_client.errors import AccountDecodeError, AccountNotFoundError, UnknownAccountError
from raise_client.models import (
    AdminConfig,
    FounderVesting,
    Investment,
    Milestone,
    MilestoneState,
    PivotMilestone,
    PivotProposal,
    PivotState,
    Project,
    ProjectState,
    TgeEscrow,
    Tier,
    Tokenomics,
    TokenVault,
    Vote,
    VoteChoice,
)
from raise_client.services.codec import BorshReader, BorshWriter, account_discriminator
from raise_client.services.ledger import LedgerReader, MemcmpFilter
from raise_client.services.pdas import AddressDeriver, AddressKind

logger = structlog.get_logger()

DISCRIMINATOR_SIZE = 8
# Parent key (project or milestone) sits right after the discriminator
PARENT_OFFSET = DISCRIMINATOR_SIZE

EMPTY_TIER = Tier(amount=0, max_lots=0, filled_lots=0, token_ratio=0, vote_multiplier=0)


# Project


def _read_tier(r: BorshReader) -> Tier:
    return Tier(
        amount=r.u64(),
        max_lots=r.u32(),
        filled_lots=r.u32(),
        token_ratio=r.u64(),
        vote_multiplier=r.u16(),
    )


def _write_tier(w: BorshWriter, tier: Tier) -> None:
    w.u64(tier.amount).u32(tier.max_lots).u32(tier.filled_lots).u64(tier.token_ratio).u16(tier.vote_multiplier)


def _read_project(r: BorshReader) -> Project:
    founder = r.pubkey()
    project_id = r.u64()
    funding_goal = r.u64()
    amount_raised = r.u64()
    state = r.enum(ProjectState)
    metadata_uri = r.string()
    escrow = r.pubkey()
    current_milestone = r.u8()
    total_milestones = r.u8()
    tier_count = r.u8()
    if tier_count > MAX_TIERS:
        raise AccountDecodeError(f"Project tier count {tier_count} exceeds {MAX_TIERS}")
    # Fixed-size tier array; only the first tier_count slots are in use
    tiers = r.array(lambda: _read_tier(r), MAX_TIERS)[:tier_count]
    return Project(
        founder=founder,
        project_id=project_id,
        funding_goal=funding_goal,
        amount_raised=amount_raised,
        state=state,
        metadata_uri=metadata_uri,
        escrow=escrow,
        current_milestone=current_milestone,
        total_milestones=total_milestones,
        tiers=tuple(tiers),
        token_mint=r.option(r.pubkey),
        tge_date=r.option(r.i64),
        tokens_deposited=r.u64(),
        token_allocation_bps=r.u16(),
        total_token_allocation=r.u64(),
        consecutive_failures=r.u8(),
        investor_count=r.u32(),
        investment_count=r.u32(),
        pivot_count=r.u8(),
        active_pivot=r.option(r.pubkey),
        exit_window_ends_at=r.option(r.i64),
        first_milestone_deadline=r.option(r.i64),
        bump=r.u8(),
    )


def _write_project(w: BorshWriter, p: Project) -> None:
    if len(p.tiers) > MAX_TIERS:
        raise ValueError(f"Project has {len(p.tiers)} tiers, at most {MAX_TIERS} fit")
    w.pubkey(p.founder).u64(p.project_id).u64(p.funding_goal).u64(p.amount_raised)
    w.enum(p.state).string(p.metadata_uri).pubkey(p.escrow)
    w.u8(p.current_milestone).u8(p.total_milestones).u8(len(p.tiers))
    for tier in list(p.tiers) + [EMPTY_TIER] * (MAX_TIERS - len(p.tiers)):
        _write_tier(w, tier)
    w.option(p.token_mint, w.pubkey).option(p.tge_date, w.i64)
    w.u64(p.tokens_deposited).u16(p.token_allocation_bps).u64(p.total_token_allocation)
    w.u8(p.consecutive_failures).u32(p.investor_count).u32(p.investment_count).u8(p.pivot_count)
    w.option(p.active_pivot, w.pubkey).option(p.exit_window_ends_at, w.i64)
    w.option(p.first_milestone_deadline, w.i64).u8(p.bump)


# Milestone and vote


def _read_milestone(r: BorshReader) -> Milestone:
    project = r.pubkey()
    milestone_index = r.u8()
    percentage = r.u8()
    description = r.string()
    state = r.enum(MilestoneState)
    yes_votes = r.u64()
    no_votes = r.u64()
    total_weight = r.u64()
    voter_count = r.u32()
    voting_ends_at = r.option(r.i64)
    deadline = r.i64()
    return Milestone(
        project=project,
        milestone_index=milestone_index,
        percentage=percentage,
        description=description,
        state=state,
        yes_votes=yes_votes,
        no_votes=no_votes,
        total_weight=total_weight,
        voter_count=voter_count,
        voting_ends_at=voting_ends_at,
        deadline=deadline or None,  # 0 means unset
        extension_count=r.u8(),
        voting_round=r.u8(),
        bump=r.u8(),
    )


def _write_milestone(w: BorshWriter, m: Milestone) -> None:
    w.pubkey(m.project).u8(m.milestone_index).u8(m.percentage).string(m.description)
    w.enum(m.state).u64(m.yes_votes).u64(m.no_votes).u64(m.total_weight).u32(m.voter_count)
    w.option(m.voting_ends_at, w.i64).i64(m.deadline or 0)
    w.u8(m.extension_count).u8(m.voting_round).u8(m.bump)


def _read_vote(r: BorshReader) -> Vote:
    return Vote(
        milestone=r.pubkey(),
        voter=r.pubkey(),
        choice=r.enum(VoteChoice),
        weight=r.u64(),
        voting_round=r.u8(),
        voted_at=r.i64(),
        bump=r.u8(),
    )


def _write_vote(w: BorshWriter, v: Vote) -> None:
    w.pubkey(v.milestone).pubkey(v.voter).enum(v.choice).u64(v.weight)
    w.u8(v.voting_round).i64(v.voted_at).u8(v.bump)


# Investment


def _read_investment(r: BorshReader) -> Investment:
    return Investment(
        project=r.pubkey(),
        investor=r.pubkey(),
        nft_mint=r.pubkey(),
        amount=r.u64(),
        vote_weight=r.u64(),
        token_allocation=r.u64(),
        tier=r.u8(),
        invested_at=r.i64(),
        tokens_claimed=r.boolean(),
        withdrawn_from_pivot=r.boolean(),
        refund_claimed=r.boolean(),
        claimed_milestones=r.u16(),
        bump=r.u8(),
    )


def _write_investment(w: BorshWriter, i: Investment) -> None:
    w.pubkey(i.project).pubkey(i.investor).pubkey(i.nft_mint)
    w.u64(i.amount).u64(i.vote_weight).u64(i.token_allocation).u8(i.tier).i64(i.invested_at)
    w.boolean(i.tokens_claimed).boolean(i.withdrawn_from_pivot).boolean(i.refund_claimed)
    w.u16(i.claimed_milestones).u8(i.bump)


# Admin and pivot


def _read_admin_config(r: BorshReader) -> AdminConfig:
    return AdminConfig(admin=r.pubkey(), pending_admin=r.option(r.pubkey), bump=r.u8())


def _write_admin_config(w: BorshWriter, a: AdminConfig) -> None:
    w.pubkey(a.admin).option(a.pending_admin, w.pubkey).u8(a.bump)


def _read_pivot_proposal(r: BorshReader) -> PivotProposal:
    project = r.pubkey()
    new_metadata_uri = r.string()
    new_milestones = r.vec(lambda: PivotMilestone(percentage=r.u8(), description=r.string()))
    return PivotProposal(
        project=project,
        new_metadata_uri=new_metadata_uri,
        new_milestones=tuple(new_milestones),
        state=r.enum(PivotState),
        proposed_at=r.i64(),
        approved_at=r.option(r.i64),
        withdrawal_window_ends_at=r.option(r.i64),
        withdrawn_amount=r.u64(),
        withdrawn_count=r.u32(),
        bump=r.u8(),
    )


def _write_pivot_proposal(w: BorshWriter, p: PivotProposal) -> None:
    w.pubkey(p.project).string(p.new_metadata_uri)
    w.vec(list(p.new_milestones), lambda m: w.u8(m.percentage).string(m.description))
    w.enum(p.state).i64(p.proposed_at)
    w.option(p.approved_at, w.i64).option(p.withdrawal_window_ends_at, w.i64)
    w.u64(p.withdrawn_amount).u32(p.withdrawn_count).u8(p.bump)


# Token accounts


def symbol_to_bytes(symbol: str) -> bytes:
    """Token symbols are stored as a zero-padded 8-byte array"""
    raw = symbol.encode("ascii")
    if len(raw) > MAX_TOKEN_SYMBOL_LEN:
        raise ValueError(f"Token symbol longer than {MAX_TOKEN_SYMBOL_LEN} bytes: {symbol!r}")
    return raw.ljust(MAX_TOKEN_SYMBOL_LEN, b"\x00")


def bytes_to_symbol(raw: bytes) -> str:
    return raw.rstrip(b"\x00").decode("ascii", errors="replace")


def _read_tokenomics(r: BorshReader) -> Tokenomics:
    return Tokenomics(
        project=r.pubkey(),
        token_symbol=bytes_to_symbol(r.bytes_fixed(MAX_TOKEN_SYMBOL_LEN)),
        total_supply=r.u64(),
        investor_allocation_bps=r.u16(),
        lp_token_allocation_bps=r.u16(),
        lp_usdc_allocation_bps=r.u16(),
        founder_allocation_bps=r.u16(),
        treasury_allocation_bps=r.u16(),
        founder_wallet=r.option(r.pubkey),
        vesting_duration_months=r.u8(),
        cliff_months=r.u8(),
        bump=r.u8(),
    )


def _write_tokenomics(w: BorshWriter, t: Tokenomics) -> None:
    w.pubkey(t.project).raw(symbol_to_bytes(t.token_symbol)).u64(t.total_supply)
    w.u16(t.investor_allocation_bps).u16(t.lp_token_allocation_bps).u16(t.lp_usdc_allocation_bps)
    w.u16(t.founder_allocation_bps).u16(t.treasury_allocation_bps)
    w.option(t.founder_wallet, w.pubkey).u8(t.vesting_duration_months).u8(t.cliff_months).u8(t.bump)


def _read_token_vault(r: BorshReader) -> TokenVault:
    return TokenVault(
        project=r.pubkey(),
        mint=r.pubkey(),
        total_deposited=r.u64(),
        distribution_pending=r.boolean(),
        pending_milestone=r.option(r.u8),
        distribution_started_at=r.option(r.i64),
        distributed_count=r.u32(),
        force_completed_milestones=r.u16(),
        bump=r.u8(),
    )


def _write_token_vault(w: BorshWriter, v: TokenVault) -> None:
    w.pubkey(v.project).pubkey(v.mint).u64(v.total_deposited).boolean(v.distribution_pending)
    w.option(v.pending_milestone, w.u8).option(v.distribution_started_at, w.i64)
    w.u32(v.distributed_count).u16(v.force_completed_milestones).u8(v.bump)


def _read_founder_vesting(r: BorshReader) -> FounderVesting:
    return FounderVesting(
        project=r.pubkey(),
        founder=r.pubkey(),
        total_amount=r.u64(),
        start_time=r.i64(),
        cliff_end=r.i64(),
        vesting_end=r.i64(),
        claimed_amount=r.u64(),
        bump=r.u8(),
    )


def _write_founder_vesting(w: BorshWriter, v: FounderVesting) -> None:
    w.pubkey(v.project).pubkey(v.founder).u64(v.total_amount)
    w.i64(v.start_time).i64(v.cliff_end).i64(v.vesting_end).u64(v.claimed_amount).u8(v.bump)


def _read_tge_escrow(r: BorshReader) -> TgeEscrow:
    return TgeEscrow(
        project=r.pubkey(),
        holdback_amount=r.u64(),
        scam_reports=r.u64(),
        scam_weight=r.u64(),
        scam_confirmed=r.boolean(),
        holdback_released=r.boolean(),
        bump=r.u8(),
    )


def _write_tge_escrow(w: BorshWriter, e: TgeEscrow) -> None:
    w.pubkey(e.project).u64(e.holdback_amount).u64(e.scam_reports).u64(e.scam_weight)
    w.boolean(e.scam_confirmed).boolean(e.holdback_released).u8(e.bump)


# Registry


@dataclass(frozen=True)
class AccountLayout:
    name: str
    record_type: Type[Any]
    read: Callable[[BorshReader], Any]
    write: Callable[[BorshWriter, Any], None]

    @property
    def discriminator(self) -> bytes:
        return account_discriminator(self.name)


ACCOUNT_LAYOUTS: Dict[Type[Any], AccountLayout] = {
    layout.record_type: layout
    for layout in (
        AccountLayout("Project", Project, _read_project, _write_project),
        AccountLayout("Milestone", Milestone, _read_milestone, _write_milestone),
        AccountLayout("Investment", Investment, _read_investment, _write_investment),
        AccountLayout("Vote", Vote, _read_vote, _write_vote),
        AccountLayout("AdminConfig", AdminConfig, _read_admin_config, _write_admin_config),
        AccountLayout("PivotProposal", PivotProposal, _read_pivot_proposal, _write_pivot_proposal),
        AccountLayout("Tokenomics", Tokenomics, _read_tokenomics, _write_tokenomics),
        AccountLayout("TokenVault", TokenVault, _read_token_vault, _write_token_vault),
        AccountLayout("FounderVesting", FounderVesting, _read_founder_vesting, _write_founder_vesting),
        AccountLayout("TgeEscrow", TgeEscrow, _read_tge_escrow, _write_tge_escrow),
    )
}

LAYOUTS_BY_DISCRIMINATOR: Dict[bytes, AccountLayout] = {
    layout.discriminator: layout for layout in ACCOUNT_LAYOUTS.values()
}


def identify_account(data: bytes) -> AccountLayout:
    layout = LAYOUTS_BY_DISCRIMINATOR.get(bytes(data[:DISCRIMINATOR_SIZE]))
    if layout is None:
        raise UnknownAccountError(f"Unknown account discriminator {bytes(data[:DISCRIMINATOR_SIZE]).hex()}")
    return layout


def decode_account(data: bytes, expected: Optional[Type[Any]] = None) -> Any:
    """Decode raw account bytes into its record.

    With expected set, data for any other account type is rejected.
    """
    if len(data) < DISCRIMINATOR_SIZE:
        raise AccountDecodeError(f"Account data too short: {len(data)} bytes")
    layout = identify_account(data)
    if expected is not None and layout.record_type is not expected:
        raise AccountDecodeError(f"Expected {expected.__name__} account, found {layout.name}")
    return layout.read(BorshReader(data, DISCRIMINATOR_SIZE))


def encode_account(record: Any) -> bytes:
    layout = ACCOUNT_LAYOUTS.get(type(record))
    if layout is None:
        raise UnknownAccountError(f"No account layout for {type(record).__name__}")
    writer = BorshWriter().raw(layout.discriminator)
    layout.write(writer, record)
    return writer.to_bytes()


def children_filters(record_type: Type[Any], parent: Pubkey) -> List[MemcmpFilter]:
    """Filters selecting every account of a type owned by a parent key"""
    return [
        MemcmpFilter(offset=0, data=ACCOUNT_LAYOUTS[record_type].discriminator),
        MemcmpFilter(offset=PARENT_OFFSET, data=bytes(parent)),
    ]


class AccountFetcher:
    """Typed reads over a LedgerReader.

    A missing account is returned as None; data that does not decode raises.
    """

    def __init__(self, reader: LedgerReader, deriver: Optional[AddressDeriver] = None):
        self.reader = reader
        self.deriver = deriver or AddressDeriver()

    async def fetch(self, address: Pubkey, record_type: Type[Any]) -> Optional[Any]:
        data = await self.reader.read(address)
        if data is None:
            logger.debug("Account not found", address=str(address), kind=record_type.__name__)
            return None
        return decode_account(data, record_type)

    async def fetch_all(self, record_type: Type[Any], parent: Pubkey) -> List[Any]:
        matches = await self.reader.read_all_matching(children_filters(record_type, parent))
        return [decode_account(data, record_type) for _, data in matches]

    async def fetch_project(self, project_id: int) -> Optional[Project]:
        return await self.fetch(self.deriver.derive(AddressKind.PROJECT, project_id), Project)

    async def fetch_milestone(self, project: Pubkey, milestone_index: int) -> Optional[Milestone]:
        return await self.fetch(self.deriver.derive(AddressKind.MILESTONE, project, milestone_index), Milestone)

    async def fetch_milestones(self, project: Pubkey, count: int) -> List[Milestone]:
        """Milestones 0..count-1 by address, in index order.

        Raises AccountNotFoundError if any of them is missing, since callers
        index the result by milestone position.
        """
        addresses = self.deriver.milestone_addresses(project, count)
        milestones = await asyncio.gather(*(self.fetch(a, Milestone) for a in addresses))
        missing = [i for i, m in enumerate(milestones) if m is None]
        if missing:
            raise AccountNotFoundError(f"Milestone(s) {missing} of project {project} not found")
        return list(milestones)

    async def fetch_all_milestones(self, project: Pubkey) -> List[Milestone]:
        milestones = await self.fetch_all(Milestone, project)
        return sorted(milestones, key=lambda m: m.milestone_index)

    async def fetch_investment(self, project: Pubkey, nft_mint: Pubkey) -> Optional[Investment]:
        return await self.fetch(self.deriver.derive(AddressKind.INVESTMENT, project, nft_mint), Investment)

    async def fetch_all_investments(self, project: Pubkey) -> List[Investment]:
        return await self.fetch_all(Investment, project)

    async def fetch_vote(self, milestone: Pubkey, voter: Pubkey, voting_round: int) -> Optional[Vote]:
        return await self.fetch(self.deriver.derive(AddressKind.VOTE, milestone, voter, voting_round), Vote)

    async def fetch_all_votes(self, milestone: Pubkey) -> List[Vote]:
        return await self.fetch_all(Vote, milestone)

    async def fetch_admin_config(self) -> Optional[AdminConfig]:
        return await self.fetch(self.deriver.derive(AddressKind.ADMIN_CONFIG), AdminConfig)

    async def fetch_pivot_proposal(self, address: Pubkey) -> Optional[PivotProposal]:
        return await self.fetch(address, PivotProposal)

    async def fetch_tokenomics(self, project: Pubkey) -> Optional[Tokenomics]:
        return await self.fetch(self.deriver.derive(AddressKind.TOKENOMICS, project), Tokenomics)

    async def fetch_token_vault(self, project: Pubkey) -> Optional[TokenVault]:
        return await self.fetch(self.deriver.derive(AddressKind.TOKEN_VAULT, project), TokenVault)

    async def fetch_founder_vesting(self, project: Pubkey) -> Optional[FounderVesting]:
        return await self.fetch(self.deriver.derive(AddressKind.FOUNDER_VESTING, project), FounderVesting)

    async def fetch_tge_escrow(self, project: Pubkey) -> Optional[TgeEscrow]:
        return await self.fetch(self.deriver.derive(AddressKind.TGE_ESCROW, project), TgeEscrow)
