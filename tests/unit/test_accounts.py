"""Unit tests for account layouts and the typed fetcher"""
import pytest
from solders.pubkey import Pubkey

from raise_client.constants import MAX_TIERS
from raise_client.errors import AccountDecodeError, AccountNotFoundError, UnknownAccountError
from raise_client.models import (
    Investment,
    Milestone,
    MilestoneState,
    PivotMilestone,
    PivotProposal,
    PivotState,
    Vote,
    VoteChoice,
)
from raise_client.services.accounts import (
    ACCOUNT_LAYOUTS,
    PARENT_OFFSET,
    AccountFetcher,
    bytes_to_symbol,
    children_filters,
    decode_account,
    encode_account,
    identify_account,
    symbol_to_bytes,
)
from raise_client.services.codec import account_discriminator
from raise_client.services.pdas import AddressKind

# discriminator, founder, project_id, goal, raised, state
URI_OFFSET = 8 + 32 + 8 + 8 + 8 + 1


class TestProjectLayout:
    def test_round_trip(self, make_project):
        project = make_project(investment_count=3, exit_window_ends_at=123, active_pivot=Pubkey.new_unique())
        assert decode_account(encode_account(project)) == project

    def test_starts_with_discriminator(self, make_project):
        data = encode_account(make_project())
        assert data[:8] == account_discriminator("Project")

    def test_tier_array_is_fixed_size(self, make_project, sample_tiers):
        one_tier = encode_account(make_project(tiers=tuple(sample_tiers[:1])))
        three_tiers = encode_account(make_project(tiers=tuple(sample_tiers)))
        assert len(one_tier) == len(three_tiers)

    def test_only_used_tiers_decoded(self, make_project, sample_tiers):
        decoded = decode_account(encode_account(make_project(tiers=tuple(sample_tiers[:2]))))
        assert len(decoded.tiers) == 2

    def test_too_many_tiers(self, make_project, sample_tiers):
        with pytest.raises(ValueError):
            encode_account(make_project(tiers=tuple(sample_tiers) * 4))

    def test_corrupt_tier_count(self, make_project):
        project = make_project()
        data = bytearray(encode_account(project))
        offset = URI_OFFSET + 4 + len(project.metadata_uri.encode()) + 32 + 2
        data[offset] = MAX_TIERS + 1
        with pytest.raises(AccountDecodeError):
            decode_account(bytes(data))


class TestMilestoneLayout:
    def test_zero_deadline_is_none(self, project_address):
        milestone = Milestone(
            project=project_address, milestone_index=1, percentage=60,
            description="Launch", state=MilestoneState.APPROVED,
        )
        decoded = decode_account(encode_account(milestone))
        assert decoded.deadline is None
        assert decoded == milestone

    def test_vote_round_trip(self, project_address):
        vote = Vote(
            milestone=project_address, voter=Pubkey.new_unique(), choice=VoteChoice.BAD,
            weight=42, voting_round=2, voted_at=1_700_000_000,
        )
        assert decode_account(encode_account(vote)) == vote


class TestOtherLayouts:
    def test_pivot_proposal(self, project_address):
        proposal = PivotProposal(
            project=project_address,
            new_metadata_uri="https://raise.example/pivot.json",
            new_milestones=(PivotMilestone(50, "One"), PivotMilestone(50, "Two")),
            state=PivotState.APPROVED_AWAITING_INVESTOR_WINDOW,
            proposed_at=1,
            approved_at=2,
            withdrawal_window_ends_at=3,
        )
        assert decode_account(encode_account(proposal)) == proposal

    def test_tokenomics_symbol(self, tokenomics):
        decoded = decode_account(encode_account(tokenomics))
        assert decoded.token_symbol == "RAISE"
        assert decoded == tokenomics

    def test_symbol_padding(self):
        assert symbol_to_bytes("AB") == b"AB" + b"\x00" * 6
        assert bytes_to_symbol(b"AB" + b"\x00" * 6) == "AB"
        with pytest.raises(ValueError):
            symbol_to_bytes("TOOLONGSYM")

    def test_every_record_type_registered(self):
        assert len(ACCOUNT_LAYOUTS) == 10


class TestDecodeErrors:
    def test_unknown_discriminator(self):
        with pytest.raises(UnknownAccountError):
            identify_account(b"\x00" * 40)

    def test_too_short(self):
        with pytest.raises(AccountDecodeError):
            decode_account(b"\x01\x02")

    def test_wrong_type(self, make_project):
        with pytest.raises(AccountDecodeError):
            decode_account(encode_account(make_project()), Milestone)

    def test_truncated(self, make_investment):
        data = encode_account(make_investment())
        with pytest.raises(AccountDecodeError):
            decode_account(data[:-5])

    def test_unregistered_record(self):
        with pytest.raises(UnknownAccountError):
            encode_account(object())


class TestChildrenFilters:
    def test_filters(self, project_address):
        filters = children_filters(Investment, project_address)
        assert filters[0].offset == 0
        assert filters[0].data == account_discriminator("Investment")
        assert filters[1].offset == PARENT_OFFSET
        assert filters[1].data == bytes(project_address)


class TestAccountFetcher:
    """Tests for typed reads over a ledger reader"""

    @pytest.fixture
    def fetcher(self, ledger, deriver):
        return AccountFetcher(ledger, deriver)

    @pytest.mark.asyncio
    async def test_fetch_project(self, fetcher, ledger, make_project, project_address):
        project = make_project()
        ledger.put(project_address, project)
        assert await fetcher.fetch_project(1) == project

    @pytest.mark.asyncio
    async def test_missing_is_none(self, fetcher):
        assert await fetcher.fetch_project(999) is None

    @pytest.mark.asyncio
    async def test_wrong_type_raises(self, fetcher, ledger, make_investment, project_address):
        ledger.put(project_address, make_investment())
        with pytest.raises(AccountDecodeError):
            await fetcher.fetch_project(1)

    @pytest.mark.asyncio
    async def test_fetch_milestones_in_order(self, fetcher, ledger, deriver, make_milestone, project_address):
        for i in (1, 0):
            ledger.put(deriver.derive(AddressKind.MILESTONE, project_address, i), make_milestone(i))
        milestones = await fetcher.fetch_milestones(project_address, 2)
        assert [m.milestone_index for m in milestones] == [0, 1]

        scanned = await fetcher.fetch_all_milestones(project_address)
        assert [m.milestone_index for m in scanned] == [0, 1]

    @pytest.mark.asyncio
    async def test_fetch_milestones_gap_raises(self, fetcher, ledger, deriver, make_milestone, project_address):
        for i in (0, 2):
            ledger.put(deriver.derive(AddressKind.MILESTONE, project_address, i), make_milestone(i))
        with pytest.raises(AccountNotFoundError):
            await fetcher.fetch_milestones(project_address, 3)

    @pytest.mark.asyncio
    async def test_fetch_all_investments_filters_by_project(
        self, fetcher, ledger, deriver, make_investment, project_address
    ):
        mine = make_investment()
        other = make_investment(project=Pubkey.new_unique())
        ledger.put(deriver.derive(AddressKind.INVESTMENT, project_address, mine.nft_mint), mine)
        ledger.put(deriver.derive(AddressKind.INVESTMENT, other.project, other.nft_mint), other)
        assert await fetcher.fetch_all_investments(project_address) == [mine]

    @pytest.mark.asyncio
    async def test_fetch_vote(self, fetcher, ledger, deriver, project_address, investor):
        milestone = deriver.derive(AddressKind.MILESTONE, project_address, 0)
        vote = Vote(
            milestone=milestone, voter=investor.pubkey(), choice=VoteChoice.GOOD,
            weight=5, voting_round=1, voted_at=10,
        )
        ledger.put(deriver.derive(AddressKind.VOTE, milestone, investor.pubkey(), 1), vote)
        assert await fetcher.fetch_vote(milestone, investor.pubkey(), 1) == vote
        assert await fetcher.fetch_vote(milestone, investor.pubkey(), 0) is None

    @pytest.mark.asyncio
    async def test_fetch_admin_config(self, fetcher, ledger, deriver, admin_config):
        ledger.put(deriver.derive(AddressKind.ADMIN_CONFIG), admin_config)
        assert await fetcher.fetch_admin_config() == admin_config
