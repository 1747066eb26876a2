"""Tests for RaiseClient against an in-memory ledger"""
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from raise_client.errors import AccountNotFoundError, ErrorCode, LedgerSubmissionError, LocalErrorCode, RaiseError
from raise_client.models import MilestoneState, ProjectState, Vote, VoteChoice
from raise_client.schemas import InitializeProjectArgs, TierConfig, TokenomicsArgs, VoteArgs
from raise_client.services.client import RaiseClient
from raise_client.services.event_processor import EventProcessor, RaiseEvent
from raise_client.services.pdas import AddressKind
from raise_client.services.tiers import USDC_UNIT

PROJECT_ID = 1


@pytest.fixture
def client(ledger, deriver, clock, timing):
    return RaiseClient(ledger, ledger, deriver=deriver, clock=clock, timing=timing)


@pytest.fixture
def open_project(ledger, deriver, make_project, make_milestone, project_address):
    """Open project with both milestones stored"""
    project = make_project()
    ledger.put(project_address, project)
    for i in range(2):
        ledger.put(deriver.derive(AddressKind.MILESTONE, project_address, i), make_milestone(i))
    return project


@pytest.fixture
def voting_project(ledger, deriver, make_project, make_milestone, make_investment, project_address, now):
    """InProgress project with milestone 0 under review and one investment"""
    ledger.put(project_address, make_project(state=ProjectState.IN_PROGRESS, amount_raised=100_000 * USDC_UNIT))
    ledger.put(
        deriver.derive(AddressKind.MILESTONE, project_address, 0),
        make_milestone(0, state=MilestoneState.UNDER_REVIEW, voting_ends_at=now + 3600),
    )
    investment = make_investment()
    ledger.put(deriver.derive(AddressKind.INVESTMENT, project_address, investment.nft_mint), investment)
    return investment


class TestSend:
    @pytest.mark.asyncio
    async def test_missing_signer(self, client, founder, investor, ledger):
        composed = client.composer.submit_for_approval(PROJECT_ID, founder.pubkey())
        with pytest.raises(ValueError):
            await client.send(composed, [investor])
        assert ledger.submitted == []

    @pytest.mark.asyncio
    async def test_program_error_mapped(self, client, founder, ledger):
        ledger.reject(LocalErrorCode.PROJECT_NOT_DRAFT)
        composed = client.composer.submit_for_approval(PROJECT_ID, founder.pubkey())
        with pytest.raises(RaiseError) as exc:
            await client.send(composed, [founder])
        assert exc.value.code == LocalErrorCode.PROJECT_NOT_DRAFT
        assert isinstance(exc.value.__cause__, LedgerSubmissionError)

    @pytest.mark.asyncio
    async def test_other_rejection_passes_through(self, client, founder, ledger):
        ledger.reject_with = LedgerSubmissionError("Blockhash not found")
        composed = client.composer.submit_for_approval(PROJECT_ID, founder.pubkey())
        with pytest.raises(LedgerSubmissionError):
            await client.send(composed, [founder])


class TestCreateProject:
    @pytest.mark.asyncio
    async def test_predicts_draft(self, client, founder, ledger, now, timing):
        args = InitializeProjectArgs(
            project_id=PROJECT_ID,
            funding_goal=100_000 * USDC_UNIT,
            metadata_uri="https://raise.example/projects/1.json",
            tiers=[TierConfig(amount=100 * USDC_UNIT, max_lots=1000, token_ratio=1, vote_multiplier=100)],
            tokenomics=TokenomicsArgs(
                token_symbol="RAISE",
                total_supply=1_000_000_000,
                investor_allocation_bps=4000,
                lp_token_allocation_bps=1000,
                lp_usdc_allocation_bps=1000,
            ),
            milestone_1_deadline=now + timing.min_deadline_duration,
        )
        result = await client.create_project(founder, args)
        assert result.signature == "sig1"
        assert result.predicted.project.state == ProjectState.DRAFT
        assert result.predicted.project.first_milestone_deadline == now + timing.min_deadline_duration
        assert len(ledger.submitted) == 1

    @pytest.mark.asyncio
    async def test_deadline_checked_locally(self, client, founder, ledger, now):
        args = InitializeProjectArgs(
            project_id=PROJECT_ID,
            funding_goal=100_000 * USDC_UNIT,
            metadata_uri="https://raise.example/projects/1.json",
            tiers=[TierConfig(amount=100 * USDC_UNIT, max_lots=1000, token_ratio=1, vote_multiplier=100)],
            tokenomics=TokenomicsArgs(
                token_symbol="RAISE",
                total_supply=1_000_000_000,
                investor_allocation_bps=4000,
                lp_token_allocation_bps=1000,
                lp_usdc_allocation_bps=1000,
            ),
            milestone_1_deadline=now + 60,
        )
        with pytest.raises(RaiseError) as exc:
            await client.create_project(founder, args)
        assert exc.value.code == LocalErrorCode.DEADLINE_TOO_SOON
        assert ledger.submitted == []


class TestInvest:
    @pytest.mark.asyncio
    async def test_invest(self, client, investor, ledger, deriver, open_project):
        result = await client.invest(investor, PROJECT_ID, 500 * USDC_UNIT, Pubkey.new_unique(), Pubkey.new_unique())
        assert result.predicted.tier_index == 1
        assert result.predicted.investment.vote_weight == 600 * USDC_UNIT
        expected_mint = deriver.derive(AddressKind.NFT_MINT, PROJECT_ID, investor.pubkey(), 0)
        assert result.predicted.investment.nft_mint == expected_mint

        instructions, signers = ledger.submitted[0]
        assert len(instructions) == 2
        assert [s.pubkey() for s in signers] == [investor.pubkey()]

    @pytest.mark.asyncio
    async def test_below_minimum_not_sent(self, client, investor, ledger, open_project):
        with pytest.raises(RaiseError) as exc:
            await client.invest(investor, PROJECT_ID, 50 * USDC_UNIT, Pubkey.new_unique(), Pubkey.new_unique())
        assert exc.value.code == ErrorCode.INVESTMENT_BELOW_MINIMUM
        assert ledger.submitted == []

    @pytest.mark.asyncio
    async def test_missing_project(self, client, investor):
        with pytest.raises(AccountNotFoundError):
            await client.invest(investor, 42, 100 * USDC_UNIT, Pubkey.new_unique(), Pubkey.new_unique())


class TestVote:
    @pytest.mark.asyncio
    async def test_vote_tallies_weight(self, client, investor, voting_project):
        args = VoteArgs(
            project_id=PROJECT_ID, milestone_index=0, nft_mint=str(voting_project.nft_mint), choice=VoteChoice.GOOD
        )
        result = await client.vote(investor, args)
        assert result.predicted.milestone.yes_votes == voting_project.vote_weight
        assert result.predicted.vote.voting_round == 0

    @pytest.mark.asyncio
    async def test_already_voted(self, client, investor, ledger, deriver, voting_project, project_address, now):
        milestone = deriver.derive(AddressKind.MILESTONE, project_address, 0)
        ledger.put(
            deriver.derive(AddressKind.VOTE, milestone, investor.pubkey(), 0),
            Vote(milestone=milestone, voter=investor.pubkey(), choice=VoteChoice.BAD, weight=1, voting_round=0, voted_at=now),
        )
        args = VoteArgs(
            project_id=PROJECT_ID, milestone_index=0, nft_mint=str(voting_project.nft_mint), choice=VoteChoice.GOOD
        )
        with pytest.raises(RaiseError) as exc:
            await client.vote(investor, args)
        assert exc.value.code == ErrorCode.ALREADY_VOTED


class TestClaimRefund:
    @pytest.mark.asyncio
    async def test_exit_window_path(
        self, client, investor, ledger, deriver, make_project, make_milestone, make_investment, project_address, now
    ):
        ledger.put(
            project_address,
            make_project(state=ProjectState.IN_PROGRESS, consecutive_failures=3, exit_window_ends_at=now + 60),
        )
        ledger.put(
            deriver.derive(AddressKind.MILESTONE, project_address, 0),
            make_milestone(0, state=MilestoneState.UNLOCKED),
        )
        ledger.put(
            deriver.derive(AddressKind.MILESTONE, project_address, 1),
            make_milestone(1, state=MilestoneState.FAILED),
        )
        investment = make_investment()
        ledger.put(deriver.derive(AddressKind.INVESTMENT, project_address, investment.nft_mint), investment)

        result = await client.claim_refund(
            investor, PROJECT_ID, investment.nft_mint, Pubkey.new_unique(), Pubkey.new_unique()
        )
        assert result.predicted.amount == 600 * USDC_UNIT
        instructions, _ = ledger.submitted[0]
        assert instructions[-1].data[:8] == client.composer.claim_exit_window_refund(
            PROJECT_ID, investment.nft_mint, investor.pubkey(), Pubkey.new_unique(), Pubkey.new_unique(), 2
        ).instruction.data[:8]


class TestAdmin:
    @pytest.mark.asyncio
    async def test_transfer_requires_current_admin(self, client, ledger, deriver, admin_config):
        ledger.put(deriver.derive(AddressKind.ADMIN_CONFIG), admin_config)
        outsider = Keypair()
        with pytest.raises(RaiseError) as exc:
            await client.transfer_admin(outsider, Pubkey.new_unique())
        assert exc.value.code == ErrorCode.UNAUTHORIZED_ADMIN

    @pytest.mark.asyncio
    async def test_admin_not_initialized(self, client, admin):
        with pytest.raises(AccountNotFoundError):
            await client.transfer_admin(admin, Pubkey.new_unique())


class TestParseEvents:
    @pytest.mark.asyncio
    async def test_events_from_logs(self, client, ledger):
        event = RaiseEvent(name="ProjectApproved", data={"project_id": PROJECT_ID})
        ledger.logs["sig1"] = ["Program log: Instruction: ApproveProject", EventProcessor().to_log_line(event)]
        assert await client.parse_events("sig1") == [event]
