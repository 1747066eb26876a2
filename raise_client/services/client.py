"""High-level Raise client.

Each action reads fresh state, checks it against the program's rules,
composes the instruction and submits it. Local checks fail before anything
is sent; ledger rejections come back as RaiseError with the program's code.
Multi-step workflows (create, add milestones, submit) are not atomic across
calls; callers resume from the last confirmed step.
"""
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Sequence, Tuple, TypeVar

import structlog
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from raise_client.config import get_settings
from raise_client.constants import ProtocolTiming
from raise_client.errors import AccountNotFoundError, LedgerSubmissionError, RaiseError, parse_error
from raise_client.models import (
    AdminConfig,
    FounderVesting,
    Investment,
    Milestone,
    PivotProposal,
    Project,
    ProjectState,
    TgeEscrow,
    TokenVault,
)
from raise_client.schemas.pivot import ProposePivotArgs
from raise_client.schemas.project import CreateMilestoneArgs, InitializeProjectArgs, VoteArgs
from raise_client.services import distribution, milestones as milestone_rules, pivots, projects
from raise_client.services.accounts import AccountFetcher
from raise_client.services.clock import Clock, SystemClock
from raise_client.services.event_processor import EventProcessor
from raise_client.services.instructions import ComposedInstruction, InstructionComposer
from raise_client.services.ledger import LedgerReader, LedgerWriter
from raise_client.services.pdas import AddressDeriver, AddressKind, to_pubkey

logger = structlog.get_logger()
settings = get_settings()

T = TypeVar("T")


@dataclass(frozen=True)
class Submitted(Generic[T]):
    """Signature of a confirmed transaction and the state predicted for it"""
    signature: str
    predicted: T


class RaiseClient:
    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        deriver: Optional[AddressDeriver] = None,
        clock: Optional[Clock] = None,
        timing: Optional[ProtocolTiming] = None,
    ):
        self.deriver = deriver or AddressDeriver()
        self.accounts = AccountFetcher(reader, self.deriver)
        self.composer = InstructionComposer(self.deriver)
        self.events = EventProcessor()
        self.writer = writer
        self.clock = clock or SystemClock()
        self.timing = timing or settings.timing

    # Plumbing

    async def send(self, composed: ComposedInstruction, signers: Sequence[Keypair]) -> str:
        """Submit a composed instruction set, fee payer first"""
        provided = {kp.pubkey() for kp in signers}
        missing = [str(key) for key in composed.signers if key not in provided]
        if missing:
            raise ValueError(f"{composed.name} needs signatures from {', '.join(missing)}")
        try:
            signature = await self.writer.submit(composed.instructions, list(signers))
        except LedgerSubmissionError as e:
            parsed = parse_error(e)
            if isinstance(parsed, RaiseError):
                logger.warning("Program rejected instruction", instruction=composed.name, code=parsed.code)
                raise parsed from e
            raise
        logger.info("Submitted instruction", instruction=composed.name, signature=signature)
        return signature

    def project_address(self, project_id: int) -> Pubkey:
        return self.deriver.derive(AddressKind.PROJECT, project_id)

    async def _project(self, project_id: int) -> Tuple[Pubkey, Project]:
        project = await self.accounts.fetch_project(project_id)
        if project is None:
            raise AccountNotFoundError(f"Project {project_id} not found")
        return self.project_address(project_id), project

    async def _milestone(self, project: Pubkey, milestone_index: int) -> Milestone:
        milestone = await self.accounts.fetch_milestone(project, milestone_index)
        if milestone is None:
            raise AccountNotFoundError(f"Milestone {milestone_index} not found")
        return milestone

    async def _investment(self, project: Pubkey, nft_mint: Pubkey) -> Investment:
        investment = await self.accounts.fetch_investment(project, nft_mint)
        if investment is None:
            raise AccountNotFoundError(f"Investment for NFT {nft_mint} not found")
        return investment

    async def _admin_config(self) -> AdminConfig:
        admin_config = await self.accounts.fetch_admin_config()
        if admin_config is None:
            raise AccountNotFoundError("Admin config not initialized")
        return admin_config

    async def _token_vault(self, project: Pubkey) -> TokenVault:
        token_vault = await self.accounts.fetch_token_vault(project)
        if token_vault is None:
            raise AccountNotFoundError("Token vault not found")
        return token_vault

    async def _percentages(self, project: Pubkey, project_record: Project) -> List[int]:
        return [m.percentage for m in await self.accounts.fetch_milestones(project, project_record.total_milestones)]

    async def parse_events(self, signature: str) -> List[Any]:
        """Events emitted by a confirmed transaction, when the writer can fetch logs"""
        get_logs = getattr(self.writer, "get_transaction_logs", None)
        if get_logs is None:
            return []
        return self.events.parse_logs(await get_logs(signature))

    # Admin

    async def initialize_admin(self, payer: Keypair, admin: Pubkey) -> Submitted[AdminConfig]:
        predicted = projects.initialize_admin(admin)
        signature = await self.send(self.composer.initialize_admin(admin, payer.pubkey()), [payer])
        return Submitted(signature, predicted)

    async def transfer_admin(self, authority: Keypair, new_admin: Pubkey) -> Submitted[AdminConfig]:
        predicted = projects.transfer_admin(await self._admin_config(), authority.pubkey(), new_admin)
        signature = await self.send(self.composer.transfer_admin(authority.pubkey(), new_admin), [authority])
        return Submitted(signature, predicted)

    async def accept_admin(self, new_authority: Keypair) -> Submitted[AdminConfig]:
        predicted = projects.accept_admin(await self._admin_config(), new_authority.pubkey())
        signature = await self.send(self.composer.accept_admin(new_authority.pubkey()), [new_authority])
        return Submitted(signature, predicted)

    # Project

    async def create_project(self, founder: Keypair, args: InitializeProjectArgs) -> Submitted[projects.CreatedProject]:
        project_address = self.project_address(args.project_id)
        predicted = projects.create_project(
            founder=founder.pubkey(),
            project_id=args.project_id,
            funding_goal=args.funding_goal,
            metadata_uri=args.metadata_uri,
            tiers=[t.to_tier() for t in args.tiers],
            tokenomics=args.tokenomics.to_tokenomics(project_address),
            milestone_1_deadline=args.milestone_1_deadline,
            escrow=self.deriver.derive(AddressKind.ESCROW, args.project_id),
            now=self.clock.now(),
            timing=self.timing,
        )
        signature = await self.send(self.composer.initialize_project(args, founder.pubkey()), [founder])
        return Submitted(signature, predicted)

    async def create_milestone(
        self, founder: Keypair, project_id: int, args: CreateMilestoneArgs
    ) -> Submitted[Tuple[Project, Milestone]]:
        address, project = await self._project(project_id)
        existing = await self.accounts.fetch_milestones(address, project.total_milestones)
        predicted = projects.create_milestone(
            project, existing, founder.pubkey(), args.milestone_index, args.percentage, args.description, address
        )
        composed = self.composer.create_milestone(
            project_id, args.milestone_index, args.percentage, args.description, founder.pubkey()
        )
        return Submitted(await self.send(composed, [founder]), predicted)

    async def submit_for_approval(self, founder: Keypair, project_id: int) -> Submitted[Project]:
        address, project = await self._project(project_id)
        existing = await self.accounts.fetch_milestones(address, project.total_milestones)
        predicted = projects.submit_for_approval(project, existing, founder.pubkey())
        signature = await self.send(self.composer.submit_for_approval(project_id, founder.pubkey()), [founder])
        return Submitted(signature, predicted)

    async def approve_project(self, admin: Keypair, project_id: int) -> Submitted[Tuple[Project, List[Milestone]]]:
        address, project = await self._project(project_id)
        existing = await self.accounts.fetch_milestones(address, project.total_milestones)
        predicted = projects.approve_project(project, existing, await self._admin_config(), admin.pubkey())
        signature = await self.send(self.composer.approve_project(project_id, admin.pubkey()), [admin])
        return Submitted(signature, predicted)

    async def invest(
        self,
        investor: Keypair,
        project_id: int,
        amount: int,
        escrow_token_account: Pubkey,
        investor_token_account: Pubkey,
    ) -> Submitted[projects.InvestOutcome]:
        """Invest one lot of the tier matching amount.

        The project is read right before composing: the NFT mint address
        depends on investment_count, which other investors may have moved.
        """
        address, project = await self._project(project_id)
        first_milestone = await self._milestone(address, 0)
        nft_mint = self.deriver.derive(AddressKind.NFT_MINT, project_id, investor.pubkey(), project.investment_count)
        predicted = projects.invest(
            project, first_milestone, investor.pubkey(), amount, nft_mint, address, self.clock.now()
        )
        composed = self.composer.invest(
            project_id,
            amount,
            investor.pubkey(),
            project.investment_count,
            escrow_token_account,
            investor_token_account,
        )
        return Submitted(await self.send(composed, [investor]), predicted)

    async def cancel_investment(
        self,
        investor: Keypair,
        project_id: int,
        nft_mint: Pubkey,
        escrow_token_account: Pubkey,
        investor_usdc_account: Pubkey,
    ) -> Submitted[Tuple[Project, Investment]]:
        address, project = await self._project(project_id)
        investment = await self._investment(address, nft_mint)
        predicted = projects.cancel_investment(project, investment, investor.pubkey(), self.clock.now(), self.timing)
        composed = self.composer.cancel_investment(
            project_id, nft_mint, investor.pubkey(), escrow_token_account, investor_usdc_account
        )
        return Submitted(await self.send(composed, [investor]), predicted)

    # Milestones

    async def submit_milestone(
        self, founder: Keypair, project_id: int, milestone_index: int
    ) -> Submitted[Tuple[Project, Milestone]]:
        address, project = await self._project(project_id)
        milestone = await self._milestone(address, milestone_index)
        predicted = milestone_rules.submit_milestone(project, milestone, founder.pubkey(), self.clock.now(), self.timing)
        composed = self.composer.submit_milestone(project_id, milestone_index, founder.pubkey())
        return Submitted(await self.send(composed, [founder]), predicted)

    async def vote(self, voter: Keypair, args: VoteArgs) -> Submitted[milestone_rules.VoteOutcome]:
        """Vote with the weight of the investment behind args.nft_mint"""
        address, project = await self._project(args.project_id)
        milestone_address = self.deriver.derive(AddressKind.MILESTONE, address, args.milestone_index)
        milestone = await self._milestone(address, args.milestone_index)
        nft_mint = to_pubkey(args.nft_mint)
        investment = await self._investment(address, nft_mint)
        existing_vote = await self.accounts.fetch_vote(milestone_address, voter.pubkey(), milestone.voting_round)
        predicted = milestone_rules.cast_vote(
            project,
            milestone,
            investment,
            voter.pubkey(),
            args.choice,
            self.clock.now(),
            milestone_address,
            existing_vote,
        )
        composed = self.composer.vote_on_milestone(
            args.project_id, args.milestone_index, nft_mint, args.choice, milestone.voting_round, voter.pubkey()
        )
        return Submitted(await self.send(composed, [voter]), predicted)

    async def finalize_voting(
        self, payer: Keypair, project_id: int, milestone_index: int
    ) -> Submitted[milestone_rules.FinalizeOutcome]:
        address, project = await self._project(project_id)
        milestone = await self._milestone(address, milestone_index)
        token_vault = await self.accounts.fetch_token_vault(address)
        predicted = milestone_rules.finalize_voting(project, milestone, self.clock.now(), token_vault, self.timing)
        composed = self.composer.finalize_voting(project_id, milestone_index)
        return Submitted(await self.send(composed, [payer]), predicted)

    async def resubmit_milestone(self, founder: Keypair, project_id: int, milestone_index: int) -> Submitted[Milestone]:
        address, project = await self._project(project_id)
        milestone = await self._milestone(address, milestone_index)
        predicted = milestone_rules.resubmit_milestone(project, milestone, founder.pubkey())
        composed = self.composer.resubmit_milestone(project_id, milestone_index, founder.pubkey())
        return Submitted(await self.send(composed, [founder]), predicted)

    async def claim_milestone_funds(
        self,
        founder: Keypair,
        project_id: int,
        milestone_index: int,
        escrow_token_account: Pubkey,
        founder_usdc_account: Pubkey,
        next_milestone_deadline: Optional[int] = None,
    ) -> Submitted[milestone_rules.ReleaseOutcome]:
        address, project = await self._project(project_id)
        milestone = await self._milestone(address, milestone_index)
        is_final = milestone_index == project.total_milestones - 1
        next_milestone = None if is_final else await self._milestone(address, milestone_index + 1)
        tokenomics = await self.accounts.fetch_tokenomics(address)
        predicted = milestone_rules.claim_milestone_funds(
            project,
            milestone,
            founder.pubkey(),
            self.clock.now(),
            next_milestone=next_milestone,
            next_milestone_deadline=next_milestone_deadline,
            tokenomics=tokenomics,
            timing=self.timing,
        )
        composed = self.composer.claim_milestone_funds(
            project_id,
            milestone_index,
            founder.pubkey(),
            escrow_token_account,
            founder_usdc_account,
            0 if is_final else next_milestone_deadline,
        )
        return Submitted(await self.send(composed, [founder]), predicted)

    async def extend_milestone_deadline(
        self, founder: Keypair, project_id: int, milestone_index: int, new_deadline: int
    ) -> Submitted[Milestone]:
        address, project = await self._project(project_id)
        milestone = await self._milestone(address, milestone_index)
        predicted = milestone_rules.extend_milestone_deadline(
            project, milestone, founder.pubkey(), new_deadline, self.clock.now(), self.timing
        )
        composed = self.composer.extend_milestone_deadline(project_id, milestone_index, new_deadline, founder.pubkey())
        return Submitted(await self.send(composed, [founder]), predicted)

    async def set_milestone_deadline(
        self, founder: Keypair, project_id: int, milestone_index: int, deadline: int
    ) -> Submitted[Milestone]:
        address, project = await self._project(project_id)
        milestone = await self._milestone(address, milestone_index)
        predicted = milestone_rules.set_milestone_deadline(
            project, milestone, founder.pubkey(), deadline, self.clock.now(), self.timing
        )
        composed = self.composer.set_milestone_deadline(project_id, milestone_index, deadline, founder.pubkey())
        return Submitted(await self.send(composed, [founder]), predicted)

    async def check_abandonment(self, payer: Keypair, project_id: int) -> Submitted[Project]:
        address, project = await self._project(project_id)
        milestone = await self._milestone(address, project.current_milestone)
        predicted = milestone_rules.check_abandonment(project, milestone, self.clock.now(), self.timing)
        composed = self.composer.check_abandonment(project_id, project.current_milestone)
        return Submitted(await self.send(composed, [payer]), predicted)

    async def claim_refund(
        self,
        investor: Keypair,
        project_id: int,
        nft_mint: Pubkey,
        investor_usdc_account: Pubkey,
        escrow_token_account: Pubkey,
    ) -> Submitted[milestone_rules.RefundOutcome]:
        address, project = await self._project(project_id)
        investment = await self._investment(address, nft_mint)
        existing = await self.accounts.fetch_milestones(address, project.total_milestones)
        if project.exit_window_ends_at is not None and project.state != ProjectState.ABANDONED:
            predicted = milestone_rules.claim_exit_window_refund(project, investment, existing, self.clock.now())
            composed = self.composer.claim_exit_window_refund(
                project_id,
                nft_mint,
                investor.pubkey(),
                escrow_token_account,
                investor_usdc_account,
                project.total_milestones,
            )
        else:
            predicted = milestone_rules.claim_refund(project, investment, existing)
            composed = self.composer.claim_refund(
                project_id,
                nft_mint,
                investor.pubkey(),
                investor_usdc_account,
                escrow_token_account,
                project.total_milestones,
            )
        return Submitted(await self.send(composed, [investor]), predicted)

    # Pivot

    async def propose_pivot(
        self, founder: Keypair, project_id: int, args: ProposePivotArgs
    ) -> Submitted[Tuple[Project, PivotProposal]]:
        address, project = await self._project(project_id)
        proposal_address = self.deriver.derive(AddressKind.PIVOT_PROPOSAL, address, project.pivot_count)
        predicted = pivots.propose_pivot(
            project,
            founder.pubkey(),
            args.new_metadata_uri,
            args.milestones(),
            self.clock.now(),
            proposal_address,
            address,
        )
        composed = self.composer.propose_pivot(
            project_id, args.new_metadata_uri, args.milestones(), project.pivot_count, founder.pubkey()
        )
        return Submitted(await self.send(composed, [founder]), predicted)

    async def _active_proposal(self, address: Pubkey, project: Project) -> Tuple[Pubkey, PivotProposal]:
        proposal_address = project.active_pivot or self.deriver.derive(
            AddressKind.PIVOT_PROPOSAL, address, project.pivot_count
        )
        proposal = await self.accounts.fetch_pivot_proposal(proposal_address)
        if proposal is None:
            raise AccountNotFoundError("No pivot proposal for project")
        return proposal_address, proposal

    async def approve_pivot(self, admin: Keypair, project_id: int) -> Submitted[PivotProposal]:
        address, project = await self._project(project_id)
        proposal_address, proposal = await self._active_proposal(address, project)
        predicted = pivots.approve_pivot(
            proposal, await self._admin_config(), admin.pubkey(), self.clock.now(), self.timing
        )
        composed = self.composer.approve_pivot(project_id, proposal_address, admin.pubkey())
        return Submitted(await self.send(composed, [admin]), predicted)

    async def withdraw_from_pivot(
        self,
        investor: Keypair,
        project_id: int,
        nft_mint: Pubkey,
        escrow_token_account: Pubkey,
        investor_token_account: Pubkey,
    ) -> Submitted[pivots.PivotWithdrawal]:
        address, project = await self._project(project_id)
        _, proposal = await self._active_proposal(address, project)
        investment = await self._investment(address, nft_mint)
        existing = await self.accounts.fetch_milestones(address, project.total_milestones)
        predicted = pivots.withdraw_from_pivot(proposal, investment, existing, self.clock.now())
        composed = self.composer.withdraw_from_pivot(
            project_id,
            project.pivot_count,
            nft_mint,
            investor.pubkey(),
            escrow_token_account,
            investor_token_account,
            project.total_milestones,
        )
        return Submitted(await self.send(composed, [investor]), predicted)

    async def finalize_pivot(self, authority: Keypair, project_id: int) -> Submitted[pivots.FinalizedPivot]:
        address, project = await self._project(project_id)
        _, proposal = await self._active_proposal(address, project)
        predicted = pivots.finalize_pivot(project, proposal, project.total_milestones, self.clock.now(), address)
        composed = self.composer.finalize_pivot(
            project_id,
            project.pivot_count,
            project.total_milestones,
            len(proposal.new_milestones),
            authority.pubkey(),
        )
        return Submitted(await self.send(composed, [authority]), predicted)

    # Token distribution and vesting

    async def claim_investor_tokens(
        self,
        investor: Keypair,
        project_id: int,
        milestone_index: int,
        nft_mint: Pubkey,
        investor_token_account: Pubkey,
    ) -> Submitted[distribution.TokenClaim]:
        address, project = await self._project(project_id)
        milestone = await self._milestone(address, milestone_index)
        investment = await self._investment(address, nft_mint)
        predicted = distribution.claim_investor_tokens(
            milestone, investment, await self._percentages(address, project)
        )
        composed = self.composer.claim_investor_tokens(
            project_id, milestone_index, nft_mint, investor.pubkey(), investor_token_account
        )
        return Submitted(await self.send(composed, [investor]), predicted)

    async def force_complete_distribution(self, admin: Keypair, project_id: int) -> Submitted[TokenVault]:
        address = self.project_address(project_id)
        predicted = distribution.force_complete_distribution(
            await self._token_vault(address),
            await self._admin_config(),
            admin.pubkey(),
            self.clock.now(),
            self.timing,
        )
        composed = self.composer.force_complete_distribution(project_id, admin.pubkey())
        return Submitted(await self.send(composed, [admin]), predicted)

    async def claim_missed_unlock(
        self,
        claimer: Keypair,
        project_id: int,
        milestone_index: int,
        nft_mint: Pubkey,
        claimer_token_account: Pubkey,
    ) -> Submitted[distribution.TokenClaim]:
        address, project = await self._project(project_id)
        investment = await self._investment(address, nft_mint)
        predicted = distribution.claim_missed_unlock(
            await self._token_vault(address),
            investment,
            milestone_index,
            await self._percentages(address, project),
        )
        composed = self.composer.claim_missed_unlock(
            project_id, milestone_index, nft_mint, claimer.pubkey(), claimer_token_account
        )
        return Submitted(await self.send(composed, [claimer]), predicted)

    async def initialize_founder_vesting(self, payer: Keypair, project_id: int) -> Submitted[FounderVesting]:
        address, project = await self._project(project_id)
        tokenomics = await self.accounts.fetch_tokenomics(address)
        if tokenomics is None:
            raise AccountNotFoundError("Tokenomics not found")
        predicted = distribution.initialize_founder_vesting(project, tokenomics, self.clock.now(), address)
        composed = self.composer.initialize_founder_vesting(project_id, payer.pubkey())
        return Submitted(await self.send(composed, [payer]), predicted)

    async def claim_vested_tokens(
        self, founder: Keypair, project_id: int, founder_token_account: Pubkey
    ) -> Submitted[distribution.VestingClaim]:
        address = self.project_address(project_id)
        vesting = await self.accounts.fetch_founder_vesting(address)
        if vesting is None:
            raise AccountNotFoundError("Founder vesting not initialized")
        predicted = distribution.claim_vested_tokens(vesting, founder.pubkey(), self.clock.now())
        composed = self.composer.claim_vested_tokens(project_id, founder.pubkey(), founder_token_account)
        return Submitted(await self.send(composed, [founder]), predicted)

    async def distribute_tokens(
        self,
        payer: Keypair,
        project_id: int,
        milestone_index: int,
        holdings: Sequence[Tuple[Pubkey, Pubkey]],
    ) -> Submitted[distribution.DistributionBatch]:
        """Push one milestone's unlock to (nft_mint, token_account) holders.

        Deprecated in favour of claim_investor_tokens.
        """
        address, project = await self._project(project_id)
        investments = [await self._investment(address, nft_mint) for nft_mint, _ in holdings]
        predicted = distribution.distribute_tokens(
            await self._token_vault(address),
            milestone_index,
            investments,
            await self._percentages(address, project),
        )
        pairs = [
            (self.deriver.derive(AddressKind.INVESTMENT, address, nft_mint), token_account)
            for nft_mint, token_account in holdings
        ]
        composed = self.composer.distribute_tokens(project_id, milestone_index, pairs, payer.pubkey())
        return Submitted(await self.send(composed, [payer]), predicted)

    async def complete_distribution(self, payer: Keypair, project_id: int, milestone_index: int) -> Submitted[TokenVault]:
        address = self.project_address(project_id)
        predicted = distribution.complete_distribution(await self._token_vault(address), milestone_index)
        composed = self.composer.complete_distribution(project_id, milestone_index, payer.pubkey())
        return Submitted(await self.send(composed, [payer]), predicted)

    # TGE and holdback

    async def set_tge_date(
        self, founder: Keypair, project_id: int, tge_date: int, token_mint: Pubkey
    ) -> Submitted[Project]:
        _, project = await self._project(project_id)
        predicted = distribution.set_tge_date(
            project, founder.pubkey(), tge_date, token_mint, self.clock.now(), self.timing
        )
        composed = self.composer.set_tge_date(project_id, tge_date, token_mint, founder.pubkey())
        return Submitted(await self.send(composed, [founder]), predicted)

    async def deposit_tokens(
        self, founder: Keypair, project_id: int, amount: int, founder_token_account: Pubkey
    ) -> Submitted[Project]:
        _, project = await self._project(project_id)
        predicted = distribution.deposit_tokens(project, founder.pubkey(), amount)
        composed = self.composer.deposit_tokens(
            project_id, amount, project.token_mint, founder_token_account, founder.pubkey()
        )
        return Submitted(await self.send(composed, [founder]), predicted)

    async def claim_tokens(
        self,
        investor: Keypair,
        project_id: int,
        nft_mint: Pubkey,
        project_token_vault: Pubkey,
        investor_token_account: Pubkey,
    ) -> Submitted[distribution.TokenClaim]:
        address, project = await self._project(project_id)
        investment = await self._investment(address, nft_mint)
        predicted = distribution.claim_tokens(project, investment, self.clock.now())
        composed = self.composer.claim_tokens(
            project_id, nft_mint, investor.pubkey(), project_token_vault, investor_token_account
        )
        return Submitted(await self.send(composed, [investor]), predicted)

    async def _tge_escrow(self, project: Pubkey) -> TgeEscrow:
        escrow = await self.accounts.fetch_tge_escrow(project)
        if escrow is None:
            raise AccountNotFoundError("TGE escrow not found")
        return escrow

    async def report_scam(self, reporter: Keypair, project_id: int, nft_mint: Pubkey) -> Submitted[TgeEscrow]:
        """Report with the weight of one investment; weights are summed over all investments"""
        address, project = await self._project(project_id)
        investment = await self._investment(address, nft_mint)
        report = self.deriver.derive(AddressKind.SCAM_REPORT, address, nft_mint)
        already_reported = await self.accounts.reader.read(report) is not None
        investments = await self.accounts.fetch_all_investments(address)
        total_vote_weight = sum(i.vote_weight for i in investments if i.is_active)
        predicted = distribution.report_scam(
            project,
            await self._tge_escrow(address),
            investment,
            already_reported,
            total_vote_weight,
            self.clock.now(),
            self.timing,
        )
        composed = self.composer.report_scam(project_id, nft_mint, reporter.pubkey())
        return Submitted(await self.send(composed, [reporter]), predicted)

    async def release_holdback(
        self, payer: Keypair, project_id: int, founder_token_account: Pubkey
    ) -> Submitted[Tuple[TgeEscrow, int]]:
        address, project = await self._project(project_id)
        predicted = distribution.release_holdback(
            project, await self._tge_escrow(address), self.clock.now(), self.timing
        )
        composed = self.composer.release_holdback(project_id, founder_token_account)
        return Submitted(await self.send(composed, [payer]), predicted)
