"""Instruction composer for the Raise program.

Each method returns a ComposedInstruction holding the ready-to-sign
instructions for one protocol action. Instruction data is the Anchor
discriminator sha256("global:<name>")[:8] followed by the Borsh encoded
arguments. Account order is part of the program's wire contract and is
listed in each method's docstring.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import structlog
from solders.compute_budget import set_compute_unit_limit
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.sysvar import CLOCK, INSTRUCTIONS, RENT
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from raise_client.config import get_settings
from raise_client.models.milestone import VoteChoice
from raise_client.models.pivot import PivotMilestone
from raise_client.schemas.project import InitializeProjectArgs
from raise_client.services.accounts import symbol_to_bytes
from raise_client.services.codec import BorshWriter, instruction_discriminator
from raise_client.services.pdas import (
    TOKEN_METADATA_PROGRAM_ID,
    AddressDeriver,
    AddressKind,
    associated_token_address,
    master_edition_address,
    metadata_address,
    to_pubkey,
)

logger = structlog.get_logger()
settings = get_settings()


@dataclass(frozen=True)
class ComposedInstruction:
    """Instructions for one action plus the keys that must sign"""
    name: str
    instructions: List[Instruction]
    signers: List[Pubkey] = field(default_factory=list)

    @property
    def instruction(self) -> Instruction:
        """The Raise program instruction (last in the list)"""
        return self.instructions[-1]


def _w(pubkey: Pubkey, signer: bool = False) -> AccountMeta:
    return AccountMeta(pubkey=pubkey, is_signer=signer, is_writable=True)


def _r(pubkey: Pubkey, signer: bool = False) -> AccountMeta:
    return AccountMeta(pubkey=pubkey, is_signer=signer, is_writable=False)


class InstructionComposer:
    """Builds Raise instructions with every PDA derived locally"""

    def __init__(self, deriver: Optional[AddressDeriver] = None):
        self.deriver = deriver or AddressDeriver()
        self.program_id = self.deriver.program_id

    def _instruction(self, name: str, accounts: Sequence[AccountMeta], args: Optional[BorshWriter] = None) -> Instruction:
        data = instruction_discriminator(name) + (args.to_bytes() if args else b"")
        return Instruction(self.program_id, data, list(accounts))

    def _compose(
        self,
        name: str,
        accounts: Sequence[AccountMeta],
        args: Optional[BorshWriter] = None,
        pre: Sequence[Instruction] = (),
    ) -> ComposedInstruction:
        ix = self._instruction(name, accounts, args)
        signers = []
        for meta in accounts:
            if meta.is_signer and meta.pubkey not in signers:
                signers.append(meta.pubkey)
        logger.debug("Composed instruction", instruction=name, accounts=len(accounts))
        return ComposedInstruction(name=name, instructions=[*pre, ix], signers=signers)

    def _project(self, project_id: int) -> Pubkey:
        return self.deriver.derive(AddressKind.PROJECT, project_id)

    # Admin

    def initialize_admin(self, admin: Pubkey, payer: Pubkey) -> ComposedInstruction:
        """admin_config, admin, payer, system_program"""
        return self._compose(
            "initialize_admin",
            [
                _w(self.deriver.derive(AddressKind.ADMIN_CONFIG)),
                _r(admin),
                _w(payer, signer=True),
                _r(SYSTEM_PROGRAM_ID),
            ],
        )

    def transfer_admin(self, authority: Pubkey, new_admin: Pubkey) -> ComposedInstruction:
        """admin_config, authority, new_admin"""
        return self._compose(
            "transfer_admin",
            [_w(self.deriver.derive(AddressKind.ADMIN_CONFIG)), _r(authority, signer=True), _r(new_admin)],
        )

    def accept_admin(self, new_authority: Pubkey) -> ComposedInstruction:
        """admin_config, new_authority"""
        return self._compose(
            "accept_admin",
            [_w(self.deriver.derive(AddressKind.ADMIN_CONFIG)), _r(new_authority, signer=True)],
        )

    # Project

    def initialize_project(self, args: InitializeProjectArgs, founder: Pubkey) -> ComposedInstruction:
        """project, tokenomics, founder, system_program"""
        project = self._project(args.project_id)
        t = args.tokenomics
        w = BorshWriter().u64(args.project_id).u64(args.funding_goal).string(args.metadata_uri)
        w.vec(args.tiers, lambda tier: w.u64(tier.amount).u32(tier.max_lots).u64(tier.token_ratio).u16(tier.vote_multiplier))
        w.raw(symbol_to_bytes(t.token_symbol)).u64(t.total_supply)
        w.u16(t.investor_allocation_bps).u16(t.lp_token_allocation_bps).u16(t.lp_usdc_allocation_bps)
        w.option(t.founder_allocation_bps, w.u16).option(t.treasury_allocation_bps, w.u16)
        w.option(to_pubkey(t.founder_wallet) if t.founder_wallet else None, w.pubkey)
        w.option(t.vesting_duration_months, w.u8).option(t.cliff_months, w.u8)
        w.i64(args.milestone_1_deadline)
        return self._compose(
            "initialize_project",
            [
                _w(project),
                _w(self.deriver.derive(AddressKind.TOKENOMICS, project)),
                _w(founder, signer=True),
                _r(SYSTEM_PROGRAM_ID),
            ],
            w,
        )

    def submit_for_approval(self, project_id: int, founder: Pubkey) -> ComposedInstruction:
        """project, founder"""
        return self._compose("submit_for_approval", [_w(self._project(project_id)), _r(founder, signer=True)])

    def approve_project(self, project_id: int, admin: Pubkey, usdc_mint: Optional[Pubkey] = None) -> ComposedInstruction:
        """project, tokenomics, token_vault, token_mint, vault_authority,
        investor_vault, founder_vault, lp_token_vault, treasury_vault,
        lp_usdc_vault, usdc_mint, authority, payer
        """
        project = self._project(project_id)
        d = self.deriver
        usdc_mint = usdc_mint or to_pubkey(settings.usdc_mint)
        return self._compose(
            "approve_project",
            [
                _w(project),
                _r(d.derive(AddressKind.TOKENOMICS, project)),
                _w(d.derive(AddressKind.TOKEN_VAULT, project)),
                _w(d.derive(AddressKind.TOKEN_MINT, project)),
                _r(d.derive(AddressKind.VAULT_AUTHORITY, project)),
                _w(d.derive(AddressKind.INVESTOR_VAULT, project)),
                _w(d.derive(AddressKind.FOUNDER_VAULT, project)),
                _w(d.derive(AddressKind.LP_TOKEN_VAULT, project)),
                _w(d.derive(AddressKind.TREASURY_VAULT, project)),
                _w(d.derive(AddressKind.LP_USDC_VAULT, project)),
                _r(usdc_mint),
                _r(admin, signer=True),
                _w(admin, signer=True),
            ],
        )

    # Milestones

    def create_milestone(
        self, project_id: int, milestone_index: int, percentage: int, description: str, founder: Pubkey
    ) -> ComposedInstruction:
        """project, milestone, founder"""
        project = self._project(project_id)
        return self._compose(
            "create_milestone",
            [
                _w(project),
                _w(self.deriver.derive(AddressKind.MILESTONE, project, milestone_index)),
                _w(founder, signer=True),
            ],
            BorshWriter().u8(milestone_index).u8(percentage).string(description),
        )

    def _project_milestone_founder(self, name: str, project_id: int, milestone_index: int, founder: Pubkey, args=None):
        project = self._project(project_id)
        return self._compose(
            name,
            [
                _w(project),
                _w(self.deriver.derive(AddressKind.MILESTONE, project, milestone_index)),
                _r(founder, signer=True),
            ],
            args,
        )

    def submit_milestone(self, project_id: int, milestone_index: int, founder: Pubkey) -> ComposedInstruction:
        """project, milestone, founder"""
        return self._project_milestone_founder("submit_milestone", project_id, milestone_index, founder)

    def resubmit_milestone(self, project_id: int, milestone_index: int, founder: Pubkey) -> ComposedInstruction:
        """project, milestone, founder"""
        return self._project_milestone_founder("resubmit_milestone", project_id, milestone_index, founder)

    def set_milestone_deadline(
        self, project_id: int, milestone_index: int, deadline: int, founder: Pubkey
    ) -> ComposedInstruction:
        """project, milestone, founder"""
        args = BorshWriter().u8(milestone_index).i64(deadline)
        return self._project_milestone_founder("set_milestone_deadline", project_id, milestone_index, founder, args)

    def extend_milestone_deadline(
        self, project_id: int, milestone_index: int, new_deadline: int, founder: Pubkey
    ) -> ComposedInstruction:
        """project, milestone, founder"""
        args = BorshWriter().u8(milestone_index).i64(new_deadline)
        return self._project_milestone_founder("extend_milestone_deadline", project_id, milestone_index, founder, args)

    def vote_on_milestone(
        self,
        project_id: int,
        milestone_index: int,
        nft_mint: Pubkey,
        choice: VoteChoice,
        voting_round: int,
        voter: Pubkey,
    ) -> ComposedInstruction:
        """milestone, project, investment, vote, nft_mint, voter_nft_account, voter

        voting_round must come from a fresh read of the milestone.
        """
        d = self.deriver
        project = self._project(project_id)
        milestone = d.derive(AddressKind.MILESTONE, project, milestone_index)
        return self._compose(
            "vote_on_milestone",
            [
                _w(milestone),
                _r(project),
                _r(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _w(d.derive(AddressKind.VOTE, milestone, voter, voting_round)),
                _r(nft_mint),
                _r(associated_token_address(voter, nft_mint)),
                _w(voter, signer=True),
            ],
            BorshWriter().enum(choice),
        )

    def finalize_voting(self, project_id: int, milestone_index: int) -> ComposedInstruction:
        """project, milestone (permissionless)"""
        project = self._project(project_id)
        return self._compose(
            "finalize_voting",
            [_w(project), _w(self.deriver.derive(AddressKind.MILESTONE, project, milestone_index))],
        )

    def claim_milestone_funds(
        self,
        project_id: int,
        milestone_index: int,
        founder: Pubkey,
        escrow_token_account: Pubkey,
        founder_usdc_account: Pubkey,
        next_milestone_deadline: int = 0,
    ) -> ComposedInstruction:
        """milestone, project, founder, project_escrow, founder_usdc_account,
        escrow_pda, token_vault, tokenomics, lp_usdc_vault, next_milestone,
        system_program, token_program

        A deadline of 0 marks the final milestone; next_milestone is then empty.
        """
        d = self.deriver
        project = self._project(project_id)
        next_milestone = None
        if next_milestone_deadline > 0:
            next_milestone = d.derive(AddressKind.MILESTONE, project, milestone_index + 1)
        return self._compose(
            "claim_milestone_funds",
            [
                _w(d.derive(AddressKind.MILESTONE, project, milestone_index)),
                _w(project),
                _w(founder, signer=True),
                _w(escrow_token_account),
                _w(founder_usdc_account),
                _r(d.derive(AddressKind.ESCROW, project_id)),
                _w(d.derive(AddressKind.TOKEN_VAULT, project)),
                _r(d.derive(AddressKind.TOKENOMICS, project)),
                _w(d.derive(AddressKind.LP_USDC_VAULT, project)),
                # An empty optional account slot is filled with the program id
                _w(next_milestone) if next_milestone else _r(self.program_id),
                _r(SYSTEM_PROGRAM_ID),
                _r(TOKEN_PROGRAM_ID),
            ],
            BorshWriter().i64(next_milestone_deadline),
        )

    def check_abandonment(self, project_id: int, milestone_index: int = 0) -> ComposedInstruction:
        """project, milestone (permissionless)"""
        project = self._project(project_id)
        return self._compose(
            "check_abandonment",
            [_w(project), _r(self.deriver.derive(AddressKind.MILESTONE, project, milestone_index))],
        )

    # Investment

    def invest(
        self,
        project_id: int,
        amount: int,
        investor: Pubkey,
        investment_count: int,
        escrow_token_account: Pubkey,
        investor_token_account: Pubkey,
        compute_unit_limit: Optional[int] = None,
    ) -> ComposedInstruction:
        """project, first_milestone, nft_mint, investment, investor_nft_account,
        metadata_account, master_edition, escrow_token_account,
        investor_token_account, program_authority, investor, token_program,
        associated_token_program, system_program, rent,
        token_metadata_program, sysvar_instructions

        Preceded by a compute budget instruction; minting the NFT with metadata
        needs more than the default limit. investment_count must be fresh.
        """
        d = self.deriver
        project = self._project(project_id)
        nft_mint = d.derive(AddressKind.NFT_MINT, project_id, investor, investment_count)
        limit = compute_unit_limit or settings.invest_compute_unit_limit
        return self._compose(
            "invest",
            [
                _w(project),
                _w(d.derive(AddressKind.MILESTONE, project, 0)),
                _w(nft_mint),
                _w(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _w(associated_token_address(investor, nft_mint)),
                _w(metadata_address(nft_mint)),
                _w(master_edition_address(nft_mint)),
                _w(escrow_token_account),
                _w(investor_token_account),
                _r(d.derive(AddressKind.PROGRAM_AUTHORITY)),
                _w(investor, signer=True),
                _r(TOKEN_PROGRAM_ID),
                _r(ASSOCIATED_TOKEN_PROGRAM_ID),
                _r(SYSTEM_PROGRAM_ID),
                _r(RENT),
                _r(TOKEN_METADATA_PROGRAM_ID),
                _r(INSTRUCTIONS),
            ],
            BorshWriter().u64(amount),
            pre=[set_compute_unit_limit(limit)],
        )

    def cancel_investment(
        self,
        project_id: int,
        nft_mint: Pubkey,
        investor: Pubkey,
        escrow_token_account: Pubkey,
        investor_usdc_account: Pubkey,
    ) -> ComposedInstruction:
        """investor, project, investment, nft_mint, investor_nft_account,
        project_escrow, investor_usdc_account, escrow_pda
        """
        d = self.deriver
        project = self._project(project_id)
        return self._compose(
            "cancel_investment",
            [
                _w(investor, signer=True),
                _w(project),
                _w(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _w(nft_mint),
                _w(associated_token_address(investor, nft_mint)),
                _w(escrow_token_account),
                _w(investor_usdc_account),
                _r(d.derive(AddressKind.ESCROW, project_id)),
            ],
        )

    def claim_refund(
        self,
        project_id: int,
        nft_mint: Pubkey,
        investor: Pubkey,
        investor_usdc_account: Pubkey,
        escrow_token_account: Pubkey,
        milestone_count: int,
    ) -> ComposedInstruction:
        """project, investment, nft_mint, investor_nft_account, investor,
        investor_token_account, escrow_token_account; then milestones
        0..milestone_count-1 read-only
        """
        d = self.deriver
        project = self._project(project_id)
        milestones = [_r(m) for m in d.milestone_addresses(project, milestone_count)]
        return self._compose(
            "claim_refund",
            [
                _r(project),
                _w(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _r(nft_mint),
                _r(associated_token_address(investor, nft_mint)),
                _w(investor, signer=True),
                _w(investor_usdc_account),
                _w(escrow_token_account),
                *milestones,
            ],
        )

    def claim_exit_window_refund(
        self,
        project_id: int,
        nft_mint: Pubkey,
        investor: Pubkey,
        escrow_token_account: Pubkey,
        investor_token_account: Pubkey,
        milestone_count: int,
    ) -> ComposedInstruction:
        """project, investment, nft_mint, investor_nft_account,
        escrow_token_account, investor_token_account, escrow_pda, investor;
        then milestones read-only
        """
        d = self.deriver
        project = self._project(project_id)
        milestones = [_r(m) for m in d.milestone_addresses(project, milestone_count)]
        return self._compose(
            "claim_exit_window_refund",
            [
                _r(project),
                _w(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _r(nft_mint),
                _r(associated_token_address(investor, nft_mint)),
                _w(escrow_token_account),
                _w(investor_token_account),
                _r(d.derive(AddressKind.ESCROW, project_id)),
                _w(investor, signer=True),
                *milestones,
            ],
        )

    # Pivot

    def propose_pivot(
        self,
        project_id: int,
        new_metadata_uri: str,
        new_milestones: Sequence[PivotMilestone],
        pivot_count: int,
        founder: Pubkey,
    ) -> ComposedInstruction:
        """project, founder, pivot_proposal, system_program, clock

        The proposal address uses the current (not yet incremented) pivot_count.
        """
        project = self._project(project_id)
        w = BorshWriter().string(new_metadata_uri)
        w.vec(list(new_milestones), lambda m: w.u8(m.percentage).string(m.description))
        return self._compose(
            "propose_pivot",
            [
                _w(project),
                _w(founder, signer=True),
                _w(self.deriver.derive(AddressKind.PIVOT_PROPOSAL, project, pivot_count)),
                _r(SYSTEM_PROGRAM_ID),
                _r(CLOCK),
            ],
            w,
        )

    def approve_pivot(self, project_id: int, pivot_proposal: Pubkey, moderator: Pubkey) -> ComposedInstruction:
        """moderator, project, pivot_proposal"""
        return self._compose(
            "approve_pivot",
            [_r(moderator, signer=True), _w(self._project(project_id)), _w(pivot_proposal)],
        )

    def withdraw_from_pivot(
        self,
        project_id: int,
        pivot_count: int,
        nft_mint: Pubkey,
        investor: Pubkey,
        escrow_token_account: Pubkey,
        investor_token_account: Pubkey,
        milestone_count: int,
    ) -> ComposedInstruction:
        """investor, project, pivot_proposal, investment, nft_mint,
        investor_nft_account, escrow_token_account, investor_token_account,
        escrow; then milestones read-only
        """
        d = self.deriver
        project = self._project(project_id)
        milestones = [_r(m) for m in d.milestone_addresses(project, milestone_count)]
        return self._compose(
            "withdraw_from_pivot",
            [
                _w(investor, signer=True),
                _w(project),
                _w(d.derive(AddressKind.PIVOT_PROPOSAL, project, pivot_count)),
                _w(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _r(nft_mint),
                _r(associated_token_address(investor, nft_mint)),
                _w(escrow_token_account),
                _w(investor_token_account),
                _r(d.derive(AddressKind.ESCROW, project_id)),
                *milestones,
            ],
        )

    def finalize_pivot(
        self,
        project_id: int,
        pivot_count: int,
        old_milestone_count: int,
        new_milestone_count: int,
        authority: Pubkey,
    ) -> ComposedInstruction:
        """authority, project, pivot_proposal; then milestones writable

        With an unchanged milestone count the same addresses are rewritten in
        place and passed once. Otherwise the old milestones come first,
        followed by the new ones.
        """
        d = self.deriver
        project = self._project(project_id)
        if old_milestone_count == new_milestone_count:
            milestone_keys = d.milestone_addresses(project, old_milestone_count)
        else:
            milestone_keys = d.milestone_addresses(project, old_milestone_count) + d.milestone_addresses(
                project, new_milestone_count
            )
        return self._compose(
            "finalize_pivot",
            [
                _w(authority, signer=True),
                _w(project),
                _w(d.derive(AddressKind.PIVOT_PROPOSAL, project, pivot_count)),
                *[_w(m) for m in milestone_keys],
            ],
        )

    # TGE (legacy token path)

    def set_tge_date(self, project_id: int, tge_date: int, token_mint: Pubkey, founder: Pubkey) -> ComposedInstruction:
        """project, founder"""
        return self._compose(
            "set_tge_date",
            [_w(self._project(project_id)), _r(founder, signer=True)],
            BorshWriter().i64(tge_date).pubkey(token_mint),
        )

    def deposit_tokens(
        self, project_id: int, amount: int, token_mint: Pubkey, founder_token_account: Pubkey, founder: Pubkey
    ) -> ComposedInstruction:
        """project, token_mint, founder_token_account, founder"""
        return self._compose(
            "deposit_tokens",
            [_w(self._project(project_id)), _r(token_mint), _w(founder_token_account), _r(founder, signer=True)],
            BorshWriter().u64(amount),
        )

    def claim_tokens(
        self,
        project_id: int,
        nft_mint: Pubkey,
        investor: Pubkey,
        project_token_vault: Pubkey,
        investor_token_account: Pubkey,
    ) -> ComposedInstruction:
        """investor, project, investment, investor_nft_account,
        project_token_vault, investor_token_account, token_vault_pda,
        token_program
        """
        d = self.deriver
        project = self._project(project_id)
        return self._compose(
            "claim_tokens",
            [
                _r(investor, signer=True),
                _r(project),
                _w(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _r(associated_token_address(investor, nft_mint)),
                _w(project_token_vault),
                _w(investor_token_account),
                _r(d.derive(AddressKind.TOKEN_VAULT, project)),
                _r(TOKEN_PROGRAM_ID),
            ],
        )

    def report_scam(self, project_id: int, nft_mint: Pubkey, reporter: Pubkey) -> ComposedInstruction:
        """tge_escrow, project, investment, nft_mint, reporter"""
        d = self.deriver
        project = self._project(project_id)
        return self._compose(
            "report_scam",
            [
                _w(d.derive(AddressKind.TGE_ESCROW, project)),
                _r(project),
                _r(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _r(nft_mint),
                _w(reporter, signer=True),
            ],
        )

    def release_holdback(self, project_id: int, founder_token_account: Pubkey) -> ComposedInstruction:
        """tge_escrow, project, founder_token_account (permissionless)"""
        project = self._project(project_id)
        return self._compose(
            "release_holdback",
            [_w(self.deriver.derive(AddressKind.TGE_ESCROW, project)), _r(project), _w(founder_token_account)],
        )

    # Token distribution

    def claim_investor_tokens(
        self, project_id: int, milestone_index: int, nft_mint: Pubkey, investor: Pubkey, investor_token_account: Pubkey
    ) -> ComposedInstruction:
        """investor, project, token_vault, investment, nft_mint,
        investor_nft_account, investor_vault, investor_token_account,
        vault_authority, token_program
        """
        d = self.deriver
        project = self._project(project_id)
        return self._compose(
            "claim_investor_tokens",
            [
                _r(investor, signer=True),
                _r(project),
                _r(d.derive(AddressKind.TOKEN_VAULT, project)),
                _w(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _r(nft_mint),
                _r(associated_token_address(investor, nft_mint)),
                _w(d.derive(AddressKind.INVESTOR_VAULT, project)),
                _w(investor_token_account),
                _r(d.derive(AddressKind.VAULT_AUTHORITY, project)),
                _r(TOKEN_PROGRAM_ID),
            ],
            BorshWriter().u8(milestone_index),
        )

    def distribute_tokens(
        self,
        project_id: int,
        milestone_index: int,
        investments: Sequence[Tuple[Pubkey, Pubkey]],
        payer: Pubkey,
    ) -> ComposedInstruction:
        """project, token_vault, investor_vault, vault_authority, payer,
        token_program; then (investment, investor_token_account) pairs writable

        Deprecated batch path; investors can claim their own unlocks.
        """
        d = self.deriver
        project = self._project(project_id)
        pairs = [meta for investment, token_account in investments for meta in (_w(investment), _w(token_account))]
        return self._compose(
            "distribute_tokens",
            [
                _r(project),
                _w(d.derive(AddressKind.TOKEN_VAULT, project)),
                _w(d.derive(AddressKind.INVESTOR_VAULT, project)),
                _r(d.derive(AddressKind.VAULT_AUTHORITY, project)),
                _w(payer, signer=True),
                _r(TOKEN_PROGRAM_ID),
                *pairs,
            ],
            BorshWriter().u8(milestone_index),
        )

    def complete_distribution(self, project_id: int, milestone_index: int, payer: Pubkey) -> ComposedInstruction:
        """project, token_vault, payer"""
        project = self._project(project_id)
        return self._compose(
            "complete_distribution",
            [_r(project), _w(self.deriver.derive(AddressKind.TOKEN_VAULT, project)), _w(payer, signer=True)],
            BorshWriter().u8(milestone_index),
        )

    def force_complete_distribution(self, project_id: int, admin: Pubkey) -> ComposedInstruction:
        """admin, admin_config, project, token_vault"""
        d = self.deriver
        project = self._project(project_id)
        return self._compose(
            "force_complete_distribution",
            [
                _r(admin, signer=True),
                _r(d.derive(AddressKind.ADMIN_CONFIG)),
                _r(project),
                _w(d.derive(AddressKind.TOKEN_VAULT, project)),
            ],
        )

    def claim_missed_unlock(
        self, project_id: int, milestone_index: int, nft_mint: Pubkey, claimer: Pubkey, claimer_token_account: Pubkey
    ) -> ComposedInstruction:
        """claimer, project, token_vault, investment, nft_mint,
        claimer_nft_account, investor_vault, claimer_token_account,
        vault_authority, token_program
        """
        d = self.deriver
        project = self._project(project_id)
        return self._compose(
            "claim_missed_unlock",
            [
                _r(claimer, signer=True),
                _r(project),
                _r(d.derive(AddressKind.TOKEN_VAULT, project)),
                _w(d.derive(AddressKind.INVESTMENT, project, nft_mint)),
                _r(nft_mint),
                _r(associated_token_address(claimer, nft_mint)),
                _w(d.derive(AddressKind.INVESTOR_VAULT, project)),
                _w(claimer_token_account),
                _r(d.derive(AddressKind.VAULT_AUTHORITY, project)),
                _r(TOKEN_PROGRAM_ID),
            ],
            BorshWriter().u8(milestone_index),
        )

    # Founder vesting

    def initialize_founder_vesting(self, project_id: int, payer: Pubkey) -> ComposedInstruction:
        """project, tokenomics, token_vault, founder_vesting, payer, system_program"""
        d = self.deriver
        project = self._project(project_id)
        return self._compose(
            "initialize_founder_vesting",
            [
                _r(project),
                _r(d.derive(AddressKind.TOKENOMICS, project)),
                _r(d.derive(AddressKind.TOKEN_VAULT, project)),
                _w(d.derive(AddressKind.FOUNDER_VESTING, project)),
                _w(payer, signer=True),
                _r(SYSTEM_PROGRAM_ID),
            ],
        )

    def claim_vested_tokens(self, project_id: int, founder: Pubkey, founder_token_account: Pubkey) -> ComposedInstruction:
        """project, token_vault, founder_vesting, founder_vault,
        vault_authority, founder_token_account, founder, token_program
        """
        d = self.deriver
        project = self._project(project_id)
        return self._compose(
            "claim_vested_tokens",
            [
                _r(project),
                _r(d.derive(AddressKind.TOKEN_VAULT, project)),
                _w(d.derive(AddressKind.FOUNDER_VESTING, project)),
                _w(d.derive(AddressKind.FOUNDER_VAULT, project)),
                _r(d.derive(AddressKind.VAULT_AUTHORITY, project)),
                _w(founder_token_account),
                _r(founder, signer=True),
                _r(TOKEN_PROGRAM_ID),
            ],
        )
