"""Pytest configuration and fixtures for Raise client tests"""
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from raise_client.constants import ProtocolTiming
from raise_client.errors import LedgerSubmissionError
from raise_client.models import (
    AdminConfig,
    Investment,
    Milestone,
    MilestoneState,
    Project,
    ProjectState,
    Tier,
    Tokenomics,
)
from raise_client.services.accounts import encode_account
from raise_client.services.clock import FixedClock
from raise_client.services.ledger import MemcmpFilter
from raise_client.services.pdas import AddressDeriver, AddressKind
from raise_client.services.tiers import USDC_UNIT

NOW = 1_700_000_000
PROJECT_ID = 1


class InMemoryLedger:
    """Ledger double: accounts live in a dict and submissions are recorded"""

    def __init__(self):
        self.accounts: Dict[Pubkey, bytes] = {}
        self.submitted: List[Tuple[List[Instruction], List[Keypair]]] = []
        self.logs: Dict[str, List[str]] = {}
        self.reject_with: Optional[Exception] = None

    def put(self, address: Pubkey, record) -> None:
        self.accounts[address] = encode_account(record)

    async def read(self, address: Pubkey) -> Optional[bytes]:
        return self.accounts.get(address)

    async def read_all_matching(self, filters: Sequence[MemcmpFilter]) -> List[Tuple[Pubkey, bytes]]:
        return [
            (address, data)
            for address, data in self.accounts.items()
            if all(data[f.offset:f.offset + len(f.data)] == f.data for f in filters)
        ]

    async def submit(self, instructions: Sequence[Instruction], signers: Sequence[Keypair]) -> str:
        if self.reject_with is not None:
            raise self.reject_with
        self.submitted.append((list(instructions), list(signers)))
        return f"sig{len(self.submitted)}"

    async def get_transaction_logs(self, signature: str) -> List[str]:
        return self.logs.get(signature, [])

    def reject(self, code: int) -> None:
        """Fail the next submissions the way the program reports a rule violation"""
        self.reject_with = LedgerSubmissionError(
            "Transaction simulation failed",
            logs=[f"Program log: AnchorError occurred. Error Number: {code}."],
        )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def timing():
    return ProtocolTiming.production()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def deriver():
    return AddressDeriver()


@pytest.fixture
def founder():
    return Keypair()


@pytest.fixture
def admin():
    return Keypair()


@pytest.fixture
def investor():
    return Keypair()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def project_address(deriver):
    return deriver.derive(AddressKind.PROJECT, PROJECT_ID)


@pytest.fixture
def admin_config(admin):
    return AdminConfig(admin=admin.pubkey())


@pytest.fixture
def sample_tiers():
    """100 / 500 / 1000 USDC lots"""
    return [
        Tier(amount=100 * USDC_UNIT, max_lots=1000, filled_lots=0, token_ratio=1, vote_multiplier=100),
        Tier(amount=500 * USDC_UNIT, max_lots=200, filled_lots=0, token_ratio=1, vote_multiplier=120),
        Tier(amount=1000 * USDC_UNIT, max_lots=100, filled_lots=0, token_ratio=2, vote_multiplier=150),
    ]


@pytest.fixture
def tokenomics(founder, project_address):
    return Tokenomics(
        project=project_address,
        token_symbol="RAISE",
        total_supply=1_000_000_000,
        investor_allocation_bps=4000,
        lp_token_allocation_bps=1000,
        lp_usdc_allocation_bps=1000,
        founder_allocation_bps=2000,
        treasury_allocation_bps=1000,
        founder_wallet=founder.pubkey(),
        vesting_duration_months=24,
        cliff_months=6,
    )


@pytest.fixture
def make_project(founder, deriver, sample_tiers):
    """Project factory; defaults to an Open 100,000 USDC raise with two milestones"""

    def _make(**overrides) -> Project:
        fields = dict(
            founder=founder.pubkey(),
            project_id=PROJECT_ID,
            funding_goal=100_000 * USDC_UNIT,
            amount_raised=0,
            state=ProjectState.OPEN,
            metadata_uri="https://raise.example/projects/1.json",
            escrow=deriver.derive(AddressKind.ESCROW, PROJECT_ID),
            current_milestone=0,
            total_milestones=2,
            tiers=tuple(sample_tiers),
        )
        fields.update(overrides)
        return Project(**fields)

    return _make


@pytest.fixture
def make_milestone(project_address):
    def _make(index: int = 0, **overrides) -> Milestone:
        fields = dict(
            project=project_address,
            milestone_index=index,
            percentage=40 if index == 0 else 60,
            description=f"Milestone {index + 1}",
            state=MilestoneState.APPROVED,
        )
        fields.update(overrides)
        return Milestone(**fields)

    return _make


@pytest.fixture
def make_investment(investor, project_address):
    def _make(**overrides) -> Investment:
        fields = dict(
            project=project_address,
            investor=investor.pubkey(),
            nft_mint=Pubkey.new_unique(),
            amount=1000 * USDC_UNIT,
            vote_weight=1500 * USDC_UNIT,
            token_allocation=2000 * USDC_UNIT,
            tier=2,
            invested_at=NOW,
        )
        fields.update(overrides)
        return Investment(**fields)

    return _make
