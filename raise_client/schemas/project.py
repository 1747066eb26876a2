"""Validated inputs for project creation, milestones and investment"""
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from solders.pubkey import Pubkey

from raise_client.constants import (
    MAX_METADATA_URI_LENGTH,
    MAX_MILESTONE_DESCRIPTION_LENGTH,
    MAX_MILESTONES,
    MAX_TIERS,
    MAX_TOKEN_SYMBOL_LEN,
    MIN_TIER_AMOUNT,
    MIN_TIER_MAX_LOTS,
    MIN_TIER_TOKEN_RATIO,
    MIN_TIER_VOTE_MULTIPLIER,
    MIN_TOKEN_SYMBOL_LEN,
    BPS_DENOMINATOR,
)
from raise_client.models.milestone import VoteChoice
from raise_client.models.project import Tier
from raise_client.models.token import Tokenomics
from raise_client.services.codec import U16_MAX, U32_MAX, U64_MAX
from raise_client.services.pdas import to_pubkey


class TierConfig(BaseModel):
    """One founder-configured tier"""
    amount: int = Field(ge=MIN_TIER_AMOUNT, le=U64_MAX)  # USDC base units per lot
    max_lots: int = Field(ge=MIN_TIER_MAX_LOTS, le=U32_MAX)
    token_ratio: int = Field(ge=MIN_TIER_TOKEN_RATIO, le=U64_MAX)
    vote_multiplier: int = Field(ge=MIN_TIER_VOTE_MULTIPLIER, le=U16_MAX)  # 100 = 1.0x

    def to_tier(self) -> Tier:
        return Tier(
            amount=self.amount,
            max_lots=self.max_lots,
            filled_lots=0,
            token_ratio=self.token_ratio,
            vote_multiplier=self.vote_multiplier,
        )


class TokenomicsArgs(BaseModel):
    token_symbol: str = Field(min_length=MIN_TOKEN_SYMBOL_LEN, max_length=MAX_TOKEN_SYMBOL_LEN)
    total_supply: int = Field(gt=0, le=U64_MAX)
    investor_allocation_bps: int = Field(ge=0, le=BPS_DENOMINATOR)
    lp_token_allocation_bps: int = Field(ge=0, le=BPS_DENOMINATOR)
    lp_usdc_allocation_bps: int = Field(ge=0, le=BPS_DENOMINATOR)
    founder_allocation_bps: Optional[int] = Field(None, ge=0, le=BPS_DENOMINATOR)
    treasury_allocation_bps: Optional[int] = Field(None, ge=0, le=BPS_DENOMINATOR)
    founder_wallet: Optional[str] = None
    vesting_duration_months: Optional[int] = Field(None, ge=0, le=255)
    cliff_months: Optional[int] = Field(None, ge=0, le=255)

    @field_validator("token_symbol")
    @classmethod
    def uppercase_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalnum() or not v.isascii():
            raise ValueError("Token symbol must be ASCII letters and digits")
        return v

    @field_validator("founder_wallet")
    @classmethod
    def check_wallet(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            to_pubkey(v)
        return v

    def to_tokenomics(self, project: Pubkey) -> Tokenomics:
        return Tokenomics(
            project=project,
            token_symbol=self.token_symbol,
            total_supply=self.total_supply,
            investor_allocation_bps=self.investor_allocation_bps,
            lp_token_allocation_bps=self.lp_token_allocation_bps,
            lp_usdc_allocation_bps=self.lp_usdc_allocation_bps,
            founder_allocation_bps=self.founder_allocation_bps or 0,
            treasury_allocation_bps=self.treasury_allocation_bps or 0,
            founder_wallet=to_pubkey(self.founder_wallet) if self.founder_wallet else None,
            vesting_duration_months=self.vesting_duration_months or 0,
            cliff_months=self.cliff_months or 0,
        )


class InitializeProjectArgs(BaseModel):
    project_id: int = Field(ge=0, le=U64_MAX)
    funding_goal: int = Field(gt=0, le=U64_MAX)
    metadata_uri: str = Field(max_length=MAX_METADATA_URI_LENGTH)
    tiers: List[TierConfig] = Field(min_length=1, max_length=MAX_TIERS)
    tokenomics: TokenomicsArgs
    milestone_1_deadline: int

    @field_validator("tiers")
    @classmethod
    def tiers_ascending(cls, v: List[TierConfig]) -> List[TierConfig]:
        for lower, upper in zip(v, v[1:]):
            if upper.amount <= lower.amount:
                raise ValueError("Tier amounts must be strictly ascending")
        return v


class CreateMilestoneArgs(BaseModel):
    milestone_index: int = Field(ge=0, lt=MAX_MILESTONES)
    percentage: int = Field(ge=1, le=100)
    description: str = Field(max_length=MAX_MILESTONE_DESCRIPTION_LENGTH)


class InvestArgs(BaseModel):
    project_id: int = Field(ge=0, le=U64_MAX)
    amount: int = Field(gt=0, le=U64_MAX)


class VoteArgs(BaseModel):
    project_id: int = Field(ge=0, le=U64_MAX)
    milestone_index: int = Field(ge=0, lt=MAX_MILESTONES)
    nft_mint: str
    choice: VoteChoice

    @field_validator("nft_mint")
    @classmethod
    def check_mint(cls, v: str) -> str:
        to_pubkey(v)
        return v
