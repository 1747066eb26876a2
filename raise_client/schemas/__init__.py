"""Pydantic input schemas"""
from raise_client.schemas.project import (
    CreateMilestoneArgs,
    InitializeProjectArgs,
    InvestArgs,
    TierConfig,
    TokenomicsArgs,
    VoteArgs,
)
from raise_client.schemas.pivot import PivotMilestoneArgs, ProposePivotArgs

__all__ = [
    "CreateMilestoneArgs",
    "InitializeProjectArgs",
    "InvestArgs",
    "TierConfig",
    "TokenomicsArgs",
    "VoteArgs",
    "PivotMilestoneArgs",
    "ProposePivotArgs",
]
