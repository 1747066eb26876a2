"""Decoded Raise account records"""
from raise_client.models.project import Project, ProjectState, Tier, TERMINAL_PROJECT_STATES
from raise_client.models.milestone import Milestone, MilestoneState, Vote, VoteChoice
from raise_client.models.investment import Investment
from raise_client.models.pivot import PivotMilestone, PivotProposal, PivotState
from raise_client.models.token import FounderVesting, TgeEscrow, Tokenomics, TokenVault
from raise_client.models.admin import AdminConfig

__all__ = [
    "Project",
    "ProjectState",
    "Tier",
    "TERMINAL_PROJECT_STATES",
    "Milestone",
    "MilestoneState",
    "Vote",
    "VoteChoice",
    "Investment",
    "PivotMilestone",
    "PivotProposal",
    "PivotState",
    "FounderVesting",
    "TgeEscrow",
    "Tokenomics",
    "TokenVault",
    "AdminConfig",
]
