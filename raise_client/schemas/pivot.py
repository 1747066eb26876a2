"""Pivot proposal inputs"""
from typing import List

from pydantic import BaseModel, Field

from raise_client.constants import (
    MAX_METADATA_URI_LENGTH,
    MAX_MILESTONE_DESCRIPTION_LENGTH,
    MAX_MILESTONES,
    MIN_MILESTONES,
)
from raise_client.models.pivot import PivotMilestone


class PivotMilestoneArgs(BaseModel):
    percentage: int = Field(ge=1, le=100)
    description: str = Field(max_length=MAX_MILESTONE_DESCRIPTION_LENGTH)

    def to_milestone(self) -> PivotMilestone:
        return PivotMilestone(percentage=self.percentage, description=self.description)


class ProposePivotArgs(BaseModel):
    new_metadata_uri: str = Field(max_length=MAX_METADATA_URI_LENGTH)
    new_milestones: List[PivotMilestoneArgs] = Field(min_length=MIN_MILESTONES, max_length=MAX_MILESTONES)

    def milestones(self) -> List[PivotMilestone]:
        return [m.to_milestone() for m in self.new_milestones]
