"""Agile and hybrid document contracts.

The sprint plan is a markdown document and has no schema here.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class StoryPriority(str, Enum):
    MUST = "must"
    SHOULD = "should"
    COULD = "could"
    WONT = "wont"


class CharterStakeholder(BaseModel):
    name: str = Field(..., description="Stakeholder placeholder token")
    role: str = ""
    responsibilities: List[str] = Field(default_factory=list)


class SuccessCriterion(BaseModel):
    criterion: str
    metric: str = ""
    target: str = ""


class AgileCharter(BaseModel):
    """Agile project charter."""
    project_name: str
    vision: str = Field(..., description="Product vision statement")
    objectives: List[str] = Field(..., min_length=1)
    scope_in: List[str] = Field(default_factory=list)
    scope_out: List[str] = Field(default_factory=list)
    stakeholders: List[CharterStakeholder] = Field(default_factory=list)
    success_criteria: List[SuccessCriterion] = Field(default_factory=list)
    assumptions: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    team_structure: List[str] = Field(default_factory=list)


class UserStory(BaseModel):
    id: str
    title: str
    as_a: str = ""
    i_want: str = ""
    so_that: str = ""
    acceptance_criteria: List[str] = Field(default_factory=list)
    story_points: int = Field(default=3, ge=0)
    priority: StoryPriority = StoryPriority.SHOULD


class Epic(BaseModel):
    id: str
    title: str
    description: str = ""
    user_stories: List[UserStory] = Field(default_factory=list)


class ProductBacklog(BaseModel):
    """Product backlog organised by epic."""
    product_vision: str = ""
    epics: List[Epic] = Field(..., min_length=1)
    definition_of_done: List[str] = Field(default_factory=list)


class GovernanceStage(BaseModel):
    name: str
    description: str = ""
    deliverables: List[str] = Field(default_factory=list)


class HybridCharter(BaseModel):
    """Charter combining PRINCE2 governance with agile delivery."""
    project_name: str
    vision: str
    objectives: List[str] = Field(..., min_length=1)
    governance_stages: List[GovernanceStage] = Field(default_factory=list)
    agile_practices: List[str] = Field(default_factory=list)
    tolerances: List[str] = Field(default_factory=list)
    stakeholders: List[CharterStakeholder] = Field(default_factory=list)
    success_criteria: List[SuccessCriterion] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
