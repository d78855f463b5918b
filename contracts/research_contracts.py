"""Contracts for the research documents and the context extracted from them."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TechnologyRecommendation(BaseModel):
    name: str
    category: str = ""
    rationale: str = ""


class TechnicalRecommendations(BaseModel):
    technologies: List[TechnologyRecommendation] = Field(default_factory=list)
    architecture: List[str] = Field(default_factory=list)


class SecurityAssessment(BaseModel):
    considerations: List[str] = Field(default_factory=list)
    compliance: List[str] = Field(default_factory=list)


class ScalabilityAssessment(BaseModel):
    recommendations: List[str] = Field(default_factory=list)


class TechnicalLandscape(BaseModel):
    """Stage-one research: technology options, security and scalability."""
    summary: str = Field(..., description="One-paragraph overview of the technical landscape")
    recommendations: TechnicalRecommendations = Field(default_factory=TechnicalRecommendations)
    security: SecurityAssessment = Field(default_factory=SecurityAssessment)
    scalability: ScalabilityAssessment = Field(default_factory=ScalabilityAssessment)
    risks: List[str] = Field(default_factory=list)


class ComparableProject(BaseModel):
    name: str
    description: str = ""
    outcome: str = ""
    success_factors: List[str] = Field(default_factory=list)
    lessons_learned: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)


class ComparableProjects(BaseModel):
    """Stage-one research: similar projects and what the industry learned from them."""
    industry_analysis: List[str] = Field(
        default_factory=list,
        description="Industry trends relevant to the project",
    )
    projects: List[ComparableProject] = Field(default_factory=list)


class ResearchContext(BaseModel):
    """Compact context derived from research documents.

    Any field may be empty; an entirely empty context is valid.
    """

    model_config = ConfigDict(frozen=True)

    technical_landscape: Optional[Dict[str, Any]] = None
    comparable_projects: Optional[Dict[str, Any]] = None
    industry_insights: List[str] = Field(default_factory=list)
    best_practices: List[str] = Field(default_factory=list)
    risk_patterns: List[str] = Field(default_factory=list)
    success_factors: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(
            (
                self.technical_landscape,
                self.comparable_projects,
                self.industry_insights,
                self.best_practices,
                self.risk_patterns,
                self.success_factors,
            )
        )
