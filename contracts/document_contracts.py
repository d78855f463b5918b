"""Contracts for generated documents and generation runs."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .project import Methodology


class DocumentType(str, Enum):
    """Every document the factory knows how to produce."""
    TECHNICAL_LANDSCAPE = "technical_landscape"
    COMPARABLE_PROJECTS = "comparable_projects"
    CHARTER = "charter"
    BACKLOG = "backlog"
    SPRINT_PLAN = "sprint_plan"
    PID = "pid"
    BUSINESS_CASE = "business_case"
    RISK_REGISTER = "risk_register"
    PROJECT_PLAN = "project_plan"
    QUALITY_MANAGEMENT = "quality_management"
    COMMUNICATION_PLAN = "communication_plan"
    HYBRID_CHARTER = "hybrid_charter"

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self]


DISPLAY_NAMES = {
    DocumentType.TECHNICAL_LANDSCAPE: "Technical Landscape",
    DocumentType.COMPARABLE_PROJECTS: "Comparable Projects Analysis",
    DocumentType.CHARTER: "Project Charter",
    DocumentType.BACKLOG: "Product Backlog",
    DocumentType.SPRINT_PLAN: "Sprint Plan",
    DocumentType.PID: "Project Initiation Document",
    DocumentType.BUSINESS_CASE: "Business Case",
    DocumentType.RISK_REGISTER: "Risk Register",
    DocumentType.PROJECT_PLAN: "Project Plan",
    DocumentType.QUALITY_MANAGEMENT: "Quality Management Plan",
    DocumentType.COMMUNICATION_PLAN: "Communication Plan",
    DocumentType.HYBRID_CHARTER: "Hybrid Project Charter",
}


class GenerationPath(str, Enum):
    """Which rung of the fallback chain produced a document."""
    PRIMARY = "primary"
    SECTIONED = "sectioned"
    FALLBACK = "fallback"
    PLACEHOLDER = "placeholder"


class UsageMetrics(BaseModel):
    """Billed usage for one LLM call or an aggregate of calls."""
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "UsageMetrics") -> "UsageMetrics":
        return UsageMetrics(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cost_usd=self.cost_usd + other.cost_usd,
        )


class DocumentMetadata(BaseModel):
    """Everything known about how a document was produced."""
    project_id: str
    document_type: DocumentType
    display_name: str
    methodology: Methodology
    provider: str = ""
    model: str = ""
    usage: UsageMetrics = Field(default_factory=UsageMetrics)
    generation_time_ms: int = 0
    generated_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    attempts: int = 0
    generation_path: GenerationPath = GenerationPath.PRIMARY
    degraded_sections: List[str] = Field(
        default_factory=list,
        description="Sections replaced by their static default during sectioned generation",
    )
    error: bool = Field(
        default=False,
        description="True when the content is a static default rather than model output",
    )
    error_message: Optional[str] = None
    rehydrated: bool = False


class GeneratedDocument(BaseModel):
    """A document body plus its metadata.

    JSON documents carry a dict, text documents (sprint plan) carry a str.
    """
    content: Union[Dict[str, Any], str]
    metadata: DocumentMetadata

    @property
    def document_type(self) -> DocumentType:
        return self.metadata.document_type

    @property
    def is_degraded(self) -> bool:
        return self.metadata.error or bool(self.metadata.degraded_sections)


class GenerationRun(BaseModel):
    """Result of one call to the orchestrator, with its cost manifest."""
    run_id: str
    project_id: str
    methodology: Methodology
    provider: str
    documents: List[GeneratedDocument] = Field(default_factory=list)
    metrics: Dict[str, Any] = Field(default_factory=dict)
    from_cache: bool = False
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def degraded_documents(self) -> List[GeneratedDocument]:
        return [d for d in self.documents if d.is_degraded]
