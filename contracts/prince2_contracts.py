"""PRINCE2 document contracts.

The PID and the Business Case are large object graphs that are usually
generated section by section; each top-level field of those two models is one
section.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


def _money(value: Any) -> Any:
    """Models often return costs as bare numbers; normalise them to '$1,234'."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return f"${value:,.0f}"
    return value


def _person(value: Any) -> Any:
    """Accept {'name': ..., 'role': ...} wherever a person string is expected."""
    if isinstance(value, dict):
        return value.get("name") or str(value)
    return value


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


# --- PID sections -----------------------------------------------------------


class ProjectScope(BaseModel):
    included: List[str] = Field(default_factory=list)
    excluded: List[str] = Field(default_factory=list)


class Deliverable(BaseModel):
    name: str
    description: str = ""
    quality_criteria: List[str] = Field(default_factory=list)


class ProjectDefinition(BaseModel):
    background: str
    objectives: List[str]
    desired_outcomes: List[str] = Field(default_factory=list)
    scope: ProjectScope = Field(default_factory=ProjectScope)
    constraints: List[str] = Field(default_factory=list)
    assumptions: List[str] = Field(default_factory=list)
    deliverables: List[Deliverable] = Field(default_factory=list)
    interfaces: List[str] = Field(default_factory=list)


class Costs(BaseModel):
    development: str
    operational: str
    maintenance: Optional[str] = None
    total: str

    _normalise = field_validator(
        "development", "operational", "maintenance", "total", mode="before"
    )(_money)


class PIDBusinessCase(BaseModel):
    reasons: str
    options: List[str] = Field(default_factory=list)
    expected_benefits: List[str] = Field(default_factory=list)
    expected_disbenefits: List[str] = Field(default_factory=list)
    timescale: str = ""
    costs: Costs
    investment_appraisal: str = ""
    major_risks: List[str] = Field(default_factory=list)


class ProjectBoard(BaseModel):
    executive: str
    senior_user: str
    senior_supplier: str

    _people = field_validator("executive", "senior_user", "senior_supplier", mode="before")(_person)


class ProjectAssurance(BaseModel):
    business: str
    user: str
    specialist: str

    _people = field_validator("business", "user", "specialist", mode="before")(_person)


class OrganizationStructure(BaseModel):
    project_board: ProjectBoard
    project_manager: str
    team_managers: List[str] = Field(default_factory=list)
    project_assurance: ProjectAssurance
    project_support: str = ""

    _people = field_validator("project_manager", "project_support", mode="before")(_person)

    @field_validator("team_managers", mode="before")
    @classmethod
    def _team_managers(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_person(v) for v in value]
        return value


class QualityManagementApproach(BaseModel):
    quality_standards: List[str]
    quality_criteria: List[str]
    quality_method: str
    quality_responsibilities: str


class ConfigurationManagementApproach(BaseModel):
    purpose: str
    procedure: str
    issue_and_change_control: str
    tools_and_techniques: List[str] = Field(default_factory=list)


class RoleResponsibilities(BaseModel):
    role: str
    responsibilities: List[str] = Field(default_factory=list)


class RiskTolerance(BaseModel):
    time: str
    cost: str
    quality: str
    scope: str
    benefits: str
    risk: str


class RiskManagementApproach(BaseModel):
    procedure: str
    tools_and_techniques: List[str] = Field(default_factory=list)
    reporting: str = ""
    timing_of_risk_management_activities: str = ""
    roles_and_responsibilities: List[RoleResponsibilities] = Field(default_factory=list)
    risk_tolerance: RiskTolerance
    risk_categories: List[str] = Field(default_factory=list)
    risk_register_format: str = ""


class StakeholderAnalysis(BaseModel):
    stakeholder: str
    interest: str = ""
    influence: str = ""
    communication_method: str = ""
    frequency: str = ""


class CommunicationManagementApproach(BaseModel):
    procedure: str
    tools_and_techniques: List[str] = Field(default_factory=list)
    reporting: str = ""
    roles_and_responsibilities: str = ""
    methods: List[str] = Field(default_factory=list)
    frequency: str = ""
    stakeholder_analysis: List[StakeholderAnalysis] = Field(default_factory=list)


class PlanStage(BaseModel):
    name: str
    start_date: str = ""
    end_date: str = ""
    objectives: List[str] = Field(default_factory=list)
    deliverables: List[str] = Field(default_factory=list)


class Milestone(BaseModel):
    name: str
    date: str = ""
    criteria: str = ""


class Dependency(BaseModel):
    type: str = "internal"
    description: str
    impact: str = ""


class PIDProjectPlan(BaseModel):
    stages: List[PlanStage]
    milestones: List[Milestone] = Field(default_factory=list)
    dependencies: List[Dependency] = Field(default_factory=list)
    schedule: str = ""


class Tolerances(BaseModel):
    time: str
    cost: str
    scope: str
    quality: str


class ProjectControls(BaseModel):
    stages: List[str] = Field(default_factory=list)
    tolerances: Tolerances
    reporting_arrangements: str = ""


class TailoringItem(BaseModel):
    aspect: str
    tailoring: str
    justification: str = ""


class Tailoring(BaseModel):
    justification: str
    applied_tailoring: List[TailoringItem] = Field(default_factory=list)


class ProjectInitiationDocument(BaseModel):
    """PRINCE2 Project Initiation Document."""
    project_definition: ProjectDefinition
    business_case: PIDBusinessCase
    organization_structure: OrganizationStructure
    quality_management_approach: QualityManagementApproach
    configuration_management_approach: ConfigurationManagementApproach
    risk_management_approach: RiskManagementApproach
    communication_management_approach: CommunicationManagementApproach
    project_plan: PIDProjectPlan
    project_controls: ProjectControls
    tailoring: Tailoring


# --- Business case ----------------------------------------------------------


class BusinessOption(BaseModel):
    option: str
    description: str = ""
    costs: str = ""
    benefits: str = ""
    risks: str = ""

    _normalise = field_validator("costs", mode="before")(_money)


class ExpectedBenefit(BaseModel):
    benefit: str
    measurable: bool = True
    measurement: Optional[str] = None
    baseline: Optional[str] = None
    target: Optional[str] = None


class DisBenefit(BaseModel):
    disbenefit: str
    impact: Optional[str] = None


class InvestmentAppraisal(BaseModel):
    roi: str
    payback_period: str
    npv: str


class BusinessCase(BaseModel):
    """PRINCE2 Business Case."""
    executive_summary: str
    reasons: str
    business_options: List[BusinessOption] = Field(..., min_length=1)
    expected_benefits: List[ExpectedBenefit] = Field(default_factory=list)
    expected_dis_benefits: List[DisBenefit] = Field(default_factory=list)
    timescale: str
    costs: Costs
    investment_appraisal: InvestmentAppraisal
    major_risks: List[str] = Field(default_factory=list)


# --- Other PRINCE2 products -------------------------------------------------


class Risk(BaseModel):
    id: str
    description: str
    category: str = ""
    probability: RiskLevel = RiskLevel.MEDIUM
    impact: RiskLevel = RiskLevel.MEDIUM
    owner: str = ""
    response: str = ""
    status: str = "open"


class RiskRegister(BaseModel):
    """Project risk register."""
    risks: List[Risk] = Field(..., min_length=1)
    risk_appetite: str = ""
    review_frequency: str = ""


class ProjectPlan(BaseModel):
    """Stage-level project plan."""
    overview: str
    stages: List[PlanStage] = Field(..., min_length=1)
    milestones: List[Milestone] = Field(default_factory=list)
    dependencies: List[Dependency] = Field(default_factory=list)
    assumptions: List[str] = Field(default_factory=list)


class QualityManagementStrategy(BaseModel):
    """Quality management strategy."""
    introduction: str
    quality_standards: List[str] = Field(default_factory=list)
    quality_criteria: List[str] = Field(default_factory=list)
    quality_methods: List[str] = Field(default_factory=list)
    roles_and_responsibilities: List[RoleResponsibilities] = Field(default_factory=list)
    quality_records: List[str] = Field(default_factory=list)


class CommunicationEntry(BaseModel):
    audience: str
    information: str = ""
    method: str = ""
    frequency: str = ""
    owner: str = ""


class CommunicationPlan(BaseModel):
    """Communication management strategy."""
    purpose: str
    stakeholder_analysis: List[StakeholderAnalysis] = Field(default_factory=list)
    communications: List[CommunicationEntry] = Field(..., min_length=1)
    escalation_process: str = ""
