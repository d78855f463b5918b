"""Pydantic contracts for the Project Document Factory.

Everything that crosses a component boundary is typed through these contracts.
"""

from .project import (
    Methodology,
    StakeholderContact,
    Prince2Board,
    ProjectProfile,
    SanitizedStakeholder,
    SanitizedBoard,
    SanitizedProjectData,
)

from .document_contracts import (
    DocumentType,
    GenerationPath,
    UsageMetrics,
    DocumentMetadata,
    GeneratedDocument,
    GenerationRun,
)

from .event_contracts import (
    GenerationPhase,
    GenerationEvent,
)

from .research_contracts import (
    TechnicalLandscape,
    ComparableProject,
    ComparableProjects,
    ResearchContext,
)

from .agile_contracts import (
    StoryPriority,
    AgileCharter,
    UserStory,
    Epic,
    ProductBacklog,
    HybridCharter,
)

from .prince2_contracts import (
    RiskLevel,
    ProjectInitiationDocument,
    BusinessCase,
    RiskRegister,
    ProjectPlan,
    QualityManagementStrategy,
    CommunicationPlan,
)

__all__ = [
    # Project
    "Methodology",
    "StakeholderContact",
    "Prince2Board",
    "ProjectProfile",
    "SanitizedStakeholder",
    "SanitizedBoard",
    "SanitizedProjectData",
    # Documents
    "DocumentType",
    "GenerationPath",
    "UsageMetrics",
    "DocumentMetadata",
    "GeneratedDocument",
    "GenerationRun",
    # Events
    "GenerationPhase",
    "GenerationEvent",
    # Research
    "TechnicalLandscape",
    "ComparableProject",
    "ComparableProjects",
    "ResearchContext",
    # Agile / Hybrid
    "StoryPriority",
    "AgileCharter",
    "UserStory",
    "Epic",
    "ProductBacklog",
    "HybridCharter",
    # PRINCE2
    "RiskLevel",
    "ProjectInitiationDocument",
    "BusinessCase",
    "RiskRegister",
    "ProjectPlan",
    "QualityManagementStrategy",
    "CommunicationPlan",
]
