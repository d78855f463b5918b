"""Prompt templates.

Pure functions of document type, sanitized data, methodology knowledge and an
optional research context. Templates only ever see placeholder tokens, never
personal data.
"""

from typing import Dict, Optional, Sequence

from contracts.document_contracts import DocumentType
from contracts.project import SanitizedProjectData
from contracts.research_contracts import ResearchContext
from providers.client import Prompt

from .research_context import enhance_prompt

PLACEHOLDER_RULE = (
    "Refer to people only by the placeholder tokens given (for example [STAKEHOLDER_1], "
    "[EXECUTIVE], [SENIOR_USER]). Never invent names, e-mail addresses or phone numbers."
)

SYSTEM_PROMPTS: Dict[DocumentType, str] = {
    DocumentType.TECHNICAL_LANDSCAPE: (
        "You are a solutions architect researching the technical landscape for a new project. "
        "Recommend technologies and architecture patterns, and assess security and scalability."
    ),
    DocumentType.COMPARABLE_PROJECTS: (
        "You are an industry analyst. Describe comparable projects in the same sector, "
        "their outcomes, success factors, lessons learned and risks."
    ),
    DocumentType.CHARTER: (
        "You are an experienced Agile coach writing a project charter that aligns the team "
        "and stakeholders on vision, objectives, scope and success criteria."
    ),
    DocumentType.BACKLOG: (
        "You are a Product Owner writing a product backlog of epics and INVEST user stories "
        "with acceptance criteria, story points and MoSCoW priorities."
    ),
    DocumentType.SPRINT_PLAN: (
        "You are a Scrum Master writing the plan for the first sprints in markdown: "
        "sprint goal, capacity, selected stories, risks and Definition of Done."
    ),
    DocumentType.PID: (
        "You are a PRINCE2 expert creating a Project Initiation Document."
    ),
    DocumentType.BUSINESS_CASE: (
        "You are a PRINCE2 Business Analyst writing a business case with options, "
        "benefits, costs and investment appraisal."
    ),
    DocumentType.RISK_REGISTER: (
        "You are a PRINCE2 Risk Manager. Generate realistic risks with probability, impact, "
        "owners and responses."
    ),
    DocumentType.PROJECT_PLAN: (
        "You are a PRINCE2 Project Manager writing a stage-based project plan with milestones "
        "and dependencies."
    ),
    DocumentType.QUALITY_MANAGEMENT: (
        "You are a PRINCE2 Quality Manager writing the quality management strategy."
    ),
    DocumentType.COMMUNICATION_PLAN: (
        "You are a PRINCE2 Communications Manager writing the communication management strategy."
    ),
    DocumentType.HYBRID_CHARTER: (
        "You are a delivery lead combining PRINCE2 governance with Agile delivery. Write a "
        "charter with governance stages, tolerances and the agile practices used inside them."
    ),
}


def project_brief(data: SanitizedProjectData) -> str:
    """Render the sanitized profile as the factual part of every user prompt."""
    lines = [
        f"Project Name: {data.project_name}",
        f"Methodology: {data.methodology.value}",
    ]
    for label, value in (
        ("Vision", data.vision),
        ("Business Case", data.business_case),
        ("Description", data.description),
        ("Sector", data.sector),
        ("Company Website", data.company_website),
        ("Budget", data.budget),
        ("Timeline", data.timeline),
        ("Start Date", data.start_date),
        ("End Date", data.end_date),
    ):
        if value:
            lines.append(f"{label}: {value}")

    stakeholders = data.stakeholder_lines()
    if stakeholders:
        lines.append(f"Stakeholders:\n{stakeholders}")

    if data.agilometer:
        scores = ", ".join(f"{k}={v}" for k, v in data.agilometer.items())
        lines.append(f"Agility scores: {scores}")

    return "\n".join(lines)


def _system(document_type: DocumentType, knowledge: str, extra: str = "") -> str:
    parts = [SYSTEM_PROMPTS[document_type], extra, PLACEHOLDER_RULE]
    if knowledge:
        parts.append(
            "\n# FRAMEWORK KNOWLEDGE\n"
            "Use the following methodology guidance:\n\n"
            f"{knowledge}"
        )
    return "\n".join(p for p in parts if p)


def build_prompt(
    document_type: DocumentType,
    data: SanitizedProjectData,
    knowledge: str = "",
    context: Optional[ResearchContext] = None,
    max_tokens: int = 4000,
) -> Prompt:
    """Prompt for generating a whole document in one call."""
    user = (
        f"Create the {document_type.display_name} for this project:\n\n"
        f"{project_brief(data)}\n\n"
        "Be specific to this project. Be comprehensive but concise."
    )
    return Prompt(
        system=_system(document_type, knowledge),
        user=enhance_prompt(user, context, document_type),
        max_tokens=max_tokens,
        temperature=0.7 if document_type == DocumentType.SPRINT_PLAN else 0.5,
    )


def build_section_prompt(
    document_type: DocumentType,
    section_name: str,
    keys: Sequence[str],
    instructions: str,
    data: SanitizedProjectData,
    knowledge: str = "",
    context: Optional[ResearchContext] = None,
    max_tokens: int = 1000,
) -> Prompt:
    """Prompt for one section of a large document."""
    user = (
        f"Create the {', '.join(keys)} section(s) of the {document_type.display_name} "
        f"for this project:\n\n"
        f"{project_brief(data)}\n\n"
        f"Focus ONLY on {section_name}. Return only the requested keys."
    )
    return Prompt(
        system=_system(document_type, knowledge, instructions),
        user=enhance_prompt(user, context, document_type),
        max_tokens=max_tokens,
        temperature=0.5,
    )
