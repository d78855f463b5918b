"""Two-stage generation: research documents feed context into later prompts.

Stage 1 generates the technical landscape and comparable projects documents.
Their insights are condensed into a ResearchContext, which stage 2 inserts
ahead of every other document's prompt. Either research document may be
missing; an empty context simply leaves prompts unchanged.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from contracts.document_contracts import DocumentType, GeneratedDocument
from contracts.project import SanitizedProjectData
from contracts.research_contracts import ResearchContext
from privacy.sanitizer import redact_contact_details

logger = logging.getLogger(__name__)

RESEARCH_TYPES = (DocumentType.TECHNICAL_LANDSCAPE, DocumentType.COMPARABLE_PROJECTS)

TECHNICAL_CONTEXT_TYPES = {DocumentType.PID, DocumentType.PROJECT_PLAN, DocumentType.BACKLOG}
RISK_CONTEXT_TYPES = {DocumentType.RISK_REGISTER, DocumentType.PID, DocumentType.BUSINESS_CASE}

MAX_CONTEXT_JSON_CHARS = 2000


def should_run_research(
    data: SanitizedProjectData,
    requested_types: Iterable[DocumentType],
    enabled: bool = True,
) -> bool:
    """Research runs whenever it is enabled and a research document was requested."""
    if not enabled:
        return False
    return any(t in RESEARCH_TYPES for t in requested_types)


def _usable(document: Optional[GeneratedDocument]) -> Optional[Dict[str, Any]]:
    if document is None or document.metadata.error:
        return None
    if not isinstance(document.content, dict):
        return None
    # Model-written, so it may carry contact details.
    content, redacted = redact_contact_details(document.content)
    if redacted:
        logger.warning("Redacted %d contact details from %s research output",
                       redacted, document.metadata.document_type.value)
    return content


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [v if isinstance(v, str) else json.dumps(v, ensure_ascii=False) for v in value if v]
    return [str(value)]


def _dedupe(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


def extract_context(
    technical_landscape: Optional[GeneratedDocument] = None,
    comparable_projects: Optional[GeneratedDocument] = None,
) -> ResearchContext:
    """Condense research documents into a ResearchContext.

    Documents flagged as errors (static defaults) contribute nothing. Contact
    details in the research output are redacted so later prompts stay clean.
    """
    best_practices: List[str] = []
    risk_patterns: List[str] = []
    success_factors: List[str] = []
    industry_insights: List[str] = []

    technical = _usable(technical_landscape)
    if technical is not None:
        technologies = (technical.get("recommendations") or {}).get("technologies")
        if technologies:
            best_practices.append(
                f"Recommended tech stack: {json.dumps(technologies, ensure_ascii=False)}"
            )
        for consideration in _as_list((technical.get("security") or {}).get("considerations")):
            risk_patterns.append(f"Security: {consideration}")
        scalability = _as_list((technical.get("scalability") or {}).get("recommendations"))
        if scalability:
            success_factors.append(f"Scalability: {'; '.join(scalability)}")

    comparable = _usable(comparable_projects)
    if comparable is not None:
        industry_insights.extend(_as_list(comparable.get("industry_analysis")))
        for project in comparable.get("projects") or []:
            if not isinstance(project, dict):
                continue
            success_factors.extend(_as_list(project.get("success_factors")))
            best_practices.extend(_as_list(project.get("lessons_learned")))
            risk_patterns.extend(_as_list(project.get("risks")))

    context = ResearchContext(
        technical_landscape=technical,
        comparable_projects=comparable,
        industry_insights=_dedupe(industry_insights),
        best_practices=_dedupe(best_practices),
        risk_patterns=_dedupe(risk_patterns),
        success_factors=_dedupe(success_factors),
    )
    logger.info("Extracted research context: %s", summarize_context(context))
    return context


def _truncated_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)[:MAX_CONTEXT_JSON_CHARS]


def _bullets(items: List[str], limit: int) -> str:
    return "\n".join(f"- {item}" for item in items[:limit])


def enhance_prompt(
    prompt: str,
    context: Optional[ResearchContext],
    document_type: DocumentType,
) -> str:
    """Insert research context sections ahead of the user prompt.

    Technical context goes only to PID, project plan and backlog; known risk
    patterns only to risk register, PID and business case.
    """
    if context is None or context.is_empty:
        return prompt

    sections: List[str] = []

    if document_type in TECHNICAL_CONTEXT_TYPES and context.technical_landscape:
        sections.append(
            "<technical_context>\n"
            "Based on the technical landscape analysis for this project:\n"
            f"{_truncated_json(context.technical_landscape)}\n"
            "</technical_context>"
        )

    if context.comparable_projects:
        sections.append(
            "<comparable_projects_context>\n"
            "Based on analysis of similar projects:\n"
            f"{_truncated_json(context.comparable_projects)}\n"
            "</comparable_projects_context>"
        )

    if context.industry_insights:
        sections.append(
            "<industry_insights>\nKey industry insights to consider:\n"
            f"{_bullets(context.industry_insights, 5)}\n</industry_insights>"
        )

    if document_type in RISK_CONTEXT_TYPES and context.risk_patterns:
        sections.append(
            "<known_risk_patterns>\nCommon risks identified in similar projects:\n"
            f"{_bullets(context.risk_patterns, 10)}\n</known_risk_patterns>"
        )

    if context.success_factors:
        sections.append(
            "<success_factors>\nCritical success factors from similar projects:\n"
            f"{_bullets(context.success_factors, 5)}\n</success_factors>"
        )

    if context.best_practices:
        sections.append(
            "<best_practices>\nIndustry best practices to incorporate:\n"
            f"{_bullets(context.best_practices, 5)}\n</best_practices>"
        )

    if not sections:
        return prompt

    logger.debug("Enhanced %s prompt with %d context sections", document_type.value, len(sections))
    joined = "\n\n".join(sections)
    return (
        "You have access to the following research and analysis context. "
        "Use it to create a more informed and comprehensive document:\n\n"
        f"{joined}\n\n"
        f"Now, based on this context and the project requirements below, "
        f"generate the {document_type.display_name}:\n\n"
        f"{prompt}"
    )


def summarize_context(context: ResearchContext) -> Dict[str, Any]:
    """Counts per context category, for logs and run reports."""
    return {
        "has_technical_landscape": context.technical_landscape is not None,
        "has_comparable_projects": context.comparable_projects is not None,
        "industry_insights": len(context.industry_insights),
        "best_practices": len(context.best_practices),
        "risk_patterns": len(context.risk_patterns),
        "success_factors": len(context.success_factors),
    }
