"""Sectioned generation for documents too large to generate in one call.

A large document is split into sections, each prompted and validated on its
own under a small token budget. A section whose call fails for any reason
(transport error, timeout of the call, malformed JSON, schema mismatch) is
replaced by its static default and generation moves on, so one bad response
costs a fraction of the document instead of the whole of it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ValidationError, create_model

from contracts.document_contracts import DocumentType, UsageMetrics
from contracts.prince2_contracts import BusinessCase, ProjectInitiationDocument
from contracts.project import SanitizedProjectData
from contracts.research_contracts import ResearchContext
from providers.client import LLMClient

from . import fallbacks
from .prompts import build_section_prompt

logger = logging.getLogger(__name__)

DefaultBuilder = Callable[[SanitizedProjectData], Dict[str, Any]]


class SectionGenerationError(RuntimeError):
    """Every section of a document fell back to its default."""


@lru_cache(maxsize=None)
def section_schema(parent: Type[BaseModel], keys: Tuple[str, ...]) -> Type[BaseModel]:
    """Pydantic model holding just the given top-level fields of parent."""
    fields = {key: (parent.model_fields[key].annotation, parent.model_fields[key]) for key in keys}
    name = "".join(part.title() for part in "_".join(keys).split("_")) + "Section"
    return create_model(name, **fields)


@dataclass(frozen=True)
class SectionSpec:
    """One independently generated slice of a document."""
    name: str
    keys: Tuple[str, ...]
    instructions: str
    max_tokens: int
    default: DefaultBuilder
    parent: Type[BaseModel]

    @property
    def schema(self) -> Type[BaseModel]:
        return section_schema(self.parent, self.keys)


@dataclass
class SectionResult:
    name: str
    value: Dict[str, Any]
    defaulted: bool
    usage: UsageMetrics = field(default_factory=UsageMetrics)
    error: Optional[str] = None


@dataclass
class SectionedDocument:
    content: Dict[str, Any]
    sections: List[SectionResult]
    provider: str = ""
    model: str = ""

    @property
    def degraded_sections(self) -> List[str]:
        return [s.name for s in self.sections if s.defaulted]

    @property
    def usage(self) -> UsageMetrics:
        """Usage of sections that produced model content."""
        total = UsageMetrics()
        for section in self.sections:
            if not section.defaulted:
                total = total + section.usage
        return total


async def generate_section(
    client: LLMClient,
    data: SanitizedProjectData,
    spec: SectionSpec,
    document_type: DocumentType,
    context: Optional[ResearchContext] = None,
    knowledge: str = "",
) -> SectionResult:
    """Generate and validate one section, substituting its default on any failure."""
    prompt = build_section_prompt(
        document_type,
        spec.name,
        spec.keys,
        spec.instructions,
        data,
        knowledge=knowledge,
        context=context,
        max_tokens=spec.max_tokens,
    )
    try:
        result = await client.generate_json(prompt, spec.schema)
    except Exception as e:
        logger.warning(
            "Section %s of %s failed, using default: %s", spec.name, document_type.value, e
        )
        return SectionResult(
            name=spec.name,
            value=spec.default(data),
            defaulted=True,
            usage=getattr(e, "usage", None) or UsageMetrics(),
            error=str(e),
        )

    return SectionResult(
        name=spec.name,
        value=result.value.model_dump(mode="json"),
        defaulted=False,
        usage=result.usage,
    )


async def generate_document(
    client: LLMClient,
    data: SanitizedProjectData,
    sections: Sequence[SectionSpec],
    document_type: DocumentType,
    context: Optional[ResearchContext] = None,
    knowledge: str = "",
    max_parallel: int = 1,
) -> SectionedDocument:
    """Generate every section and merge them by key into one document.

    Sections are independent; max_parallel only changes wall-clock time.

    Raises:
        SectionGenerationError: If every section fell back to its default
    """
    semaphore = asyncio.Semaphore(max(1, max_parallel))

    async def run(spec: SectionSpec) -> SectionResult:
        async with semaphore:
            return await generate_section(client, data, spec, document_type, context, knowledge)

    results = await asyncio.gather(*(run(spec) for spec in sections))

    if results and all(r.defaulted for r in results):
        raise SectionGenerationError(
            f"All {len(results)} sections of {document_type.value} failed; "
            f"last error: {results[-1].error}"
        )

    merged: Dict[str, Any] = {}
    for result in results:
        merged.update(result.value)

    parent = sections[0].parent if sections else None
    if parent is not None:
        try:
            merged = parent.model_validate(merged).model_dump(mode="json")
        except ValidationError as e:
            raise SectionGenerationError(
                f"Merged sections of {document_type.value} do not form a valid document: {e}"
            ) from e

    degraded = [r.name for r in results if r.defaulted]
    if degraded:
        logger.warning(
            "%s generated with %d/%d default sections: %s",
            document_type.value, len(degraded), len(results), ", ".join(degraded),
        )
    return SectionedDocument(
        content=merged,
        sections=list(results),
        provider=client.provider_name,
        model=client.model,
    )


PID_SECTIONS: Tuple[SectionSpec, ...] = (
    SectionSpec(
        name="project definition",
        keys=("project_definition",),
        instructions="Focus on background, objectives, desired outcomes, scope, constraints, "
                     "assumptions, deliverables and interfaces.",
        max_tokens=1000,
        default=fallbacks.default_project_definition,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="business case summary",
        keys=("business_case",),
        instructions="Summarise the business justification: reasons, options, benefits, "
                     "dis-benefits, timescale, costs, investment appraisal and major risks.",
        max_tokens=1000,
        default=fallbacks.default_pid_business_case,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="organization structure",
        keys=("organization_structure",),
        instructions="Describe the project board, project manager, team managers, project "
                     "assurance and project support. Use the board placeholder tokens.",
        max_tokens=2000,
        default=fallbacks.default_organization_structure,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="quality management approach",
        keys=("quality_management_approach",),
        instructions="Describe quality standards, criteria, method and responsibilities.",
        max_tokens=800,
        default=fallbacks.default_quality_approach,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="configuration management approach",
        keys=("configuration_management_approach",),
        instructions="Describe purpose, procedure, issue and change control, tools.",
        max_tokens=800,
        default=fallbacks.default_configuration_approach,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="risk management approach",
        keys=("risk_management_approach",),
        instructions="Describe the risk procedure, tools, reporting, timing, roles, "
                     "tolerances for time, cost, quality, scope, benefits and risk, and categories.",
        max_tokens=800,
        default=fallbacks.default_risk_approach,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="communication management approach",
        keys=("communication_management_approach",),
        instructions="Describe procedure, tools, reporting, roles, methods, frequency and "
                     "a stakeholder analysis using the stakeholder placeholder tokens.",
        max_tokens=800,
        default=fallbacks.default_communication_approach,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="project plan",
        keys=("project_plan",),
        instructions="Describe stages with dates, milestones, dependencies and the schedule.",
        max_tokens=1000,
        default=fallbacks.default_pid_project_plan,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="project controls",
        keys=("project_controls",),
        instructions="Describe management stages, tolerances and reporting arrangements.",
        max_tokens=800,
        default=fallbacks.default_project_controls,
        parent=ProjectInitiationDocument,
    ),
    SectionSpec(
        name="tailoring",
        keys=("tailoring",),
        instructions="Explain how PRINCE2 is tailored for this project and why.",
        max_tokens=800,
        default=fallbacks.default_tailoring,
        parent=ProjectInitiationDocument,
    ),
)


BUSINESS_CASE_SECTIONS: Tuple[SectionSpec, ...] = (
    SectionSpec(
        name="executive summary and reasons",
        keys=("executive_summary", "reasons"),
        instructions="Write the executive summary and the reasons for the project.",
        max_tokens=2000,
        default=fallbacks.default_business_case_summary,
        parent=BusinessCase,
    ),
    SectionSpec(
        name="business options",
        keys=("business_options",),
        instructions="Describe at least three options (do nothing, do minimum, do something) "
                     "with costs, benefits and risks.",
        max_tokens=2500,
        default=fallbacks.default_business_options,
        parent=BusinessCase,
    ),
    SectionSpec(
        name="benefits and dis-benefits",
        keys=("expected_benefits", "expected_dis_benefits"),
        instructions="List measurable expected benefits with baselines and targets, "
                     "and the expected dis-benefits.",
        max_tokens=2000,
        default=fallbacks.default_benefits,
        parent=BusinessCase,
    ),
    SectionSpec(
        name="financials",
        keys=("timescale", "costs", "investment_appraisal", "major_risks"),
        instructions="Complete the financial sections: timescale, development, operational "
                     "and total costs, ROI, payback period, NPV, and the major risks.",
        max_tokens=2000,
        default=fallbacks.default_business_case_financials,
        parent=BusinessCase,
    ),
)
