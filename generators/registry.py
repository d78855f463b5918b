"""Document registry.

One DocumentSpec per DocumentType: its contract, token budget, timeout,
section plan and static fallback. The registry is checked at import time so
adding a DocumentType without registering it fails immediately.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Type, Union

from pydantic import BaseModel

from contracts.agile_contracts import AgileCharter, HybridCharter, ProductBacklog
from contracts.document_contracts import DocumentType
from contracts.prince2_contracts import (
    BusinessCase,
    CommunicationPlan,
    ProjectInitiationDocument,
    ProjectPlan,
    QualityManagementStrategy,
    RiskRegister,
)
from contracts.project import Methodology, SanitizedProjectData
from contracts.research_contracts import ComparableProjects, TechnicalLandscape

from . import fallbacks
from .section_generator import BUSINESS_CASE_SECTIONS, PID_SECTIONS, SectionSpec

logger = logging.getLogger(__name__)

FallbackBuilder = Callable[[SanitizedProjectData], Union[Dict, str]]


class UnknownDocumentTypeError(ValueError):
    """No item of a document selection matched a known document type."""


@dataclass(frozen=True)
class DocumentSpec:
    """How one document type is generated.

    schema is None for markdown documents, which are generated as free text.
    timeout is None to use settings.document_timeout_seconds.
    """
    document_type: DocumentType
    schema: Optional[Type[BaseModel]]
    max_tokens: int
    fallback: FallbackBuilder
    timeout: Optional[float] = None
    is_research: bool = False
    sections: Optional[Tuple[SectionSpec, ...]] = None

    @property
    def is_text(self) -> bool:
        return self.schema is None


REGISTRY: Dict[DocumentType, DocumentSpec] = {
    spec.document_type: spec
    for spec in (
        DocumentSpec(DocumentType.TECHNICAL_LANDSCAPE, TechnicalLandscape, 3000,
                     fallbacks.default_technical_landscape, is_research=True),
        DocumentSpec(DocumentType.COMPARABLE_PROJECTS, ComparableProjects, 3000,
                     fallbacks.default_comparable_projects, is_research=True),
        DocumentSpec(DocumentType.CHARTER, AgileCharter, 3000, fallbacks.default_charter),
        DocumentSpec(DocumentType.BACKLOG, ProductBacklog, 4000, fallbacks.default_backlog),
        DocumentSpec(DocumentType.SPRINT_PLAN, None, 3000, fallbacks.default_sprint_plan),
        DocumentSpec(DocumentType.PID, ProjectInitiationDocument, 8000, fallbacks.default_pid,
                     timeout=240, sections=PID_SECTIONS),
        DocumentSpec(DocumentType.BUSINESS_CASE, BusinessCase, 6000,
                     fallbacks.default_business_case, timeout=240,
                     sections=BUSINESS_CASE_SECTIONS),
        DocumentSpec(DocumentType.RISK_REGISTER, RiskRegister, 4000,
                     fallbacks.default_risk_register),
        DocumentSpec(DocumentType.PROJECT_PLAN, ProjectPlan, 4000, fallbacks.default_project_plan),
        DocumentSpec(DocumentType.QUALITY_MANAGEMENT, QualityManagementStrategy, 3000,
                     fallbacks.default_quality_management),
        DocumentSpec(DocumentType.COMMUNICATION_PLAN, CommunicationPlan, 3000,
                     fallbacks.default_communication_plan),
        DocumentSpec(DocumentType.HYBRID_CHARTER, HybridCharter, 3500,
                     fallbacks.default_hybrid_charter),
    )
}

_missing = [t.value for t in DocumentType if t not in REGISTRY]
if _missing:
    raise RuntimeError(f"Document types without a registry entry: {_missing}")


METHODOLOGY_DOCUMENTS: Dict[Methodology, Tuple[DocumentType, ...]] = {
    Methodology.AGILE: (
        DocumentType.TECHNICAL_LANDSCAPE,
        DocumentType.COMPARABLE_PROJECTS,
        DocumentType.CHARTER,
        DocumentType.BACKLOG,
        DocumentType.SPRINT_PLAN,
    ),
    Methodology.PRINCE2: (
        DocumentType.TECHNICAL_LANDSCAPE,
        DocumentType.COMPARABLE_PROJECTS,
        DocumentType.PID,
        DocumentType.BUSINESS_CASE,
        DocumentType.RISK_REGISTER,
        DocumentType.PROJECT_PLAN,
        DocumentType.QUALITY_MANAGEMENT,
        DocumentType.COMMUNICATION_PLAN,
    ),
    Methodology.HYBRID: (
        DocumentType.TECHNICAL_LANDSCAPE,
        DocumentType.COMPARABLE_PROJECTS,
        DocumentType.HYBRID_CHARTER,
        DocumentType.RISK_REGISTER,
        DocumentType.BACKLOG,
    ),
}

# Names the web form used besides display names and type keys
_EXTRA_NAMES = {
    "pid": DocumentType.PID,
    "quality management strategy": DocumentType.QUALITY_MANAGEMENT,
    "communication management strategy": DocumentType.COMMUNICATION_PLAN,
    "agile project charter": DocumentType.CHARTER,
    "comparable projects": DocumentType.COMPARABLE_PROJECTS,
    "technical landscape analysis": DocumentType.TECHNICAL_LANDSCAPE,
}


def _lookup_table() -> Dict[str, DocumentType]:
    table: Dict[str, DocumentType] = dict(_EXTRA_NAMES)
    for doc_type in DocumentType:
        table[doc_type.value] = doc_type
        table[doc_type.value.replace("_", " ")] = doc_type
        table[doc_type.display_name.lower()] = doc_type
    return table


_LOOKUP = _lookup_table()


def get_spec(document_type: Union[DocumentType, str]) -> DocumentSpec:
    return REGISTRY[DocumentType(document_type)]


def documents_for(methodology: Union[Methodology, str]) -> List[DocumentType]:
    return list(METHODOLOGY_DOCUMENTS[Methodology(methodology)])


def resolve_selection(
    methodology: Union[Methodology, str],
    selection: Optional[Iterable[Union[str, DocumentType]]] = None,
) -> List[DocumentType]:
    """Resolve a user selection to document types.

    Items match by type key or display name, case-insensitively. Unknown items
    are logged and skipped. An empty or missing selection means the
    methodology's full document set, in methodology order; otherwise the
    result keeps selection order without duplicates.

    Raises:
        UnknownDocumentTypeError: If the selection is non-empty but nothing in it matched
    """
    if selection is None:
        return documents_for(methodology)
    items = list(selection)
    if not items:
        return documents_for(methodology)

    resolved: List[DocumentType] = []
    for item in items:
        if isinstance(item, DocumentType):
            doc_type = item
        else:
            doc_type = _LOOKUP.get(str(item).strip().lower())
        if doc_type is None:
            logger.warning("Ignoring unknown document type in selection: %r", item)
            continue
        if doc_type not in resolved:
            resolved.append(doc_type)

    if not resolved:
        raise UnknownDocumentTypeError(f"No known document types in selection: {items}")
    return resolved
