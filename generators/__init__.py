"""Document generation: prompts, registry, sectioned generation and research context."""

from .document_generator import DocumentGenerator, PrimaryResult
from .prompts import build_prompt, build_section_prompt, project_brief
from .registry import (
    METHODOLOGY_DOCUMENTS,
    REGISTRY,
    DocumentSpec,
    UnknownDocumentTypeError,
    documents_for,
    get_spec,
    resolve_selection,
)
from .research_context import (
    RESEARCH_TYPES,
    enhance_prompt,
    extract_context,
    should_run_research,
    summarize_context,
)
from .section_generator import (
    BUSINESS_CASE_SECTIONS,
    PID_SECTIONS,
    SectionedDocument,
    SectionGenerationError,
    SectionResult,
    SectionSpec,
    generate_document,
    generate_section,
)

__all__ = [
    "DocumentGenerator",
    "PrimaryResult",
    "build_prompt",
    "build_section_prompt",
    "project_brief",
    "METHODOLOGY_DOCUMENTS",
    "REGISTRY",
    "DocumentSpec",
    "UnknownDocumentTypeError",
    "documents_for",
    "get_spec",
    "resolve_selection",
    "RESEARCH_TYPES",
    "enhance_prompt",
    "extract_context",
    "should_run_research",
    "summarize_context",
    "BUSINESS_CASE_SECTIONS",
    "PID_SECTIONS",
    "SectionedDocument",
    "SectionGenerationError",
    "SectionResult",
    "SectionSpec",
    "generate_document",
    "generate_section",
]
