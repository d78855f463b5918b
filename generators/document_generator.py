"""One-shot and sectioned generation of a single document.

DocumentGenerator knows how to produce each rung of a document's fallback
chain. Retrying, timing out and choosing between rungs is the orchestrator's
job; each method here makes one attempt and raises on failure.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from contracts.document_contracts import DocumentType, UsageMetrics
from contracts.project import Methodology, SanitizedProjectData
from contracts.research_contracts import ResearchContext
from librarian import Librarian
from providers.client import LLMClient

from .prompts import build_prompt
from .registry import get_spec
from .section_generator import SectionedDocument, generate_document

logger = logging.getLogger(__name__)


@dataclass
class PrimaryResult:
    content: Union[Dict[str, Any], str]
    usage: UsageMetrics
    provider: str
    model: str
    duration_ms: int


class DocumentGenerator:
    """Generates documents for one LLM client."""

    def __init__(self, client: LLMClient, librarian: Optional[Librarian] = None):
        self.client = client
        self.librarian = librarian
        self._knowledge: Dict[Methodology, str] = {}

    def knowledge_for(self, methodology: Methodology) -> str:
        """Methodology cheat sheets for system prompts; empty without a librarian."""
        if self.librarian is None:
            return ""
        if methodology not in self._knowledge:
            try:
                self._knowledge[methodology] = self.librarian.get_context_for_methodology(methodology)
            except (KeyError, ValueError) as e:
                logger.warning("No methodology knowledge for %s: %s", methodology.value, e)
                self._knowledge[methodology] = ""
        return self._knowledge[methodology]

    async def generate_primary(
        self,
        document_type: DocumentType,
        data: SanitizedProjectData,
        context: Optional[ResearchContext] = None,
    ) -> PrimaryResult:
        """Generate the whole document in one call.

        Raises:
            LLMOutputError: If the response is empty or fails validation
        """
        spec = get_spec(document_type)
        prompt = build_prompt(
            document_type,
            data,
            knowledge=self.knowledge_for(data.methodology),
            context=context,
            max_tokens=spec.max_tokens,
        )

        started = time.monotonic()
        if spec.is_text:
            result = await self.client.generate_text(prompt)
            content: Union[Dict[str, Any], str] = result.content
        else:
            result = await self.client.generate_json(prompt, spec.schema)
            content = result.value.model_dump(mode="json")

        return PrimaryResult(
            content=content,
            usage=result.usage,
            provider=result.provider,
            model=result.model,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    def has_sections(self, document_type: DocumentType) -> bool:
        return get_spec(document_type).sections is not None

    async def generate_sectioned(
        self,
        document_type: DocumentType,
        data: SanitizedProjectData,
        context: Optional[ResearchContext] = None,
        max_parallel: int = 1,
    ) -> SectionedDocument:
        """Generate the document section by section.

        Raises:
            ValueError: If the document type has no section plan
            SectionGenerationError: If every section fell back to its default
        """
        spec = get_spec(document_type)
        if spec.sections is None:
            raise ValueError(f"{document_type.value} has no section plan")
        return await generate_document(
            self.client,
            data,
            spec.sections,
            document_type,
            context=context,
            knowledge=self.knowledge_for(data.methodology),
            max_parallel=max_parallel,
        )

    def build_fallback(
        self,
        document_type: DocumentType,
        data: SanitizedProjectData,
    ) -> Union[Dict[str, Any], str]:
        """Static default content for the document."""
        return get_spec(document_type).fallback(data)
