"""Generation Orchestrator - drives a project's documents from profile to result.

For one project the orchestrator:
1. Sanitizes the profile and stores its mapping table
2. Serves the document set from the cache when it can
3. Generates research documents first and condenses them into context
4. Generates every other document through the fallback chain
   (primary -> sectioned -> static default)
5. Caches the sanitized set, then rehydrates each document exactly once

Failures below run level come back as flagged documents. The only exception
that escapes a run is TotalGenerationFailure.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from config import GenerationConfig, settings
from contracts.document_contracts import (
    DocumentMetadata,
    DocumentType,
    GeneratedDocument,
    GenerationPath,
    GenerationRun,
    UsageMetrics,
)
from contracts.event_contracts import GenerationEvent, GenerationPhase
from contracts.project import ProjectProfile, SanitizedProjectData
from contracts.research_contracts import ResearchContext
from generators.document_generator import DocumentGenerator
from generators.prompts import build_prompt
from generators.registry import get_spec, resolve_selection
from generators.research_context import (
    RESEARCH_TYPES,
    extract_context,
    should_run_research,
    summarize_context,
)
from librarian import Librarian
from privacy.mapping_store import InMemoryMappingStore, MappingNotFoundError, MappingStore
from privacy.sanitizer import MappingTable, MappingTableError, Sanitizer, rehydrate
from providers.client import LLMClient
from providers.factory import get_provider

from .cache import GenerationCache
from .metrics import GenerationMetrics
from .task_queue import TaskFailedError, TaskPriority, TaskQueue

logger = logging.getLogger(__name__)

EventHook = Callable[[GenerationEvent], None]
Profile = Union[ProjectProfile, Dict[str, Any]]


class TotalGenerationFailure(RuntimeError):
    """No document of the run could be constructed, not even a static default."""

    def __init__(self, project_id: str, errors: Dict[str, str]):
        self.project_id = project_id
        self.errors = errors
        super().__init__(
            f"Every document failed for project {project_id}: "
            + "; ".join(f"{k}: {v}" for k, v in errors.items())
        )


class GenerationOrchestrator:
    """Generates methodology document sets for projects.

    Every collaborator can be injected; anything not given is built from
    config and the global settings.
    """

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        client: Optional[LLMClient] = None,
        sanitizer: Optional[Sanitizer] = None,
        cache: Optional[GenerationCache] = None,
        queue: Optional[TaskQueue] = None,
        mapping_store: Optional[MappingStore] = None,
        librarian: Optional[Librarian] = None,
        metrics: Optional[GenerationMetrics] = None,
        on_event: Optional[EventHook] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Provider, concurrency, retry and cache settings
            client: LLM client; built from config.provider/config.model if None
            sanitizer: PII sanitizer
            cache: Generation cache; built from config if None
            queue: Task queue for every LLM attempt; built from config if None.
                Pinned to one task at a time for rate-limited providers.
            mapping_store: Where mapping tables are kept; in-memory if None
            librarian: Methodology knowledge; bundled cheat sheets if None
            metrics: Aggregate metrics across every run of this orchestrator
            on_event: Called with a GenerationEvent on every attempt, success,
                failure and fallback
        """
        self.config = config or GenerationConfig.from_settings()
        self.client = client or LLMClient(
            get_provider(self.config.provider, self.config.model),
            model=self.config.model,
        )
        self.sanitizer = sanitizer or Sanitizer()
        self.cache = cache or GenerationCache(
            max_size=self.config.cache_max_size,
            ttl_minutes=self.config.cache_ttl_minutes,
        )
        self.queue = queue or TaskQueue(
            max_concurrent=self.config.max_concurrent,
            max_retries=self.config.max_retries,
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
        )
        if self.sequential and self.queue.max_concurrent != 1:
            logger.info("%s is rate limited, running one task at a time", self.client.provider_name)
            self.queue.max_concurrent = 1
        self.mapping_store = mapping_store or InMemoryMappingStore()
        self.generator = DocumentGenerator(self.client, librarian or Librarian())
        self.metrics = metrics or GenerationMetrics()
        self.on_event = on_event
        self._mappings: Dict[str, MappingTable] = {}
        self._sweeper_started = False

    # ------------------------------------------------------------------ API

    @property
    def cache_provider_key(self) -> str:
        return f"{self.client.provider_name}/{self.client.model}"

    @property
    def sequential(self) -> bool:
        """Rate-limited providers get one document at a time."""
        return (
            self.client.rate_limited
            or self.client.provider_name in settings.rate_limited_providers
        )

    async def generate_project_documents(
        self,
        profile: Profile,
        project_id: str,
        selection: Optional[Iterable[str]] = None,
    ) -> List[GeneratedDocument]:
        """Generate the methodology's documents (or the selected ones) for a project.

        Returns one rehydrated document per requested type, in request order.

        Raises:
            UnknownDocumentTypeError: If a selection was given and nothing in it matched
            TotalGenerationFailure: If no document could be constructed at all
        """
        run = await self.generate_run(profile, project_id, selection)
        return run.documents

    async def generate_run(
        self,
        profile: Profile,
        project_id: str,
        selection: Optional[Iterable[str]] = None,
    ) -> GenerationRun:
        """Like generate_project_documents(), with the run's cost manifest."""
        started_at = datetime.now()
        data, mapping = self.sanitizer.sanitize(profile)
        types = resolve_selection(data.methodology, selection)
        await self._store_mapping(project_id, mapping)
        self._ensure_sweeper()

        run = GenerationRun(
            run_id=f"run_{started_at.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}",
            project_id=project_id,
            methodology=data.methodology,
            provider=self.cache_provider_key,
            started_at=started_at,
        )
        run_metrics = GenerationMetrics()
        logger.info(
            "Generating %d %s documents for %s with %s (%s)",
            len(types), data.methodology.value, project_id, self.cache_provider_key,
            "sequential" if self.sequential else "concurrent",
        )

        cached = None
        if self.config.use_cache:
            cached = self.cache.get(data, project_id, self.cache_provider_key, types)

        if cached is not None:
            logger.info("Serving %d documents for %s from cache", len(cached), project_id)
            documents = cached
            run.from_cache = True
        else:
            documents = await self._generate_all(types, data, project_id, run_metrics)
            self._guard_total_failure(project_id, documents)
            if self.config.use_cache and not any(d.metadata.error for d in documents):
                self.cache.set(data, project_id, documents, self.cache_provider_key, types)

        run.documents = [self._rehydrate_document(d, mapping) for d in documents]
        run.metrics = run_metrics.generate_manifest()
        run.completed_at = datetime.now()

        degraded = len(run.degraded_documents)
        logger.info(
            "Finished %s: %d documents (%d degraded), $%.4f",
            project_id, len(run.documents), degraded, run_metrics.total_cost_usd,
        )
        return run

    async def generate_document(
        self,
        document_type: Union[DocumentType, str],
        profile: Profile,
        project_id: str,
        context: Optional[ResearchContext] = None,
    ) -> GeneratedDocument:
        """Generate a single document through the full fallback chain, uncached."""
        document_type = DocumentType(document_type)
        data, mapping = self.sanitizer.sanitize(profile)
        await self._store_mapping(project_id, mapping)
        try:
            document = await self._generate_one(document_type, data, project_id, context)
        except Exception as e:
            logger.error("Unexpected failure generating %s: %s", document_type.value, e)
            document = self._placeholder(document_type, data, project_id, e)
        self._guard_total_failure(project_id, [document])
        return self._rehydrate_document(document, mapping)

    async def get_mapping_table(self, project_id: str) -> MappingTable:
        """The mapping table of a project's latest run.

        Raises:
            MappingNotFoundError: If the project has never been sanitized
        """
        if project_id in self._mappings:
            return self._mappings[project_id]
        return await self.mapping_store.retrieve(project_id)

    async def rehydrate_for_export(self, project_id: str, content: Any) -> Any:
        """Rehydrate stored sanitized content, e.g. before exporting a document.

        Without a mapping table the content is returned unchanged.
        """
        try:
            mapping = await self.get_mapping_table(project_id)
        except MappingNotFoundError:
            logger.warning("No mapping table for %s; exporting sanitized content", project_id)
            return content
        return rehydrate(content, mapping)

    def estimate_cost(
        self,
        profile: Profile,
        selection: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """Rough upper bound on the cost of generating a project's documents.

        Input tokens are estimated from prompt length, output tokens from each
        document's full budget.
        """
        data, _ = self.sanitizer.sanitize(profile)
        knowledge = self.generator.knowledge_for(data.methodology)
        per_document: Dict[str, float] = {}
        input_tokens = 0
        output_tokens = 0
        for document_type in resolve_selection(data.methodology, selection):
            spec = get_spec(document_type)
            prompt = build_prompt(document_type, data, knowledge, max_tokens=spec.max_tokens)
            doc_input = (len(prompt.system) + len(prompt.user)) // 4
            input_tokens += doc_input
            output_tokens += spec.max_tokens
            per_document[document_type.value] = round(
                settings.calculate_cost(doc_input, spec.max_tokens), 6
            )
        return {
            "documents": per_document,
            "estimated_input_tokens": input_tokens,
            "estimated_output_tokens": output_tokens,
            "estimated_cost_usd": round(sum(per_document.values()), 6),
        }

    def get_cache_stats(self) -> Dict[str, Any]:
        stats = self.cache.get_stats()
        return {
            "size": stats.size,
            "max_size": stats.max_size,
            "hits": stats.hits,
            "misses": stats.misses,
            "evictions": stats.evictions,
            "expirations": stats.expirations,
            "hit_rate": stats.hit_rate,
            "providers": stats.providers,
        }

    def get_queue_status(self) -> Dict[str, int]:
        return self.queue.get_status()

    def get_aggregated_metrics(self) -> Dict[str, Any]:
        """Cost manifest over every run of this orchestrator."""
        return self.metrics.generate_manifest()

    async def close(self) -> None:
        await self.queue.shutdown()
        await self.cache.close()

    # ------------------------------------------------------------ internals

    async def _store_mapping(self, project_id: str, mapping: MappingTable) -> None:
        self._mappings[project_id] = mapping
        try:
            await self.mapping_store.store(project_id, mapping)
        except Exception as e:
            logger.error("Could not persist mapping table for %s: %s", project_id, e)

    def _ensure_sweeper(self) -> None:
        if not self._sweeper_started:
            self.cache.start_sweeper(settings.cache_sweep_interval_seconds)
            self._sweeper_started = True

    async def _generate_all(
        self,
        types: Sequence[DocumentType],
        data: SanitizedProjectData,
        project_id: str,
        run_metrics: GenerationMetrics,
    ) -> List[GeneratedDocument]:
        documents: Dict[DocumentType, GeneratedDocument] = {}
        context: Optional[ResearchContext] = None

        if should_run_research(data, types, enabled=settings.enable_research):
            research_types = [t for t in types if t in RESEARCH_TYPES]
            documents.update(
                await self._generate_batch(research_types, data, project_id, None, run_metrics)
            )
            try:
                context = extract_context(
                    documents.get(DocumentType.TECHNICAL_LANDSCAPE),
                    documents.get(DocumentType.COMPARABLE_PROJECTS),
                )
            except Exception as e:
                logger.warning("Research context extraction failed, continuing without: %s", e)
                context = None
            else:
                logger.debug("Research context for %s: %s", project_id, summarize_context(context))

        remaining = [t for t in types if t not in documents]
        documents.update(
            await self._generate_batch(remaining, data, project_id, context, run_metrics)
        )
        return [documents[t] for t in types]

    async def _generate_batch(
        self,
        types: Sequence[DocumentType],
        data: SanitizedProjectData,
        project_id: str,
        context: Optional[ResearchContext],
        run_metrics: GenerationMetrics,
    ) -> Dict[DocumentType, GeneratedDocument]:
        results: List[Any] = []
        if self.sequential:
            for document_type in types:
                try:
                    results.append(
                        await self._generate_one(document_type, data, project_id, context, run_metrics)
                    )
                except Exception as e:
                    results.append(e)
        else:
            results = await asyncio.gather(
                *(
                    self._generate_one(document_type, data, project_id, context, run_metrics)
                    for document_type in types
                ),
                return_exceptions=True,
            )

        documents: Dict[DocumentType, GeneratedDocument] = {}
        for document_type, result in zip(types, results):
            if isinstance(result, BaseException):
                logger.error("Unexpected failure generating %s: %r", document_type.value, result)
                documents[document_type] = self._placeholder(document_type, data, project_id, result)
            else:
                documents[document_type] = result
        return documents

    async def _generate_one(
        self,
        document_type: DocumentType,
        data: SanitizedProjectData,
        project_id: str,
        context: Optional[ResearchContext] = None,
        run_metrics: Optional[GenerationMetrics] = None,
    ) -> GeneratedDocument:
        """Run one document down the fallback chain; always returns a document."""
        spec = get_spec(document_type)
        started_at = datetime.now()
        started = time.monotonic()
        attempts = 0

        async def attempt():
            nonlocal attempts
            attempts += 1
            number = attempts
            self._emit(project_id, document_type, GenerationPhase.ATTEMPT, number)
            t0 = time.monotonic()
            try:
                return await self.generator.generate_primary(document_type, data, context)
            except (Exception, asyncio.CancelledError) as e:
                error = str(e) or type(e).__name__
                self._emit(project_id, document_type, GenerationPhase.FAILURE, number,
                           _elapsed_ms(t0), error)
                raise

        last_error: Optional[str] = None
        try:
            result = await self.queue.run(
                attempt,
                priority=TaskPriority.HIGH if spec.is_research else TaskPriority.NORMAL,
                timeout=spec.timeout or settings.document_timeout_seconds,
                label=f"{project_id}:{document_type.value}",
            )
        except TaskFailedError as e:
            last_error = str(e.last_error or e)
            logger.warning("%s failed after %d attempt(s): %s",
                           document_type.value, e.attempts, last_error)
        else:
            self._emit(project_id, document_type, GenerationPhase.SUCCESS, attempts,
                       result.duration_ms)
            self._record(run_metrics, document_type, GenerationPath.PRIMARY,
                         result.provider, result.model, result.usage, result.duration_ms)
            return self._document(
                document_type, data, project_id, result.content,
                path=GenerationPath.PRIMARY,
                provider=result.provider,
                model=result.model,
                usage=result.usage,
                generation_time_ms=_elapsed_ms(started),
                started_at=started_at,
                attempts=attempts,
            )

        if self.generator.has_sections(document_type):
            attempts += 1
            self._emit(project_id, document_type, GenerationPhase.ATTEMPT, attempts)
            t0 = time.monotonic()
            try:
                sectioned = await self.queue.run(
                    lambda: self.generator.generate_sectioned(document_type, data, context),
                    max_retries=0,
                    timeout=settings.sectioned_timeout_seconds,
                    label=f"{project_id}:{document_type.value}:sections",
                )
            except TaskFailedError as e:
                last_error = str(e.last_error or e)
                logger.warning("Sectioned generation of %s failed: %s", document_type.value, last_error)
                self._emit(project_id, document_type, GenerationPhase.FAILURE, attempts,
                           _elapsed_ms(t0), last_error)
            else:
                duration = _elapsed_ms(t0)
                self._emit(project_id, document_type, GenerationPhase.SUCCESS, attempts, duration)
                self._record(run_metrics, document_type, GenerationPath.SECTIONED,
                             sectioned.provider, sectioned.model, sectioned.usage, duration)
                return self._document(
                    document_type, data, project_id, sectioned.content,
                    path=GenerationPath.SECTIONED,
                    provider=sectioned.provider,
                    model=sectioned.model,
                    usage=sectioned.usage,
                    generation_time_ms=_elapsed_ms(started),
                    started_at=started_at,
                    attempts=attempts,
                    degraded_sections=sectioned.degraded_sections,
                )

        logger.warning("Using static default for %s of %s", document_type.value, project_id)
        self._emit(project_id, document_type, GenerationPhase.FALLBACK_USED, attempts,
                   error=last_error)
        return self._document(
            document_type, data, project_id, self.generator.build_fallback(document_type, data),
            path=GenerationPath.FALLBACK,
            generation_time_ms=_elapsed_ms(started),
            started_at=started_at,
            attempts=attempts,
            error=True,
            error_message=last_error,
        )

    def _document(
        self,
        document_type: DocumentType,
        data: SanitizedProjectData,
        project_id: str,
        content: Union[Dict[str, Any], str],
        path: GenerationPath,
        provider: str = "",
        model: str = "",
        usage: Optional[UsageMetrics] = None,
        **metadata: Any,
    ) -> GeneratedDocument:
        return GeneratedDocument(
            content=content,
            metadata=DocumentMetadata(
                project_id=project_id,
                document_type=document_type,
                display_name=document_type.display_name,
                methodology=data.methodology,
                provider=provider or self.client.provider_name,
                model=model or self.client.model,
                usage=usage or UsageMetrics(),
                generation_path=path,
                completed_at=datetime.now(),
                **metadata,
            ),
        )

    def _placeholder(
        self,
        document_type: DocumentType,
        data: SanitizedProjectData,
        project_id: str,
        error: BaseException,
    ) -> GeneratedDocument:
        message = str(error) or type(error).__name__
        return self._document(
            document_type, data, project_id,
            {"error": message, "document_type": document_type.value},
            path=GenerationPath.PLACEHOLDER,
            error=True,
            error_message=message,
        )

    def _guard_total_failure(self, project_id: str, documents: List[GeneratedDocument]) -> None:
        if any(d.metadata.generation_path != GenerationPath.PLACEHOLDER for d in documents):
            return
        errors = {d.document_type.value: d.metadata.error_message or "" for d in documents}
        logger.error("Total generation failure for %s", project_id)
        raise TotalGenerationFailure(project_id, errors)

    def _rehydrate_document(self, document: GeneratedDocument, mapping: MappingTable) -> GeneratedDocument:
        if document.metadata.rehydrated:
            return document
        try:
            content = rehydrate(document.content, mapping)
        except MappingTableError as e:
            logger.warning("Mapping table unusable for %s; returning sanitized content: %s",
                           document.document_type.value, e)
            return document
        metadata = document.metadata.model_copy(update={"rehydrated": True})
        return GeneratedDocument(content=content, metadata=metadata)

    def _record(
        self,
        run_metrics: Optional[GenerationMetrics],
        document_type: DocumentType,
        path: GenerationPath,
        provider: str,
        model: str,
        usage: UsageMetrics,
        duration_ms: int,
    ) -> None:
        for metrics in (self.metrics, run_metrics):
            if metrics is not None:
                metrics.record(document_type, provider, model, path, usage, duration_ms)

    def _emit(
        self,
        project_id: str,
        document_type: DocumentType,
        phase: GenerationPhase,
        attempt: int,
        duration_ms: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        if self.on_event is None:
            return
        event = GenerationEvent(
            project_id=project_id,
            document_type=document_type,
            phase=phase,
            attempt=attempt,
            duration_ms=duration_ms,
            error=error,
        )
        try:
            self.on_event(event)
        except Exception:
            logger.exception("Generation event hook failed for %s", document_type.value)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
