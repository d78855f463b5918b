"""End-to-end tests for the generation orchestrator over a scripted provider."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from config import GenerationConfig
from contracts import DocumentType, GenerationPath, GenerationPhase
from generators import BUSINESS_CASE_SECTIONS, PID_SECTIONS, UnknownDocumentTypeError
from orchestrator import GenerationCache, GenerationOrchestrator, TaskQueue, TotalGenerationFailure
from privacy import MappingNotFoundError

from fakes import FakeProvider, requested_document, valid_reply

AGILE_TYPES = [
    DocumentType.TECHNICAL_LANDSCAPE,
    DocumentType.COMPARABLE_PROJECTS,
    DocumentType.CHARTER,
    DocumentType.BACKLOG,
    DocumentType.SPRINT_PLAN,
]


def scripted(data, failing=()):
    """Answer every primary and section prompt with valid content.

    Primary prompts for document types in `failing` raise instead.
    """
    sections = {", ".join(spec.keys): spec for spec in PID_SECTIONS + BUSINESS_CASE_SECTIONS}

    def handler(system, user):
        doc_type = requested_document(user)
        if doc_type is not None:
            if doc_type in failing:
                return RuntimeError(f"{doc_type.value} unavailable")
            return valid_reply(doc_type, data)
        for keys, spec in sections.items():
            if f"Create the {keys} section(s)" in user:
                return json.dumps(spec.default(data))
        raise AssertionError(f"Unexpected prompt: {user[:80]}")

    return handler


@pytest_asyncio.fixture
async def build(make_client):
    """Factory for orchestrators over a FakeProvider; closes them afterwards."""
    built = []

    def factory(provider, max_retries=0, **kwargs):
        orchestrator = GenerationOrchestrator(
            config=GenerationConfig(provider="fake", max_retries=max_retries),
            client=make_client(provider),
            queue=TaskQueue(max_concurrent=3, max_retries=max_retries,
                            base_delay_ms=1, max_delay_ms=1),
            **kwargs,
        )
        built.append(orchestrator)
        return orchestrator

    yield factory
    for orchestrator in built:
        await orchestrator.close()


@pytest.mark.asyncio
class TestGenerateProjectDocuments:
    """Test full runs."""

    async def test_agile_run_in_methodology_order(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        documents = await orchestrator.generate_project_documents(agile_profile, "p1")

        assert [d.document_type for d in documents] == AGILE_TYPES
        assert all(d.metadata.generation_path == GenerationPath.PRIMARY for d in documents)
        assert not any(d.metadata.error for d in documents)
        assert isinstance(documents[-1].content, str)

    async def test_output_is_rehydrated(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        documents = await orchestrator.generate_project_documents(
            agile_profile, "p1", selection=["Project Charter"]
        )

        charter = documents[0].content
        assert [s["name"] for s in charter["stakeholders"]] == ["Alice Smith", "Bob O'Neil"]
        assert "alice@acme.com" in charter["vision"]
        assert documents[0].metadata.rehydrated

    async def test_prompts_never_contain_personal_data(self, build, agile_profile, agile_data):
        provider = FakeProvider(handler=scripted(agile_data))
        await build(provider).generate_project_documents(agile_profile, "p1")
        for call in provider.calls:
            for text in (call["system"], call["user"]):
                assert "Alice Smith" not in text
                assert "alice@acme.com" not in text
                assert "555-123-4567" not in text

    async def test_selection_order_is_kept(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        documents = await orchestrator.generate_project_documents(
            agile_profile, "p1", selection=["Product Backlog", "charter"]
        )
        assert [d.document_type for d in documents] == [DocumentType.BACKLOG, DocumentType.CHARTER]

    async def test_unknown_selection_raises(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        with pytest.raises(UnknownDocumentTypeError):
            await orchestrator.generate_project_documents(agile_profile, "p1", selection=["Gantt"])

    async def test_rate_limited_provider_is_sequential(self, build, agile_profile, agile_data):
        provider = FakeProvider(handler=scripted(agile_data), rate_limited=True, delay=0.001)
        orchestrator = build(provider)
        assert orchestrator.sequential

        documents = await orchestrator.generate_project_documents(agile_profile, "p1")

        assert len(documents) == 5
        assert provider.max_in_flight == 1

    async def test_rate_limit_holds_across_concurrent_runs(self, build, agile_profile, agile_data):
        provider = FakeProvider(handler=scripted(agile_data), rate_limited=True, delay=0.005)
        orchestrator = build(provider)
        assert orchestrator.queue.max_concurrent == 1

        first, second = await asyncio.gather(
            orchestrator.generate_project_documents(agile_profile, "p1", selection=["charter", "backlog"]),
            orchestrator.generate_project_documents(agile_profile, "p2", selection=["charter", "backlog"]),
        )

        assert len(first) == len(second) == 2
        assert len(provider.calls) == 4
        assert provider.max_in_flight == 1

    async def test_sectioned_fallback_shares_the_rate_limit(self, build, prince2_profile, prince2_data):
        handler = scripted(prince2_data, failing={DocumentType.PID})
        provider = FakeProvider(handler=handler, rate_limited=True, delay=0.002)
        orchestrator = build(provider)

        first, second = await asyncio.gather(
            orchestrator.generate_project_documents(prince2_profile, "p1", selection=["pid"]),
            orchestrator.generate_project_documents(prince2_profile, "p2", selection=["project plan"]),
        )

        assert first[0].metadata.generation_path == GenerationPath.SECTIONED
        assert second[0].metadata.generation_path == GenerationPath.PRIMARY
        assert provider.max_in_flight == 1

    async def test_other_providers_run_concurrently(self, build, agile_profile, agile_data):
        provider = FakeProvider(handler=scripted(agile_data), delay=0.005)
        await build(provider).generate_project_documents(agile_profile, "p1")
        assert provider.max_in_flight > 1

    async def test_research_runs_before_other_documents(self, build, agile_profile, agile_data):
        provider = FakeProvider(handler=scripted(agile_data))
        await build(provider).generate_project_documents(agile_profile, "p1")

        order = [requested_document(c["user"]) for c in provider.calls]
        assert set(order[:2]) == {DocumentType.TECHNICAL_LANDSCAPE, DocumentType.COMPARABLE_PROJECTS}
        backlog_prompt = next(c["user"] for c in provider.calls
                              if requested_document(c["user"]) == DocumentType.BACKLOG)
        assert "research and analysis context" in backlog_prompt

    async def test_research_contact_details_do_not_block_later_prompts(
        self, build, agile_profile, agile_data
    ):
        base = scripted(agile_data)

        def handler(system, user):
            if requested_document(user) == DocumentType.COMPARABLE_PROJECTS:
                content = json.loads(valid_reply(DocumentType.COMPARABLE_PROJECTS, agile_data))
                content["industry_analysis"] = ["Vendor support via support@vendor.com"]
                return json.dumps(content)
            return base(system, user)

        provider = FakeProvider(handler=handler)
        documents = await build(provider).generate_project_documents(agile_profile, "p1")

        for document in documents[2:]:
            assert document.metadata.generation_path == GenerationPath.PRIMARY
            assert not document.metadata.error
        assert not any("support@vendor.com" in call["user"] for call in provider.calls)
        charter_prompt = next(c["user"] for c in provider.calls
                              if requested_document(c["user"]) == DocumentType.CHARTER)
        assert "Vendor support via [REDACTED_EMAIL]" in charter_prompt


@pytest.mark.asyncio
class TestFallbackChain:
    """Test primary -> sectioned -> static default."""

    async def test_pid_falls_back_to_sections(self, build, prince2_profile, prince2_data):
        provider = FakeProvider(handler=scripted(prince2_data, failing={DocumentType.PID}))
        orchestrator = build(provider)

        documents = await orchestrator.generate_project_documents(prince2_profile, "p2", selection=["pid"])

        pid = documents[0]
        assert pid.metadata.generation_path == GenerationPath.SECTIONED
        assert not pid.metadata.error
        assert pid.metadata.attempts == 2
        assert pid.content["organization_structure"]["project_board"]["executive"] == "Grace Hall"
        assert len(provider.calls) == 1 + len(PID_SECTIONS)

    async def test_retries_before_falling_back(self, build, prince2_profile, prince2_data):
        provider = FakeProvider(handler=scripted(prince2_data, failing={DocumentType.RISK_REGISTER}))
        orchestrator = build(provider, max_retries=2)

        documents = await orchestrator.generate_project_documents(
            prince2_profile, "p2", selection=["risk register"]
        )

        risk_register = documents[0]
        assert risk_register.metadata.generation_path == GenerationPath.FALLBACK
        assert risk_register.metadata.attempts == 3
        assert "risk_register unavailable" in risk_register.metadata.error_message
        assert len(provider.calls) == 3

    async def test_provider_down_gives_flagged_defaults(self, build, agile_profile):
        provider = FakeProvider(handler=lambda s, u: ConnectionError("provider down"))
        orchestrator = build(provider)

        run = await orchestrator.generate_run(agile_profile, "p1")

        assert [d.document_type for d in run.documents] == AGILE_TYPES
        assert all(d.metadata.error for d in run.documents)
        assert all(d.metadata.generation_path == GenerationPath.FALLBACK for d in run.documents)
        assert run.metrics["summary"]["billed_generations"] == 0
        # defaults are rehydrated like model output
        names = [s["name"] for s in run.documents[2].content["stakeholders"]]
        assert names == ["Alice Smith", "Bob O'Neil"]

    async def test_runs_with_defaults_are_not_cached(self, build, agile_profile):
        provider = FakeProvider(handler=lambda s, u: ConnectionError("provider down"))
        orchestrator = build(provider)
        await orchestrator.generate_project_documents(agile_profile, "p1")
        assert len(orchestrator.cache) == 0

    async def test_unexpected_exceptions_become_placeholders(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        real = orchestrator._generate_one

        async def flaky(document_type, *args, **kwargs):
            if document_type == DocumentType.BACKLOG:
                raise KeyError("boom")
            return await real(document_type, *args, **kwargs)

        with patch.object(orchestrator, "_generate_one", side_effect=flaky):
            documents = await orchestrator.generate_project_documents(agile_profile, "p1")

        backlog = documents[3]
        assert backlog.metadata.generation_path == GenerationPath.PLACEHOLDER
        assert backlog.content == {"error": "'boom'", "document_type": "backlog"}
        assert documents[2].metadata.generation_path == GenerationPath.PRIMARY

    async def test_total_failure(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        with patch.object(orchestrator, "_generate_one", new=AsyncMock(side_effect=RuntimeError("x"))):
            with pytest.raises(TotalGenerationFailure) as exc_info:
                await orchestrator.generate_project_documents(
                    agile_profile, "p1", selection=["charter", "backlog"]
                )
        assert exc_info.value.project_id == "p1"
        assert set(exc_info.value.errors) == {"charter", "backlog"}


@pytest.mark.asyncio
class TestCaching:
    """Test the generation cache in a run."""

    async def test_second_run_is_served_from_cache(self, build, agile_profile, agile_data):
        provider = FakeProvider(handler=scripted(agile_data))
        orchestrator = build(provider)

        first = await orchestrator.generate_run(agile_profile, "p1")
        calls = len(provider.calls)
        second = await orchestrator.generate_run(agile_profile, "p1")

        assert not first.from_cache
        assert second.from_cache
        assert orchestrator.get_queue_status() == {
            "pending": 0, "processing": 0, "completed": 5, "failed": 0,
        }
        assert len(provider.calls) == calls
        assert second.documents[2].content == first.documents[2].content
        assert second.metrics["summary"]["billed_generations"] == 0
        assert orchestrator.get_cache_stats()["hits"] == 1

    async def test_cache_holds_sanitized_content(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        await orchestrator.generate_run(agile_profile, "p1", selection=["charter"])

        cached = orchestrator.cache.get(agile_data, "p1", orchestrator.cache_provider_key,
                                        [DocumentType.CHARTER])
        assert "Alice Smith" not in json.dumps(cached[0].content)
        assert not cached[0].metadata.rehydrated

    async def test_cache_can_be_disabled(self, make_client, agile_profile, agile_data):
        provider = FakeProvider(handler=scripted(agile_data))
        orchestrator = GenerationOrchestrator(
            config=GenerationConfig(provider="fake", use_cache=False),
            client=make_client(provider),
            cache=GenerationCache(),
        )
        try:
            await orchestrator.generate_run(agile_profile, "p1", selection=["charter"])
            await orchestrator.generate_run(agile_profile, "p1", selection=["charter"])
        finally:
            await orchestrator.close()
        assert len(provider.calls) == 2


@pytest.mark.asyncio
class TestMetricsAndEvents:
    """Test usage accounting and lifecycle events."""

    async def test_metrics_exclude_defaults(self, build, prince2_profile, prince2_data):
        handler = scripted(prince2_data, failing={DocumentType.RISK_REGISTER})
        orchestrator = build(FakeProvider(handler=handler))

        run = await orchestrator.generate_run(
            prince2_profile, "p2", selection=["business case", "risk register"]
        )

        summary = run.metrics["summary"]
        assert summary["billed_generations"] == 1
        assert summary["total_input_tokens"] == 100
        assert run.documents[0].metadata.usage.output_tokens == 50
        assert run.documents[1].metadata.usage.total_tokens == 0
        assert orchestrator.get_aggregated_metrics()["summary"]["billed_generations"] == 1

    async def test_events(self, build, prince2_profile, prince2_data):
        events = []
        handler = scripted(prince2_data, failing={DocumentType.QUALITY_MANAGEMENT})
        orchestrator = build(FakeProvider(handler=handler), on_event=events.append)

        await orchestrator.generate_project_documents(
            prince2_profile, "p2", selection=["project plan", "quality management plan"]
        )

        by_type = {}
        for event in events:
            by_type.setdefault(event.document_type, []).append(event.phase)
        assert by_type[DocumentType.PROJECT_PLAN] == [GenerationPhase.ATTEMPT, GenerationPhase.SUCCESS]
        assert by_type[DocumentType.QUALITY_MANAGEMENT] == [
            GenerationPhase.ATTEMPT,
            GenerationPhase.FAILURE,
            GenerationPhase.FALLBACK_USED,
        ]
        failure = events[[e.phase for e in events].index(GenerationPhase.FAILURE)]
        assert "quality_management unavailable" in failure.error

    async def test_broken_event_hook_does_not_break_generation(self, build, agile_profile, agile_data):
        hook = MagicMock(side_effect=RuntimeError("listener bug"))
        orchestrator = build(FakeProvider(handler=scripted(agile_data)), on_event=hook)
        documents = await orchestrator.generate_project_documents(agile_profile, "p1", selection=["charter"])
        assert documents[0].metadata.generation_path == GenerationPath.PRIMARY
        assert hook.call_count == 2


@pytest.mark.asyncio
class TestMappingTables:
    """Test mapping table storage and export rehydration."""

    async def test_mapping_table_after_run(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        await orchestrator.generate_project_documents(agile_profile, "p1", selection=["charter"])

        mapping = await orchestrator.get_mapping_table("p1")
        assert mapping["[STAKEHOLDER_1]"] == "Alice Smith"
        exported = await orchestrator.rehydrate_for_export("p1", {"owner": "[STAKEHOLDER_2]"})
        assert exported == {"owner": "Bob O'Neil"}

    async def test_unknown_project(self, build, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        with pytest.raises(MappingNotFoundError):
            await orchestrator.get_mapping_table("nope")
        assert await orchestrator.rehydrate_for_export("nope", "[STAKEHOLDER_1]") == "[STAKEHOLDER_1]"

    async def test_store_failure_does_not_fail_the_run(self, build, agile_profile, agile_data):
        store = MagicMock()
        store.store = AsyncMock(side_effect=OSError("disk full"))
        orchestrator = build(FakeProvider(handler=scripted(agile_data)), mapping_store=store)

        documents = await orchestrator.generate_project_documents(agile_profile, "p1", selection=["charter"])

        assert documents[0].content["stakeholders"][0]["name"] == "Alice Smith"
        assert (await orchestrator.get_mapping_table("p1"))["[STAKEHOLDER_1]"] == "Alice Smith"


@pytest.mark.asyncio
class TestSingleDocument:
    """Test generate_document()."""

    async def test_generate_document(self, build, agile_profile, agile_data):
        provider = FakeProvider(handler=scripted(agile_data))
        orchestrator = build(provider)

        document = await orchestrator.generate_document("charter", agile_profile, "p1")

        assert document.document_type == DocumentType.CHARTER
        assert document.metadata.rehydrated
        assert document.content["stakeholders"][0]["name"] == "Alice Smith"
        assert len(orchestrator.cache) == 0

    async def test_generate_document_placeholder_raises(self, build, agile_profile, agile_data):
        orchestrator = build(FakeProvider(handler=scripted(agile_data)))
        with patch.object(orchestrator, "_generate_one", new=AsyncMock(side_effect=RuntimeError("x"))):
            with pytest.raises(TotalGenerationFailure):
                await orchestrator.generate_document(DocumentType.CHARTER, agile_profile, "p1")


class TestEstimateCost:
    """Test pre-run cost estimation."""

    def test_estimate(self, make_client, agile_profile):
        orchestrator = GenerationOrchestrator(
            config=GenerationConfig(provider="fake"),
            client=make_client(FakeProvider()),
        )
        estimate = orchestrator.estimate_cost(agile_profile)

        assert list(estimate["documents"]) == [t.value for t in AGILE_TYPES]
        assert estimate["estimated_output_tokens"] == 3000 + 3000 + 3000 + 4000 + 3000
        assert estimate["estimated_input_tokens"] > 0
        assert estimate["estimated_cost_usd"] > 0

    def test_estimate_selection(self, make_client, prince2_profile):
        orchestrator = GenerationOrchestrator(
            config=GenerationConfig(provider="fake"),
            client=make_client(FakeProvider()),
        )
        estimate = orchestrator.estimate_cost(prince2_profile, selection=["pid"])
        assert list(estimate["documents"]) == ["pid"]
        assert estimate["estimated_output_tokens"] == 8000
