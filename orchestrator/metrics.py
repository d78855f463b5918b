"""Aggregated usage metrics and cost manifests for generation runs.

Only billed generations are recorded: primary and sectioned generations add
their usage, static defaults and cache hits add nothing. Totals only grow.
"""

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from contracts.document_contracts import DocumentType, GenerationPath, UsageMetrics


@dataclass
class GenerationRecord:
    """Usage billed for one document."""
    document_type: DocumentType
    provider: str
    model: str
    path: GenerationPath
    usage: UsageMetrics
    generation_time_ms: int
    timestamp: datetime = field(default_factory=datetime.now)


class GenerationMetrics:
    """Thread-safe accumulator of billed usage across a run."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[GenerationRecord] = []
        self._input_tokens = 0
        self._output_tokens = 0
        self._cost_usd = 0.0
        self._generation_time_ms = 0

    def record(
        self,
        document_type: DocumentType,
        provider: str,
        model: str,
        path: GenerationPath,
        usage: UsageMetrics,
        generation_time_ms: int,
    ) -> bool:
        """Add one billed generation. Static defaults and placeholders are ignored.

        Returns:
            True if the generation was counted
        """
        if path in (GenerationPath.FALLBACK, GenerationPath.PLACEHOLDER):
            return False
        record = GenerationRecord(
            document_type=document_type,
            provider=provider,
            model=model,
            path=path,
            usage=usage.model_copy(),
            generation_time_ms=max(0, generation_time_ms),
        )
        with self._lock:
            self._records.append(record)
            self._input_tokens += max(0, usage.input_tokens)
            self._output_tokens += max(0, usage.output_tokens)
            self._cost_usd += max(0.0, usage.cost_usd)
            self._generation_time_ms += record.generation_time_ms
        return True

    @property
    def total_input_tokens(self) -> int:
        return self._input_tokens

    @property
    def total_output_tokens(self) -> int:
        return self._output_tokens

    @property
    def total_tokens(self) -> int:
        return self._input_tokens + self._output_tokens

    @property
    def total_cost_usd(self) -> float:
        return self._cost_usd

    @property
    def generation_count(self) -> int:
        return len(self._records)

    def get_cost_by_document(self) -> Dict[str, float]:
        costs: Dict[str, float] = {}
        with self._lock:
            for r in self._records:
                costs[r.document_type.value] = costs.get(r.document_type.value, 0) + r.usage.cost_usd
        return costs

    def get_cost_by_provider(self) -> Dict[str, float]:
        costs: Dict[str, float] = {}
        with self._lock:
            for r in self._records:
                costs[r.provider] = costs.get(r.provider, 0) + r.usage.cost_usd
        return costs

    def generate_manifest(self) -> Dict[str, Any]:
        """Generate a cost manifest for the run."""
        with self._lock:
            records = list(self._records)
            summary = {
                "total_input_tokens": self._input_tokens,
                "total_output_tokens": self._output_tokens,
                "total_tokens": self._input_tokens + self._output_tokens,
                "total_cost_usd": round(self._cost_usd, 6),
                "total_generation_time_ms": self._generation_time_ms,
                "billed_generations": len(records),
            }
        return {
            "summary": summary,
            "by_document": {k: round(v, 6) for k, v in self.get_cost_by_document().items()},
            "by_provider": {k: round(v, 6) for k, v in self.get_cost_by_provider().items()},
            "detailed_records": [
                {
                    "document_type": r.document_type.value,
                    "provider": r.provider,
                    "model": r.model,
                    "path": r.path.value,
                    "input_tokens": r.usage.input_tokens,
                    "output_tokens": r.usage.output_tokens,
                    "cost_usd": round(r.usage.cost_usd, 6),
                    "generation_time_ms": r.generation_time_ms,
                }
                for r in records
            ],
        }

    def save_manifest(self, output_path: Path) -> str:
        """Save cost manifest to file.

        Args:
            output_path: Directory to save manifest

        Returns:
            Path to saved manifest file
        """
        output_path.mkdir(parents=True, exist_ok=True)
        manifest_path = output_path / "cost_manifest.json"
        manifest_path.write_text(json.dumps(self.generate_manifest(), indent=2))
        return str(manifest_path)
