"""Orchestrator module for document generation control."""

from .cache import CacheEntry, CacheStats, GenerationCache, fingerprint
from .generation_orchestrator import GenerationOrchestrator, TotalGenerationFailure
from .metrics import GenerationMetrics, GenerationRecord
from .task_queue import (
    GenerationTask,
    QueueShutdownError,
    TaskFailedError,
    TaskPriority,
    TaskQueue,
    TaskStatus,
)

__all__ = [
    "CacheEntry",
    "CacheStats",
    "GenerationCache",
    "fingerprint",
    "GenerationOrchestrator",
    "TotalGenerationFailure",
    "GenerationMetrics",
    "GenerationRecord",
    "GenerationTask",
    "QueueShutdownError",
    "TaskFailedError",
    "TaskPriority",
    "TaskQueue",
    "TaskStatus",
]
