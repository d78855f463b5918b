"""Lifecycle events emitted while documents are generated."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .document_contracts import DocumentType


class GenerationPhase(str, Enum):
    ATTEMPT = "attempt"
    SUCCESS = "success"
    FAILURE = "failure"
    FALLBACK_USED = "fallback-used"


class GenerationEvent(BaseModel):
    """Stable event shape handed to the notification hook."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    document_type: DocumentType
    phase: GenerationPhase
    attempt: int
    duration_ms: Optional[int] = None
    error: Optional[str] = None
