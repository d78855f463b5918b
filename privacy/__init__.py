"""PII sanitization, rehydration and mapping-table persistence."""

from .sanitizer import (
    MappingTable,
    MappingTableError,
    PromptPIIError,
    SanitizationResult,
    Sanitizer,
    assert_prompt_clean,
    redact_contact_details,
    rehydrate,
)
from .mapping_store import (
    InMemoryMappingStore,
    JsonFileMappingStore,
    MappingNotFoundError,
    MappingStore,
)

__all__ = [
    "MappingTable",
    "MappingTableError",
    "PromptPIIError",
    "SanitizationResult",
    "Sanitizer",
    "assert_prompt_clean",
    "redact_contact_details",
    "rehydrate",
    "InMemoryMappingStore",
    "JsonFileMappingStore",
    "MappingNotFoundError",
    "MappingStore",
]
