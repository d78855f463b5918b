"""Scoped persistence for PII mapping tables.

A mapping table has to outlive the run that created it: exports and audits
rehydrate stored documents later, and a lost table means the original values
are gone for good.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from .sanitizer import MappingTable

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"[^A-Za-z0-9._-]")


class MappingNotFoundError(KeyError):
    """Raised when no mapping table was stored for a project."""


class MappingStore(ABC):
    """Stores one mapping table per project id."""

    @abstractmethod
    async def store(self, project_id: str, mapping: Mapping[str, str]) -> None:
        pass

    @abstractmethod
    async def retrieve(self, project_id: str) -> MappingTable:
        """Return the table for project_id or raise MappingNotFoundError."""
        pass


class InMemoryMappingStore(MappingStore):
    """Process-lifetime store, mainly for tests and single-shot CLI runs."""

    def __init__(self):
        self._tables: Dict[str, MappingTable] = {}

    async def store(self, project_id: str, mapping: Mapping[str, str]) -> None:
        self._tables[project_id] = MappingTable(mapping)

    async def retrieve(self, project_id: str) -> MappingTable:
        try:
            return self._tables[project_id]
        except KeyError:
            raise MappingNotFoundError(project_id) from None


class JsonFileMappingStore(MappingStore):
    """Stores each table as <directory>/<project_id>.json."""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        if directory is None:
            from config import settings
            directory = settings.mapping_store_dir
        self.directory = Path(directory)

    def _path(self, project_id: str) -> Path:
        return self.directory / f"{_SAFE_ID.sub('_', project_id)}.json"

    async def store(self, project_id: str, mapping: Mapping[str, str]) -> None:
        table = MappingTable(mapping)
        path = self._path(project_id)

        def write() -> None:
            self.directory.mkdir(parents=True, exist_ok=True)
            payload = {"project_id": project_id, "mapping": table.to_dict()}
            path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

        await asyncio.to_thread(write)
        logger.debug("Stored mapping table for %s at %s", project_id, path)

    async def retrieve(self, project_id: str) -> MappingTable:
        path = self._path(project_id)
        if not path.exists():
            raise MappingNotFoundError(project_id)
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return MappingTable(json.loads(raw)["mapping"])
