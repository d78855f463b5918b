"""Librarian module for loading methodology knowledge into prompts.

Each methodology has one or more cheat sheets: short markdown summaries of the
framework's vocabulary and artifacts. They are appended to the system prompt of
every document generated for that methodology.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from config import settings, METHODOLOGY_CHEAT_SHEETS

logger = logging.getLogger(__name__)


class Librarian:
    """Loads methodology cheat sheets and hands them out by methodology."""

    def __init__(self, cheat_sheets_dir: Optional[str] = None):
        """Initialize the Librarian.

        Args:
            cheat_sheets_dir: Path to cheat sheets directory.
                            Defaults to the sheets bundled with the package.
        """
        self.cheat_sheets_dir = Path(cheat_sheets_dir) if cheat_sheets_dir else settings.get_cheat_sheets_path()
        self._cheat_sheet_cache: Dict[str, str] = {}
        self._load_cheat_sheets()

    def _load_cheat_sheets(self) -> None:
        """Load all cheat sheets into memory cache."""
        if not self.cheat_sheets_dir.exists():
            raise FileNotFoundError(f"Cheat sheets directory not found: {self.cheat_sheets_dir}")

        for md_file in sorted(self.cheat_sheets_dir.glob("*.md")):
            try:
                self._cheat_sheet_cache[md_file.name] = md_file.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("Could not load %s: %s", md_file, e)

    def get_cheat_sheet(self, name: str) -> str:
        """Get a single cheat sheet by name.

        Raises:
            KeyError: If cheat sheet not found.
        """
        if name not in self._cheat_sheet_cache:
            raise KeyError(f"Cheat sheet not found: {name}")
        return self._cheat_sheet_cache[name]

    def get_context_for_methodology(self, methodology: str) -> str:
        """Returns the combined cheat sheet text for a methodology.

        Mapping:
        - agile -> agile_methodology.md
        - prince2 -> prince2_methodology.md
        - hybrid -> both

        Raises:
            ValueError: If the methodology is not recognized.
        """
        key = getattr(methodology, "value", methodology).lower()
        if key not in METHODOLOGY_CHEAT_SHEETS:
            raise ValueError(
                f"Unknown methodology: {methodology}. "
                f"Valid methodologies: {list(METHODOLOGY_CHEAT_SHEETS.keys())}"
            )
        return self._combine_cheat_sheets(METHODOLOGY_CHEAT_SHEETS[key])

    def _combine_cheat_sheets(self, file_names: List[str]) -> str:
        sections = []
        for name in file_names:
            try:
                content = self.get_cheat_sheet(name)
            except KeyError:
                logger.warning("Cheat sheet not found: %s", name)
                continue
            sections.append(f"{'='*60}\n{name.upper()}\n{'='*60}\n\n{content}")
        return "\n\n".join(sections)

    def list_available_cheat_sheets(self) -> List[str]:
        return list(self._cheat_sheet_cache.keys())
