"""Tests for the Librarian module."""

import pytest

from contracts import Methodology
from librarian import Librarian
from config import METHODOLOGY_CHEAT_SHEETS


class TestLibrarian:
    """Test the Librarian class."""

    def test_init_loads_cheat_sheets(self):
        lib = Librarian()
        sheets = lib.list_available_cheat_sheets()
        assert "agile_methodology.md" in sheets
        assert "prince2_methodology.md" in sheets

    def test_get_cheat_sheet_not_found(self):
        """Test that missing cheat sheet raises KeyError."""
        with pytest.raises(KeyError):
            Librarian().get_cheat_sheet("nonexistent.md")

    def test_agile_context(self):
        context = Librarian().get_context_for_methodology("agile")
        assert "Scrum" in context
        assert "PRINCE2" not in context

    def test_prince2_context(self):
        context = Librarian().get_context_for_methodology(Methodology.PRINCE2)
        assert "Seven Principles" in context

    def test_hybrid_includes_both(self):
        context = Librarian().get_context_for_methodology("hybrid")
        assert "AGILE_METHODOLOGY.MD" in context
        assert "PRINCE2_METHODOLOGY.MD" in context

    def test_case_insensitive(self):
        lib = Librarian()
        assert lib.get_context_for_methodology("AGILE") == lib.get_context_for_methodology("agile")

    def test_unknown_methodology(self):
        with pytest.raises(ValueError):
            Librarian().get_context_for_methodology("waterfall")

    def test_all_configured_methodologies_have_cheat_sheets(self):
        available = Librarian().list_available_cheat_sheets()
        for methodology, sheets in METHODOLOGY_CHEAT_SHEETS.items():
            for sheet in sheets:
                assert sheet in available, f"Missing cheat sheet: {sheet} for {methodology}"

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Librarian(cheat_sheets_dir=str(tmp_path / "missing"))

    def test_custom_directory_missing_sheet_is_skipped(self, tmp_path, caplog):
        (tmp_path / "agile_methodology.md").write_text("Custom agile notes")
        lib = Librarian(cheat_sheets_dir=str(tmp_path))
        context = lib.get_context_for_methodology("hybrid")
        assert "Custom agile notes" in context
        assert "prince2_methodology.md" in caplog.text
