"""Unit tests for output path resolution logic."""

from __future__ import annotations

from pathlib import Path

from pdf_toolbox import _resolve_output_path


class TestResolveOutputPath:
    def test_none_uses_cwd_with_default_name(self):
        result = _resolve_output_path(output=None)
        assert result.name == "merged.pdf"
        assert result.is_absolute()

    def test_pdf_suffix_treated_as_file(self, tmp_path: Path):
        result = _resolve_output_path(output=str(tmp_path / "custom.pdf"))
        assert result == (tmp_path / "custom.pdf").resolve()

    def test_directory_gets_default_name_appended(self, tmp_path: Path):
        result = _resolve_output_path(output=str(tmp_path))
        assert result == (tmp_path / "merged.pdf").resolve()

    def test_pdf_suffix_case_insensitive(self, tmp_path: Path):
        result = _resolve_output_path(output=str(tmp_path / "custom.PDF"))
        assert result == (tmp_path / "custom.PDF").resolve()

    def test_path_output_accepted(self, tmp_path: Path):
        result = _resolve_output_path(output=tmp_path / "out")
        assert result == (tmp_path / "out" / "merged.pdf").resolve()
