"""Tests des cas d'erreur."""

from pathlib import Path

import pytest

from veridiff import (
    CombinationError,
    ComparisonError,
    ConfigError,
    ConfigFileError,
    ParseError,
    ValidationError,
    VeriDiffError,
)
from veridiff.config import CompareConfig
from veridiff.errors import SheetSelectionRequired
from veridiff.schema import SheetInfo, WorkbookInfo


def test_config_load_file_not_found(tmp_path: Path) -> None:
    """CompareConfig.load() lève ConfigFileError si le fichier n'existe pas."""
    with pytest.raises(ConfigFileError, match="introuvable"):
        CompareConfig.load(tmp_path / "inexistant.json")


def test_config_load_invalid_json(tmp_path: Path) -> None:
    """CompareConfig.load() lève ConfigFileError si le JSON est invalide."""
    bad_json = tmp_path / "config.json"
    bad_json.write_text("{ invalid json }", encoding="utf-8")
    with pytest.raises(ConfigFileError, match="JSON invalide"):
        CompareConfig.load(bad_json)


def test_config_load_not_dict(tmp_path: Path) -> None:
    """CompareConfig.load() lève ConfigFileError si le JSON n'est pas un objet."""
    bad_config = tmp_path / "config.json"
    bad_config.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(ConfigFileError, match="objet JSON"):
        CompareConfig.load(bad_config)


def test_hierarchy() -> None:
    for cls in (ParseError, ValidationError, CombinationError, ComparisonError, ConfigError, ConfigFileError):
        assert issubclass(cls, VeriDiffError)
    assert issubclass(ConfigError, ValueError)


def test_parse_error_names_file() -> None:
    err = ParseError("XML invalide", "a.xml")
    assert str(err) == "XML invalide (a.xml)"
    assert str(ParseError("XML invalide")) == "XML invalide"


def test_comparison_error_prefix() -> None:
    err = ComparisonError("Échec de la comparaison Excel ↔ CSV", ValueError("boom"))
    assert str(err) == "Échec de la comparaison Excel ↔ CSV: boom"
    assert err.stage.startswith("Échec")


def test_sheet_selection_required_lists_sheets() -> None:
    info = WorkbookInfo(
        "b.xlsx",
        "A",
        [SheetInfo("A", has_data=True, row_count=3), SheetInfo("B", has_data=True, row_count=2), SheetInfo("C", True)],
    )
    err = SheetSelectionRequired(info)
    assert str(err) == "Choix de feuille requis pour b.xlsx: A, B"
    assert err.workbook is info
