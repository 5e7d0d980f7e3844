"""Tests du module config."""

import json
from pathlib import Path

import pytest

from veridiff.config import CompareConfig, ConfigError, HeaderMapping, ToleranceRule


def test_header_mapping_from_dict_camel_case() -> None:
    m = HeaderMapping.from_dict(
        {
            "sourceField": "Amount",
            "targetField": "amt",
            "confidence": 0.8,
            "isAmountField": True,
            "toleranceType": "%",
            "toleranceValue": "2",
        }
    )
    assert m.source_field == "Amount"
    assert m.target_field == "amt"
    assert m.tolerance_rule == ToleranceRule("percent", 2.0)
    assert m.to_dict()["toleranceType"] == "percent"


def test_header_mapping_legacy_keys() -> None:
    m = HeaderMapping.from_dict({"file1Header": "a", "file2Header": "", "similarity": 0})
    assert m.target_field is None
    assert not m.is_mapped


def test_header_mapping_validation() -> None:
    with pytest.raises(ConfigError, match="sourceField requis"):
        HeaderMapping.from_dict({"targetField": "x"})
    with pytest.raises(ConfigError, match="confidence doit être entre 0 et 1"):
        HeaderMapping.from_dict({"sourceField": "a", "confidence": 1.5})
    with pytest.raises(ConfigError, match="toleranceType invalide"):
        HeaderMapping.from_dict({"sourceField": "a", "toleranceType": "ratio", "toleranceValue": 1})


def test_tolerance_rule_missing_value() -> None:
    m = HeaderMapping.from_dict({"sourceField": "a", "targetField": "a", "toleranceType": "flat"})
    assert m.tolerance_type == "flat"
    assert m.tolerance_rule is None


def test_config_resolve_paths(tmp_path: Path) -> None:
    """Les chemins relatifs sont résolus par rapport au dossier du fichier config."""
    config_dir = tmp_path / "projet"
    config_dir.mkdir()
    config = CompareConfig(file1="data/a.xlsx", file2="data/b.csv", output="out/r.xlsx")
    config.resolve_paths(config_dir)

    assert Path(config.file1).parent.parent == config_dir.resolve()
    assert Path(config.output).is_absolute()


def test_config_load(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "file1": "a.xlsx",
                "file2": "b.csv",
                "alignment": "keyed",
                "key_field": "ID",
                "mappings": [{"sourceField": "ID", "targetField": "id", "confidence": 1}],
            }
        ),
        encoding="utf-8",
    )
    config = CompareConfig.load(config_path)
    assert Path(config.file1).is_absolute()
    assert config.alignment == "keyed"
    assert config.mappings[0].target_field == "id"
    assert config.similarity_method == "dice"


def test_config_validation_missing_files() -> None:
    with pytest.raises(ConfigError, match="file1 et file2 requis"):
        CompareConfig.from_dict({"file1": "a.csv"})


@pytest.mark.parametrize(
    "override, message",
    [
        ({"alignment": "fuzzy"}, "alignment invalide"),
        ({"similarity_method": "jaro"}, "similarity_method invalide"),
        ({"markup_mode": "tree"}, "markup_mode invalide"),
        ({"delimiter": ";;"}, "delimiter"),
        ({"similarity_threshold": 2}, "similarity_threshold"),
        ({"default_tolerance": -1}, "default_tolerance"),
        ({"mappings": {"a": "b"}}, "mappings doit être une liste"),
    ],
)
def test_config_validation_errors(override: dict, message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        CompareConfig.from_dict({"file1": "a.csv", "file2": "b.csv", **override})


def test_config_duplicate_source_field() -> None:
    with pytest.raises(ConfigError, match="sourceField en double"):
        CompareConfig.from_dict(
            {
                "file1": "a.csv",
                "file2": "b.csv",
                "mappings": [{"sourceField": "a", "targetField": "x"}, {"sourceField": "a", "targetField": "y"}],
            }
        )
