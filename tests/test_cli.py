"""Tests de la CLI."""

import json
from pathlib import Path

import pandas as pd
import pytest

from veridiff import __version__
from veridiff.cli import main
from veridiff.log import reset_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_logging()


@pytest.fixture
def files(tmp_path: Path) -> tuple[Path, Path]:
    xlsx = tmp_path / "ledger.xlsx"
    pd.DataFrame({"ID": [1, 2], "Amount": [100, 50]}).to_excel(xlsx, index=False, engine="openpyxl")
    csv = tmp_path / "export.csv"
    csv.write_text("id,amount\n1,100\n2,51\n", encoding="utf-8")
    return xlsx, csv


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_detect(files: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    xlsx, csv = files
    assert main(["detect", str(xlsx), str(csv)]) == 0
    out = capsys.readouterr().out
    assert "excel" in out
    assert "csv" in out


def test_list_sheets(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "multi.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        pd.DataFrame({"a": [1]}).to_excel(w, sheet_name="Feuille1", index=False)
        pd.DataFrame({"x": [1]}).to_excel(w, sheet_name="Feuille2", index=False)
    assert main(["list-sheets", str(path)]) == 0
    out = capsys.readouterr().out
    assert "Feuille1" in out
    assert "Feuille2" in out


def test_map_writes_json(files: tuple[Path, Path], tmp_path: Path) -> None:
    xlsx, csv = files
    out = tmp_path / "mapping.json"
    assert main(["map", str(csv), str(xlsx), "--amounts", "--output", str(out)]) == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    by_source = {m["sourceField"]: m for m in data["mappings"]}
    assert by_source["Amount"]["targetField"] == "amount"
    assert by_source["Amount"]["isAmountField"] is True


def test_compare_exports(files: tuple[Path, Path], tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    xlsx, csv = files
    out = tmp_path / "result.csv"
    assert main(["compare", str(xlsx), str(csv), "--alignment", "keyed", "--key", "ID", "-o", str(out)]) == 0
    assert "VeriDiff Report" in capsys.readouterr().out
    df = pd.read_csv(out, dtype=str, keep_default_na=False)
    statuses = df[df["COLUMN"] == "Amount"]["STATUS"].tolist()
    assert statuses == ["match", "difference"]


def test_map_then_compare_with_mapping(files: tuple[Path, Path], tmp_path: Path) -> None:
    """Le mapping écrit par 'map' (montants tolérés) est relu par 'compare --mapping'."""
    xlsx, csv = files
    mapping = tmp_path / "mapping.json"
    out = tmp_path / "result.csv"
    assert main(["map", str(xlsx), str(csv), "--output", str(mapping)]) == 0
    data = json.loads(mapping.read_text(encoding="utf-8"))
    for m in data["mappings"]:
        if m["sourceField"] == "Amount":
            m.update(isAmountField=True, toleranceType="flat", toleranceValue=2)
    mapping.write_text(json.dumps(data), encoding="utf-8")

    assert main(["compare", str(xlsx), str(csv), "--mapping", str(mapping), "-o", str(out)]) == 0
    df = pd.read_csv(out, dtype=str, keep_default_na=False)
    assert df[df["COLUMN"] == "Amount"]["STATUS"].tolist() == ["match", "acceptable"]


def test_compare_missing_mapping_file(files: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    xlsx, csv = files
    assert main(["compare", str(xlsx), str(csv), "--mapping", "/chemin/absent.json"]) == 1
    assert "introuvable" in capsys.readouterr().out


def test_run_with_config(files: tuple[Path, Path], tmp_path: Path) -> None:
    xlsx, csv = files
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "file1": xlsx.name,
                "file2": csv.name,
                "combination": "excel_csv",
                "mappings": [
                    {"sourceField": "Amount", "targetField": "amount", "toleranceType": "flat", "toleranceValue": 1}
                ],
                "output": "result.xlsx",
            }
        ),
        encoding="utf-8",
    )
    assert main(["run", "--config", str(config_path)]) == 0
    detail = pd.read_excel(tmp_path / "result.xlsx", sheet_name="Detailed Results", engine="openpyxl")
    assert detail["Amount Status"].tolist() == ["match", "acceptable"]


def test_run_missing_config_exit_code(capsys: pytest.CaptureFixture[str]) -> None:
    """La CLI retourne 1 et affiche un message en cas d'erreur."""
    assert main(["run", "--config", "/chemin/inexistant.json"]) == 1
    assert "introuvable" in capsys.readouterr().out


def test_compare_bad_combination_exit_code(files: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    xlsx, csv = files
    assert main(["compare", str(xlsx), str(csv), "--combination", "json"]) == 1
    assert "Échec de la comparaison" in capsys.readouterr().out


def test_sheet_selection_exit_code(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    book = tmp_path / "multi.xlsx"
    with pd.ExcelWriter(book, engine="openpyxl") as w:
        pd.DataFrame({"id": [1]}).to_excel(w, sheet_name="A", index=False)
        pd.DataFrame({"id": [2]}).to_excel(w, sheet_name="B", index=False)
    csv = tmp_path / "b.csv"
    csv.write_text("id\n1\n", encoding="utf-8")

    assert main(["compare", str(book), str(csv)]) == 2
    out = capsys.readouterr().out
    assert "--sheet1" in out
    assert main(["compare", str(book), str(csv), "--sheet1", "A"]) == 0


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_diff_json_documents(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    a = tmp_path / "a.json"
    b = tmp_path / "b.json"
    a.write_text(json.dumps({"client": {"nom": "Dupont", "ville": "Lyon"}}), encoding="utf-8")
    b.write_text(json.dumps({"client": {"nom": "Dupont", "ville": "Paris"}, "actif": True}), encoding="utf-8")
    out = tmp_path / "diff.json"

    assert main(["diff", str(a), str(b), "-o", str(out)]) == 0

    assert "~ client.ville: 'Lyon' → 'Paris'" in capsys.readouterr().out
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [(c["path"], c["type"]) for c in data["changes"]] == [("client.ville", "modified"), ("actif", "added")]


def test_diff_rejects_tabular_files(files: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    xlsx, csv = files
    assert main(["diff", str(xlsx), str(csv)]) == 1
    assert "Comparaison structurelle" in capsys.readouterr().out
