"""Tests de l'export des résultats."""

from pathlib import Path

import openpyxl
import pandas as pd
import pytest

from veridiff.config import HeaderMapping
from veridiff.engine import compare
from veridiff.errors import ValidationError
from veridiff.export import (
    DETAIL_SHEET,
    SUMMARY_SHEET,
    build_detail_df,
    build_summary_df,
    export_csv,
    export_results,
    export_xlsx,
    print_report_console,
    read_detailed_results,
    save_xlsx,
)
from veridiff.normalize import to_canonical_str
from veridiff.schema import ResultAggregate


@pytest.fixture
def aggregate() -> ResultAggregate:
    rows1 = [
        {"ID": "A1", "name": "Dupont", "amount": 100, "note": ""},
        {"ID": "A2", "name": "Martin", "amount": 50.25, "note": "x"},
        {"ID": "A3", "name": "Leroy", "amount": 10, "note": "y"},
    ]
    rows2 = [
        {"ID": "A1", "name": "Dupont", "amount": 104, "note": ""},
        {"ID": "A2", "name": "Martín", "amount": 50.25, "note": "x"},
    ]
    mapping = [
        HeaderMapping("ID", "ID", 1.0),
        HeaderMapping("name", "name", 1.0),
        HeaderMapping("amount", "amount", 1.0, tolerance_type="flat", tolerance_value=5),
        HeaderMapping("note", "note", 1.0),
    ]
    return compare(rows1, rows2, mapping)


def test_build_summary_df(aggregate: ResultAggregate) -> None:
    df = build_summary_df(aggregate, file1_name="a.xlsx", file2_name="b.csv")
    values = dict(zip(df["Key"], df["Value"]))
    assert values["total_records"] == 3
    assert values["matches_found"] == aggregate.matches_found
    assert values["differences_found"] == aggregate.differences_found
    assert values["acceptable_found"] == 1
    assert values["records_with_differences"] == "A2, A3"
    assert values["file1"] == "a.xlsx"
    assert "version" in values
    assert "timestamp" in values


def test_build_detail_df_columns(aggregate: ResultAggregate) -> None:
    df = build_detail_df(aggregate)
    assert list(df.columns[:4]) == ["ID", "ID (File 1)", "ID (File 2)", "ID Status"]
    assert "amount Status" in df.columns
    assert len(df) == 3
    assert df.loc[0, "amount Status"] == "acceptable"


def test_xlsx_round_trip(aggregate: ResultAggregate, tmp_path: Path) -> None:
    path = export_xlsx(aggregate, tmp_path / "out.xlsx", file1_name="a", file2_name="b")

    xl = pd.ExcelFile(path, engine="openpyxl")
    assert xl.sheet_names == [SUMMARY_SHEET, DETAIL_SHEET]
    xl.close()

    back = read_detailed_results(path)
    assert [record_id for record_id, _ in back] == [r.id for r in aggregate.results]
    for record, (_, fields) in zip(aggregate.results, back):
        for name, verdict in record.fields.items():
            v1, v2, status = fields[name]
            assert to_canonical_str(v1) == to_canonical_str(verdict.val1)
            assert to_canonical_str(v2) == to_canonical_str(verdict.val2)
            assert status == verdict.status


def test_xlsx_round_trip_keeps_duplicate_ids(tmp_path: Path) -> None:
    """Deux enregistrements de même ID restent deux lignes à la relecture."""
    agg = compare([{"ID": "A", "v": 1}, {"ID": "A", "v": 2}], [{"ID": "A", "v": 1}, {"ID": "A", "v": 3}], [])
    path = export_xlsx(agg, tmp_path / "dups.xlsx")

    back = read_detailed_results(path)

    assert len(back) == 2
    assert back[0] == ("A", {"ID": ("A", "A", "match"), "v": (1, 1, "match")})
    assert back[1][1]["v"] == (2, 3, "difference")


def test_xlsx_formula_like_values_stay_text(tmp_path: Path) -> None:
    agg = compare([{"note": "=1+2"}], [{"note": "=SUM(A1:A9)"}], [])
    path = export_xlsx(agg, tmp_path / "formula.xlsx")

    wb = openpyxl.load_workbook(path)
    ws = wb[DETAIL_SHEET]
    assert ws["B2"].value == "=1+2"
    assert ws["B2"].data_type == "s"
    wb.close()

    back = read_detailed_results(path)
    assert back[0][1]["note"] == ("=1+2", "=SUM(A1:A9)", "difference")


def test_export_csv_flat(aggregate: ResultAggregate, tmp_path: Path) -> None:
    path = export_csv(aggregate, tmp_path / "out.csv")
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    assert list(df.columns) == ["ID", "COLUMN", "SOURCE_1_VALUE", "SOURCE_2_VALUE", "STATUS", "DIFFERENCE"]
    assert len(df) == aggregate.field_comparisons
    amount_a1 = df[(df["ID"] == "A1") & (df["COLUMN"] == "amount")].iloc[0]
    assert amount_a1["STATUS"] == "acceptable"
    assert amount_a1["DIFFERENCE"] == "4.00"


def test_export_results_dispatch(aggregate: ResultAggregate, tmp_path: Path) -> None:
    assert export_results(aggregate, tmp_path / "r.csv").suffix == ".csv"
    assert export_results(aggregate, tmp_path / "r.xlsx").suffix == ".xlsx"
    with pytest.raises(ValidationError, match="non supporté"):
        export_results(aggregate, tmp_path / "r.txt")


def test_export_empty_aggregate(tmp_path: Path) -> None:
    empty = ResultAggregate(total_records=0, differences_found=0, matches_found=0, results=())
    with pytest.raises(ValidationError, match="Aucun résultat"):
        export_xlsx(empty, tmp_path / "out.xlsx")


def test_save_xlsx_truncates_sheet_names(tmp_path: Path) -> None:
    path = tmp_path / "long.xlsx"
    save_xlsx(path, {"x" * 40: pd.DataFrame({"a": [1]})})
    xl = pd.ExcelFile(path, engine="openpyxl")
    assert xl.sheet_names == ["x" * 31]
    xl.close()


def test_print_report_console(aggregate: ResultAggregate, capsys: pytest.CaptureFixture[str]) -> None:
    print_report_console(aggregate, max_rows=2)
    out = capsys.readouterr().out
    assert "VeriDiff Report" in out
    assert "Enregistrements:  3" in out
    assert "[A2] name" in out
    assert "autres différences" in out
