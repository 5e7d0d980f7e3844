"""Export des résultats : classeur (Summary + Detailed Results), CSV à plat, ou changements structurels."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from veridiff import __version__
from veridiff.documents import (
    CHANGE_ADDED,
    CHANGE_ATTRIBUTE,
    CHANGE_MODIFIED,
    CHANGE_REMOVED,
    DocumentDiff,
)
from veridiff.errors import ValidationError
from veridiff.normalize import clean_cell
from veridiff.schema import STATUS_ACCEPTABLE, STATUS_DIFFERENCE, ResultAggregate, flatten_results

SUMMARY_SHEET = "Summary"
DETAIL_SHEET = "Detailed Results"
CHANGES_SHEET = "Changes"
FILE1_SUFFIX = " (File 1)"
FILE2_SUFFIX = " (File 2)"
STATUS_SUFFIX = " Status"

LEGEND = [
    ("match", "Values are identical"),
    ("acceptable", "Within tolerance range"),
    ("difference", "Values differ beyond tolerance"),
]


def _require_results(aggregate: ResultAggregate) -> None:
    if not aggregate.results:
        raise ValidationError("Aucun résultat à exporter")


def build_summary_df(
    aggregate: ResultAggregate,
    *,
    file1_name: str | None = None,
    file2_name: str | None = None,
) -> pd.DataFrame:
    """
    Construit le DataFrame de l'onglet Summary.

    Contient : totaux, taux de correspondance, enregistrements en écart,
    fichiers, alignement, horodatage, version et légende des statuts.
    """
    n_acceptable = sum(
        1 for r in aggregate.results for v in r.fields.values() if v.status == STATUS_ACCEPTABLE
    )
    mismatched = [
        str(r.id) for r in aggregate.results if any(v.status == STATUS_DIFFERENCE for v in r.fields.values())
    ]

    rows: list[tuple[str, Any]] = [
        ("total_records", aggregate.total_records),
        ("field_comparisons", aggregate.field_comparisons),
        ("matches_found", aggregate.matches_found),
        ("acceptable_found", n_acceptable),
        ("differences_found", aggregate.differences_found),
        ("match_rate", f"{aggregate.match_rate:.1f}%"),
        ("records_with_differences", ", ".join(mismatched) if mismatched else "None"),
        ("", ""),
        ("file1", file1_name or ""),
        ("file2", file2_name or ""),
        ("alignment", aggregate.alignment),
        ("timestamp", datetime.now().isoformat()),
        ("version", __version__),
        ("", ""),
        ("Legend", ""),
    ]
    rows.extend(LEGEND)
    return pd.DataFrame(rows, columns=["Key", "Value"])


def build_detail_df(aggregate: ResultAggregate) -> pd.DataFrame:
    """
    Construit le DataFrame de l'onglet Detailed Results.

    Une ligne par enregistrement : ID puis, pour chaque champ, valeur fichier 1,
    valeur fichier 2 et statut brut (match, acceptable, difference).
    """
    field_names = aggregate.field_names
    columns = ["ID"]
    for name in field_names:
        columns += [f"{name}{FILE1_SUFFIX}", f"{name}{FILE2_SUFFIX}", f"{name}{STATUS_SUFFIX}"]

    data: list[list[Any]] = []
    for record in aggregate.results:
        row: list[Any] = [record.id]
        for name in field_names:
            verdict = record.fields.get(name)
            if verdict is None:
                row += ["", "", ""]
            else:
                row += [verdict.val1, verdict.val2, verdict.status]
        data.append(row)
    return pd.DataFrame(data, columns=columns)


def save_xlsx(filepath: str | Path, dataframes: dict[str, pd.DataFrame]) -> None:
    """
    Sauvegarde plusieurs DataFrames dans un fichier xlsx (une feuille par DataFrame).

    Args:
        filepath: Chemin de sortie.
        dataframes: Dict {nom_feuille: DataFrame}, dans l'ordre des feuilles.
    """
    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        for sheet_name, df in dataframes.items():
            # Nettoyer le nom de feuille (Excel limite à 31 caractères)
            safe_name = str(sheet_name)[:31]
            df.to_excel(writer, sheet_name=safe_name, index=False)
            _keep_strings_as_text(writer.sheets[safe_name])


def _keep_strings_as_text(worksheet: Any) -> None:
    """Les valeurs commençant par '=' restent du texte (pas de formule à l'ouverture)."""
    for row in worksheet.iter_rows():
        for cell in row:
            if cell.data_type == "f" and isinstance(cell.value, str):
                cell.data_type = "s"


def export_xlsx(
    aggregate: ResultAggregate,
    filepath: str | Path,
    *,
    file1_name: str | None = None,
    file2_name: str | None = None,
) -> Path:
    """Écrit le classeur de résultats (onglets Summary et Detailed Results)."""
    _require_results(aggregate)
    path = Path(filepath)
    save_xlsx(
        path,
        {
            SUMMARY_SHEET: build_summary_df(aggregate, file1_name=file1_name, file2_name=file2_name),
            DETAIL_SHEET: build_detail_df(aggregate),
        },
    )
    return path


def export_csv(aggregate: ResultAggregate, filepath: str | Path) -> Path:
    """Écrit un CSV à plat : une ligne par comparaison de champ."""
    _require_results(aggregate)
    path = Path(filepath)
    flat = flatten_results(aggregate)
    differences = [v.difference or "" for r in aggregate.results for v in r.fields.values()]
    df = pd.DataFrame(flat, columns=["ID", "COLUMN", "SOURCE_1_VALUE", "SOURCE_2_VALUE", "STATUS"])
    df["DIFFERENCE"] = differences
    df.to_csv(path, index=False, encoding="utf-8")
    return path


def export_results(aggregate: ResultAggregate, filepath: str | Path, **kwargs: Any) -> Path:
    """Choisit le format d'export selon l'extension (.xlsx ou .csv)."""
    suffix = Path(filepath).suffix.lower()
    if suffix == ".xlsx":
        return export_xlsx(aggregate, filepath, **kwargs)
    if suffix == ".csv":
        return export_csv(aggregate, filepath)
    raise ValidationError(f"Format de sortie non supporté: {suffix}")


def print_report_console(aggregate: ResultAggregate, *, max_rows: int = 20) -> None:
    """Affiche un résumé de la comparaison en console, puis les premiers écarts."""
    n_acceptable = sum(
        1 for r in aggregate.results for v in r.fields.values() if v.status == STATUS_ACCEPTABLE
    )
    print("\n=== VeriDiff Report ===")
    print(f"  Enregistrements:  {aggregate.total_records}")
    print(f"  Comparaisons:     {aggregate.field_comparisons}")
    print(f"  Correspondances:  {aggregate.matches_found} (dont {n_acceptable} tolérées)")
    print(f"  Différences:      {aggregate.differences_found}")
    print(f"  Taux:             {aggregate.match_rate:.1f}%")
    print(f"  Alignement:       {aggregate.alignment}")
    print(f"  Version:          {__version__}")

    shown = 0
    for record in aggregate.results:
        for name, verdict in record.fields.items():
            if verdict.status != STATUS_DIFFERENCE:
                continue
            if shown == max_rows:
                print(f"  ... ({aggregate.differences_found - shown} autres différences)")
                print("======================\n")
                return
            if shown == 0:
                print("  Écarts:")
            extra = f" (écart {verdict.difference})" if verdict.difference else ""
            print(f"    [{record.id}] {name}: {verdict.val1!r} ≠ {verdict.val2!r}{extra}")
            shown += 1
    print("======================\n")


def read_detailed_results(filepath: str | Path) -> list[tuple[Any, dict[str, tuple[Any, Any, str]]]]:
    """
    Relit l'onglet Detailed Results d'un classeur exporté.

    Une entrée par ligne de la feuille, dans l'ordre : deux enregistrements
    partageant le même ID restent distincts.

    Returns:
        [(ID, {champ: (val1, val2, statut)})]
    """
    df = pd.read_excel(filepath, sheet_name=DETAIL_SHEET, dtype=object, keep_default_na=False, engine="openpyxl")
    fields = [str(c)[: -len(STATUS_SUFFIX)] for c in df.columns if str(c).endswith(STATUS_SUFFIX)]
    results: list[tuple[Any, dict[str, tuple[Any, Any, str]]]] = []
    for _, row in df.iterrows():
        record_id = clean_cell(row["ID"])
        verdicts = {
            name: (
                clean_cell(row[f"{name}{FILE1_SUFFIX}"]),
                clean_cell(row[f"{name}{FILE2_SUFFIX}"]),
                str(row[f"{name}{STATUS_SUFFIX}"]),
            )
            for name in fields
            if str(row[f"{name}{STATUS_SUFFIX}"])
        }
        results.append((record_id, verdicts))
    return results


def _cell_text(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return "" if value is None else value


def build_changes_df(diff: DocumentDiff) -> pd.DataFrame:
    """Une ligne par changement : chemin, type, niveau, ancienne et nouvelle valeur."""
    rows = [
        (c.path, c.type, c.level, c.element_name or "", _cell_text(c.old_value), _cell_text(c.new_value))
        for c in diff.changes
    ]
    return pd.DataFrame(rows, columns=["PATH", "TYPE", "LEVEL", "ELEMENT", "OLD_VALUE", "NEW_VALUE"])


def build_document_summary_df(
    diff: DocumentDiff,
    *,
    file1_name: str | None = None,
    file2_name: str | None = None,
) -> pd.DataFrame:
    rows: list[tuple[str, Any]] = [
        ("comparison_type", f"{diff.kind}_document"),
        ("total_records", diff.total_records),
        ("matches_found", diff.matches_found),
        ("differences_found", diff.differences_found),
        ("added", diff.count(CHANGE_ADDED)),
        ("removed", diff.count(CHANGE_REMOVED)),
        ("modified", diff.count(CHANGE_MODIFIED)),
        ("attribute_changed", diff.count(CHANGE_ATTRIBUTE)),
        ("", ""),
        ("file1", file1_name or ""),
        ("file2", file2_name or ""),
        ("timestamp", datetime.now().isoformat()),
        ("version", __version__),
    ]
    return pd.DataFrame(rows, columns=["Key", "Value"])


def export_document_diff(
    diff: DocumentDiff,
    filepath: str | Path,
    *,
    file1_name: str | None = None,
    file2_name: str | None = None,
) -> Path:
    """
    Exporte une comparaison structurelle selon l'extension.

    - ``.json`` : résumé et liste des changements ;
    - ``.xlsx`` : onglets Summary et Changes ;
    - ``.csv`` : liste des changements.
    """
    path = Path(filepath)
    suffix = path.suffix.lower()
    if suffix == ".json":
        data = {"file1": file1_name or "", "file2": file2_name or "", **diff.to_dict()}
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
    elif suffix == ".xlsx":
        save_xlsx(
            path,
            {
                SUMMARY_SHEET: build_document_summary_df(diff, file1_name=file1_name, file2_name=file2_name),
                CHANGES_SHEET: build_changes_df(diff),
            },
        )
    elif suffix == ".csv":
        build_changes_df(diff).to_csv(path, index=False, encoding="utf-8")
    else:
        raise ValidationError(f"Format de sortie non supporté: {suffix}")
    return path


def print_document_report(diff: DocumentDiff, *, max_rows: int = 20) -> None:
    """Affiche le résumé d'une comparaison structurelle puis les premiers changements."""
    unit = "éléments" if diff.kind == "xml" else "valeurs"
    print("\n=== VeriDiff Document Report ===")
    print(f"  Type:             {diff.kind.upper()}")
    print(f"  Total ({unit}): {diff.total_records}")
    print(f"  Identiques:       {diff.matches_found}")
    print(f"  Changements:      {diff.differences_found}")
    print(
        f"    ajoutés {diff.count(CHANGE_ADDED)}, supprimés {diff.count(CHANGE_REMOVED)}, "
        f"modifiés {diff.count(CHANGE_MODIFIED)}, attributs {diff.count(CHANGE_ATTRIBUTE)}"
    )
    for change in diff.changes[:max_rows]:
        if change.type == CHANGE_ADDED:
            print(f"    + {change.path}: {change.new_value!r}")
        elif change.type == CHANGE_REMOVED:
            print(f"    - {change.path}: {change.old_value!r}")
        else:
            print(f"    ~ {change.path}: {change.old_value!r} → {change.new_value!r}")
    if diff.differences_found > max_rows:
        print(f"  ... ({diff.differences_found - max_rows} autres changements)")
    print("================================\n")
