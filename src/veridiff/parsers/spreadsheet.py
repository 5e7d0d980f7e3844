"""Parseur de classeurs (xlsx, xlsm, xls, ods) : inventaire des feuilles puis extraction."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import openpyxl
import pandas as pd

from veridiff.errors import ParseError, SheetSelectionRequired
from veridiff.normalize import clean_cell
from veridiff.schema import Dataset, SheetInfo, WorkbookInfo

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".xlsm", ".xls", ".ods")
HEADER_PREVIEW = 5


def _get_engine(file_name: str) -> str | None:
    """Retourne le moteur pandas selon l'extension, ou None pour openpyxl par défaut."""
    suffix = Path(file_name).suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        return "openpyxl"
    if suffix == ".xls":
        return "xlrd"
    if suffix in (".ods", ".odt"):
        return "odf"
    return None


def _missing_engine_error(file_name: str, e: ImportError) -> ParseError:
    ext = Path(file_name).suffix.lower()
    if ext == ".xls":
        return ParseError(f"Format .xls requis: pip install xlrd. Détail: {e}", file_name)
    if ext in (".ods", ".odt"):
        return ParseError(f"Format ODS requis: pip install odfpy. Détail: {e}", file_name)
    return ParseError(f"Impossible de lire le classeur: {e}", file_name)


def _open_excel(content: bytes, file_name: str) -> pd.ExcelFile:
    engine = _get_engine(file_name) or "openpyxl"
    try:
        return pd.ExcelFile(io.BytesIO(content), engine=engine)
    except ImportError as e:
        raise _missing_engine_error(file_name, e) from e
    except Exception as e:
        raise ParseError(f"Impossible de lire le classeur: {e}", file_name) from e


def _used_rows(ws) -> list[tuple]:
    """Lignes de la feuille jusqu'à la dernière ligne non vide."""
    rows = list(ws.iter_rows(values_only=True))
    while rows and all(v is None or (isinstance(v, str) and not v.strip()) for v in rows[-1]):
        rows.pop()
    return rows


def _preview_headers(first_row) -> list[str]:
    return [str(h).strip() if h is not None else "" for h in list(first_row)[:HEADER_PREVIEW]]


def _inspect_openpyxl(content: bytes, file_name: str) -> list[SheetInfo]:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), data_only=True)
    except Exception as e:
        raise ParseError(f"Impossible de lire le classeur: {e}", file_name) from e
    sheets: list[SheetInfo] = []
    try:
        for ws in wb.worksheets:
            rows = _used_rows(ws)
            sheets.append(
                SheetInfo(
                    name=ws.title,
                    is_hidden=ws.sheet_state != "visible",
                    has_data=len(rows) > 1,
                    row_count=len(rows),
                    headers=_preview_headers(rows[0]) if rows else [],
                )
            )
    finally:
        wb.close()
    return sheets


def _inspect_pandas(content: bytes, file_name: str) -> list[SheetInfo]:
    # xls/ods : pas d'information de visibilité via pandas
    xl = _open_excel(content, file_name)
    sheets: list[SheetInfo] = []
    for name in xl.sheet_names:
        try:
            df = pd.read_excel(xl, sheet_name=name, header=None, dtype=object)
        except Exception as e:
            raise ParseError(f"Erreur feuille '{name}': {e}", file_name) from e
        df = df.dropna(how="all")
        sheets.append(
            SheetInfo(
                name=str(name),
                is_hidden=False,
                has_data=len(df) > 1,
                row_count=len(df),
                headers=_preview_headers(df.iloc[0].tolist()) if len(df) else [],
            )
        )
    return sheets


def inspect_workbook(content: bytes, file_name: str = "") -> WorkbookInfo:
    """
    Liste les feuilles d'un classeur avec visibilité, nombre de lignes et en-têtes.

    Args:
        content: Octets du classeur.
        file_name: Nom du fichier (l'extension choisit le moteur).

    Returns:
        WorkbookInfo avec la feuille par défaut (première visible avec données).

    Raises:
        ParseError: Si le classeur est illisible.
    """
    engine = _get_engine(file_name)
    if engine in (None, "openpyxl"):
        sheets = _inspect_openpyxl(content, file_name)
    else:
        sheets = _inspect_pandas(content, file_name)

    default = next((s.name for s in sheets if not s.is_hidden and s.has_data), None)
    if default is None and sheets:
        default = sheets[0].name
    hidden = [s.name for s in sheets if s.is_hidden]
    if hidden:
        logger.debug("%s: feuilles masquées ignorées par défaut: %s", file_name, ", ".join(hidden))
    return WorkbookInfo(file_name=file_name, default_sheet=default, sheets=sheets)


def extract_sheet(
    content: bytes,
    sheet_name: str,
    file_name: str = "",
    *,
    header_row: int = 1,
    workbook: WorkbookInfo | None = None,
) -> Dataset:
    """
    Convertit une feuille en lignes, la ligne d'en-tête donnant les noms de champs.

    Les cellules vides deviennent "" et les lignes entièrement vides sont ignorées.

    Raises:
        ParseError: Si le classeur est illisible ou si la feuille n'existe pas.
    """
    xl = _open_excel(content, file_name)
    names = [str(s) for s in xl.sheet_names]
    if sheet_name not in names:
        raise ParseError(f"Feuille '{sheet_name}' introuvable. Feuilles: {', '.join(names)}", file_name)

    try:
        df = pd.read_excel(xl, sheet_name=sheet_name, dtype=object, header=max(header_row - 1, 0))
    except Exception as e:
        raise ParseError(f"Erreur feuille '{sheet_name}': {e}", file_name) from e

    df = df.dropna(how="all")
    columns = [str(c) for c in df.columns]
    rows = [
        {col: clean_cell(val) for col, val in zip(columns, record)}
        for record in df.itertuples(index=False, name=None)
    ]
    if workbook is None:
        workbook = inspect_workbook(content, file_name)
    logger.debug("%s: feuille '%s' -> %d lignes", file_name, sheet_name, len(rows))
    return Dataset(
        rows=rows,
        file_name=file_name,
        format="excel",
        sheet_name=sheet_name,
        sheets=workbook.sheets,
    )


def parse_spreadsheet(
    content: bytes,
    file_name: str = "",
    sheet_name: str | None = None,
    *,
    header_row: int = 1,
) -> Dataset:
    """
    Parse un classeur en deux temps.

    Sans ``sheet_name``, la feuille par défaut est extraite si au plus une feuille
    visible contient des données ; sinon ``SheetSelectionRequired`` est levée avec
    l'inventaire des feuilles pour que l'appelant choisisse.

    Raises:
        ParseError: Si le classeur est illisible ou ne contient aucune feuille.
        SheetSelectionRequired: Si plusieurs feuilles visibles ont des données.
    """
    if sheet_name is not None:
        return extract_sheet(content, sheet_name, file_name, header_row=header_row)

    info = inspect_workbook(content, file_name)
    if not info.sheets or info.default_sheet is None:
        raise ParseError("Classeur vide (aucune feuille)", file_name)
    if len(info.visible_data_sheets) > 1:
        raise SheetSelectionRequired(info)
    return extract_sheet(content, info.default_sheet, file_name, header_row=header_row, workbook=info)
