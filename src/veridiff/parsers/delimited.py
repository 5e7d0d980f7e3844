"""Parseur de texte délimité (CSV, TSV) avec détection du séparateur et typage dynamique."""

from __future__ import annotations

import csv
import io
import logging

import pandas as pd

from veridiff.errors import ParseError
from veridiff.normalize import clean_cell, coerce_scalar
from veridiff.schema import Dataset

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = [",", ";", "\t", "|"]


def detect_delimiter(text: str, *, skip_rows: int = 0) -> str | None:
    """
    Devine le séparateur sur les premières lignes non vides.

    Returns:
        Le séparateur, ou None si aucun candidat n'apparaît.
    """
    lines = text.splitlines(keepends=True)[skip_rows:]
    sample_lines = [line for line in lines if line.strip()][:5]
    if not sample_lines:
        return None
    sample = "".join(sample_lines)
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS)
        return dialect.delimiter
    except csv.Error:
        first = sample_lines[0]
        counts = {d: first.count(d) for d in CANDIDATE_DELIMITERS}
        best = max(counts, key=counts.get)
        return best if counts[best] > 0 else None


def _read_csv(
    text: str,
    *,
    sep: str,
    skiprows: int = 0,
    engine: str | None = None,
    on_bad_lines: str | None = None,
) -> pd.DataFrame:
    kwargs: dict[str, object] = {
        "sep": sep,
        "dtype": str,
        "keep_default_na": False,
        "skip_blank_lines": True,
        "skiprows": range(skiprows) if skiprows else None,
        "header": 0,
        "engine": engine,
    }
    if on_bad_lines is not None:
        kwargs["on_bad_lines"] = on_bad_lines
    return pd.read_csv(io.StringIO(text), **kwargs)


def _field_count(line: str, delimiter: str) -> int:
    return len(next(csv.reader([line], delimiter=delimiter), []))


def _has_title_line(text: str, delimiter: str) -> bool:
    """Première ligne à un seul champ suivie d'une ligne à plusieurs champs."""
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        return False
    return _field_count(lines[0], delimiter) == 1 and _field_count(lines[1], delimiter) > 1


def parse_delimited(
    text: str,
    file_name: str = "",
    *,
    delimiter: str | None = None,
    header_row: int = 1,
    dynamic_typing: bool = True,
) -> Dataset:
    """
    Parse un texte délimité en lignes, la ligne d'en-tête donnant les noms de champs.

    Args:
        text: Contenu décodé.
        file_name: Nom du fichier (messages d'erreur, provenance).
        delimiter: Séparateur imposé (None = détection automatique).
        header_row: Numéro de ligne (1-based) contenant les en-têtes.
        dynamic_typing: Convertir les nombres et booléens ("100" → 100).

    Returns:
        Dataset ; vide si le texte ne contient aucune donnée.

    Raises:
        ParseError: Si le texte ne peut pas être découpé en colonnes.
    """
    if not text.strip():
        return Dataset(rows=[], file_name=file_name, format="csv")

    skip = max(header_row - 1, 0)
    sep = delimiter or detect_delimiter(text, skip_rows=skip) or ","
    # Une ligne de titre avant les en-têtes : on la saute.
    if skip == 0 and delimiter is None and _has_title_line(text, sep):
        first = next(line for line in text.splitlines() if line.strip())
        logger.debug("%s: ligne de titre ignorée", file_name)
        skip = text.splitlines().index(first) + 1

    try:
        df = _read_csv(text, sep=sep, skiprows=skip)
    except pd.errors.EmptyDataError:
        return Dataset(rows=[], file_name=file_name, format="csv")
    except pd.errors.ParserError as e:
        logger.warning("%s: CSV mal formé (%s), lignes invalides ignorées", file_name, e)
        try:
            df = _read_csv(text, sep=sep, skiprows=skip, engine="python", on_bad_lines="warn")
        except Exception as e2:
            raise ParseError(f"Erreur CSV: {e2}. Vérifiez la ligne d'en-tête et le séparateur.", file_name) from e2
    except Exception as e:
        raise ParseError(f"Erreur CSV: {e}", file_name) from e

    columns = [str(c) for c in df.columns]
    rows = []
    for record in df.itertuples(index=False, name=None):
        # Lignes courtes : pandas complète avec NaN
        cells = [val if isinstance(val, str) else clean_cell(val) for val in record]
        if all(v == "" for v in cells):
            continue
        if dynamic_typing:
            cells = [coerce_scalar(v) if isinstance(v, str) else v for v in cells]
        rows.append(dict(zip(columns, cells)))
    logger.debug("%s: %d lignes, séparateur %r", file_name, len(rows), sep)
    return Dataset(rows=rows, file_name=file_name, format="csv")
