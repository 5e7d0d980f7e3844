"""Schémas et types du moteur de comparaison."""

from __future__ import annotations

import codecs
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from veridiff.config import HeaderMapping, ToleranceRule

Row = dict[str, Any]

STATUS_MATCH = "match"
STATUS_ACCEPTABLE = "acceptable"
STATUS_DIFFERENCE = "difference"
SAMPLE_SIZE = 10

# UTF-32 avant UTF-16 : le BOM UTF-32 LE commence par celui d'UTF-16 LE
_BOMS = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

__all__ = [
    "Row",
    "SourceFile",
    "SheetInfo",
    "WorkbookInfo",
    "Dataset",
    "HeaderMapping",
    "ToleranceRule",
    "FieldVerdict",
    "RecordResult",
    "ResultAggregate",
    "flatten_results",
]


@dataclass(frozen=True)
class SourceFile:
    """Fichier fourni par la couche de transport : nom, octets bruts, type MIME."""

    name: str
    content: bytes
    mime_type: str = ""

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> SourceFile:
        path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or ""
        return cls(name=path.name, content=path.read_bytes(), mime_type=mime_type)

    def text(self) -> str:
        """Décode le contenu : BOM UTF-32/UTF-16 si présent, UTF-8 (BOM toléré), sinon Latin-1."""
        for bom, encoding in _BOMS:
            if self.content.startswith(bom):
                return self.content[len(bom):].decode(encoding)
        try:
            return self.content.decode("utf-8-sig")
        except UnicodeDecodeError:
            return self.content.decode("latin-1")


@dataclass
class SheetInfo:
    """Métadonnées d'une feuille pour le sélecteur de feuilles."""

    name: str
    is_hidden: bool = False
    has_data: bool = False
    row_count: int = 0
    headers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "isHidden": self.is_hidden,
            "hasData": self.has_data,
            "rowCount": self.row_count,
            "headers": list(self.headers),
        }


@dataclass
class WorkbookInfo:
    """Inventaire des feuilles d'un classeur."""

    file_name: str
    default_sheet: str | None
    sheets: list[SheetInfo]

    @property
    def visible_data_sheets(self) -> list[SheetInfo]:
        return [s for s in self.sheets if not s.is_hidden and s.has_data]

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "defaultSheet": self.default_sheet,
            "sheets": [s.to_dict() for s in self.sheets],
        }


@dataclass
class Dataset:
    """Lignes parsées d'un fichier et leur provenance."""

    rows: list[Row]
    file_name: str = ""
    format: str = ""
    sheet_name: str | None = None
    sheets: list[SheetInfo] = field(default_factory=list)

    @property
    def headers(self) -> list[str]:
        """Clés de la première ligne (la forme des lignes du fichier)."""
        return list(self.rows[0].keys()) if self.rows else []

    @property
    def sample(self) -> list[Row]:
        return self.rows[:SAMPLE_SIZE]

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def __len__(self) -> int:
        return len(self.rows)

    def __repr__(self) -> str:
        return f"Dataset(file={self.file_name!r}, format={self.format!r}, rows={len(self.rows)})"


@dataclass(frozen=True)
class FieldVerdict:
    """Verdict d'un champ pour une paire de lignes."""

    val1: Any
    val2: Any
    status: str  # match, acceptable, difference
    difference: str | None = None  # |v1 - v2| à 2 décimales si les deux sont numériques

    @property
    def is_match(self) -> bool:
        """acceptable compte comme une correspondance dans les totaux."""
        return self.status in (STATUS_MATCH, STATUS_ACCEPTABLE)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"val1": self.val1, "val2": self.val2, "status": self.status}
        if self.difference is not None:
            d["difference"] = self.difference
        return d


@dataclass(frozen=True)
class RecordResult:
    """Résultat d'une paire de lignes : identifiant et verdict par champ."""

    id: str | int
    fields: dict[str, FieldVerdict]

    def to_dict(self) -> dict[str, Any]:
        return {"ID": self.id, "fields": {k: v.to_dict() for k, v in self.fields.items()}}


@dataclass(frozen=True)
class ResultAggregate:
    """Résultat complet d'une comparaison."""

    total_records: int
    differences_found: int
    matches_found: int
    results: tuple[RecordResult, ...]
    alignment: str = "positional"

    @property
    def field_comparisons(self) -> int:
        return sum(len(r.fields) for r in self.results)

    @property
    def field_names(self) -> list[str]:
        """Champs comparés, dans l'ordre de première apparition."""
        names: dict[str, None] = {}
        for r in self.results:
            for k in r.fields:
                names.setdefault(k, None)
        return list(names)

    @property
    def match_rate(self) -> float:
        total = self.matches_found + self.differences_found
        return 100.0 * self.matches_found / total if total else 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_records": self.total_records,
            "differences_found": self.differences_found,
            "matches_found": self.matches_found,
            "results": [r.to_dict() for r in self.results],
        }

    def flatten(self) -> list[dict[str, Any]]:
        return flatten_results(self)


def flatten_results(aggregate: ResultAggregate) -> list[dict[str, Any]]:
    """
    Convertit les résultats par enregistrement en liste de cellules (ancien format).

    Une entrée par verdict de champ : ID, COLUMN, SOURCE_1_VALUE, SOURCE_2_VALUE, STATUS.
    """
    flat: list[dict[str, Any]] = []
    for record in aggregate.results:
        for column, verdict in record.fields.items():
            flat.append(
                {
                    "ID": record.id,
                    "COLUMN": column,
                    "SOURCE_1_VALUE": verdict.val1,
                    "SOURCE_2_VALUE": verdict.val2,
                    "STATUS": verdict.status,
                }
            )
    return flat
