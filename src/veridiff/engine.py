"""Moteur de comparaison : alignement des lignes, verdicts par champ, agrégat."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Sequence

from veridiff.config import HeaderMapping, ToleranceRule
from veridiff.errors import ComparisonCancelled
from veridiff.normalize import is_missing, to_canonical_str
from veridiff.schema import (
    STATUS_DIFFERENCE,
    Dataset,
    FieldVerdict,
    RecordResult,
    ResultAggregate,
    Row,
)
from veridiff.tolerance import field_verdict, numeric_difference

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500
KEY_FIELD_NAMES = ("id", "ID")

ProgressCallback = Callable[[int, int], None]


class Alignment(str, Enum):
    """Stratégie d'appariement des lignes, toujours choisie explicitement par l'appelant."""

    POSITIONAL = "positional"  # ligne i contre ligne i
    KEYED = "keyed"  # appariement par valeur d'une colonne identifiant


class CancelToken:
    """Jeton d'annulation partagé, vérifié entre deux paquets de lignes."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ComparisonCancelled("Comparaison annulée")


def _rows(data: Dataset | Sequence[Row]) -> list[Row]:
    return list(data.rows) if isinstance(data, Dataset) else list(data)


def _blank(value: Any) -> bool:
    return is_missing(value) or to_canonical_str(value) == ""


def _field_scope(
    rows1: list[Row],
    rows2: list[Row],
    mapping: Sequence[HeaderMapping],
) -> tuple[list[str], dict[str, ToleranceRule | None]]:
    """Champs comparés et règle de tolérance par champ."""
    if mapping:
        scope: dict[str, None] = {}
        rules: dict[str, ToleranceRule | None] = {}
        for m in mapping:
            if m.is_mapped and m.source_field not in scope:
                scope[m.source_field] = None
                rules[m.source_field] = m.tolerance_rule
        return list(scope), rules
    # Sans mapping : union des champs des premières lignes
    names: dict[str, None] = {}
    for rows in (rows1, rows2):
        if rows:
            for k in rows[0]:
                names.setdefault(k, None)
    return list(names), {}


def remap_rows(rows: list[Row], mapping: Sequence[HeaderMapping]) -> list[Row]:
    """Renomme les champs du fichier 2 avec les noms du fichier 1 (champs non mappés ignorés)."""
    mapped = [m for m in mapping if m.is_mapped]
    return [{m.source_field: row.get(m.target_field, "") for m in mapped} for row in rows]


def _detect_key_field(rows: list[Row]) -> str | None:
    if not rows:
        return None
    headers = list(rows[0])
    for name in headers:
        if name in KEY_FIELD_NAMES:
            return name
    return headers[0] if headers else None


def _positional_pairs(rows1: list[Row], raw2: list[Row], rows2: list[Row]) -> list[tuple[Any, Row | None, Row | None]]:
    pairs: list[tuple[Any, Row | None, Row | None]] = []
    for i in range(max(len(rows1), len(rows2))):
        row1 = rows1[i] if i < len(rows1) else None
        row2 = rows2[i] if i < len(rows2) else None
        record_id: Any = i + 1
        for candidate in (row1, raw2[i] if i < len(raw2) else None):
            if candidate is not None and "ID" in candidate and not _blank(candidate["ID"]):
                record_id = candidate["ID"]
                break
        pairs.append((record_id, row1, row2))
    return pairs


def _keyed_pairs(
    rows1: list[Row],
    raw2: list[Row],
    rows2: list[Row],
    key1: str,
    key2: str,
) -> list[tuple[Any, Row | None, Row | None]]:
    index2: dict[str, int] = {}
    for j, row in enumerate(raw2):
        index2.setdefault(to_canonical_str(row.get(key2)), j)

    pairs: list[tuple[Any, Row | None, Row | None]] = []
    used2: set[int] = set()
    for i, row1 in enumerate(rows1):
        key = row1.get(key1)
        j = index2.get(to_canonical_str(key)) if not _blank(key) else None
        if j is not None and j not in used2:
            used2.add(j)
            pairs.append((key, row1, rows2[j]))
        else:
            pairs.append((key if not _blank(key) else i + 1, row1, None))
    for j, row2 in enumerate(rows2):
        if j not in used2:
            key = raw2[j].get(key2)
            pairs.append((key if not _blank(key) else len(rows1) + j + 1, None, row2))
    return pairs


def compare(
    dataset1: Dataset | Sequence[Row],
    dataset2: Dataset | Sequence[Row],
    mapping: Sequence[HeaderMapping] | None = None,
    *,
    alignment: Alignment | str = Alignment.POSITIONAL,
    key_field: str | None = None,
    cancel_token: CancelToken | None = None,
    on_progress: ProgressCallback | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ResultAggregate:
    """
    Compare deux jeux de lignes champ par champ.

    Args:
        dataset1: Lignes du fichier 1 (référence des noms de champs).
        dataset2: Lignes du fichier 2.
        mapping: Mapping d'en-têtes. Non vide : seuls les champs mappés sont comparés,
            avec leur tolérance. Vide ou None : union des champs des premières lignes.
        alignment: positional (index) ou keyed (colonne identifiant).
        key_field: Colonne identifiant (fichier 1) en mode keyed. Par défaut la première
            colonne nommée ``id``/``ID``, sinon la première colonne.
        cancel_token: Vérifié tous les ``chunk_size`` enregistrements.
        on_progress: Appelé avec (enregistrements traités, total) après chaque paquet.

    Returns:
        ResultAggregate ; ``acceptable`` compte comme correspondance.

    Raises:
        ComparisonCancelled: Si le jeton est annulé en cours de route.
    """
    alignment = Alignment(alignment)
    mapping = list(mapping or [])
    chunk_size = max(int(chunk_size), 1)
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    rows1 = _rows(dataset1)
    raw2 = _rows(dataset2)
    scope, rules = _field_scope(rows1, raw2, mapping)
    rows2 = remap_rows(raw2, mapping) if mapping else raw2

    if alignment is Alignment.KEYED:
        key1 = key_field or _detect_key_field(rows1) or _detect_key_field(raw2) or ""
        key2 = next((m.target_field for m in mapping if m.is_mapped and m.source_field == key1), key1)
        pairs = _keyed_pairs(rows1, raw2, rows2, key1, key2)  # type: ignore[arg-type]
        logger.debug("Alignement par clé: %s ↔ %s", key1, key2)
    else:
        pairs = _positional_pairs(rows1, raw2, rows2)

    total = len(pairs)
    results: list[RecordResult] = []
    matches = 0
    differences = 0

    for n, (record_id, row1, row2) in enumerate(pairs, start=1):
        one_sided = row1 is None or row2 is None
        r1 = row1 or {}
        r2 = row2 or {}
        fields: dict[str, FieldVerdict] = {}
        for name in scope:
            v1, v2 = r1.get(name, ""), r2.get(name, "")
            if one_sided:
                # Ligne présente d'un seul côté : chaque champ est une différence
                verdict = FieldVerdict(
                    val1="" if v1 is None else v1,
                    val2="" if v2 is None else v2,
                    status=STATUS_DIFFERENCE,
                    difference=numeric_difference(v1, v2),
                )
            else:
                verdict = field_verdict(v1, v2, rules.get(name))
            fields[name] = verdict
            if verdict.is_match:
                matches += 1
            else:
                differences += 1
        results.append(RecordResult(id=record_id, fields=fields))

        if n % chunk_size == 0:
            if on_progress is not None:
                on_progress(n, total)
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

    if on_progress is not None:
        on_progress(total, total)
    logger.debug(
        "Comparaison %s: %d enregistrements, %d correspondances, %d différences",
        alignment.value,
        total,
        matches,
        differences,
    )
    return ResultAggregate(
        total_records=total,
        differences_found=differences,
        matches_found=matches,
        results=tuple(results),
        alignment=alignment.value,
    )
