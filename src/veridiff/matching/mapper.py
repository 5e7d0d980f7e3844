"""Proposition de mapping d'en-têtes entre deux fichiers."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Sequence

from veridiff.config import HeaderMapping
from veridiff.matching.scorers import SCORERS
from veridiff.normalize import is_missing, norm_header, parse_number
from veridiff.schema import SAMPLE_SIZE, Row

DEFAULT_THRESHOLD = 0.5

AMOUNT_NAME_RE = re.compile(
    r"amount|price|cost|total|sum|value|balance|fee|qty|quantity|rate|charge|payment|"
    r"invoice|bill|salary|wage|revenue|profit|expense|budget",
    re.IGNORECASE,
)
_CURRENCY_NOISE_RE = re.compile(r"[$,\s€£¥]")
NUMERIC_SAMPLE_RATIO = 0.7


def map_headers(
    fields1: Sequence[str],
    fields2: Sequence[str],
    *,
    method: str = "dice",
    threshold: float = DEFAULT_THRESHOLD,
) -> list[HeaderMapping]:
    """
    Propose un champ du fichier 2 pour chaque champ du fichier 1.

    1. Correspondance exacte après normalisation → confiance 1.0.
    2. Sinon meilleur score de similarité ; retenu s'il atteint ``threshold``,
       le premier candidat au score maximal l'emporte.
    3. Sinon ``target_field=None`` et confiance 0.

    Un même champ cible peut être proposé pour plusieurs champs sources
    (voir ``duplicate_targets``).

    Returns:
        Une entrée par élément de ``fields1``, dans le même ordre.
    """
    scorer = SCORERS.get(method)
    if scorer is None:
        raise ValueError(f"method invalide: {method!r}. Valides: {sorted(SCORERS)}")

    normalized2 = [(f, norm_header(f)) for f in fields2]
    mappings: list[HeaderMapping] = []
    seen: set[str] = set()

    for f1 in fields1:
        if f1 in seen:
            continue
        seen.add(f1)
        n1 = norm_header(f1)

        exact = next((orig for orig, n2 in normalized2 if n2 == n1), None)
        if exact is not None:
            mappings.append(HeaderMapping(source_field=f1, target_field=exact, confidence=1.0))
            continue

        best_field: str | None = None
        best_score = 0.0
        for orig, n2 in normalized2:
            score = scorer(n1, n2)
            if score > best_score:
                best_score = score
                best_field = orig

        if best_field is not None and best_score >= threshold:
            mappings.append(HeaderMapping(source_field=f1, target_field=best_field, confidence=best_score))
        else:
            mappings.append(HeaderMapping(source_field=f1, target_field=None, confidence=0.0))

    return mappings


def duplicate_targets(mappings: Sequence[HeaderMapping]) -> dict[str, list[str]]:
    """Champs cibles proposés pour plusieurs champs sources : {cible: [sources]}."""
    by_target: dict[str, list[str]] = {}
    for m in mappings:
        if m.is_mapped:
            by_target.setdefault(m.target_field, []).append(m.source_field)  # type: ignore[arg-type]
    return {t: sources for t, sources in by_target.items() if len(sources) > 1}


def _looks_numeric(val: Any) -> bool:
    if is_missing(val) or val == "":
        return False
    return parse_number(_CURRENCY_NOISE_RE.sub("", str(val))) is not None


def is_likely_amount_field(field_name: str, sample_values: Sequence[Any]) -> bool:
    """Nom évocateur d'un montant, ou plus de 70 % des valeurs d'échantillon numériques."""
    if AMOUNT_NAME_RE.search(field_name):
        return True
    numeric = sum(1 for v in sample_values if _looks_numeric(v))
    return numeric / max(len(sample_values), 1) > NUMERIC_SAMPLE_RATIO


def detect_amount_fields(
    mappings: Sequence[HeaderMapping],
    sample1: Sequence[Row],
    sample2: Sequence[Row],
    *,
    default_tolerance: float = 0.01,
) -> list[HeaderMapping]:
    """
    Marque les champs de montant et leur attribue une tolérance absolue par défaut.

    Les échantillons sont les dix premières lignes de chaque fichier. Les mappings
    ayant déjà ``is_amount_field`` ou une tolérance sont repris sans changement.
    Les mappings fournis ne sont pas modifiés ; une nouvelle liste est retournée.
    """
    enriched: list[HeaderMapping] = []
    for m in mappings:
        # Choix déjà faits par l'utilisateur : conservés tels quels
        if m.is_amount_field is not None or m.tolerance_rule is not None:
            enriched.append(m)
            continue
        target = m.target_field if m.is_mapped else m.source_field
        samples = [r.get(m.source_field) for r in sample1[:SAMPLE_SIZE]]
        samples += [r.get(target) for r in sample2[:SAMPLE_SIZE]]
        samples = [v for v in samples if v is not None]
        if is_likely_amount_field(m.source_field, samples):
            enriched.append(
                replace(
                    m,
                    is_amount_field=True,
                    tolerance_type="flat",
                    tolerance_value=default_tolerance,
                    is_auto_detected=True,
                )
            )
        else:
            enriched.append(replace(m, is_amount_field=False))
    return enriched
