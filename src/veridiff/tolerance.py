"""Évaluation d'un champ : égalité, tolérance numérique, écart."""

from __future__ import annotations

from typing import Any

from veridiff.config import ToleranceRule
from veridiff.normalize import parse_number, to_canonical_str
from veridiff.schema import STATUS_ACCEPTABLE, STATUS_DIFFERENCE, STATUS_MATCH, FieldVerdict

# Marge d'arrondi binaire (1.1 - 1.0 = 0.10000000000000009)
EPSILON = 1e-9


def within_tolerance(num1: float, num2: float, rule: ToleranceRule) -> bool:
    """
    True si l'écart respecte la règle.

    - flat : |n1 - n2| <= valeur
    - percent : |n1 - n2| / max(|n1|, |n2|, 1) <= valeur / 100
    """
    delta = abs(num1 - num2)
    if rule.type == "flat":
        return delta <= rule.value + EPSILON
    if rule.type == "percent":
        base = max(abs(num1), abs(num2), 1.0)
        return delta / base <= rule.value / 100.0 + EPSILON
    return False


def evaluate(val1: Any, val2: Any, rule: ToleranceRule | None = None) -> str:
    """
    Statut d'une paire de valeurs : match, acceptable ou difference.

    L'égalité se fait sur la forme canonique (``100`` == ``"100"``). La tolérance ne
    s'applique que si les deux valeurs sont des nombres finis.
    """
    if to_canonical_str(val1) == to_canonical_str(val2):
        return STATUS_MATCH
    if rule is not None:
        num1, num2 = parse_number(val1), parse_number(val2)
        if num1 is not None and num2 is not None and within_tolerance(num1, num2, rule):
            return STATUS_ACCEPTABLE
    return STATUS_DIFFERENCE


def numeric_difference(val1: Any, val2: Any) -> str | None:
    """|n1 - n2| à deux décimales si les deux valeurs sont numériques, sinon None."""
    num1, num2 = parse_number(val1), parse_number(val2)
    if num1 is None or num2 is None:
        return None
    return f"{abs(num1 - num2):.2f}"


def field_verdict(val1: Any, val2: Any, rule: ToleranceRule | None = None) -> FieldVerdict:
    """Verdict complet d'un champ ; les valeurs manquantes sont ramenées à ""."""
    v1 = "" if val1 is None else val1
    v2 = "" if val2 is None else val2
    return FieldVerdict(
        val1=v1,
        val2=v2,
        status=evaluate(v1, v2, rule),
        difference=numeric_difference(v1, v2),
    )
