"""Scores de similarité entre noms de champs normalisés."""

from __future__ import annotations

from collections import Counter

from rapidfuzz.distance import Levenshtein

from veridiff.normalize import norm_header


def bigrams(s: str) -> Counter[str]:
    """Multiensemble des paires de caractères consécutifs."""
    return Counter(s[i : i + 2] for i in range(len(s) - 1))


def dice_similarity(a: str, b: str) -> float:
    """
    Coefficient de Dice sur les bigrammes : 2 × |communs| / (|bigrammes(a)| + |bigrammes(b)|).

    Deux chaînes identiques valent 1.0 (y compris vides ou d'un caractère) ;
    une chaîne trop courte pour avoir un bigramme vaut 0.0 contre toute autre.
    """
    if a == b:
        return 1.0
    ba, bb = bigrams(a), bigrams(b)
    total = sum(ba.values()) + sum(bb.values())
    if total == 0:
        return 0.0
    shared = sum((ba & bb).values())
    return 2.0 * shared / total


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - distance / longueur max (0.0 à 1.0)."""
    if a == b:
        return 1.0
    return float(Levenshtein.normalized_similarity(a, b))


SCORERS = {
    "dice": dice_similarity,
    "levenshtein": levenshtein_similarity,
}


def score_headers(h1: str, h2: str, method: str = "dice") -> float:
    """
    Similarité (0-1) entre deux noms de champs bruts, après normalisation.

    Args:
        h1: Nom de champ du fichier 1.
        h2: Nom de champ du fichier 2.
        method: dice ou levenshtein.
    """
    scorer = SCORERS.get(method)
    if scorer is None:
        raise ValueError(f"method invalide: {method!r}. Valides: {sorted(SCORERS)}")
    return scorer(norm_header(h1), norm_header(h2))
