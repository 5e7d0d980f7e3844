"""Module de mapping d'en-têtes."""

from veridiff.matching.mapper import detect_amount_fields, duplicate_targets, map_headers
from veridiff.matching.scorers import dice_similarity, levenshtein_similarity, score_headers

__all__ = [
    "map_headers",
    "duplicate_targets",
    "detect_amount_fields",
    "dice_similarity",
    "levenshtein_similarity",
    "score_headers",
]
