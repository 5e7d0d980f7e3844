"""Tests des scores de similarité d'en-têtes."""

import itertools

import pytest

from veridiff.matching.scorers import bigrams, dice_similarity, levenshtein_similarity, score_headers


def test_bigrams_multiset() -> None:
    assert bigrams("aaa") == {"aa": 2}
    assert sum(bigrams("a").values()) == 0


def test_dice_known_values() -> None:
    assert dice_similarity("night", "nacht") == pytest.approx(0.25)
    assert dice_similarity("amount", "amount") == 1.0
    assert dice_similarity("foo", "bar") == 0.0


def test_dice_short_strings() -> None:
    assert dice_similarity("", "") == 1.0
    assert dice_similarity("a", "a") == 1.0
    assert dice_similarity("a", "ab") == 0.0


def test_similarity_bounds() -> None:
    words = ["", "a", "id", "amount", "amt", "total amount", "customername", "name", "aaaa"]
    for a, b in itertools.product(words, repeat=2):
        for scorer in (dice_similarity, levenshtein_similarity):
            score = scorer(a, b)
            assert 0.0 <= score <= 1.0
            if a == b:
                assert score == 1.0


def test_levenshtein_similarity() -> None:
    assert levenshtein_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_score_headers_normalizes() -> None:
    assert score_headers("Customer Name", "customer_name") == 1.0
    assert score_headers("Customer Name", "customer_name", method="levenshtein") == 1.0


def test_score_headers_invalid_method() -> None:
    with pytest.raises(ValueError, match="method invalide"):
        score_headers("a", "b", method="jaro")
