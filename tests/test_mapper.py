"""Tests du mapping d'en-têtes."""

from veridiff.config import HeaderMapping
from veridiff.matching.mapper import detect_amount_fields, duplicate_targets, is_likely_amount_field, map_headers


def test_map_headers_exact_after_normalization() -> None:
    mappings = map_headers(["Customer Name"], ["CustomerName"])
    assert len(mappings) == 1
    assert mappings[0].target_field == "CustomerName"
    assert mappings[0].confidence == 1.0


def test_map_headers_no_match() -> None:
    mappings = map_headers(["Foo"], ["Bar"])
    assert mappings[0].target_field is None
    assert mappings[0].confidence == 0.0
    assert not mappings[0].is_mapped


def test_map_headers_exact_priority_over_fuzzy() -> None:
    # "amount" existe tel quel : le candidat flou "amounts" n'est pas retenu
    mappings = map_headers(["Amount"], ["amounts", "AMOUNT"])
    assert mappings[0].target_field == "AMOUNT"
    assert mappings[0].confidence == 1.0


def test_map_headers_fuzzy_threshold() -> None:
    mappings = map_headers(["invoice number"], ["invoice_no", "date"])
    m = mappings[0]
    assert m.target_field == "invoice_no"
    assert 0.5 <= m.confidence < 1.0


def test_map_headers_first_max_wins() -> None:
    # Deux candidats au même score : le premier l'emporte
    mappings = map_headers(["abcx"], ["abcy", "abcz"])
    assert mappings[0].target_field == "abcy"


def test_map_headers_one_entry_per_field_in_order() -> None:
    fields1 = ["id", "name", "amount", "zzz"]
    mappings = map_headers(fields1, ["ID", "Name", "Amount"])
    assert [m.source_field for m in mappings] == fields1


def test_map_headers_idempotent() -> None:
    a = ["Customer Name", "Total", "Date"]
    b = ["customer", "total_amount", "date"]
    assert map_headers(a, b) == map_headers(a, b)


def test_map_headers_levenshtein() -> None:
    mappings = map_headers(["colour"], ["color"], method="levenshtein", threshold=0.7)
    assert mappings[0].target_field == "color"


def test_duplicate_targets_reported() -> None:
    mappings = [
        HeaderMapping("total", "total_amount", 0.8),
        HeaderMapping("total amt", "total_amount", 0.7),
        HeaderMapping("id", "id", 1.0),
        HeaderMapping("x", None, 0.0),
    ]
    assert duplicate_targets(mappings) == {"total_amount": ["total", "total amt"]}


def test_is_likely_amount_field() -> None:
    assert is_likely_amount_field("Total Price", [])
    assert is_likely_amount_field("col", ["$1,200.50", "3", "4.5"])
    assert not is_likely_amount_field("name", ["Dupont", "Martin", "1"])


def test_detect_amount_fields() -> None:
    mappings = [
        HeaderMapping("Amount", "amt", 1.0),
        HeaderMapping("Name", "name", 1.0),
        HeaderMapping("Fee", "fee", 1.0, is_amount_field=True, tolerance_type="percent", tolerance_value=5),
    ]
    sample1 = [{"Amount": 10, "Name": "a", "Fee": 1}]
    sample2 = [{"amt": 10.5, "name": "a", "fee": 1}]

    result = detect_amount_fields(mappings, sample1, sample2, default_tolerance=0.5)

    amount, name, fee = result
    assert amount.is_amount_field is True
    assert amount.is_auto_detected
    assert amount.tolerance_type == "flat"
    assert amount.tolerance_value == 0.5
    assert name.is_amount_field is False
    assert name.tolerance_rule is None
    # Choix utilisateur conservé
    assert fee is mappings[2]
    # Mappings d'origine non modifiés
    assert mappings[0].is_amount_field is None
