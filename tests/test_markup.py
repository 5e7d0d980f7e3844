"""Tests du parseur XML."""

import json

import pytest

from veridiff.errors import ParseError
from veridiff.coordinator import parse_file
from veridiff.parsers.markup import flatten_object, parse_markup
from veridiff.schema import SourceFile

INVOICE_XML = """<?xml version="1.0"?>
<invoice id="INV-7">
  <customer><name>Dupont</name><city>Lyon</city></customer>
  <total currency="EUR">120.50</total>
  <item><sku>A</sku><qty>1</qty></item>
  <item><sku>B</sku><qty>2</qty></item>
  <note/>
</invoice>
"""


def test_flatten_single_row() -> None:
    ds = parse_markup(INVOICE_XML, "inv.xml")
    assert ds.format == "xml"
    assert len(ds) == 1
    row = ds.rows[0]
    assert row["@id"] == "INV-7"
    assert row["customer.name"] == "Dupont"
    assert row["customer.city"] == "Lyon"
    assert row["total.@currency"] == "EUR"
    assert row["total.#text"] == "120.50"
    assert row["note"] == ""
    # Balises répétées : une seule cellule JSON
    assert json.loads(row["item"]) == [{"sku": "A", "qty": "1"}, {"sku": "B", "qty": "2"}]


def test_records_mode_one_row_per_repeated_tag() -> None:
    ds = parse_markup(INVOICE_XML, "inv.xml", mode="records")
    assert ds.rows == [{"sku": "A", "qty": "1"}, {"sku": "B", "qty": "2"}]


def test_records_mode_falls_back_to_flatten() -> None:
    ds = parse_markup("<root><a>1</a><b>2</b></root>", mode="records")
    assert ds.rows == [{"a": "1", "b": "2"}]


def test_namespaces_stripped() -> None:
    ds = parse_markup('<r xmlns="urn:x"><v>1</v></r>')
    assert ds.rows == [{"v": "1"}]


def test_text_only_root() -> None:
    assert parse_markup("<total>42</total>").rows == [{"total": "42"}]


def test_invalid_xml() -> None:
    with pytest.raises(ParseError, match="XML invalide"):
        parse_markup("<root><a></root>", "bad.xml")


def test_unknown_mode() -> None:
    with pytest.raises(ParseError, match="Mode XML inconnu"):
        parse_markup("<r/>", mode="rows")


def test_flatten_object_nested() -> None:
    assert flatten_object({"a": {"b": {"c": 1}}, "d": None, "e": [{"f": "x"}]}) == {
        "a.b.c": "1",
        "d": "",
        "e.f": "x",
    }


def test_utf16_bytes_follow_declaration() -> None:
    content = '<?xml version="1.0" encoding="UTF-16"?><r><a>é</a></r>'.encode("utf-16")
    assert parse_markup(content, "utf16.xml").rows == [{"a": "é"}]


def test_coordinator_reads_utf16_xml() -> None:
    content = '<?xml version="1.0" encoding="UTF-16"?><r><a>x</a></r>'.encode("utf-16")
    ds = parse_file(SourceFile("utf16.xml", content), "xml")
    assert ds.rows == [{"a": "x"}]
