"""Tests du parseur JSON."""

import pytest

from veridiff.errors import ParseError
from veridiff.parsers.structured import parse_structured


def test_array_of_objects() -> None:
    ds = parse_structured('[{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]', "data.json")
    assert ds.format == "json"
    assert ds.headers == ["id", "name"]
    assert ds.rows[1] == {"id": 2, "name": "b"}


def test_empty_array() -> None:
    assert parse_structured("[]").is_empty


def test_object_root_rejected() -> None:
    with pytest.raises(ParseError, match="tableau d'objets"):
        parse_structured('{"data": [{"id": 1}]}', "data.json")


def test_object_root_unwrapped() -> None:
    ds = parse_structured('{"meta": {"n": 1}, "data": [{"id": 1}]}', unwrap=True)
    assert ds.rows == [{"id": 1}]


def test_non_object_element() -> None:
    with pytest.raises(ParseError, match="Élément 1"):
        parse_structured('[{"id": 1}, 2]')


def test_invalid_json() -> None:
    with pytest.raises(ParseError, match="JSON invalide") as exc:
        parse_structured("[{", "broken.json")
    assert exc.value.file_name == "broken.json"
    assert "broken.json" in str(exc.value)
