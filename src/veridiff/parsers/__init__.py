"""Parseurs de formats : octets ou texte → Dataset."""

from veridiff.parsers.delimited import parse_delimited
from veridiff.parsers.document import parse_document_text, parse_pdf
from veridiff.parsers.markup import load_xml_document, parse_markup
from veridiff.parsers.spreadsheet import extract_sheet, inspect_workbook, parse_spreadsheet
from veridiff.parsers.structured import load_json_document, parse_structured

__all__ = [
    "parse_spreadsheet",
    "inspect_workbook",
    "extract_sheet",
    "parse_delimited",
    "parse_markup",
    "load_xml_document",
    "parse_structured",
    "load_json_document",
    "parse_document_text",
    "parse_pdf",
]
