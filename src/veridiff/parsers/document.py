"""Texte extrait de documents (PDF) : heuristiques pour numéros de facture, montants et dates."""

from __future__ import annotations

import io
import logging
import re

import pdfplumber

from veridiff.errors import ParseError
from veridiff.schema import Dataset, Row

logger = logging.getLogger(__name__)

MAX_AMOUNTS = 10
MAX_DATES = 5
MAX_LINE_INDEX = 15
LINE_PREVIEW = 80

INVOICE_RE = re.compile(r"(?:invoice|inv)[#\s]*:?\s*([a-z0-9\-]+)", re.IGNORECASE)
TOTAL_RE = re.compile(r"(?:total|amount due|balance)[:\s]*\$?(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)", re.IGNORECASE)
AMOUNT_RE = re.compile(r"\$?(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)")
DATE_RE = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}")
IMPORTANT_RE = re.compile(r"invoice|bill|total|amount|due|tax|subtotal|payment|date", re.IGNORECASE)


def extract_document_fields(text: str, document_type: str = "general", page_count: int = 1) -> Row:
    """
    Extrait des champs synthétiques d'un texte non structuré.

    Clés produites : ``document.type``, ``document.pageCount``, ``invoice.number``,
    ``total.amount``, ``amount.N`` (N < 10), ``date.N`` (N < 5) et ``line.I`` pour les
    lignes significatives d'indice < 15. Un texte vide ne donne que les clés ``document.*``.
    """
    fields: Row = {"document.type": document_type, "document.pageCount": str(page_count)}
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    amount_count = 0
    date_count = 0

    for index, line in enumerate(lines):
        invoice = INVOICE_RE.search(line)
        if invoice and "invoice.number" not in fields:
            fields["invoice.number"] = invoice.group(1)

        total = TOTAL_RE.search(line)
        if total and "total.amount" not in fields:
            fields["total.amount"] = total.group(1).replace(",", "")

        for m in AMOUNT_RE.finditer(line):
            if amount_count >= MAX_AMOUNTS:
                break
            clean = m.group(0).replace("$", "").replace(",", "")
            if float(clean) >= 1:
                fields[f"amount.{amount_count}"] = clean
                amount_count += 1

        for m in DATE_RE.finditer(line):
            if date_count >= MAX_DATES:
                break
            fields[f"date.{date_count}"] = m.group(0)
            date_count += 1

        if index < MAX_LINE_INDEX and IMPORTANT_RE.search(line):
            fields[f"line.{index}"] = line[:LINE_PREVIEW]

    return fields


def parse_document_text(
    text: str,
    file_name: str = "",
    *,
    document_type: str = "general",
    page_count: int = 1,
) -> Dataset:
    """Dataset d'une seule ligne à partir d'un texte déjà extrait."""
    row = extract_document_fields(text, document_type, page_count)
    return Dataset(rows=[row], file_name=file_name, format="pdf")


def extract_pdf_text(content: bytes, file_name: str = "") -> tuple[str, int]:
    """
    Extrait le texte d'un PDF, page par page.

    Returns:
        (texte complet, nombre de pages)

    Raises:
        ParseError: Si le PDF est illisible.
    """
    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            pages = [(page.extract_text() or "").strip() for page in pdf.pages]
    except Exception as e:
        raise ParseError(f"Impossible d'extraire le texte du PDF: {e}", file_name) from e
    return "\n".join(pages).strip(), len(pages)


def parse_pdf(content: bytes, file_name: str = "", *, document_type: str = "general") -> Dataset:
    text, page_count = extract_pdf_text(content, file_name)
    if not text:
        logger.warning("%s: aucun texte extrait (PDF scanné ?)", file_name)
    return parse_document_text(text, file_name, document_type=document_type, page_count=page_count)
