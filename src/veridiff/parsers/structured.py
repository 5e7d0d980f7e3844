"""Parseur JSON : un tableau d'objets, un objet par ligne."""

from __future__ import annotations

import json
import logging
from typing import Any

from veridiff.errors import ParseError
from veridiff.schema import Dataset


logger = logging.getLogger(__name__)


def load_json_document(text: str, file_name: str = "") -> Any:
    """
    Lit un document JSON quelconque (objet, tableau ou scalaire).

    Raises:
        ParseError: Texte vide ou JSON invalide.
    """
    if not text.strip():
        raise ParseError("Fichier JSON vide", file_name)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"JSON invalide: {e}", file_name) from e


def parse_structured(text: str, file_name: str = "", *, unwrap: bool = False) -> Dataset:
    """
    Parse un document JSON dont la racine est un tableau d'objets.

    Args:
        text: Contenu décodé.
        file_name: Nom du fichier.
        unwrap: Accepter un objet racine enveloppant le tableau (ex. ``{"data": [...]}``) ;
            la première propriété de type tableau est utilisée.

    Raises:
        ParseError: JSON invalide, racine qui n'est pas un tableau, élément qui n'est pas un objet.
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"JSON invalide: {e}", file_name) from e

    if isinstance(parsed, dict) and unwrap:
        wrapped = next((v for v in parsed.values() if isinstance(v, list)), None)
        if wrapped is not None:
            parsed = wrapped

    if not isinstance(parsed, list):
        raise ParseError("Le JSON doit être un tableau d'objets", file_name)

    for i, item in enumerate(parsed):
        if not isinstance(item, dict):
            raise ParseError(
                f"Élément {i} du tableau JSON n'est pas un objet ({type(item).__name__})", file_name
            )

    logger.debug("%s: %d objets JSON", file_name, len(parsed))
    return Dataset(rows=[dict(item) for item in parsed], file_name=file_name, format="json")
