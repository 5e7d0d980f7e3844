"""Parseur XML : arbre converti en objets puis aplati en notation pointée."""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from collections import Counter
from typing import Any

from veridiff.errors import ParseError
from veridiff.schema import Dataset, Row

logger = logging.getLogger(__name__)

MODE_FLATTEN = "flatten"
MODE_RECORDS = "records"


def local_name(tag: str) -> str:
    """Retire l'URI d'espace de noms ({uri}tag → tag)."""
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def element_to_obj(el: ET.Element) -> Any:
    """
    Convertit un élément en dict/str.

    Attributs en ``@nom``, balises répétées en liste, texte mixte en ``#text``.
    Un élément ne contenant que du texte donne ce texte ; un élément vide donne "".
    """
    obj: dict[str, Any] = {f"@{local_name(k)}": v for k, v in el.attrib.items()}
    has_text = False

    nodes: list[Any] = [el.text] if el.text else []
    for child in el:
        nodes.append(child)
        if child.tail:
            nodes.append(child.tail)

    for node in nodes:
        if isinstance(node, str):
            text = node.strip()
            if not text:
                continue
            has_text = True
            if not obj:
                return text
            obj["#text"] = text
            continue
        name = local_name(node.tag)
        child_obj = element_to_obj(node)
        if name in obj:
            if not isinstance(obj[name], list):
                obj[name] = [obj[name]]
            obj[name].append(child_obj)
        else:
            obj[name] = child_obj

    if not obj and not has_text:
        return ""
    return obj


def flatten_object(obj: dict[str, Any], prefix: str = "") -> Row:
    """
    Aplatit un objet imbriqué en clés pointées.

    Les listes (balises répétées) sont encodées en JSON compact : une seule ligne
    par fichier, ce qui perd la structure des répétitions.
    """
    flat: Row = {}
    for key, value in obj.items():
        new_key = f"{prefix}.{key}" if prefix else key
        if value is None:
            flat[new_key] = ""
        elif isinstance(value, list):
            if len(value) == 1 and isinstance(value[0], dict):
                flat.update(flatten_object(value[0], new_key))
            else:
                flat[new_key] = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        elif isinstance(value, dict):
            flat.update(flatten_object(value, new_key))
        else:
            flat[new_key] = str(value)
    return flat


def _element_to_row(el: ET.Element) -> Row:
    obj = element_to_obj(el)
    if isinstance(obj, dict):
        return flatten_object(obj)
    return {local_name(el.tag): obj}


def load_xml_document(content: str | bytes, file_name: str = "") -> ET.Element:
    """
    Lit un document XML et retourne sa racine.

    Passé en octets, l'encodage suit le BOM et la déclaration XML du document.

    Raises:
        ParseError: Si le XML est invalide.
    """
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise ParseError(f"XML invalide: {e}", file_name) from e


def parse_markup(content: str | bytes, file_name: str = "", *, mode: str = MODE_FLATTEN) -> Dataset:
    """
    Parse un document XML.

    Passé en octets, l'encodage suit le BOM et la déclaration XML du document.

    Modes :
        - ``flatten`` : une seule ligne pour tout le document (clés pointées).
        - ``records`` : une ligne par élément du premier groupe de balises répétées
          sous la racine ; retombe sur ``flatten`` si aucune balise ne se répète.

    Raises:
        ParseError: Si le XML est invalide ou le mode inconnu.
    """
    if mode not in (MODE_FLATTEN, MODE_RECORDS):
        raise ParseError(f"Mode XML inconnu: {mode!r}", file_name)
    root = load_xml_document(content, file_name)

    if mode == MODE_RECORDS:
        counts = Counter(local_name(child.tag) for child in root)
        repeated = next((local_name(c.tag) for c in root if counts[local_name(c.tag)] > 1), None)
        if repeated is not None:
            rows = [_element_to_row(c) for c in root if local_name(c.tag) == repeated]
            logger.debug("%s: %d enregistrements <%s>", file_name, len(rows), repeated)
            return Dataset(rows=rows, file_name=file_name, format="xml")
        logger.debug("%s: aucune balise répétée sous la racine, aplatissement", file_name)

    return Dataset(rows=[_element_to_row(root)], file_name=file_name, format="xml")
