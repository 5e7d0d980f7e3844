"""
Comparaison structurelle de documents JSON et XML.

Contrairement au moteur de comparaison ligne à ligne, on compare ici deux arbres
et on relève chaque changement par chemin pointé :

- JSON : ``added``, ``removed``, ``modified`` (clés d'objet et indices de tableau) ;
- XML : ``added``, ``removed``, ``modified`` (nom d'élément, texte direct) et
  ``attribute_changed`` ; les enfants sont appariés par position.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any

from veridiff.errors import ValidationError
from veridiff.parsers.markup import local_name

CHANGE_ADDED = "added"
CHANGE_REMOVED = "removed"
CHANGE_MODIFIED = "modified"
CHANGE_ATTRIBUTE = "attribute_changed"

ROOT_PATH = "root"


@dataclass(frozen=True)
class DocumentChange:
    """Un changement entre deux documents, repéré par son chemin."""

    path: str
    type: str
    old_value: Any = None
    new_value: Any = None
    element_name: str | None = None
    attribute_name: str | None = None

    @property
    def level(self) -> int:
        """Profondeur du chemin (0 pour une clé de premier niveau)."""
        return self.path.count(".")

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"path": self.path, "type": self.type, "level": self.level}
        if self.type != CHANGE_ADDED:
            d["oldValue"] = self.old_value
        if self.type != CHANGE_REMOVED:
            d["newValue"] = self.new_value
        if self.element_name is not None:
            d["elementName"] = self.element_name
        if self.attribute_name is not None:
            d["attributeName"] = self.attribute_name
        return d


@dataclass
class DocumentDiff:
    """Résultat d'une comparaison structurelle."""

    kind: str
    changes: list[DocumentChange] = field(default_factory=list)
    total1: int = 0
    total2: int = 0

    @property
    def total_records(self) -> int:
        return max(self.total1, self.total2)

    @property
    def differences_found(self) -> int:
        return len(self.changes)

    @property
    def matches_found(self) -> int:
        return max(0, self.total_records - self.differences_found)

    @property
    def element_changes(self) -> list[DocumentChange]:
        return [c for c in self.changes if c.type != CHANGE_ATTRIBUTE]

    @property
    def attribute_changes(self) -> list[DocumentChange]:
        return [c for c in self.changes if c.type == CHANGE_ATTRIBUTE]

    def count(self, change_type: str) -> int:
        return sum(1 for c in self.changes if c.type == change_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "comparison_type": f"{self.kind}_document",
            "total_records": self.total_records,
            "differences_found": self.differences_found,
            "matches_found": self.matches_found,
            "file1_count": self.total1,
            "file2_count": self.total2,
            "added_count": self.count(CHANGE_ADDED),
            "removed_count": self.count(CHANGE_REMOVED),
            "modified_count": self.count(CHANGE_MODIFIED),
            "attribute_changes_count": self.count(CHANGE_ATTRIBUTE),
            "changes": [c.to_dict() for c in self.changes],
        }


# --- JSON -------------------------------------------------------------------


def _value_kind(value: Any) -> str:
    # bool avant int : True n'est pas un nombre
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def _members(value: dict | list) -> dict[str, Any]:
    if isinstance(value, dict):
        return {str(k): v for k, v in value.items()}
    return {str(i): v for i, v in enumerate(value)}


def diff_objects(obj1: Any, obj2: Any, path: str = "") -> list[DocumentChange]:
    """
    Changements entre deux valeurs JSON.

    Deux valeurs de nature différente (nombre contre texte, objet contre null...)
    donnent un seul ``modified``. Objets et tableaux sont parcourus clé par clé,
    les clés du premier document d'abord ; un tableau est indexé par position.
    """
    here = path or ROOT_PATH
    kind1, kind2 = _value_kind(obj1), _value_kind(obj2)
    if kind1 != kind2:
        return [DocumentChange(here, CHANGE_MODIFIED, obj1, obj2)]
    if kind1 != "object" or obj1 is None or obj2 is None:
        if obj1 == obj2:
            return []
        return [DocumentChange(here, CHANGE_MODIFIED, obj1, obj2)]

    members1, members2 = _members(obj1), _members(obj2)
    changes: list[DocumentChange] = []
    for key in list(members1) + [k for k in members2 if k not in members1]:
        child = f"{path}.{key}" if path else key
        if key not in members1:
            changes.append(DocumentChange(child, CHANGE_ADDED, new_value=members2[key]))
        elif key not in members2:
            changes.append(DocumentChange(child, CHANGE_REMOVED, old_value=members1[key]))
        else:
            changes.extend(diff_objects(members1[key], members2[key], child))
    return changes


def count_properties(obj: Any) -> int:
    """Nombre de valeurs feuilles ; un objet ou tableau vide compte pour 0."""
    if isinstance(obj, (dict, list)):
        return sum(count_properties(v) for v in _members(obj).values())
    return 1


# --- XML --------------------------------------------------------------------


def direct_text(el: ET.Element) -> str:
    """Texte propre à l'élément (hors enfants), fragments joints par un espace."""
    parts = [el.text or ""] + [child.tail or "" for child in el]
    return " ".join(p.strip() for p in parts if p.strip())


def diff_elements(el1: ET.Element | None, el2: ET.Element | None, path: str = ROOT_PATH) -> list[DocumentChange]:
    """Changements entre deux éléments XML et leurs descendants (enfants appariés par position)."""
    if el1 is None and el2 is None:
        return []
    if el1 is None:
        name = local_name(el2.tag)  # type: ignore[union-attr]
        return [DocumentChange(path, CHANGE_ADDED, new_value=name, element_name=name)]
    if el2 is None:
        name = local_name(el1.tag)
        return [DocumentChange(path, CHANGE_REMOVED, old_value=name, element_name=name)]

    name1, name2 = local_name(el1.tag), local_name(el2.tag)
    changes: list[DocumentChange] = []
    if name1 != name2:
        changes.append(DocumentChange(path, CHANGE_MODIFIED, name1, name2, element_name=name1))

    text1, text2 = direct_text(el1), direct_text(el2)
    if text1 != text2:
        changes.append(DocumentChange(f"{path}.text", CHANGE_MODIFIED, text1, text2, element_name=name1))

    for key in list(el1.attrib) + [k for k in el2.attrib if k not in el1.attrib]:
        val1, val2 = el1.get(key), el2.get(key)
        if val1 != val2:
            attr = local_name(key)
            changes.append(
                DocumentChange(
                    f"{path}@{attr}",
                    CHANGE_ATTRIBUTE,
                    val1,
                    val2,
                    element_name=name1,
                    attribute_name=attr,
                )
            )

    children1, children2 = list(el1), list(el2)
    for i in range(max(len(children1), len(children2))):
        child1 = children1[i] if i < len(children1) else None
        child2 = children2[i] if i < len(children2) else None
        tag = child1.tag if child1 is not None else child2.tag  # type: ignore[union-attr]
        changes.extend(diff_elements(child1, child2, f"{path}.{local_name(tag)}[{i}]"))
    return changes


def count_elements(el: ET.Element) -> int:
    return 1 + sum(count_elements(child) for child in el)


def compare_documents(doc1: Any, doc2: Any) -> DocumentDiff:
    """
    Compare deux documents déjà lus : deux racines XML (``ET.Element``) ou deux valeurs JSON.

    ``total_records`` vaut le plus grand des deux décomptes (éléments XML ou
    valeurs feuilles JSON) ; ``matches_found`` en retranche le nombre de changements.

    Raises:
        ValidationError: Un document XML comparé à un document JSON.
    """
    is_xml1, is_xml2 = isinstance(doc1, ET.Element), isinstance(doc2, ET.Element)
    if is_xml1 and is_xml2:
        return DocumentDiff("xml", diff_elements(doc1, doc2), count_elements(doc1), count_elements(doc2))
    if is_xml1 or is_xml2:
        raise ValidationError("Impossible de comparer un document XML à un document JSON")
    return DocumentDiff("json", diff_objects(doc1, doc2), count_properties(doc1), count_properties(doc2))
