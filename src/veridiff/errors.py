"""Taxonomie des erreurs du moteur de comparaison."""

from __future__ import annotations

from typing import TYPE_CHECKING

from veridiff.config import VeriDiffError

if TYPE_CHECKING:
    from veridiff.schema import WorkbookInfo


class ParseError(VeriDiffError):
    """Contenu illisible ou mal formé (syntaxe invalide, structure inattendue)."""

    def __init__(self, message: str, file_name: str = "") -> None:
        super().__init__(f"{message} ({file_name})" if file_name else message)
        self.file_name = file_name


class ValidationError(VeriDiffError):
    """Fichier décodé mais sans données exploitables (vide, sans en-têtes)."""

    def __init__(self, message: str, file_name: str = "") -> None:
        super().__init__(message)
        self.file_name = file_name


class CombinationError(VeriDiffError):
    """Les formats détectés ne correspondent pas à la combinaison demandée."""

    def __init__(self, message: str, expected: str = "", detected: str = "") -> None:
        super().__init__(message)
        self.expected = expected
        self.detected = detected


class ComparisonError(VeriDiffError):
    """Échec du point d'entrée de comparaison, préfixé par l'étape concernée."""

    def __init__(self, stage: str, cause: BaseException | str) -> None:
        super().__init__(f"{stage}: {cause}")
        self.stage = stage


class ComparisonCancelled(VeriDiffError):
    """Comparaison interrompue par un jeton d'annulation."""


class SheetSelectionRequired(VeriDiffError):
    """
    Le classeur contient plusieurs feuilles visibles avec données.

    Ce n'est pas un échec : l'appelant doit choisir une feuille dans
    ``workbook.sheets`` puis relancer l'extraction avec ce nom.
    """

    def __init__(self, workbook: WorkbookInfo) -> None:
        names = ", ".join(s.name for s in workbook.visible_data_sheets)
        super().__init__(f"Choix de feuille requis pour {workbook.file_name}: {names}")
        self.workbook = workbook
