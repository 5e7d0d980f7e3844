"""Coordination multi-formats : détection du type, validation de la combinaison, parsing des deux fichiers."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from veridiff.config import HeaderMapping, VeriDiffError
from veridiff.documents import DocumentDiff, compare_documents
from veridiff.engine import Alignment, CancelToken, ProgressCallback, compare
from veridiff.errors import (
    CombinationError,
    ComparisonCancelled,
    ComparisonError,
    ParseError,
    SheetSelectionRequired,
    ValidationError,
)
from veridiff.matching.mapper import map_headers
from veridiff.parsers import (
    load_json_document,
    load_xml_document,
    parse_delimited,
    parse_markup,
    parse_pdf,
    parse_spreadsheet,
    parse_structured,
)
from veridiff.schema import Dataset, ResultAggregate, SourceFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormatSpec:
    """Format connu : extensions et types MIME reconnus."""

    key: str
    label: str
    extensions: tuple[str, ...]
    mime_types: tuple[str, ...]


@dataclass(frozen=True)
class Combination:
    """Paire de formats comparables."""

    key: str
    formats: tuple[str, str]
    bidirectional: bool
    label: str


FORMATS: dict[str, FormatSpec] = {
    "excel": FormatSpec(
        "excel",
        "Excel",
        (".xlsx", ".xls", ".xlsm", ".ods"),
        (
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "application/vnd.ms-excel",
            "application/vnd.ms-excel.sheet.macroenabled.12",
            "application/vnd.oasis.opendocument.spreadsheet",
        ),
    ),
    "csv": FormatSpec("csv", "CSV", (".csv", ".tsv", ".txt"), ("text/csv", "application/csv", "text/tab-separated-values")),
    "json": FormatSpec("json", "JSON", (".json",), ("application/json",)),
    "xml": FormatSpec("xml", "XML", (".xml",), ("application/xml", "text/xml")),
    "pdf": FormatSpec("pdf", "PDF", (".pdf",), ("application/pdf",)),
}

COMBINATIONS: dict[str, Combination] = {
    "excel_csv": Combination("excel_csv", ("excel", "csv"), True, "Excel ↔ CSV"),
    "excel": Combination("excel", ("excel", "excel"), False, "Excel ↔ Excel"),
    "csv": Combination("csv", ("csv", "csv"), False, "CSV ↔ CSV"),
    "json": Combination("json", ("json", "json"), False, "JSON ↔ JSON"),
    "xml": Combination("xml", ("xml", "xml"), False, "XML ↔ XML"),
    "pdf": Combination("pdf", ("pdf", "pdf"), False, "PDF ↔ PDF"),
}

UNKNOWN = "unknown"

# Combinaisons acceptant la comparaison structurelle (arbres)
DOCUMENT_COMBINATIONS = ("json", "xml")


@dataclass(frozen=True)
class Detection:
    """Type détecté et niveau de confiance (high, medium, low, none)."""

    type: str
    label: str
    confidence: str


@dataclass
class CombinationCheck:
    valid: bool
    error: str | None = None
    file1: Detection | None = None
    file2: Detection | None = None
    combination: Combination | None = None


@dataclass
class ParseOptions:
    """Options de parsing par fichier (rôle 1 et rôle 2, après réordonnancement)."""

    sheet1: str | None = None
    sheet2: str | None = None
    delimiter: str | None = None
    markup_mode: str = "flatten"
    json_unwrap: bool = False
    document_type1: str = "document1"
    document_type2: str = "document2"


@dataclass
class ParsedPair:
    dataset1: Dataset
    dataset2: Dataset
    combination: Combination
    swapped: bool = False


@dataclass
class MappingSuggestion:
    mappings: list[HeaderMapping]
    headers1: list[str]
    headers2: list[str]
    sample1: list[dict] = field(default_factory=list)
    sample2: list[dict] = field(default_factory=list)


def detect_type(file: SourceFile) -> Detection:
    """
    Détecte le format d'un fichier.

    L'extension prime (confiance ``high`` si le type MIME concorde, sinon ``medium``) ;
    à défaut le type MIME seul donne une confiance ``low`` ; sinon ``unknown``.
    """
    name = file.name.lower()
    mime = (file.mime_type or "").lower().split(";")[0].strip()
    for spec in FORMATS.values():
        if any(name.endswith(ext) for ext in spec.extensions):
            confidence = "high" if mime in spec.mime_types else "medium"
            return Detection(spec.key, spec.label, confidence)
    for spec in FORMATS.values():
        if mime and mime in spec.mime_types:
            return Detection(spec.key, spec.label, "low")
    return Detection(UNKNOWN, "Unknown", "none")


def supported_combinations() -> list[Combination]:
    return list(COMBINATIONS.values())


def validate_combination(file1: SourceFile, file2: SourceFile, combination: str) -> CombinationCheck:
    """
    Vérifie que les formats détectés correspondent exactement à la combinaison,
    quel que soit l'ordre des fichiers.
    """
    d1, d2 = detect_type(file1), detect_type(file2)
    logger.debug("%s détecté %s (%s)", file1.name, d1.type, d1.confidence)
    logger.debug("%s détecté %s (%s)", file2.name, d2.type, d2.confidence)

    combo = COMBINATIONS.get(combination)
    if combo is None:
        return CombinationCheck(
            valid=False,
            error=f"Combinaison non supportée: {combination!r}. Valides: {sorted(COMBINATIONS)}",
            file1=d1,
            file2=d2,
        )

    if sorted(combo.formats) != sorted((d1.type, d2.type)):
        return CombinationCheck(
            valid=False,
            error=f"Combinaison de fichiers invalide. Attendu: {combo.label}. Reçu: {d1.label} + {d2.label}",
            file1=d1,
            file2=d2,
            combination=combo,
        )
    return CombinationCheck(valid=True, file1=d1, file2=d2, combination=combo)


def _require_combination(file1: SourceFile, file2: SourceFile, combination: str) -> CombinationCheck:
    check = validate_combination(file1, file2, combination)
    if not check.valid:
        expected = check.combination.label if check.combination else combination
        detected = f"{check.file1.label} + {check.file2.label}" if check.file1 and check.file2 else ""
        raise CombinationError(check.error or "Combinaison invalide", expected=expected, detected=detected)
    return check


def infer_combination(file1: SourceFile, file2: SourceFile) -> str:
    """Clé de combinaison correspondant aux formats détectés des deux fichiers."""
    types = sorted((detect_type(file1).type, detect_type(file2).type))
    for combo in COMBINATIONS.values():
        if sorted(combo.formats) == types:
            return combo.key
    raise CombinationError(
        f"Aucune combinaison supportée pour {types[0]} + {types[1]}",
        expected=", ".join(sorted(COMBINATIONS)),
        detected=" + ".join(types),
    )


def parse_file(
    file: SourceFile,
    fmt: str,
    options: ParseOptions | None = None,
    *,
    role: int = 1,
) -> Dataset:
    """Parse un fichier avec le parseur du format donné."""
    options = options or ParseOptions()
    if fmt == "excel":
        sheet = options.sheet1 if role == 1 else options.sheet2
        return parse_spreadsheet(file.content, file.name, sheet)
    if fmt == "csv":
        return parse_delimited(file.text(), file.name, delimiter=options.delimiter)
    if fmt == "json":
        return parse_structured(file.text(), file.name, unwrap=options.json_unwrap)
    if fmt == "xml":
        return parse_markup(file.content, file.name, mode=options.markup_mode)
    if fmt == "pdf":
        doc_type = options.document_type1 if role == 1 else options.document_type2
        return parse_pdf(file.content, file.name, document_type=doc_type)
    raise ParseError(f"Format non supporté: {fmt}", file.name)


def _parse_role(file: SourceFile, fmt: str, options: ParseOptions, role: int) -> Dataset:
    label = FORMATS[fmt].label if fmt in FORMATS else fmt
    try:
        dataset = parse_file(file, fmt, options, role=role)
    except (SheetSelectionRequired, ParseError):
        raise
    except Exception as e:
        raise ParseError(f"Échec du parsing du fichier {label}: {e}", file.name) from e
    logger.debug("%s (%s): %d lignes", file.name, label, len(dataset))
    return dataset


def _check_dataset(dataset: Dataset, role: int, file: SourceFile) -> None:
    if dataset.is_empty:
        raise ValidationError(f"Le fichier {role} ({file.name}) ne contient aucune ligne de données", file.name)
    if not dataset.headers:
        raise ValidationError(f"Le fichier {role} ({file.name}) ne contient aucun en-tête", file.name)


def parse_flexibly(
    file1: SourceFile,
    file2: SourceFile,
    combination: str,
    options: ParseOptions | None = None,
) -> ParsedPair:
    """
    Valide la combinaison puis parse les deux fichiers en parallèle.

    Pour une combinaison bidirectionnelle, les fichiers sont réordonnés afin que le
    premier format déclaré (ex. Excel pour ``excel_csv``) joue le rôle de fichier 1.

    Raises:
        CombinationError: Formats détectés différents de la combinaison attendue.
        ParseError: Échec de parsing ; celui du fichier 1 si les deux échouent.
        ValidationError: Fichier sans lignes ou sans en-têtes.
        SheetSelectionRequired: Classeur à plusieurs feuilles sans feuille choisie.
    """
    options = options or ParseOptions()
    check = _require_combination(file1, file2, combination)
    combo: Combination = check.combination  # type: ignore[assignment]
    swapped = combo.formats[0] != combo.formats[1] and check.file1.type != combo.formats[0]  # type: ignore[union-attr]
    first, second = (file2, file1) if swapped else (file1, file2)
    if swapped:
        logger.debug("Fichiers réordonnés: %s devient le fichier 1", first.name)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="veridiff-parse") as pool:
        futures = [
            pool.submit(_parse_role, first, combo.formats[0], options, 1),
            pool.submit(_parse_role, second, combo.formats[1], options, 2),
        ]
        wait(futures)
        # Si les deux échouent, l'erreur du fichier 1 l'emporte
        dataset1, dataset2 = (f.result() for f in futures)

    _check_dataset(dataset1, 1, first)
    _check_dataset(dataset2, 2, second)
    return ParsedPair(dataset1=dataset1, dataset2=dataset2, combination=combo, swapped=swapped)


def suggest_mapping(
    file1: SourceFile,
    file2: SourceFile,
    combination: str,
    options: ParseOptions | None = None,
    *,
    method: str = "dice",
    threshold: float = 0.5,
) -> MappingSuggestion:
    """Parse les deux fichiers et propose un mapping d'en-têtes à faire valider."""
    pair = parse_flexibly(file1, file2, combination, options)
    headers1, headers2 = pair.dataset1.headers, pair.dataset2.headers
    return MappingSuggestion(
        mappings=map_headers(headers1, headers2, method=method, threshold=threshold),
        headers1=headers1,
        headers2=headers2,
        sample1=pair.dataset1.sample,
        sample2=pair.dataset2.sample,
    )


def compare_files(
    file1: SourceFile,
    file2: SourceFile,
    combination: str,
    mapping: Sequence[HeaderMapping] | None = None,
    *,
    options: ParseOptions | None = None,
    alignment: Alignment | str = Alignment.POSITIONAL,
    key_field: str | None = None,
    similarity_method: str = "dice",
    cancel_token: CancelToken | None = None,
    on_progress: ProgressCallback | None = None,
    on_complete: Callable[[ResultAggregate], None] | None = None,
) -> ResultAggregate:
    """
    Point d'entrée complet : validation, parsing, mapping, comparaison.

    Sans ``mapping``, le mapping proposé par ``map_headers`` est utilisé.
    ``on_complete`` reçoit l'agrégat final.

    Raises:
        ComparisonError: Toute erreur, préfixée par l'étape (ex. "Échec de la comparaison Excel ↔ CSV").
        SheetSelectionRequired: Choix de feuille nécessaire (non enveloppée).
        ComparisonCancelled: Annulation demandée (non enveloppée).
    """
    combo = COMBINATIONS.get(combination)
    stage = f"Échec de la comparaison {combo.label if combo else combination}"
    try:
        pair = parse_flexibly(file1, file2, combination, options)
        if mapping is None:
            mapping = map_headers(pair.dataset1.headers, pair.dataset2.headers, method=similarity_method)
        aggregate = compare(
            pair.dataset1,
            pair.dataset2,
            mapping,
            alignment=alignment,
            key_field=key_field,
            cancel_token=cancel_token,
            on_progress=on_progress,
        )
    except (SheetSelectionRequired, ComparisonCancelled):
        raise
    except VeriDiffError as e:
        raise ComparisonError(stage, e) from e
    except Exception as e:
        logger.exception("Erreur inattendue pendant la comparaison")
        raise ComparisonError(stage, e) from e

    logger.info(
        "%s ↔ %s: %d enregistrements, %d différences",
        pair.dataset1.file_name,
        pair.dataset2.file_name,
        aggregate.total_records,
        aggregate.differences_found,
    )
    if on_complete is not None:
        on_complete(aggregate)
    return aggregate


def load_document(file: SourceFile, fmt: str) -> Any:
    """Lit un fichier JSON ou XML comme arbre (valeur JSON ou racine XML)."""
    if fmt == "json":
        return load_json_document(file.text(), file.name)
    if fmt == "xml":
        return load_xml_document(file.content, file.name)
    raise ParseError(f"Comparaison structurelle non disponible pour le format {fmt}", file.name)


def compare_document_files(
    file1: SourceFile,
    file2: SourceFile,
    combination: str,
    *,
    on_complete: Callable[[DocumentDiff], None] | None = None,
) -> DocumentDiff:
    """
    Comparaison structurelle de deux documents JSON ou XML : changements par chemin.

    Raises:
        ComparisonError: Toute erreur, préfixée par l'étape (ex. "Échec de la comparaison JSON ↔ JSON").
    """
    combo = COMBINATIONS.get(combination)
    stage = f"Échec de la comparaison {combo.label if combo else combination}"
    try:
        if combination not in DOCUMENT_COMBINATIONS:
            raise CombinationError(
                f"Comparaison structurelle disponible pour {', '.join(DOCUMENT_COMBINATIONS)} uniquement",
                expected=", ".join(DOCUMENT_COMBINATIONS),
                detected=combination,
            )
        _require_combination(file1, file2, combination)
        fmt = COMBINATIONS[combination].formats[0]
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="veridiff-parse") as pool:
            futures = [pool.submit(load_document, f, fmt) for f in (file1, file2)]
            wait(futures)
            doc1, doc2 = (f.result() for f in futures)
        diff = compare_documents(doc1, doc2)
    except VeriDiffError as e:
        raise ComparisonError(stage, e) from e
    except Exception as e:
        logger.exception("Erreur inattendue pendant la comparaison structurelle")
        raise ComparisonError(stage, e) from e

    logger.info("%s ↔ %s: %d changements", file1.name, file2.name, diff.differences_found)
    if on_complete is not None:
        on_complete(diff)
    return diff
