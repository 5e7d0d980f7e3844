"""Interface en ligne de commande VeriDiff."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from veridiff import __version__
from veridiff.config import CompareConfig, ConfigFileError, HeaderMapping, VeriDiffError
from veridiff.coordinator import (
    COMBINATIONS,
    DOCUMENT_COMBINATIONS,
    ParseOptions,
    compare_document_files,
    compare_files,
    detect_type,
    infer_combination,
    parse_flexibly,
)
from veridiff.engine import Alignment, compare
from veridiff.errors import SheetSelectionRequired
from veridiff.export import export_document_diff, export_results, print_document_report, print_report_console
from veridiff.log import setup_logging
from veridiff.matching.mapper import detect_amount_fields, duplicate_targets, map_headers
from veridiff.parsers.spreadsheet import inspect_workbook
from veridiff.schema import SourceFile

logger = logging.getLogger(__name__)


def _print_sheet_choice(err: SheetSelectionRequired) -> int:
    print(str(err))
    print("Feuilles visibles avec données (utiliser --sheet1/--sheet2):")
    for s in err.workbook.visible_data_sheets:
        print(f"  - {s.name} ({s.row_count} lignes) {', '.join(s.headers)}")
    return 2


def _print_mapping(mappings: list[HeaderMapping]) -> None:
    for m in mappings:
        target = m.target_field if m.is_mapped else "-"
        line = f"  {m.source_field} -> {target} ({m.confidence:.2f})"
        rule = m.tolerance_rule
        if rule is not None:
            line += f" tolérance {rule.type} {rule.value:g}"
        print(line)
    dups = duplicate_targets(mappings)
    for target, sources in dups.items():
        print(f"Avertissement: {target!r} est la cible de plusieurs champs: {', '.join(sources)}")


def _combination(file1: SourceFile, file2: SourceFile, combination: str | None) -> str:
    return combination or infer_combination(file1, file2)


def load_mapping_file(path: str | Path) -> list[HeaderMapping]:
    """
    Charge un mapping écrit par ``veridiff map`` : ``{"mappings": [...]}`` ou une liste.

    Raises:
        ConfigFileError: Fichier absent ou JSON invalide.
        ConfigError: Entrée de mapping invalide.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigFileError(f"Fichier de mapping introuvable: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
    entries = data.get("mappings") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ConfigFileError(f"Fichier de mapping invalide: {path} doit contenir une liste de mappings")
    return [HeaderMapping.from_dict(m) for m in entries]


def cmd_list_sheets(filepath: str) -> int:
    """Liste les feuilles d'un classeur (visibilité, lignes, en-têtes)."""
    file = SourceFile.from_path(filepath)
    info = inspect_workbook(file.content, file.name)
    print(f"Feuilles dans {filepath} (défaut: {info.default_sheet}):")
    for s in info.sheets:
        flags = []
        if s.is_hidden:
            flags.append("masquée")
        if not s.has_data:
            flags.append("vide")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"  - {s.name}: {s.row_count} lignes{suffix}  {', '.join(s.headers)}")
    return 0


def cmd_detect(paths: list[str]) -> int:
    """Affiche le format détecté de chaque fichier."""
    for p in paths:
        d = detect_type(SourceFile.from_path(p))
        print(f"{p}: {d.type} ({d.label}, confiance {d.confidence})")
    return 0


def cmd_map(
    file1: str,
    file2: str,
    *,
    combination: str | None = None,
    options: ParseOptions | None = None,
    method: str = "dice",
    threshold: float = 0.5,
    auto_detect_amounts: bool = False,
    output_path: str | None = None,
) -> int:
    """Propose un mapping d'en-têtes ; l'écrit en JSON si ``output_path`` est fourni."""
    f1, f2 = SourceFile.from_path(file1), SourceFile.from_path(file2)
    pair = parse_flexibly(f1, f2, _combination(f1, f2, combination), options)
    mappings = map_headers(pair.dataset1.headers, pair.dataset2.headers, method=method, threshold=threshold)
    if auto_detect_amounts:
        mappings = detect_amount_fields(mappings, pair.dataset1.sample, pair.dataset2.sample)

    print(f"Mapping {pair.dataset1.file_name} -> {pair.dataset2.file_name}:")
    _print_mapping(mappings)
    if output_path:
        Path(output_path).write_text(
            json.dumps({"mappings": [m.to_dict() for m in mappings]}, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        print(f"Mapping écrit: {output_path}")
    return 0


def cmd_compare(
    file1: str,
    file2: str,
    *,
    combination: str | None = None,
    options: ParseOptions | None = None,
    alignment: str = "positional",
    key_field: str | None = None,
    method: str = "dice",
    mapping_path: str | None = None,
    output_path: str | None = None,
) -> int:
    """Compare deux fichiers, avec le mapping fourni ou celui proposé automatiquement."""
    f1, f2 = SourceFile.from_path(file1), SourceFile.from_path(file2)
    mapping = load_mapping_file(mapping_path) if mapping_path else None
    aggregate = compare_files(
        f1,
        f2,
        _combination(f1, f2, combination),
        mapping,
        options=options,
        alignment=alignment,
        key_field=key_field,
        similarity_method=method,
    )
    print_report_console(aggregate)
    if output_path:
        export_results(aggregate, output_path, file1_name=f1.name, file2_name=f2.name)
        print(f"Fichier de sortie: {output_path}")
    return 0


def cmd_diff(file1: str, file2: str, *, combination: str | None = None, output_path: str | None = None) -> int:
    """Comparaison structurelle de deux documents JSON ou XML."""
    f1, f2 = SourceFile.from_path(file1), SourceFile.from_path(file2)
    diff = compare_document_files(f1, f2, _combination(f1, f2, combination))
    print_document_report(diff)
    if output_path:
        export_document_diff(diff, output_path, file1_name=f1.name, file2_name=f2.name)
        print(f"Fichier de sortie: {output_path}")
    return 0


def cmd_run(config_path: str, output_path: str | None = None) -> int:
    """Exécute une comparaison décrite par un fichier de configuration JSON."""
    config = CompareConfig.load(config_path)
    f1, f2 = SourceFile.from_path(config.file1), SourceFile.from_path(config.file2)
    options = ParseOptions(
        sheet1=config.sheet1,
        sheet2=config.sheet2,
        delimiter=config.delimiter,
        markup_mode=config.markup_mode,
        json_unwrap=config.json_unwrap,
    )
    pair = parse_flexibly(f1, f2, _combination(f1, f2, config.combination), options)

    mappings = config.mappings or map_headers(
        pair.dataset1.headers,
        pair.dataset2.headers,
        method=config.similarity_method,
        threshold=config.similarity_threshold,
    )
    if config.auto_detect_amounts:
        mappings = detect_amount_fields(
            mappings,
            pair.dataset1.sample,
            pair.dataset2.sample,
            default_tolerance=config.default_tolerance,
        )
    logger.debug("Mapping utilisé: %d champs mappés", sum(1 for m in mappings if m.is_mapped))

    aggregate = compare(
        pair.dataset1,
        pair.dataset2,
        mappings,
        alignment=config.alignment,
        key_field=config.key_field,
    )
    print_report_console(aggregate)

    output = output_path or config.output
    if output:
        export_results(aggregate, output, file1_name=pair.dataset1.file_name, file2_name=pair.dataset2.file_name)
        print(f"Fichier de sortie: {output}")
    return 0


def _options_from_args(args: argparse.Namespace) -> ParseOptions:
    return ParseOptions(
        sheet1=args.sheet1,
        sheet2=args.sheet2,
        delimiter=args.delimiter,
        markup_mode=args.markup_mode,
        json_unwrap=args.json_unwrap,
    )


def _add_pair_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("file1", help="Premier fichier")
    p.add_argument("file2", help="Second fichier")
    p.add_argument("--combination", choices=sorted(COMBINATIONS), help="Combinaison (déduite par défaut)")
    p.add_argument("--sheet1", help="Feuille du classeur 1")
    p.add_argument("--sheet2", help="Feuille du classeur 2")
    p.add_argument("--delimiter", help="Séparateur CSV (détecté par défaut)")
    p.add_argument("--markup-mode", choices=["flatten", "records"], default="flatten", help="Lecture XML")
    p.add_argument("--json-unwrap", action="store_true", help="Accepter un objet JSON {data: [...]}")
    p.add_argument("--method", choices=["dice", "levenshtein"], default="dice", help="Similarité d'en-têtes")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="veridiff",
        description="Comparaison de fichiers structurés (Excel, CSV, JSON, XML, PDF)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Logs détaillés (DEBUG)")

    subparsers = parser.add_subparsers(dest="command", help="Commandes")

    # list-sheets
    p_list = subparsers.add_parser("list-sheets", help="Lister les feuilles d'un classeur")
    p_list.add_argument("file", help="Fichier classeur")

    # detect
    p_detect = subparsers.add_parser("detect", help="Détecter le format de fichiers")
    p_detect.add_argument("files", nargs="+", help="Fichiers")

    # map
    p_map = subparsers.add_parser("map", help="Proposer un mapping d'en-têtes")
    _add_pair_arguments(p_map)
    p_map.add_argument("--threshold", type=float, default=0.5, help="Seuil de similarité (0-1)")
    p_map.add_argument("--amounts", action="store_true", help="Détecter les champs montants")
    p_map.add_argument("--output", "-o", help="Fichier JSON de mapping")

    # compare
    p_cmp = subparsers.add_parser("compare", help="Comparer deux fichiers")
    _add_pair_arguments(p_cmp)
    p_cmp.add_argument("--alignment", choices=[a.value for a in Alignment], default="positional")
    p_cmp.add_argument("--key", help="Colonne identifiant (alignement keyed)")
    p_cmp.add_argument("--mapping", "-m", help="Fichier JSON de mapping (sortie de 'map')")
    p_cmp.add_argument("--output", "-o", help="Fichier de sortie (.xlsx ou .csv)")

    # diff
    p_diff = subparsers.add_parser("diff", help="Comparaison structurelle de documents JSON ou XML")
    p_diff.add_argument("file1", help="Premier document")
    p_diff.add_argument("file2", help="Second document")
    p_diff.add_argument("--combination", choices=list(DOCUMENT_COMBINATIONS), help="json ou xml (déduit par défaut)")
    p_diff.add_argument("--output", "-o", help="Fichier de sortie (.json, .xlsx ou .csv)")

    # run
    p_run = subparsers.add_parser("run", help="Comparer selon un fichier de configuration")
    p_run.add_argument("--config", "-c", required=True, help="Fichier config JSON")
    p_run.add_argument("--output", "-o", help="Fichier de sortie (.xlsx ou .csv)")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        if args.command == "list-sheets":
            return cmd_list_sheets(args.file)
        if args.command == "detect":
            return cmd_detect(args.files)
        if args.command == "map":
            return cmd_map(
                args.file1,
                args.file2,
                combination=args.combination,
                options=_options_from_args(args),
                method=args.method,
                threshold=args.threshold,
                auto_detect_amounts=args.amounts,
                output_path=args.output,
            )
        if args.command == "compare":
            return cmd_compare(
                args.file1,
                args.file2,
                combination=args.combination,
                options=_options_from_args(args),
                alignment=args.alignment,
                key_field=args.key,
                method=args.method,
                mapping_path=args.mapping,
                output_path=args.output,
            )
        if args.command == "diff":
            return cmd_diff(args.file1, args.file2, combination=args.combination, output_path=args.output)
        if args.command == "run":
            return cmd_run(args.config, args.output)
    except SheetSelectionRequired as e:
        return _print_sheet_choice(e)
    except VeriDiffError as e:
        print(f"Erreur: {e}")
        return 1
    except OSError as e:
        print(f"Erreur: {e}")
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
