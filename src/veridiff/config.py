"""Configuration : règles de mapping/tolérance et chargement du fichier config JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

VALID_TOLERANCE_TYPES = frozenset({"flat", "percent"})
TOLERANCE_TYPE_ALIASES = {"%": "percent", "pct": "percent", "absolute": "flat"}
VALID_ALIGNMENTS = frozenset({"positional", "keyed"})
VALID_SIMILARITY_METHODS = frozenset({"dice", "levenshtein"})
VALID_MARKUP_MODES = frozenset({"flatten", "records"})


class VeriDiffError(Exception):
    """Exception de base pour VeriDiff."""


class ConfigError(VeriDiffError, ValueError):
    """Erreur de validation de la configuration."""


class ConfigFileError(VeriDiffError):
    """Erreur de chargement du fichier de configuration (fichier absent, JSON invalide)."""


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


@dataclass(frozen=True)
class ToleranceRule:
    """Relâchement numérique d'un champ : écart absolu (flat) ou relatif (percent)."""

    type: str
    value: float

    @classmethod
    def build(cls, type_: str, value: Any) -> ToleranceRule:
        type_ = TOLERANCE_TYPE_ALIASES.get(str(type_).strip().lower(), str(type_).strip().lower())
        if type_ not in VALID_TOLERANCE_TYPES:
            raise ConfigError(f"toleranceType invalide: {type_!r}. Valides: {sorted(VALID_TOLERANCE_TYPES)}")
        try:
            val = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"toleranceValue doit être numérique (got {value!r})") from e
        if val < 0 or val != val:
            raise ConfigError(f"toleranceValue doit être >= 0 (got {value!r})")
        return cls(type=type_, value=val)


@dataclass
class HeaderMapping:
    """Correspondance entre un champ du fichier 1 et un champ du fichier 2."""

    source_field: str
    target_field: str | None = None
    confidence: float = 0.0
    is_amount_field: bool | None = None
    tolerance_type: str | None = None
    tolerance_value: float | None = None
    is_auto_detected: bool = False

    @property
    def is_mapped(self) -> bool:
        return not _blank(self.target_field)

    @property
    def tolerance_rule(self) -> ToleranceRule | None:
        """Règle de tolérance effective (None si absente ou désactivée par is_amount_field=False)."""
        if self.is_amount_field is False:
            return None
        if _blank(self.tolerance_type) or self.tolerance_value is None:
            return None
        return ToleranceRule.build(self.tolerance_type, self.tolerance_value)  # type: ignore[arg-type]

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> HeaderMapping:
        """
        Construit un mapping depuis un dict.

        Accepte les clés snake_case, camelCase (sourceField, targetField, ...) et
        les anciennes clés file1Header / file2Header / similarity.
        """
        source = d.get("source_field", d.get("sourceField", d.get("file1Header")))
        target = d.get("target_field", d.get("targetField", d.get("file2Header")))
        confidence = d.get("confidence", d.get("similarity", 0.0))
        is_amount = d.get("is_amount_field", d.get("isAmountField"))
        tol_type = d.get("tolerance_type", d.get("toleranceType"))
        tol_value = d.get("tolerance_value", d.get("toleranceValue"))

        if _blank(source):
            raise ConfigError("sourceField requis pour chaque mapping")
        try:
            confidence = float(confidence or 0.0)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"confidence doit être numérique (got {confidence!r})") from e
        if not 0.0 <= confidence <= 1.0:
            raise ConfigError(f"confidence doit être entre 0 et 1 (got {confidence})")

        tolerance_type: str | None = None
        tolerance_value: float | None = None
        if not _blank(tol_type) and not _blank(tol_value):
            rule = ToleranceRule.build(tol_type, tol_value)
            tolerance_type, tolerance_value = rule.type, rule.value
        elif not _blank(tol_type):
            tolerance_type = ToleranceRule.build(tol_type, 0).type

        return cls(
            source_field=str(source),
            target_field=None if _blank(target) else str(target),
            confidence=confidence,
            is_amount_field=None if is_amount is None else bool(is_amount),
            tolerance_type=tolerance_type,
            tolerance_value=tolerance_value,
            is_auto_detected=bool(d.get("is_auto_detected", d.get("isAutoDetected", False))),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "sourceField": self.source_field,
            "targetField": self.target_field,
            "confidence": self.confidence,
        }
        if self.is_amount_field is not None:
            d["isAmountField"] = self.is_amount_field
        if self.tolerance_type is not None:
            d["toleranceType"] = self.tolerance_type
        if self.tolerance_value is not None:
            d["toleranceValue"] = self.tolerance_value
        if self.is_auto_detected:
            d["isAutoDetected"] = True
        return d


@dataclass
class CompareConfig:
    """Configuration d'une comparaison lancée depuis un fichier JSON."""

    file1: str = ""
    file2: str = ""
    combination: str | None = None  # None = déduite des types détectés
    sheet1: str | None = None
    sheet2: str | None = None
    delimiter: str | None = None  # None = détection automatique
    markup_mode: str = "flatten"  # flatten, records
    json_unwrap: bool = False

    alignment: str = "positional"  # positional, keyed
    key_field: str | None = None
    similarity_method: str = "dice"  # dice, levenshtein
    similarity_threshold: float = 0.5
    auto_detect_amounts: bool = False
    default_tolerance: float = 0.01

    mappings: list[HeaderMapping] = field(default_factory=list)
    output: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CompareConfig:
        file1 = d.get("file1", "")
        file2 = d.get("file2", "")
        markup_mode = d.get("markup_mode", "flatten")
        alignment = d.get("alignment", "positional")
        similarity_method = d.get("similarity_method", "dice")
        delimiter = d.get("delimiter")

        if not file1 or not file2:
            raise ConfigError("file1 et file2 requis")
        if markup_mode not in VALID_MARKUP_MODES:
            raise ConfigError(f"markup_mode invalide: {markup_mode!r}. Valides: {sorted(VALID_MARKUP_MODES)}")
        if alignment not in VALID_ALIGNMENTS:
            raise ConfigError(f"alignment invalide: {alignment!r}. Valides: {sorted(VALID_ALIGNMENTS)}")
        if similarity_method not in VALID_SIMILARITY_METHODS:
            raise ConfigError(
                f"similarity_method invalide: {similarity_method!r}. Valides: {sorted(VALID_SIMILARITY_METHODS)}"
            )
        if delimiter is not None and len(str(delimiter)) != 1:
            raise ConfigError(f"delimiter doit être un seul caractère (got {delimiter!r})")
        try:
            threshold = float(d.get("similarity_threshold", 0.5))
            default_tolerance = float(d.get("default_tolerance", 0.01))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Valeur numérique invalide: {e}") from e
        if not 0 <= threshold <= 1:
            raise ConfigError(f"similarity_threshold doit être entre 0 et 1 (got {threshold})")
        if default_tolerance < 0:
            raise ConfigError(f"default_tolerance doit être >= 0 (got {default_tolerance})")

        raw_mappings = d.get("mappings", [])
        if not isinstance(raw_mappings, list):
            raise ConfigError("mappings doit être une liste")
        mappings = [HeaderMapping.from_dict(m) for m in raw_mappings]
        seen: set[str] = set()
        for m in mappings:
            if m.source_field in seen:
                raise ConfigError(f"sourceField en double dans mappings: {m.source_field!r}")
            seen.add(m.source_field)

        return cls(
            file1=file1,
            file2=file2,
            combination=d.get("combination"),
            sheet1=d.get("sheet1"),
            sheet2=d.get("sheet2"),
            delimiter=delimiter,
            markup_mode=markup_mode,
            json_unwrap=bool(d.get("json_unwrap", False)),
            alignment=alignment,
            key_field=d.get("key_field"),
            similarity_method=similarity_method,
            similarity_threshold=threshold,
            auto_detect_amounts=bool(d.get("auto_detect_amounts", False)),
            default_tolerance=default_tolerance,
            mappings=mappings,
            output=d.get("output"),
        )

    @classmethod
    def load(cls, path: str | Path) -> CompareConfig:
        """
        Charge la configuration depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ConfigError: Si la configuration est invalide.
        """
        path = Path(path).resolve()
        if not path.exists():
            raise ConfigFileError(f"Fichier de configuration introuvable: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                d = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
        except OSError as e:
            raise ConfigFileError(f"Impossible de lire {path}: {e}") from e

        if not isinstance(d, dict):
            raise ConfigFileError(f"Fichier de configuration invalide: {path} doit contenir un objet JSON")

        config = cls.from_dict(d)
        config.resolve_paths(path.parent)
        return config

    def resolve_paths(self, base_dir: Path) -> None:
        """
        Résout les chemins relatifs par rapport au répertoire de base (ex. dossier du fichier config).

        Modifie file1, file2 et output en place.
        """
        base = Path(base_dir)
        if self.file1 and not Path(self.file1).is_absolute():
            self.file1 = str((base / self.file1).resolve())
        if self.file2 and not Path(self.file2).is_absolute():
            self.file2 = str((base / self.file2).resolve())
        if self.output and not Path(self.output).is_absolute():
            self.output = str((base / self.output).resolve())
