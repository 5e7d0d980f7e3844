"""Normalisation des en-têtes et forme canonique des valeurs."""

from __future__ import annotations

import datetime as dt
import json
import math
import re
import unicodedata
from typing import Any

import numpy as np
import pandas as pd

_NUMBER_RE = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?\s*$")
# Forme acceptée par le typage dynamique des CSV (pas de signe +, pas d'espaces internes)
_DYNAMIC_FLOAT_RE = re.compile(r"^\s*-?(?:\d+\.?|\.\d+|\d+\.\d+)(?:[eE][-+]?\d+)?\s*$")
_DYNAMIC_INT_RE = re.compile(r"^\s*-?\d+\s*$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def _remove_diacritics(s: str) -> str:
    """Retire les diacritiques (accents) d'une chaîne."""
    nfd = unicodedata.normalize("NFD", s)
    return "".join(c for c in nfd if unicodedata.category(c) != "Mn")


def norm_header(s: Any) -> str:
    """
    Normalise un nom de champ : NFKC, minuscules, sans accents, alphanumérique seulement.

    ``"Customer Name"`` et ``"customer_name"`` donnent tous deux ``"customername"``.
    """
    if is_missing(s):
        return ""
    text = unicodedata.normalize("NFKC", str(s)).lower()
    text = _remove_diacritics(text)
    return _NON_ALNUM_RE.sub("", text)


def is_missing(val: Any) -> bool:
    """True pour None, NaN, NaT et pd.NA."""
    if val is None:
        return True
    if isinstance(val, float):
        return val != val
    try:
        return bool(pd.isna(val)) if not isinstance(val, (str, bytes, list, dict, tuple)) else False
    except (TypeError, ValueError):
        return False


def clean_cell(val: Any) -> Any:
    """
    Convertit une cellule pandas/openpyxl en scalaire Python.

    NaN → "", entiers/flottants numpy → int/float, dates → ISO-8601 (date seule si minuit).
    """
    if is_missing(val):
        return ""
    if isinstance(val, bool):
        return val
    if isinstance(val, np.datetime64):
        val = pd.Timestamp(val)
    elif hasattr(val, "item") and not isinstance(val, (str, bytes, pd.Timestamp)):
        # Scalaires numpy
        val = val.item()
    if isinstance(val, (pd.Timestamp, dt.datetime)):
        if val.hour == 0 and val.minute == 0 and val.second == 0 and val.microsecond == 0:
            return val.date().isoformat()
        return val.isoformat()
    if isinstance(val, (dt.date, dt.time)):
        return val.isoformat()
    return val


def to_canonical_str(val: Any) -> str:
    """
    Forme textuelle canonique utilisée pour l'égalité.

    Un nombre et sa forme texte sont égaux : ``100``, ``100.0`` et ``"100"`` donnent ``"100"``.
    """
    if is_missing(val):
        return ""
    if isinstance(val, bool):
        return "true" if val else "false"
    if hasattr(val, "item") and not isinstance(val, (str, bytes, pd.Timestamp)):
        val = val.item()
    if isinstance(val, int):
        return str(val)
    if isinstance(val, float):
        if math.isinf(val):
            return "Infinity" if val > 0 else "-Infinity"
        if val.is_integer() and abs(val) < 1e21:
            return str(int(val))
        return repr(val)
    if isinstance(val, (dict, list, tuple)):
        return json.dumps(val, ensure_ascii=False, separators=(",", ":"), default=str)
    if isinstance(val, (pd.Timestamp, dt.datetime, dt.date)):
        return str(clean_cell(val))
    return str(val)


def parse_number(val: Any) -> float | None:
    """
    Valeur numérique finie, ou None.

    Une chaîne n'est numérique que si elle l'est entièrement (espaces de bord tolérés) :
    ``"12.5"`` → 12.5, ``"12abc"`` → None, ``""`` → None.
    """
    if is_missing(val) or isinstance(val, bool):
        return None
    if hasattr(val, "item") and not isinstance(val, (str, bytes, pd.Timestamp)):
        val = val.item()
    if isinstance(val, (int, float)):
        num = float(val)
    elif isinstance(val, str):
        if not _NUMBER_RE.match(val):
            return None
        num = float(val)
    else:
        return None
    return num if math.isfinite(num) else None


def is_numeric(val: Any) -> bool:
    return parse_number(val) is not None


def coerce_scalar(text: str) -> Any:
    """Typage dynamique d'une cellule texte : nombres et booléens convertis, le reste inchangé."""
    if text in ("true", "TRUE"):
        return True
    if text in ("false", "FALSE"):
        return False
    if _DYNAMIC_INT_RE.match(text):
        return int(text)
    if _DYNAMIC_FLOAT_RE.match(text):
        num = float(text)
        if math.isfinite(num):
            return num
    return text
