"""VeriDiff - Comparaison de fichiers structurés et réconciliation d'en-têtes."""

from veridiff.config import ConfigError, ConfigFileError, VeriDiffError
from veridiff.errors import (
    CombinationError,
    ComparisonCancelled,
    ComparisonError,
    ParseError,
    SheetSelectionRequired,
    ValidationError,
)

__all__ = [
    "__version__",
    "VeriDiffError",
    "ConfigError",
    "ConfigFileError",
    "ParseError",
    "ValidationError",
    "CombinationError",
    "ComparisonError",
    "ComparisonCancelled",
    "SheetSelectionRequired",
]

__version__ = "0.1.0"
