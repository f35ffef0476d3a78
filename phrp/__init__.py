"""Convert peptide search tool results to PHRP synopsis and sequence files."""

__version__ = "1.0.0"
__all__ = [
    "parse_configurations",
    "process",
]

from phrp.config_parser import parse_configurations  # noqa: E402
from phrp.core import process  # noqa: E402
