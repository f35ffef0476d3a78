import logging
import os
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_COUNT = 255
MAX_ERROR_LOG_LENGTH = 4096

REVERSED_PROTEIN_PREFIXES = ("reversed_", "rev_", "scrambled_", "xxx_", "xxx.")
REVERSED_PROTEIN_SUFFIX = ":reversed"


def dbl_to_string(value: float, digits: int, zero_threshold: float = 0.0) -> str:
    """
    Format a number with at most `digits` decimals, trimming trailing zeros.

    Parameters
    ----------
    value
        Number to format.
    digits
        Maximum number of digits after the decimal point.
    zero_threshold
        Values with an absolute value below this threshold are reported as ``"0"``.

    """
    if abs(value) < zero_threshold:
        return "0"
    text = f"{value:.{max(digits, 0)}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("", "-0"):
        return "0"
    return text


def mass_error_to_string(mass_error_da: float) -> str:
    """Format a mass error (in Da) with a precision that depends on its magnitude."""
    if abs(mass_error_da) < 1e-6:
        return "0"
    if abs(mass_error_da) < 0.0001:
        return dbl_to_string(mass_error_da, 6, 1e-7)
    return dbl_to_string(mass_error_da, 5, 1e-6)


def is_letter_a_to_z(character: str) -> bool:
    """Return True if `character` is a single ASCII letter."""
    return len(character) == 1 and ("A" <= character <= "Z" or "a" <= character <= "z")


def is_reversed_protein(protein_name: str) -> bool:
    """Check if a protein name follows one of the decoy naming conventions."""
    if not protein_name:
        return False
    name = protein_name.lower()
    return name.startswith(REVERSED_PROTEIN_PREFIXES) or name.endswith(REVERSED_PROTEIN_SUFFIX)


def truncate_protein_name(protein_name_and_description: str) -> str:
    """Keep only the protein name, dropping a space-separated description."""
    index = protein_name_and_description.find(" ")
    if index > 0:
        return protein_name_and_description[:index]
    return protein_name_and_description


def show_periodic_warning(warning_count: int, threshold_count_always_show: int, message: str):
    """
    Log a warning, thinning out repeated occurrences.

    The first `threshold_count_always_show` warnings are always logged; afterwards
    every 100th (below 1000), every 1000th (below 10000), and so on.
    """
    if (
        warning_count <= threshold_count_always_show
        or (warning_count < 1000 and warning_count % 100 == 0)
        or (warning_count < 10000 and warning_count % 1000 == 0)
        or (warning_count < 100000 and warning_count % 10000 == 0)
        or (warning_count < 1000000 and warning_count % 100000 == 0)
    ):
        logger.warning(message)


def replace_filename_suffix(file_path: Union[str, os.PathLike], suffix: str) -> str:
    """Replace the extension of `file_path` with `suffix` (e.g. ``_SeqInfo.txt``)."""
    path = Path(file_path)
    return (path.parent / (path.stem + suffix)).as_posix()


class ErrorLog:
    """Bounded collection of non-fatal error messages for a single file."""

    def __init__(
        self,
        max_messages: int = MAX_ERROR_MESSAGE_COUNT,
        max_length: int = MAX_ERROR_LOG_LENGTH,
    ) -> None:
        self.max_messages = max_messages
        self.max_length = max_length
        self.messages: List[str] = []
        self._length = 0

    def __len__(self) -> int:
        return len(self.messages)

    def __bool__(self) -> bool:
        return bool(self.messages)

    def add(self, message: str) -> bool:
        """Append a message; returns False if the log is full."""
        if len(self.messages) >= self.max_messages:
            return False
        if self._length + len(message) > self.max_length:
            return False
        self.messages.append(message)
        self._length += len(message) + 1
        return True

    def clear(self):
        self.messages = []
        self._length = 0

    def summary(self) -> str:
        return "Invalid Lines: \n" + "\n".join(self.messages)
