"""Peptide cleavage state and protein terminus state."""

import re
from enum import IntEnum
from typing import Tuple

TERMINUS_SYMBOL_SEQUEST = "-"
TERMINUS_SYMBOL_XTANDEM_N_TERMINUS = "["
TERMINUS_SYMBOL_XTANDEM_C_TERMINUS = "]"
TERMINUS_SYMBOLS = {
    TERMINUS_SYMBOL_SEQUEST,
    TERMINUS_SYMBOL_XTANDEM_N_TERMINUS,
    TERMINUS_SYMBOL_XTANDEM_C_TERMINUS,
}

_NOT_LETTER = re.compile(r"[^A-Za-z]")


class CleavageState(IntEnum):
    UNKNOWN = -1
    NON_SPECIFIC = 0
    PARTIAL = 1
    FULL = 2


class PeptideTerminusState(IntEnum):
    NONE = 0
    PROTEIN_N_TERMINUS = 1
    PROTEIN_C_TERMINUS = 2
    PROTEIN_N_AND_C_TERMINUS = 3


def split_prefix_and_suffix_from_sequence(sequence: str) -> Tuple[bool, str, str, str]:
    """
    Split a sequence of the form ``R.PEPTIDE.K`` into its parts.

    Parameters
    ----------
    sequence
        Peptide sequence, optionally with prefix and suffix residues separated by
        periods.

    Returns
    -------
    found : bool
        True if prefix and/or suffix residues were found and removed.
    primary_sequence : str
        Sequence without prefix and suffix; `sequence` if not found.
    prefix : str
    suffix : str

    """
    if not sequence:
        return False, "", "", ""

    if sequence.startswith("..") and len(sequence) > 2:
        sequence = "." + sequence[2:]
    if sequence.endswith("..") and len(sequence) > 2:
        sequence = sequence[:-2] + "."

    period_loc_1 = sequence.find(".")
    if period_loc_1 < 0:
        return False, sequence, "", ""

    period_loc_2 = sequence.rfind(".")

    # Two periods with residues in between, e.g. R.PEPTIDEK.L
    if period_loc_2 > period_loc_1 + 1:
        return (
            True,
            sequence[period_loc_1 + 1 : period_loc_2],
            sequence[:period_loc_1],
            sequence[period_loc_2 + 1 :],
        )

    if period_loc_2 == period_loc_1 + 1:
        if period_loc_1 <= 1:
            return True, "", sequence[:period_loc_1], sequence[period_loc_2 + 1 :]
        return False, sequence, "", ""

    # Single period
    if period_loc_1 == 0:
        return True, sequence[1:], "", ""
    if period_loc_1 == len(sequence) - 1:
        return True, sequence[:period_loc_1], "", ""
    if period_loc_1 == 1 and len(sequence) > 2:
        return True, sequence[period_loc_1 + 1 :], sequence[:period_loc_1], ""
    if period_loc_1 == len(sequence) - 2:
        return True, sequence[:period_loc_1], "", sequence[period_loc_1 + 1 :]

    return False, sequence, "", ""


def extract_clean_sequence_from_sequence_with_mods(
    sequence_with_mods: str, check_for_prefix_and_suffix_residues: bool = True
) -> str:
    """Remove everything that is not a letter, optionally after removing prefix and suffix."""
    if sequence_with_mods is None:
        return ""
    if check_for_prefix_and_suffix_residues:
        found, primary_sequence, _, _ = split_prefix_and_suffix_from_sequence(sequence_with_mods)
        if found:
            return _NOT_LETTER.sub("", primary_sequence)
    return _NOT_LETTER.sub("", sequence_with_mods)


def find_letter_nearest_end(text: str) -> str:
    for character in reversed(text or ""):
        if character.isalpha() or character in TERMINUS_SYMBOLS:
            return character
    return TERMINUS_SYMBOL_SEQUEST


def find_letter_nearest_start(text: str) -> str:
    for character in text or "":
        if character.isalpha() or character in TERMINUS_SYMBOLS:
            return character
    return TERMINUS_SYMBOL_SEQUEST


class PeptideCleavageStateCalculator:
    """Determine cleavage and terminus state of peptides, using the trypsin rule."""

    def __init__(self, left_residues: str = "KR", right_exception_residues: str = "P") -> None:
        self.left_residues = left_residues
        self.right_exception_residues = right_exception_residues

    def test_cleavage_rule(self, left_char: str, right_char: str) -> bool:
        return left_char in self.left_residues and right_char not in self.right_exception_residues

    def compute_cleavage_state(
        self, clean_sequence: str, prefix_residues: str, suffix_residues: str
    ) -> CleavageState:
        """Determine whether a peptide is fully, partially, or non-specifically cleaved."""
        if not clean_sequence:
            return CleavageState.NON_SPECIFIC

        prefix = find_letter_nearest_end(prefix_residues)
        suffix = find_letter_nearest_start(suffix_residues)
        first_residue = clean_sequence[0]
        last_residue = clean_sequence[-1]

        is_n_terminus = prefix in TERMINUS_SYMBOLS
        is_c_terminus = suffix in TERMINUS_SYMBOLS

        if is_n_terminus and is_c_terminus:
            return CleavageState.FULL
        if is_n_terminus:
            if self.test_cleavage_rule(last_residue, suffix):
                return CleavageState.FULL
            return CleavageState.NON_SPECIFIC
        if is_c_terminus:
            if self.test_cleavage_rule(prefix, first_residue):
                return CleavageState.FULL
            return CleavageState.NON_SPECIFIC

        rule_matches = int(self.test_cleavage_rule(prefix, first_residue)) + int(
            self.test_cleavage_rule(last_residue, suffix)
        )
        if rule_matches == 2:
            return CleavageState.FULL
        if rule_matches == 1:
            return CleavageState.PARTIAL
        return CleavageState.NON_SPECIFIC

    @staticmethod
    def compute_terminus_state(
        clean_sequence: str, prefix_residues: str, suffix_residues: str
    ) -> PeptideTerminusState:
        """Determine whether a peptide is located at a protein terminus."""
        if not clean_sequence:
            return PeptideTerminusState.NONE

        prefix = find_letter_nearest_end(prefix_residues)
        suffix = find_letter_nearest_start(suffix_residues)

        if prefix in TERMINUS_SYMBOLS:
            if suffix in TERMINUS_SYMBOLS:
                return PeptideTerminusState.PROTEIN_N_AND_C_TERMINUS
            return PeptideTerminusState.PROTEIN_N_TERMINUS
        if suffix in TERMINUS_SYMBOLS:
            return PeptideTerminusState.PROTEIN_C_TERMINUS
        return PeptideTerminusState.NONE
