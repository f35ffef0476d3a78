"""Cross-check peptide masses computed by PHRP with those reported by search tools."""

import logging
from typing import List, NamedTuple, Optional

from phrp.cleavage_state import split_prefix_and_suffix_from_sequence
from phrp.mass_calculator import PeptideMassCalculator
from phrp.modification_catalog import ModificationCatalog
from phrp.modification_definition import (
    C_TERMINAL_PEPTIDE_SYMBOL,
    N_TERMINAL_PEPTIDE_SYMBOL,
    ModificationType,
)
from phrp.search_result import compute_del_m_corrected
from phrp.utils import is_letter_a_to_z, show_periodic_warning

logger = logging.getLogger(__name__)

MINIMUM_MASS_MISMATCH_THRESHOLD = 0.1
MASS_MISMATCH_RELATIVE_DIVISOR = 50000
ALWAYS_SHOW_WARNING_COUNT = 10
WARNING_PEPTIDE_LENGTH = 27


def _primary_sequence(peptide: str) -> str:
    found, primary_sequence, _, _ = split_prefix_and_suffix_from_sequence(peptide)
    return primary_sequence if found else peptide


def _plus_mass_tokens(sequence: str) -> List[str]:
    tokens = []
    current = None
    for character in sequence:
        if character in "+-":
            if current is not None:
                tokens.append(current)
            current = character
        elif current is not None and (character.isdigit() or character == "."):
            current += character
        elif current is not None:
            tokens.append(current)
            current = None
    if current is not None:
        tokens.append(current)
    return tokens


def _bracket_tokens(sequence: str) -> List[str]:
    tokens = []
    current = None
    for character in sequence:
        if character == "[":
            current = ""
        elif character == "]":
            if current is not None:
                tokens.append(current)
            current = None
        elif current is not None:
            current += character
    return tokens


def compute_total_mod_mass_plus_dialect(peptide: str, catalog: ModificationCatalog) -> float:
    """
    Sum the modification masses of a peptide in ``+mass`` notation.

    Static mods are implied in this notation, so the masses of all static mods
    that apply to a residue are added as well. The first residue also matches
    peptide N-terminal mods (``<``) and the last residue C-terminal mods (``>``).
    """
    primary_sequence = _primary_sequence(peptide or "")

    total_mod_mass = 0.0
    for token in _plus_mass_tokens(primary_sequence):
        # A mod on the final residue is followed by the suffix period
        try:
            total_mod_mass += float(token.rstrip("."))
        except ValueError:
            continue

    residue_indices = [i for i, c in enumerate(primary_sequence) if is_letter_a_to_z(c)]
    if not residue_indices:
        return total_mod_mass
    first_index, last_index = residue_indices[0], residue_indices[-1]

    static_mods = [
        mod
        for mod in catalog
        if mod.modification_type
        in (ModificationType.STATIC, ModificationType.TERMINAL_PEPTIDE_STATIC)
    ]
    for index in residue_indices:
        residue = primary_sequence[index]
        for modification in static_mods:
            if (
                modification.target_residues_contain(residue)
                or (
                    index == first_index
                    and modification.target_residues_contain(N_TERMINAL_PEPTIDE_SYMBOL)
                )
                or (
                    index == last_index
                    and modification.target_residues_contain(C_TERMINAL_PEPTIDE_SYMBOL)
                )
            ):
                total_mod_mass += modification.modification_mass

    return total_mod_mass


def compute_total_mod_mass_bracket_dialect(
    peptide: str, catalog: ModificationCatalog, annotator=None
) -> float:
    """
    Sum the modification masses of a peptide in ``[mass]`` / ``[Name]`` notation.

    Named mods that cannot be resolved are skipped. If `annotator` is given,
    names are resolved through it so that unknown names are reported once.
    """
    total_mod_mass = 0.0
    for token in _bracket_tokens(peptide or ""):
        try:
            total_mod_mass += float(token)
            continue
        except ValueError:
            pass

        if annotator is not None:
            modification_mass = annotator.lookup_modification_mass_by_name(token)
        else:
            modification_mass = catalog.lookup_modification_mass_by_name(token)
        if modification_mass is not None:
            total_mod_mass += modification_mass

    return total_mod_mass


class ReconciliationResult(NamedTuple):
    """
    Outcome of :py:meth:`MassReconciler.reconcile`.

    ``del_m`` is the raw precursor mass error; ``del_m_ppm`` is corrected for
    the selection of a C13 isotope peak.
    """

    computed_mass: float
    del_m: float
    del_m_ppm: float
    warning: Optional[str] = None


class MassReconciler:
    """
    Recompute peptide masses and compare them with the masses reported by a search tool.

    Parameters
    ----------
    mass_calculator
        Calculator used to compute the unmodified peptide mass.
    tool_name
        Search tool name, used in warning messages.

    """

    def __init__(self, mass_calculator: PeptideMassCalculator, tool_name: str = "the search tool"):
        self.mass_calculator = mass_calculator
        self.tool_name = tool_name
        self.warning_count = 0

    def reset(self):
        self.warning_count = 0

    def compute_peptide_mass(self, clean_sequence: str, total_mod_mass: float) -> float:
        return self.mass_calculator.compute_sequence_mass(clean_sequence) + total_mod_mass

    def validate_matching_monoisotopic_mass(
        self, peptide: str, computed_mass: float, tool_reported_mass: float
    ) -> Optional[str]:
        """Return a warning message if the masses differ by more than the tolerance."""
        threshold = max(MINIMUM_MASS_MISMATCH_THRESHOLD, computed_mass / MASS_MISMATCH_RELATIVE_DIVISOR)
        if abs(computed_mass - tool_reported_mass) <= threshold:
            return None

        if len(peptide) > WARNING_PEPTIDE_LENGTH:
            peptide_description = peptide[:WARNING_PEPTIDE_LENGTH] + "..."
        else:
            peptide_description = peptide

        self.warning_count += 1
        message = (
            f"The monoisotopic mass computed by PHRP is more than {threshold:.2f} Da away from "
            f"the mass computed by {self.tool_name}: {computed_mass:.4f} vs. "
            f"{tool_reported_mass:.4f}; peptide {peptide_description}"
        )
        show_periodic_warning(self.warning_count, ALWAYS_SHOW_WARNING_COUNT, message)
        return message

    def reconcile(
        self,
        clean_sequence: str,
        total_mod_mass: float,
        tool_reported_mass: float,
        precursor_observed_mass: float,
        adjust_for_c13: bool = True,
    ) -> ReconciliationResult:
        """
        Compute the peptide mass and the precursor mass error.

        Parameters
        ----------
        clean_sequence
            Peptide residues, optionally with prefix and suffix residues.
        total_mod_mass
            Sum of all modification masses of the peptide.
        tool_reported_mass
            Theoretical monoisotopic mass reported by the search tool; 0 if unknown.
        precursor_observed_mass
            Observed monoisotopic precursor mass.
        adjust_for_c13
            Shift the precursor mass by whole C13 isotopes before computing the
            ppm error.

        """
        computed_mass = self.compute_peptide_mass(clean_sequence, total_mod_mass)
        if abs(tool_reported_mass) < 1e-10:
            tool_reported_mass = computed_mass

        warning = self.validate_matching_monoisotopic_mass(
            clean_sequence, computed_mass, tool_reported_mass
        )

        del_m = precursor_observed_mass - computed_mass
        _, del_m_ppm = compute_del_m_corrected(
            del_m, precursor_observed_mass, computed_mass, adjust_for_c13
        )
        return ReconciliationResult(computed_mass, del_m, del_m_ppm, warning)
