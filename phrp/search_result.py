"""A single peptide-spectrum match, with its residue-level modifications."""

import logging
from typing import Dict, List, Optional, Tuple

from phrp.cleavage_state import (
    TERMINUS_SYMBOL_SEQUEST,
    TERMINUS_SYMBOL_XTANDEM_C_TERMINUS,
    TERMINUS_SYMBOL_XTANDEM_N_TERMINUS,
    CleavageState,
    PeptideCleavageStateCalculator,
    PeptideTerminusState,
    extract_clean_sequence_from_sequence_with_mods,
    split_prefix_and_suffix_from_sequence,
)
from phrp.mass_calculator import (
    NO_AFFECTED_ATOM_SYMBOL,
    PeptideMassCalculator,
    PeptideSequenceModInfo,
    mass_to_ppm,
)
from phrp.modification_catalog import MASS_DIGITS_OF_PRECISION, ModificationCatalog
from phrp.modification_definition import (
    C_TERMINAL_PEPTIDE_SYMBOL,
    C_TERMINAL_PROTEIN_SYMBOL,
    N_TERMINAL_PEPTIDE_SYMBOL,
    N_TERMINAL_PROTEIN_SYMBOL,
    AnnotatedModification,
    ModificationDefinition,
    ModificationType,
    ResidueTerminusState,
)

logger = logging.getLogger(__name__)

MASS_C13 = 1.00335483

PSEUDO_PROTEIN_START = 1
PSEUDO_PROTEIN_END = 10000


def compute_del_m_corrected(
    del_m: float,
    precursor_mono_mass: float,
    peptide_monoisotopic_mass: float,
    adjust_precursor_mass_for_c13: bool = True,
) -> Tuple[float, float]:
    """
    Correct a precursor mass error for the selection of a C13 isotope peak.

    Whole multiples of the C13 mass difference are removed from `del_m` until it
    is within 0.5 Da of zero.

    Parameters
    ----------
    del_m
        Precursor mass error, in Da.
    precursor_mono_mass
        Observed monoisotopic precursor mass.
    peptide_monoisotopic_mass
        Theoretical monoisotopic peptide mass.
    adjust_precursor_mass_for_c13
        Shift the precursor mass by the isotope count before recomputing the error.

    Returns
    -------
    corrected_del_m : float
        Corrected mass error, in Da.
    del_m_ppm : float
        Corrected mass error, in ppm relative to the peptide mass.

    """
    correction_count = 0
    if del_m >= -0.5:
        while del_m > 0.5:
            del_m -= MASS_C13
            correction_count += 1
    else:
        while del_m < -0.5:
            del_m += MASS_C13
            correction_count -= 1

    if correction_count != 0:
        if adjust_precursor_mass_for_c13:
            precursor_mono_mass -= correction_count * MASS_C13
        del_m = precursor_mono_mass - peptide_monoisotopic_mass

    return del_m, mass_to_ppm(del_m, peptide_monoisotopic_mass)


def compute_del_m_corrected_ppm(
    del_m: float,
    precursor_mono_mass: float,
    peptide_monoisotopic_mass: float,
    adjust_precursor_mass_for_c13: bool = True,
) -> float:
    """Like :py:func:`compute_del_m_corrected`, returning only the ppm value."""
    return compute_del_m_corrected(
        del_m, precursor_mono_mass, peptide_monoisotopic_mass, adjust_precursor_mass_for_c13
    )[1]


def _modification_sort_key(modification: AnnotatedModification):
    return (
        modification.residue_loc_in_peptide,
        modification.modification_definition.mass_correction_tag,
    )


class SearchResult:
    """
    Peptide-spectrum match read from a search tool results file.

    Parameters
    ----------
    catalog
        Modification catalog shared by all results of one file.
    mass_calculator
        Mass calculator shared by all results of one file.
    cleavage_state_calculator
        Calculator for cleavage and terminus states. Defaults to trypsin.

    """

    def __init__(
        self,
        catalog: ModificationCatalog,
        mass_calculator: PeptideMassCalculator,
        cleavage_state_calculator: Optional[PeptideCleavageStateCalculator] = None,
    ) -> None:
        self.catalog = catalog
        self.mass_calculator = mass_calculator
        self.cleavage_state_calculator = (
            cleavage_state_calculator or PeptideCleavageStateCalculator()
        )
        self.clear()

    def clear(self):
        self.result_id = 0
        self.scan = ""
        self.charge = ""
        self.protein_name = ""
        self.peptide_sequence_with_mods = ""
        self._peptide_pre_residues = ""
        self._peptide_post_residues = ""
        self._peptide_clean_sequence = ""
        self.protein_seq_residue_number_start = 0
        self.protein_seq_residue_number_end = 0
        self.peptide_loc_in_protein_start = 0
        self.peptide_loc_in_protein_end = 0
        self.peptide_cleavage_state = CleavageState.NON_SPECIFIC
        self.peptide_terminus_state = PeptideTerminusState.NONE
        self.modifications: List[AnnotatedModification] = []
        self.peptide_monoisotopic_mass = 0.0
        self.peptide_delta_mass = ""
        self.peptide_mod_description = ""
        self.error_message = ""
        self.tool_fields: Dict[str, str] = {}

    @property
    def peptide_pre_residues(self) -> str:
        return self._peptide_pre_residues

    @peptide_pre_residues.setter
    def peptide_pre_residues(self, value: Optional[str]):
        self._peptide_pre_residues = value or ""
        self.compute_peptide_cleavage_state_in_protein()

    @property
    def peptide_post_residues(self) -> str:
        return self._peptide_post_residues

    @peptide_post_residues.setter
    def peptide_post_residues(self, value: Optional[str]):
        self._peptide_post_residues = value or ""
        self.compute_peptide_cleavage_state_in_protein()

    @property
    def peptide_clean_sequence(self) -> str:
        return self._peptide_clean_sequence

    @peptide_clean_sequence.setter
    def peptide_clean_sequence(self, value: Optional[str]):
        self._peptide_clean_sequence = value or ""
        self.compute_peptide_cleavage_state_in_protein()

    @property
    def modification_count(self) -> int:
        return len(self.modifications)

    def set_peptide_sequence_with_mods(
        self,
        sequence_with_mods: str,
        check_for_prefix_and_suffix_residues: bool = True,
        auto_populate_clean_sequence: bool = True,
    ):
        """
        Store a sequence with mod symbols, splitting off prefix and suffix residues.

        When `auto_populate_clean_sequence` is True, the clean sequence and the
        prefix and suffix residues are updated too.
        """
        sequence_with_mods = sequence_with_mods or ""
        primary_sequence = sequence_with_mods
        if check_for_prefix_and_suffix_residues:
            found, primary, prefix, suffix = split_prefix_and_suffix_from_sequence(
                sequence_with_mods
            )
            if found:
                primary_sequence = primary
                if auto_populate_clean_sequence:
                    self._peptide_pre_residues = prefix
                    self._peptide_post_residues = suffix

        if auto_populate_clean_sequence:
            self.peptide_clean_sequence = extract_clean_sequence_from_sequence_with_mods(
                primary_sequence, False
            )

        self.peptide_sequence_with_mods = primary_sequence

    def compute_peptide_cleavage_state_in_protein(self):
        calculator = self.cleavage_state_calculator
        self.peptide_cleavage_state = calculator.compute_cleavage_state(
            self._peptide_clean_sequence, self._peptide_pre_residues, self._peptide_post_residues
        )
        self.peptide_terminus_state = calculator.compute_terminus_state(
            self._peptide_clean_sequence, self._peptide_pre_residues, self._peptide_post_residues
        )

    def compute_pseudo_peptide_loc_in_protein(self):
        """
        Place the peptide in a pseudo protein of 10000 residues.

        Without the protein sequence, the prefix and suffix terminus symbols are
        the only information on where the peptide is located in the protein.
        """
        self.protein_seq_residue_number_start = PSEUDO_PROTEIN_START
        self.protein_seq_residue_number_end = PSEUDO_PROTEIN_END
        peptide_length = len(self._peptide_clean_sequence)

        if self._peptide_pre_residues.endswith(TERMINUS_SYMBOL_SEQUEST):
            self.peptide_loc_in_protein_start = self.protein_seq_residue_number_start
            self.peptide_loc_in_protein_end = peptide_length
            if self._peptide_post_residues.startswith(TERMINUS_SYMBOL_SEQUEST):
                self.protein_seq_residue_number_end = self.peptide_loc_in_protein_end
        elif self._peptide_post_residues.startswith(TERMINUS_SYMBOL_SEQUEST):
            self.peptide_loc_in_protein_end = self.protein_seq_residue_number_end
            self.peptide_loc_in_protein_start = self.peptide_loc_in_protein_end - peptide_length + 1
        else:
            self.peptide_loc_in_protein_start = self.protein_seq_residue_number_start + 1
            self.peptide_loc_in_protein_end = self.peptide_loc_in_protein_start + peptide_length - 1

    def determine_residue_terminus_state(self, residue_loc_in_peptide: int) -> ResidueTerminusState:
        """Determine the terminus state of a residue (1-based location in the peptide)."""
        if residue_loc_in_peptide == 1:
            if self.peptide_loc_in_protein_start == self.protein_seq_residue_number_start:
                if self.peptide_loc_in_protein_end == self.protein_seq_residue_number_end:
                    return ResidueTerminusState.PROTEIN_N_AND_C_TERMINUS
                return ResidueTerminusState.PROTEIN_N_TERMINUS
            return ResidueTerminusState.PEPTIDE_N_TERMINUS

        peptide_length = self.peptide_loc_in_protein_end - self.peptide_loc_in_protein_start + 1
        if residue_loc_in_peptide == peptide_length:
            if self.peptide_loc_in_protein_end == self.protein_seq_residue_number_end:
                return ResidueTerminusState.PROTEIN_C_TERMINUS
            return ResidueTerminusState.PEPTIDE_C_TERMINUS

        return ResidueTerminusState.NONE

    def add_modification(
        self,
        modification_definition: ModificationDefinition,
        residue: str,
        residue_loc_in_peptide: int,
        residue_terminus_state: ResidueTerminusState,
        update_occurrence_counts: bool,
    ) -> bool:
        """Attach a modification to a residue; returns False for an invalid location."""
        if (
            residue_loc_in_peptide < 1
            and modification_definition.modification_type != ModificationType.ISOTOPIC
        ):
            self.error_message = (
                f"Invalid value for residue location in peptide: {residue_loc_in_peptide} "
                f"(modification type {modification_definition.modification_type.name})"
            )
            return False

        if update_occurrence_counts:
            modification_definition.occurrence_count += 1
        self.modifications.append(
            AnnotatedModification(
                residue, residue_loc_in_peptide, residue_terminus_state, modification_definition
            )
        )
        return True

    def add_modification_by_mass(
        self,
        modification_mass: float,
        residue: str,
        residue_loc_in_peptide: int,
        residue_terminus_state: ResidueTerminusState,
        update_occurrence_counts: bool,
        digits: int = MASS_DIGITS_OF_PRECISION,
        digits_loose: int = MASS_DIGITS_OF_PRECISION,
    ) -> bool:
        """Attach a modification by mass, auto-defining it in the catalog if unknown."""
        if residue_loc_in_peptide < 1:
            self.error_message = (
                f"Invalid value for residue location in peptide: {residue_loc_in_peptide}"
            )
            return False

        modification_definition, _ = self.catalog.lookup_modification_definition_by_mass(
            modification_mass,
            residue,
            residue_terminus_state,
            digits=digits,
            digits_loose=digits_loose,
        )
        return self.add_modification(
            modification_definition,
            residue,
            residue_loc_in_peptide,
            residue_terminus_state,
            update_occurrence_counts,
        )

    def add_dynamic_modification(
        self,
        modification_symbol: str,
        residue: str,
        residue_loc_in_peptide: int,
        residue_terminus_state: ResidueTerminusState,
        update_occurrence_counts: bool,
    ) -> bool:
        """Attach the dynamic modification that uses `modification_symbol` on `residue`."""
        (
            modification_definition,
            found,
        ) = self.catalog.lookup_dynamic_modification_definition_by_target_info(
            modification_symbol, residue, residue_terminus_state
        )
        if not found:
            self.error_message = (
                f"Modification symbol not found: {modification_symbol}; "
                f"terminus state = {residue_terminus_state.name}"
            )
            return False

        if residue_loc_in_peptide < 1:
            self.error_message = (
                f"Invalid value for residue location in peptide: {residue_loc_in_peptide}"
            )
            return False

        return self.add_modification(
            modification_definition,
            residue,
            residue_loc_in_peptide,
            residue_terminus_state,
            update_occurrence_counts,
        )

    def add_isotopic_modifications(self, update_occurrence_counts: bool) -> bool:
        success = False
        for modification_definition in self.catalog:
            if modification_definition.modification_type == ModificationType.ISOTOPIC:
                success = self.add_modification(
                    modification_definition,
                    NO_AFFECTED_ATOM_SYMBOL,
                    0,
                    ResidueTerminusState.NONE,
                    update_occurrence_counts,
                )
        return success

    def _terminus_mod_location(
        self, modification_definition: ModificationDefinition
    ) -> Optional[Tuple[int, ResidueTerminusState]]:
        at_protein_n = self.peptide_terminus_state in (
            PeptideTerminusState.PROTEIN_N_TERMINUS,
            PeptideTerminusState.PROTEIN_N_AND_C_TERMINUS,
        )
        at_protein_c = self.peptide_terminus_state in (
            PeptideTerminusState.PROTEIN_C_TERMINUS,
            PeptideTerminusState.PROTEIN_N_AND_C_TERMINUS,
        )
        last_loc = len(self._peptide_clean_sequence)
        target = modification_definition.target_residues

        if modification_definition.modification_type == ModificationType.TERMINAL_PEPTIDE_STATIC:
            if target == N_TERMINAL_PEPTIDE_SYMBOL:
                if at_protein_n:
                    return 1, ResidueTerminusState.PROTEIN_N_TERMINUS
                return 1, ResidueTerminusState.PEPTIDE_N_TERMINUS
            if target == C_TERMINAL_PEPTIDE_SYMBOL:
                if at_protein_c:
                    return last_loc, ResidueTerminusState.PROTEIN_C_TERMINUS
                return last_loc, ResidueTerminusState.PEPTIDE_C_TERMINUS

        elif modification_definition.modification_type == ModificationType.PROTEIN_TERMINUS_STATIC:
            if target == N_TERMINAL_PROTEIN_SYMBOL and at_protein_n:
                return 1, ResidueTerminusState.PROTEIN_N_TERMINUS
            if target == C_TERMINAL_PROTEIN_SYMBOL and at_protein_c:
                return last_loc, ResidueTerminusState.PROTEIN_C_TERMINUS

        return None

    def _has_equivalent_modification_at(
        self, modification_definition: ModificationDefinition, residue_loc_in_peptide: int
    ) -> bool:
        for existing in self.modifications:
            if existing.modification_definition is modification_definition:
                return True
            if existing.residue_loc_in_peptide != residue_loc_in_peptide:
                continue
            existing_definition = existing.modification_definition
            if existing_definition.mass_correction_tag == modification_definition.mass_correction_tag:
                return True
            mass_difference = abs(
                existing_definition.modification_mass - modification_definition.modification_mass
            )
            if round(mass_difference, MASS_DIGITS_OF_PRECISION) == 0:
                return True
        return False

    def add_static_terminus_mods(
        self, allow_duplicate_mod_on_terminus: bool = True, update_occurrence_counts: bool = False
    ):
        """
        Add the peptide and protein terminus static mods defined in the catalog.

        Peptide terminus mods are always added; protein terminus mods only when
        the peptide is located at that protein terminus.
        """
        if not self._peptide_clean_sequence:
            return

        for modification_definition in self.catalog:
            location = self._terminus_mod_location(modification_definition)
            if location is None:
                continue
            residue_loc_in_peptide, residue_terminus_state = location

            if not allow_duplicate_mod_on_terminus and self._has_equivalent_modification_at(
                modification_definition, residue_loc_in_peptide
            ):
                continue

            self.add_modification(
                modification_definition,
                self._peptide_clean_sequence[residue_loc_in_peptide - 1],
                residue_loc_in_peptide,
                residue_terminus_state,
                update_occurrence_counts,
            )

    def compute_monoisotopic_mass(self) -> float:
        modified_residues = [
            PeptideSequenceModInfo(
                modification.residue_loc_in_peptide,
                modification.modification_definition.modification_mass,
                modification.modification_definition.affected_atom,
            )
            for modification in self.modifications
        ]
        self.peptide_monoisotopic_mass = self.mass_calculator.compute_sequence_mass(
            self._peptide_clean_sequence, modified_residues
        )
        return self.peptide_monoisotopic_mass

    def update_mod_description(self) -> str:
        """
        Build the modification description, e.g. ``MinusH2O:1,Plus1Oxy:4``.

        Isotopic modifications are listed with location 0.
        """
        self.peptide_mod_description = ",".join(
            f"{modification.modification_definition.mass_correction_tag.strip()}:"
            f"{modification.residue_loc_in_peptide}"
            for modification in sorted(self.modifications, key=_modification_sort_key)
        )
        return self.peptide_mod_description

    def add_modifications_to_clean_sequence(self) -> str:
        """Insert the symbols of dynamic and unknown mods after their residues."""
        sequence_with_mods = self._peptide_clean_sequence
        for modification in sorted(self.modifications, key=_modification_sort_key, reverse=True):
            definition = modification.modification_definition
            if definition.modification_type in (ModificationType.DYNAMIC, ModificationType.UNKNOWN):
                loc = modification.residue_loc_in_peptide
                sequence_with_mods = (
                    sequence_with_mods[:loc] + definition.modification_symbol + sequence_with_mods[loc:]
                )
        return sequence_with_mods

    def sequence_with_prefix_and_suffix(self, include_mods: bool = True) -> str:
        """Return the peptide as ``K.PEPTIDER.S``, writing protein termini as ``-``."""
        prefix = TERMINUS_SYMBOL_SEQUEST
        pre_residues = self._peptide_pre_residues.strip()
        if pre_residues:
            prefix = pre_residues[-1]
            if prefix == TERMINUS_SYMBOL_XTANDEM_N_TERMINUS:
                prefix = TERMINUS_SYMBOL_SEQUEST

        suffix = TERMINUS_SYMBOL_SEQUEST
        post_residues = self._peptide_post_residues.strip()
        if post_residues:
            suffix = post_residues[0]
            if suffix == TERMINUS_SYMBOL_XTANDEM_C_TERMINUS:
                suffix = TERMINUS_SYMBOL_SEQUEST

        if include_mods and self.peptide_sequence_with_mods:
            return f"{prefix}.{self.peptide_sequence_with_mods}.{suffix}"
        if not self._peptide_clean_sequence:
            return ""
        return f"{prefix}.{self._peptide_clean_sequence}.{suffix}"
