"""Monoisotopic peptide mass computation from amino acid residue masses."""

import logging
import re
from collections import Counter
from typing import Dict, Iterable, NamedTuple, Optional

from pyteomics import mass

from phrp.cleavage_state import split_prefix_and_suffix_from_sequence

logger = logging.getLogger(__name__)

MASS_HYDROGEN = 1.0078246
MASS_OXYGEN = 15.9949141
MASS_PROTON = 1.00727649
MASS_ELECTRON = 0.00054811

NO_AFFECTED_ATOM_SYMBOL = "-"

DEFAULT_N_TERMINUS_MASS_CHANGE = MASS_HYDROGEN
DEFAULT_C_TERMINUS_MASS_CHANGE = MASS_OXYGEN + MASS_HYDROGEN

AMINO_ACID_MASSES = {
    "A": 71.0371100902557,
    "B": 114.042921543121,
    "C": 103.009180784225,
    "D": 115.026938199997,
    "E": 129.042587518692,
    "F": 147.068408727646,
    "G": 57.0214607715607,
    "H": 137.058904886246,
    "I": 113.084058046341,
    "J": 0.0,
    "K": 128.094955444336,
    "L": 113.084058046341,
    "M": 131.040479421616,
    "N": 114.042921543121,
    "O": 114.079306125641,
    "P": 97.0527594089508,
    "Q": 128.058570861816,
    "R": 156.101100921631,
    "S": 87.0320241451263,
    "T": 101.047673463821,
    "U": 150.95363,
    "V": 99.0684087276459,
    "W": 186.079306125641,
    "X": 113.084058046341,
    "Y": 163.063322782516,
    "Z": 128.058570861816,
}

# Residue compositions for symbols outside the standard amino acids
NONSTANDARD_RESIDUE_COMPOSITIONS = {
    "B": mass.std_aa_comp["N"],
    "J": mass.Composition(),
    "O": mass.Composition(formula="C5H10N2O"),
    "X": mass.std_aa_comp["L"],
    "Z": mass.std_aa_comp["Q"],
}

_MOD_MASS_PATTERN = re.compile(r"[+-][0-9.]+")


class PeptideSequenceModInfo(NamedTuple):
    """Modification mass applied at a residue location (0 for isotopic mods)."""

    residue_loc_in_peptide: int
    modification_mass: float
    affected_atom: str = NO_AFFECTED_ATOM_SYMBOL


def _residue_element_counts(residue: str) -> Counter:
    composition = NONSTANDARD_RESIDUE_COMPOSITIONS.get(residue)
    if composition is None:
        composition = mass.std_aa_comp.get(residue)
    if composition is None:
        return Counter()
    return Counter(composition)


def mass_to_ppm(mass_to_convert: float, current_mz: float) -> float:
    """Convert a mass difference (in Da) to ppm, relative to `current_mz`."""
    return mass_to_convert * 1e6 / current_mz


def ppm_to_mass(ppm_to_convert: float, current_mz: float) -> float:
    """Convert a ppm value to a mass difference (in Da), relative to `current_mz`."""
    return ppm_to_convert / 1e6 * current_mz


class PeptideMassCalculator:
    """
    Compute monoisotopic masses of peptides and convert between charge states.

    Residues without a mass in the table contribute 0 Da, so corrupted or
    ambiguous sequences never abort the processing of a results file.

    Parameters
    ----------
    remove_prefix_and_suffix_if_present
        Strip prefix and suffix residues (``R.PEPTIDE.K``) before computing a mass.
    charge_carrier_mass
        Mass of the charge carrier used by :py:meth:`convolute_mass`.

    """

    def __init__(
        self,
        remove_prefix_and_suffix_if_present: bool = True,
        charge_carrier_mass: float = MASS_PROTON,
    ) -> None:
        self.remove_prefix_and_suffix_if_present = remove_prefix_and_suffix_if_present
        self.charge_carrier_mass = charge_carrier_mass
        self.error_message = ""
        self._amino_acid_masses: Dict[str, float] = dict(AMINO_ACID_MASSES)
        self.peptide_n_terminus_mass = DEFAULT_N_TERMINUS_MASS_CHANGE
        self.peptide_c_terminus_mass = DEFAULT_C_TERMINUS_MASS_CHANGE

    def reset_terminus_masses(self):
        self.peptide_n_terminus_mass = DEFAULT_N_TERMINUS_MASS_CHANGE
        self.peptide_c_terminus_mass = DEFAULT_C_TERMINUS_MASS_CHANGE

    def set_terminus_masses(self, n_terminus_mass: float, c_terminus_mass: float):
        self.peptide_n_terminus_mass = n_terminus_mass
        self.peptide_c_terminus_mass = c_terminus_mass

    def reset_amino_acid_masses(self):
        self._amino_acid_masses = dict(AMINO_ACID_MASSES)

    def set_amino_acid_mass(self, amino_acid: str, mass: float):
        """Register or override the mass of a single-letter residue symbol."""
        if not amino_acid or not amino_acid.isalpha():
            raise ValueError(f"Invalid amino acid symbol: {amino_acid!r}")
        self._amino_acid_masses[amino_acid.upper()] = mass

    def get_amino_acid_mass(self, amino_acid: str) -> float:
        """Return the residue mass, or 0 if the residue is unknown."""
        if not amino_acid:
            return 0.0
        return self._amino_acid_masses.get(amino_acid.upper(), 0.0)

    def _primary_sequence(self, sequence: str) -> str:
        if self.remove_prefix_and_suffix_if_present:
            found, primary_sequence, _, _ = split_prefix_and_suffix_from_sequence(sequence)
            if found and primary_sequence.strip():
                return primary_sequence
        return sequence

    def compute_sequence_mass(
        self,
        sequence: str,
        modifications: Optional[Iterable[PeptideSequenceModInfo]] = None,
    ) -> float:
        """
        Compute the monoisotopic mass of a clean sequence plus positional mod masses.

        Parameters
        ----------
        sequence
            Clean peptide sequence, optionally with prefix and suffix residues.
        modifications
            Modification masses to add. Isotopic modifications (with an affected
            atom) are multiplied by the number of atoms of that element in the
            sequence.

        Returns
        -------
        float
            Monoisotopic mass; -1 if an isotopic modification names an unknown
            element.

        """
        self.error_message = ""
        primary_sequence = self._primary_sequence(sequence or "")

        sequence_mass = 0.0
        valid_residue_count = 0
        for residue in primary_sequence:
            residue_mass = self._amino_acid_masses.get(residue.upper())
            if residue_mass is None:
                continue
            sequence_mass += residue_mass
            valid_residue_count += 1

        if valid_residue_count > 0:
            sequence_mass += self.peptide_n_terminus_mass + self.peptide_c_terminus_mass

        if not modifications:
            return sequence_mass

        element_counts = None
        for mod_info in modifications:
            atom = mod_info.affected_atom
            if not atom or atom == NO_AFFECTED_ATOM_SYMBOL:
                sequence_mass += mod_info.modification_mass
                continue

            if atom not in mass.nist_mass:
                self.error_message = f"Unknown Affected Atom '{atom}'"
                return -1.0

            if element_counts is None:
                element_counts = Counter()
                for residue in primary_sequence:
                    element_counts.update(_residue_element_counts(residue.upper()))

            element_count = element_counts.get(atom, 0)
            if element_count == 0:
                logger.debug("No residues in %s contain element %s", primary_sequence, atom)
            else:
                sequence_mass += element_count * mod_info.modification_mass

        return sequence_mass

    def compute_sequence_mass_numeric_mods(self, sequence: str) -> float:
        """Compute the mass of a sequence with inline numeric mods, e.g. ``PEPT+79.97IDE``."""
        primary_sequence = self._primary_sequence(sequence or "")

        mod_mass_total = 0.0
        for match in _MOD_MASS_PATTERN.finditer(primary_sequence):
            try:
                mod_mass_total += float(match.group(0))
            except ValueError:
                continue

        sequence_without_mods = _MOD_MASS_PATTERN.sub("", primary_sequence)
        return self.compute_sequence_mass(sequence_without_mods) + mod_mass_total

    def convolute_mass(
        self,
        mass_mz: float,
        current_charge: int,
        desired_charge: int = 1,
        charge_carrier_mass: Optional[float] = None,
    ) -> float:
        """
        Convert an m/z value from one charge state to another.

        A charge of 0 denotes a neutral (monoisotopic) mass. Negative charges
        are not supported and yield 0.
        """
        if charge_carrier_mass is None:
            charge_carrier_mass = self.charge_carrier_mass

        if current_charge == desired_charge:
            return mass_mz

        if current_charge == 1:
            new_mz = mass_mz
        elif current_charge > 1:
            new_mz = mass_mz * current_charge - charge_carrier_mass * (current_charge - 1)
        elif current_charge == 0:
            new_mz = mass_mz + charge_carrier_mass
        else:
            return 0.0

        if desired_charge > 1:
            return (new_mz + charge_carrier_mass * (desired_charge - 1)) / desired_charge
        if desired_charge == 1:
            return new_mz
        if desired_charge == 0:
            return new_mz - charge_carrier_mass
        return 0.0

    def mh_to_monoisotopic_mass(self, mh_mass: float) -> float:
        return self.convolute_mass(mh_mass, 1, 0)

    def monoisotopic_mass_to_mz(self, monoisotopic_mass: float, desired_charge: int) -> float:
        return self.convolute_mass(monoisotopic_mass, 0, desired_charge)
