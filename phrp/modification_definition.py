"""Modification definitions and residue-level modification annotations."""

from enum import IntEnum
from typing import NamedTuple

from phrp.mass_calculator import NO_AFFECTED_ATOM_SYMBOL

LAST_RESORT_MODIFICATION_SYMBOL = "_"
NO_SYMBOL_MODIFICATION_SYMBOL = "-"
UNKNOWN_MOD_BASE_NAME = "UnkMod"
INITIAL_UNKNOWN_MASS_CORRECTION_TAG_NAME = UNKNOWN_MOD_BASE_NAME + "00"

N_TERMINAL_PEPTIDE_SYMBOL = "<"
C_TERMINAL_PEPTIDE_SYMBOL = ">"
N_TERMINAL_PROTEIN_SYMBOL = "["
C_TERMINAL_PROTEIN_SYMBOL = "]"
TERMINAL_SYMBOLS = (
    N_TERMINAL_PEPTIDE_SYMBOL
    + C_TERMINAL_PEPTIDE_SYMBOL
    + N_TERMINAL_PROTEIN_SYMBOL
    + C_TERMINAL_PROTEIN_SYMBOL
)

MAX_MASS_CORRECTION_TAG_LENGTH = 8


class ModificationType(IntEnum):
    UNKNOWN = 0
    DYNAMIC = 1
    STATIC = 2
    TERMINAL_PEPTIDE_STATIC = 3
    ISOTOPIC = 4
    PROTEIN_TERMINUS_STATIC = 5


class ResidueTerminusState(IntEnum):
    NONE = 0
    PEPTIDE_N_TERMINUS = 1
    PEPTIDE_C_TERMINUS = 2
    PROTEIN_N_TERMINUS = 3
    PROTEIN_C_TERMINUS = 4
    PROTEIN_N_AND_C_TERMINUS = 5


N_TERMINUS_STATES = {
    ResidueTerminusState.PEPTIDE_N_TERMINUS,
    ResidueTerminusState.PROTEIN_N_TERMINUS,
    ResidueTerminusState.PROTEIN_N_AND_C_TERMINUS,
}
C_TERMINUS_STATES = {
    ResidueTerminusState.PEPTIDE_C_TERMINUS,
    ResidueTerminusState.PROTEIN_C_TERMINUS,
}

_MODIFICATION_TYPE_SYMBOLS = {
    ModificationType.DYNAMIC: "D",
    ModificationType.STATIC: "S",
    ModificationType.TERMINAL_PEPTIDE_STATIC: "T",
    ModificationType.ISOTOPIC: "I",
    ModificationType.PROTEIN_TERMINUS_STATIC: "P",
    ModificationType.UNKNOWN: "?",
}
_MODIFICATION_SYMBOL_TYPES = {v: k for k, v in _MODIFICATION_TYPE_SYMBOLS.items()}


def modification_type_to_symbol(modification_type: ModificationType) -> str:
    return _MODIFICATION_TYPE_SYMBOLS.get(modification_type, "?")


def modification_symbol_to_type(symbol: str) -> ModificationType:
    return _MODIFICATION_SYMBOL_TYPES.get(symbol.upper() if symbol else "", ModificationType.UNKNOWN)


def clean_mass_correction_tag(tag: str) -> str:
    """Shorten a tag to 8 characters and replace characters that are not allowed."""
    if not tag:
        return ""
    tag = tag[:MAX_MASS_CORRECTION_TAG_LENGTH]
    for forbidden in (":", ",", " "):
        tag = tag.replace(forbidden, "_")
    return tag


class ModificationDefinition:
    """
    A modification that can be present on peptides in a results file.

    Parameters
    ----------
    modification_symbol
        Single character used to notate the modification in sequences;
        ``-`` for static modifications.
    modification_mass
        Monoisotopic mass shift in Da.
    target_residues
        One-letter residue codes the modification applies to. Empty means any
        residue. May include terminus symbols ``<``, ``>``, ``[`` and ``]``.
    modification_type
        Kind of modification.
    mass_correction_tag
        Short name (at most 8 characters) that identifies the modification.
    affected_atom
        Element symbol for isotopic modifications; ``-`` otherwise.

    """

    def __init__(
        self,
        modification_symbol: str = NO_SYMBOL_MODIFICATION_SYMBOL,
        modification_mass: float = 0.0,
        target_residues: str = "",
        modification_type: ModificationType = ModificationType.UNKNOWN,
        mass_correction_tag: str = "",
        affected_atom: str = NO_AFFECTED_ATOM_SYMBOL,
        unknown_mod_auto_defined: bool = False,
    ) -> None:
        self.modification_symbol = modification_symbol or NO_SYMBOL_MODIFICATION_SYMBOL
        self.modification_mass = modification_mass
        self.target_residues = target_residues or ""
        self.modification_type = modification_type
        self.mass_correction_tag = clean_mass_correction_tag(mass_correction_tag)
        self.affected_atom = affected_atom or NO_AFFECTED_ATOM_SYMBOL
        self.unknown_mod_auto_defined = unknown_mod_auto_defined
        self.occurrence_count = 0

    def __repr__(self) -> str:
        return (
            f"ModificationDefinition({self.modification_symbol!r}, {self.modification_mass!r}, "
            f"{self.target_residues!r}, {self.modification_type.name}, "
            f"{self.mass_correction_tag!r})"
        )

    def __str__(self) -> str:
        return (
            f"{self.modification_type.name} {self.mass_correction_tag}, "
            f"{self.modification_mass:.4f}; {self.target_residues}"
        )

    def copy(self) -> "ModificationDefinition":
        duplicate = ModificationDefinition(
            self.modification_symbol,
            self.modification_mass,
            self.target_residues,
            self.modification_type,
            self.mass_correction_tag,
            self.affected_atom,
            self.unknown_mod_auto_defined,
        )
        duplicate.occurrence_count = self.occurrence_count
        return duplicate

    def can_affect_peptide_or_protein_terminus(self) -> bool:
        """True if the target residues include a peptide or protein terminus symbol."""
        if self.modification_type == ModificationType.PROTEIN_TERMINUS_STATIC:
            return True
        return any(symbol in self.target_residues for symbol in TERMINAL_SYMBOLS)

    def can_affect_peptide_residues(self) -> bool:
        """True if the modification applies to residues (not only to termini)."""
        if self.modification_type == ModificationType.PROTEIN_TERMINUS_STATIC:
            return False
        if not self.target_residues:
            return True
        return any(residue.isalpha() for residue in self.target_residues)

    def target_residues_contain(self, residue: str) -> bool:
        if not residue:
            return False
        return residue in self.target_residues

    def equivalent_mass_type_tag_and_atom(self, other: "ModificationDefinition") -> bool:
        """Compare mass (3 digits), type, mass correction tag and affected atom."""
        return (
            round(abs(self.modification_mass - other.modification_mass), 3) == 0
            and self.modification_type == other.modification_type
            and self.mass_correction_tag == other.mass_correction_tag
            and self.affected_atom == other.affected_atom
        )

    def equivalent_mass_type_tag_atom_and_residues(self, other: "ModificationDefinition") -> bool:
        """Like :py:meth:`equivalent_mass_type_tag_and_atom`, also comparing target residues."""
        if not self.equivalent_mass_type_tag_and_atom(other):
            return False
        if self.modification_type in (ModificationType.DYNAMIC, ModificationType.STATIC):
            return self.equivalent_target_residues(
                self.target_residues, other.target_residues, allow_subset=False
            )
        return self.target_residues == other.target_residues

    @staticmethod
    def equivalent_target_residues(residues_1: str, residues_2: str, allow_subset: bool) -> bool:
        """
        Compare two sets of target residues, ignoring order.

        If `allow_subset` is True, `residues_2` may be a subset of `residues_1`.
        """
        residues_1 = residues_1 or ""
        residues_2 = residues_2 or ""
        if residues_1 == residues_2:
            return True
        if not residues_1 or not residues_2:
            return False

        set_1 = set(residues_1)
        set_2 = set(residues_2)
        if set_1 == set_2:
            return True
        return allow_subset and set_2 <= set_1


class AnnotatedModification(NamedTuple):
    """A modification attached to a residue of a specific peptide."""

    residue: str
    residue_loc_in_peptide: int
    residue_terminus_state: ResidueTerminusState
    modification_definition: ModificationDefinition
