"""Registry of modification definitions and mass correction tags."""

import importlib.resources
import logging
import os
from collections import deque
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from phrp import package_data
from phrp.exceptions import ModificationParsingError
from phrp.mass_calculator import NO_AFFECTED_ATOM_SYMBOL
from phrp.modification_definition import (
    C_TERMINAL_PEPTIDE_SYMBOL,
    C_TERMINAL_PROTEIN_SYMBOL,
    C_TERMINUS_STATES,
    LAST_RESORT_MODIFICATION_SYMBOL,
    N_TERMINAL_PEPTIDE_SYMBOL,
    N_TERMINAL_PROTEIN_SYMBOL,
    N_TERMINUS_STATES,
    NO_SYMBOL_MODIFICATION_SYMBOL,
    TERMINAL_SYMBOLS,
    UNKNOWN_MOD_BASE_NAME,
    ModificationDefinition,
    ModificationType,
    ResidueTerminusState,
    modification_symbol_to_type,
)

logger = logging.getLogger(__name__)

MASS_DIGITS_OF_PRECISION = 3
DEFAULT_MODIFICATION_SYMBOLS = "*#@$&!%~^`+="

INTEGER_MASS_CORRECTION_TAGS = {
    -18: "MinusH2O",
    -17: "NH3_Loss",
    -11: "AsnToCys",
    -8: "HisToGlu",
    -7: "TyrToArg",
    -4: "ThrToPro",
    -3: "MetToLys",
    -1: "Dehydro",
    1: "Deamide",
    2: "GluToMet",
    4: "TrypOxy",
    5: "5C13",
    6: "6C13",
    10: "D10-Leu",
    13: "Methylmn",
    14: "Methyl",
    16: "Plus1Oxy",
    18: "LeuToMet",
    25: "Cyano",
    28: "Dimethyl",
    32: "Plus2Oxy",
    42: "Acetyl",
    43: "Carbamyl",
    45: "NO2_Addn",
    48: "Plus3Oxy",
    56: "Propnyl",
    58: "IodoAcid",
    80: "Phosph",
    89: "Biotinyl",
    96: "PhosphH",
    104: "Ubiq_H",
    116: "Sucinate",
    119: "Cystnyl",
    125: "NEM",
    144: "itrac",
    215: "MethylHg",
    236: "ICAT_C13",
    442: "ICAT_D0",
}

# Common UniMod names that do not match a mass correction tag
MODIFICATION_NAME_ALIASES = {
    "deamidated": 0.984016,
    "methyl": 14.01565,
    "oxidation": 15.994915,
    "acetyl": 42.010567,
    "phospho": 79.966331,
    "carbamidomethyl": 57.021465,
}

_DYNAMIC_LIKE_TYPES = (
    ModificationType.DYNAMIC,
    ModificationType.STATIC,
    ModificationType.UNKNOWN,
)
_STATIC_TYPES = (
    ModificationType.STATIC,
    ModificationType.TERMINAL_PEPTIDE_STATIC,
    ModificationType.PROTEIN_TERMINUS_STATIC,
)


def _masses_match(mass_1: float, mass_2: float, digits: int) -> bool:
    return round(abs(mass_1 - mass_2), digits) == 0


def _closest_mass_match(
    modifications: Iterable[ModificationDefinition], modification_mass: float, digits: int
) -> Optional[ModificationDefinition]:
    """Return the definition whose mass is closest to `modification_mass`, within tolerance."""
    best_match = None
    best_diff = None
    for modification in modifications:
        diff = abs(modification.modification_mass - modification_mass)
        if round(diff, digits) == 0 and (best_diff is None or diff < best_diff):
            best_match = modification
            best_diff = diff
    return best_match


def _terminus_target_symbol(terminus_state: ResidueTerminusState) -> str:
    if terminus_state in N_TERMINUS_STATES:
        return N_TERMINAL_PEPTIDE_SYMBOL
    if terminus_state in C_TERMINUS_STATES:
        return C_TERMINAL_PEPTIDE_SYMBOL
    return ""


def load_default_mass_correction_tags() -> Dict[str, float]:
    """Load the mass correction tags shipped with PHRP."""
    with importlib.resources.open_text(package_data, "mass_correction_tags.txt") as f:
        return _parse_mass_correction_tags(f)


def _parse_mass_correction_tags(lines) -> Dict[str, float]:
    tags = {}
    for line in lines:
        split_line = line.rstrip("\r\n").split("\t")
        if len(split_line) < 2 or not split_line[0].strip():
            continue
        try:
            tags[split_line[0].strip()] = float(split_line[1])
        except ValueError:
            continue
    return tags


class ModificationCatalog:
    """
    Ordered collection of modification definitions known for a processing run.

    Besides the modification definitions, the catalog holds the mass correction
    tags (short names for modification masses) used to name modifications in
    the PHRP output files.

    Parameters
    ----------
    mass_correction_tags
        Mapping of mass correction tag to modification mass. Defaults to the
        tags shipped with PHRP.

    """

    def __init__(self, mass_correction_tags: Optional[Dict[str, float]] = None) -> None:
        self._modifications: List[ModificationDefinition] = []
        self._default_modification_symbols = deque()
        self._unknown_mod_count = 0
        if mass_correction_tags is None:
            mass_correction_tags = load_default_mass_correction_tags()
        self._mass_correction_tags = dict(mass_correction_tags)
        self._standard_refinement_modifications = [
            ModificationDefinition(
                LAST_RESORT_MODIFICATION_SYMBOL,
                -17.026549,
                "Q",
                ModificationType.DYNAMIC,
                "NH3_Loss",
            ),
            ModificationDefinition(
                LAST_RESORT_MODIFICATION_SYMBOL,
                -18.0106,
                "E",
                ModificationType.DYNAMIC,
                "MinusH2O",
            ),
        ]
        self.clear_modifications()

    def __iter__(self) -> Iterator[ModificationDefinition]:
        return iter(self._modifications)

    def __len__(self) -> int:
        return len(self._modifications)

    @property
    def modification_count(self) -> int:
        return len(self._modifications)

    @property
    def mass_correction_tags(self) -> Dict[str, float]:
        return self._mass_correction_tags

    def get_modification_by_index(self, index: int) -> ModificationDefinition:
        return self._modifications[index]

    def get_modification_type_by_index(self, index: int) -> ModificationType:
        if 0 <= index < len(self._modifications):
            return self._modifications[index].modification_type
        return ModificationType.UNKNOWN

    def clear_modifications(self):
        """Remove all modification definitions and reset the available symbols."""
        self._modifications = []
        self._unknown_mod_count = 0
        self._default_modification_symbols = deque()
        for symbol in DEFAULT_MODIFICATION_SYMBOLS:
            if symbol in (LAST_RESORT_MODIFICATION_SYMBOL, NO_SYMBOL_MODIFICATION_SYMBOL):
                continue
            if symbol not in self._default_modification_symbols:
                self._default_modification_symbols.append(symbol)

    def reset_occurrence_count_stats(self):
        for modification in self._modifications:
            modification.occurrence_count = 0

    def add_modification(
        self,
        modification_definition: ModificationDefinition,
        use_next_available_symbol: bool = True,
    ) -> ModificationDefinition:
        """
        Add a modification definition, merging it with an equivalent existing one.

        Returns the definition that is stored in the catalog.
        """
        for existing in self._modifications:
            if not existing.equivalent_mass_type_tag_and_atom(modification_definition):
                continue
            if existing.modification_type in (ModificationType.DYNAMIC, ModificationType.STATIC):
                for residue in modification_definition.target_residues:
                    if not existing.target_residues_contain(residue):
                        existing.target_residues += residue
            return existing

        if use_next_available_symbol and self._default_modification_symbols:
            modification_definition.modification_symbol = (
                self._default_modification_symbols.popleft()
            )
        self._modifications.append(modification_definition)
        return modification_definition

    def append_standard_refinement_modifications(self):
        for modification in self._standard_refinement_modifications:
            self.add_modification(modification.copy(), use_next_available_symbol=True)

    def verify_modification_present(
        self,
        modification_mass: float,
        target_residues: str,
        modification_type: ModificationType,
        digits: int = MASS_DIGITS_OF_PRECISION,
    ) -> bool:
        """Check if a definition with this mass, type and target residues exists."""
        for modification in self._modifications:
            if (
                modification.modification_type == modification_type
                and _masses_match(modification.modification_mass, modification_mass, digits)
                and ModificationDefinition.equivalent_target_residues(
                    modification.target_residues, target_residues, allow_subset=True
                )
            ):
                return True
        return False

    # Mass correction tags

    def read_mass_correction_tags_file(self, file_path: Union[str, os.PathLike]):
        """Replace the mass correction tags with those in a tab-delimited file (tag, mass)."""
        with open(file_path, "rt") as f:
            tags = _parse_mass_correction_tags(f)
        if tags:
            self._mass_correction_tags = tags

    def _get_best_integer_based_tag(self, modification_mass: float) -> Optional[str]:
        for integer_mass, tag in INTEGER_MASS_CORRECTION_TAGS.items():
            if abs(modification_mass - integer_mass) < 0.0001:
                return tag
        return None

    def _next_unknown_tag(self) -> Tuple[str, int]:
        count = self._unknown_mod_count
        while True:
            count += 1
            tag = f"{UNKNOWN_MOD_BASE_NAME}{count:02d}"
            if tag not in self._mass_correction_tags:
                return tag, count

    def lookup_mass_correction_tag_by_mass(
        self,
        modification_mass: float,
        digits: int = MASS_DIGITS_OF_PRECISION,
        add_if_unknown: bool = False,
        digits_loose: int = 1,
    ) -> str:
        """
        Find the mass correction tag closest to `modification_mass`.

        The search starts at `digits` of precision and is repeated with one digit
        less until `digits_loose` is reached. When no tag matches, a new
        ``UnkModNN`` name is generated (and stored if `add_if_unknown` is True).
        """
        digits_loose = min(digits_loose, digits)

        for precision in range(digits, digits_loose - 1, -1):
            if digits_loose == 0:
                integer_tag = self._get_best_integer_based_tag(modification_mass)
                if integer_tag:
                    return integer_tag

            closest_tag = None
            closest_diff = None
            for tag, tag_mass in self._mass_correction_tags.items():
                diff = abs(modification_mass - tag_mass)
                if closest_diff is None or diff < closest_diff:
                    closest_tag = tag
                    closest_diff = diff

            if closest_tag is not None and round(closest_diff, precision) == 0:
                return closest_tag

        unknown_tag, count = self._next_unknown_tag()
        if add_if_unknown:
            self._unknown_mod_count = count
            self._mass_correction_tags[unknown_tag] = modification_mass
        return unknown_tag

    def lookup_modification_mass_by_name(self, modification_name: str) -> Optional[float]:
        """Look up a modification mass by mass correction tag or common UniMod name."""
        if not modification_name:
            return None
        name = modification_name.strip().lower()
        for tag, mass in self._mass_correction_tags.items():
            if tag.lower() == name:
                return mass
        return MODIFICATION_NAME_ALIASES.get(name)

    # Modification definition lookups

    def _add_unknown_modification(
        self,
        modification_mass: float,
        modification_type: ModificationType,
        target_residue: str,
        terminus_state: ResidueTerminusState,
        add_if_unknown: bool,
        use_next_available_symbol: bool,
        modification_symbol: str,
        digits: int,
        digits_loose: int,
    ) -> ModificationDefinition:
        target_residues = target_residue or ""
        if terminus_state != ResidueTerminusState.NONE:
            target_residues = _terminus_target_symbol(terminus_state)
        if not use_next_available_symbol:
            modification_symbol = NO_SYMBOL_MODIFICATION_SYMBOL

        mass_correction_tag = self.lookup_mass_correction_tag_by_mass(
            modification_mass, digits, add_if_unknown=True, digits_loose=digits_loose
        )
        definition = ModificationDefinition(
            modification_symbol,
            modification_mass,
            target_residues,
            modification_type,
            mass_correction_tag,
            NO_AFFECTED_ATOM_SYMBOL,
            unknown_mod_auto_defined=True,
        )
        if not add_if_unknown:
            return definition

        logger.debug("Auto-defined modification %s", definition)
        return self.add_modification(
            definition,
            use_next_available_symbol=bool(
                use_next_available_symbol and self._default_modification_symbols
            ),
        )

    def _find_standard_refinement(
        self, modification_mass: float, target_residue: str, digits: int
    ) -> Optional[ModificationDefinition]:
        for refinement in self._standard_refinement_modifications:
            if _masses_match(
                refinement.modification_mass, modification_mass, digits
            ) and refinement.target_residues_contain(target_residue):
                return refinement.copy()
        return None

    def lookup_modification_definition_by_mass(
        self,
        modification_mass: float,
        target_residue: str = "",
        terminus_state: ResidueTerminusState = ResidueTerminusState.NONE,
        digits: int = MASS_DIGITS_OF_PRECISION,
        digits_loose: int = MASS_DIGITS_OF_PRECISION,
        auto_register: bool = True,
    ) -> Tuple[ModificationDefinition, bool]:
        """
        Find the modification definition that best matches a mass and residue.

        Parameters
        ----------
        modification_mass
            Mass of the modification, in Da.
        target_residue
            Residue the modification was observed on; empty if unknown.
        terminus_state
            Location of the residue relative to the peptide and protein termini.
        digits
            Digits of precision used to compare masses.
        digits_loose
            Loosest precision used when looking up a mass correction tag for an
            unknown modification.
        auto_register
            Add a new definition to the catalog if no match is found.

        Returns
        -------
        definition : ModificationDefinition
        was_existing : bool
            False if the definition was newly created.

        """
        terminus_symbol = _terminus_target_symbol(terminus_state)

        if target_residue or terminus_state != ResidueTerminusState.NONE:
            best_match = _closest_mass_match(
                (
                    m
                    for m in self._modifications
                    if m.modification_type in _DYNAMIC_LIKE_TYPES
                    and m.target_residues
                    and (
                        m.target_residues_contain(target_residue)
                        or m.target_residues_contain(terminus_symbol)
                    )
                ),
                modification_mass,
                digits,
            )
            if best_match is not None:
                return best_match, True

        best_match = _closest_mass_match(
            (
                m
                for m in self._modifications
                if m.modification_type in _DYNAMIC_LIKE_TYPES and not m.target_residues.strip()
            ),
            modification_mass,
            digits,
        )
        if best_match is not None:
            return best_match, True

        if target_residue:
            refinement = self._find_standard_refinement(modification_mass, target_residue, digits)
            if refinement is not None:
                if not auto_register or not self._default_modification_symbols:
                    return refinement, True
                return self.add_modification(refinement, use_next_available_symbol=True), True

        modification = _closest_mass_match(
            (
                m
                for m in self._modifications
                if m.modification_type in (ModificationType.DYNAMIC, ModificationType.UNKNOWN)
            ),
            modification_mass,
            digits,
        )
        if modification is not None:
            if target_residue and not modification.target_residues_contain(target_residue):
                modification.target_residues += target_residue
            return modification, True

        definition = self._add_unknown_modification(
            modification_mass,
            ModificationType.DYNAMIC,
            target_residue,
            terminus_state,
            add_if_unknown=auto_register,
            use_next_available_symbol=True,
            modification_symbol=LAST_RESORT_MODIFICATION_SYMBOL,
            digits=digits,
            digits_loose=digits_loose,
        )
        return definition, False

    def lookup_modification_definition_by_mass_and_mod_type(
        self,
        modification_mass: float,
        modification_type: ModificationType,
        target_residue: str = "",
        terminus_state: ResidueTerminusState = ResidueTerminusState.NONE,
        add_if_unknown: bool = True,
        digits: int = MASS_DIGITS_OF_PRECISION,
        digits_loose: int = MASS_DIGITS_OF_PRECISION,
    ) -> Tuple[ModificationDefinition, bool]:
        """
        Like :py:meth:`lookup_modification_definition_by_mass`, restricted to one type.

        Used to register the modifications listed in search tool parameter files.
        """
        if modification_type in _STATIC_TYPES:
            modification_symbol = NO_SYMBOL_MODIFICATION_SYMBOL
            use_next_available_symbol = False
        else:
            modification_symbol = LAST_RESORT_MODIFICATION_SYMBOL
            use_next_available_symbol = True

        if target_residue or terminus_state != ResidueTerminusState.NONE:
            terminus_symbol = _terminus_target_symbol(terminus_state)
            for modification in self._modifications:
                if (
                    modification.modification_type != modification_type
                    or not modification.target_residues
                    or not _masses_match(modification.modification_mass, modification_mass, digits)
                ):
                    continue
                if modification.target_residues_contain(
                    target_residue
                ) or modification.target_residues_contain(terminus_symbol):
                    return modification, True

        for modification in self._modifications:
            if (
                modification.modification_type == modification_type
                and not modification.target_residues.strip()
                and _masses_match(modification.modification_mass, modification_mass, digits)
            ):
                return modification, True

        if target_residue:
            refinement = self._find_standard_refinement(modification_mass, target_residue, digits)
            if refinement is not None:
                refinement.modification_symbol = modification_symbol
                refinement.modification_type = modification_type
                if not add_if_unknown or not self._default_modification_symbols:
                    return refinement, True
                return self.add_modification(refinement, use_next_available_symbol=True), True

        modification = _closest_mass_match(
            (m for m in self._modifications if m.modification_type == modification_type),
            modification_mass,
            digits,
        )
        if modification is not None:
            if target_residue and not modification.target_residues_contain(target_residue):
                modification.target_residues += target_residue
            return modification, True

        definition = self._add_unknown_modification(
            modification_mass,
            modification_type,
            target_residue,
            terminus_state,
            add_if_unknown=add_if_unknown,
            use_next_available_symbol=use_next_available_symbol,
            modification_symbol=modification_symbol,
            digits=digits,
            digits_loose=digits_loose,
        )
        return definition, False

    def lookup_dynamic_modification_definition_by_target_info(
        self,
        modification_symbol: str,
        target_residue: str = "",
        terminus_state: ResidueTerminusState = ResidueTerminusState.NONE,
    ) -> Tuple[ModificationDefinition, bool]:
        """
        Find a dynamic modification by its symbol and the residue it is attached to.

        Returns a placeholder definition (mass 0) and False if nothing matches.
        """
        dynamic_types = (ModificationType.DYNAMIC, ModificationType.UNKNOWN)

        if target_residue or terminus_state != ResidueTerminusState.NONE:
            for modification in self._modifications:
                if (
                    modification.modification_type not in dynamic_types
                    or modification.modification_symbol != modification_symbol
                    or not modification.target_residues
                ):
                    continue
                if modification.target_residues_contain(target_residue):
                    return modification, True
                if terminus_state in (
                    ResidueTerminusState.PROTEIN_N_TERMINUS,
                    ResidueTerminusState.PROTEIN_N_AND_C_TERMINUS,
                ) and modification.target_residues_contain(N_TERMINAL_PROTEIN_SYMBOL):
                    return modification, True
                if terminus_state in N_TERMINUS_STATES and modification.target_residues_contain(
                    N_TERMINAL_PEPTIDE_SYMBOL
                ):
                    return modification, True
                if terminus_state in (
                    ResidueTerminusState.PROTEIN_C_TERMINUS,
                    ResidueTerminusState.PROTEIN_N_AND_C_TERMINUS,
                ) and modification.target_residues_contain(C_TERMINAL_PROTEIN_SYMBOL):
                    return modification, True
                if terminus_state in (
                    ResidueTerminusState.PEPTIDE_C_TERMINUS,
                    ResidueTerminusState.PROTEIN_C_TERMINUS,
                    ResidueTerminusState.PROTEIN_N_AND_C_TERMINUS,
                ) and modification.target_residues_contain(C_TERMINAL_PEPTIDE_SYMBOL):
                    return modification, True

        for modification in self._modifications:
            if (
                modification.modification_type in dynamic_types
                and modification.modification_symbol == modification_symbol
                and not modification.target_residues.strip()
            ):
                return modification, True

        for modification in self._modifications:
            if (
                modification.modification_type in dynamic_types
                and modification.modification_symbol == modification_symbol
            ):
                return modification, True

        placeholder = ModificationDefinition(
            modification_symbol,
            0.0,
            target_residue or "",
            ModificationType.DYNAMIC,
            self.lookup_mass_correction_tag_by_mass(0.0),
        )
        return placeholder, False

    def read_modification_definitions_file(self, file_path: Union[str, os.PathLike]):
        """
        Load modification definitions from a tab-delimited file.

        Columns: symbol, mass, target residues (optional), modification type symbol
        (D, S, T, I or P; optional), mass correction tag (optional) and affected
        atom (optional).
        """
        if not os.path.isfile(file_path):
            raise FileNotFoundError(file_path)

        self.clear_modifications()
        with open(file_path, "rt") as f:
            for line_number, line in enumerate(f, start=1):
                split_line = line.rstrip("\r\n").split("\t")
                if len(split_line) < 2 or len(split_line[0].strip()) != 1:
                    continue
                try:
                    mass = float(split_line[1])
                except ValueError:
                    continue

                definition = ModificationDefinition(split_line[0].strip(), mass)
                if len(split_line) >= 3:
                    definition.target_residues = "".join(
                        c
                        for c in split_line[2].strip().upper()
                        if c.isupper() or c in TERMINAL_SYMBOLS
                    )
                if len(split_line) >= 4 and len(split_line[3].strip()) == 1:
                    definition.modification_type = modification_symbol_to_type(split_line[3].strip())
                if len(split_line) >= 5:
                    definition.mass_correction_tag = split_line[4].strip()
                if len(split_line) >= 6 and split_line[5].strip():
                    definition.affected_atom = split_line[5].strip()
                if definition.modification_type == ModificationType.UNKNOWN:
                    definition.modification_type = ModificationType.DYNAMIC

                if (
                    definition.modification_type == ModificationType.STATIC
                    and len(definition.target_residues) == 1
                ):
                    if definition.target_residues in (
                        N_TERMINAL_PEPTIDE_SYMBOL,
                        C_TERMINAL_PEPTIDE_SYMBOL,
                    ):
                        definition.modification_type = ModificationType.TERMINAL_PEPTIDE_STATIC
                    elif definition.target_residues in (
                        N_TERMINAL_PROTEIN_SYMBOL,
                        C_TERMINAL_PROTEIN_SYMBOL,
                    ):
                        definition.modification_type = ModificationType.PROTEIN_TERMINUS_STATIC

                if definition.modification_type in (
                    ModificationType.ISOTOPIC,
                    ModificationType.TERMINAL_PEPTIDE_STATIC,
                    ModificationType.PROTEIN_TERMINUS_STATIC,
                ):
                    definition.modification_symbol = NO_SYMBOL_MODIFICATION_SYMBOL

                if not self._is_valid_definition(definition):
                    raise ModificationParsingError(
                        f"Invalid modification definition on line {line_number} of {file_path}: "
                        f"{line.strip()}"
                    )

                if not definition.mass_correction_tag:
                    definition.mass_correction_tag = self.lookup_mass_correction_tag_by_mass(mass)
                self.add_modification(definition, use_next_available_symbol=False)

        used_symbols = {m.modification_symbol for m in self._modifications}
        self._default_modification_symbols = deque(
            s for s in self._default_modification_symbols if s not in used_symbols
        )

    @staticmethod
    def _is_valid_definition(definition: ModificationDefinition) -> bool:
        if definition.modification_type == ModificationType.ISOTOPIC:
            return definition.affected_atom != NO_AFFECTED_ATOM_SYMBOL
        if definition.modification_type == ModificationType.TERMINAL_PEPTIDE_STATIC:
            return definition.target_residues in (
                N_TERMINAL_PEPTIDE_SYMBOL,
                C_TERMINAL_PEPTIDE_SYMBOL,
            )
        if definition.modification_type == ModificationType.PROTEIN_TERMINUS_STATIC:
            return definition.target_residues in (
                N_TERMINAL_PROTEIN_SYMBOL,
                C_TERMINAL_PROTEIN_SYMBOL,
            )
        return True
