"""
Associate the modification tokens in peptide strings with peptide residues.

Two notations are supported, each by a character-level state machine:

- :py:class:`PlusMassModificationAnnotator`: signed masses after the modified
  residue, as reported by MODa (``M+15.995PEPT-17.03IDE``).
- :py:class:`BracketModificationAnnotator`: masses or UniMod names in square
  brackets, with ambiguous residue groups in parentheses, as reported by TopPIC
  (``(AM)[Oxidation]PEPT[79.96633]IDE``).

"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Set

from phrp.modification_catalog import MASS_DIGITS_OF_PRECISION, ModificationCatalog
from phrp.modification_definition import ModificationType
from phrp.search_result import SearchResult
from phrp.utils import ErrorLog, is_letter_a_to_z

logger = logging.getLogger(__name__)

NO_RESIDUE = "-"


class ModificationAnnotator(ABC):
    """
    Base class for modification annotators.

    Parameters
    ----------
    catalog
        Modification catalog used to resolve modification masses and static mods.
    error_log
        Collects non-fatal annotation errors. A new log is created if None.
    mass_digits
        Digits of precision used to match modification masses to known
        modifications.

    """

    def __init__(
        self,
        catalog: ModificationCatalog,
        error_log: Optional[ErrorLog] = None,
        mass_digits: int = MASS_DIGITS_OF_PRECISION,
    ) -> None:
        self.catalog = catalog
        self.error_log = error_log if error_log is not None else ErrorLog()
        self.mass_digits = mass_digits

    @abstractmethod
    def annotate_modifications(self, search_result: SearchResult, update_occurrence_counts: bool):
        """Add the dynamic and static residue modifications to `search_result`."""
        pass

    def _add_static_residue_mods(
        self,
        search_result: SearchResult,
        residue: str,
        residue_loc_in_peptide: int,
        update_occurrence_counts: bool,
    ):
        for modification_definition in self.catalog:
            if modification_definition.modification_type != ModificationType.STATIC:
                continue
            if modification_definition.target_residues_contain(residue):
                search_result.add_modification(
                    modification_definition,
                    residue,
                    residue_loc_in_peptide,
                    search_result.determine_residue_terminus_state(residue_loc_in_peptide),
                    update_occurrence_counts,
                )

    def _add_modification_by_mass(
        self,
        search_result: SearchResult,
        modification_mass: float,
        residue: str,
        residue_loc_in_peptide: int,
        update_occurrence_counts: bool,
        token: str,
    ):
        # Tokens before the first residue belong to the N-terminal residue
        if residue_loc_in_peptide == 0:
            residue_loc_in_peptide = 1
            if residue == NO_RESIDUE and search_result.peptide_clean_sequence:
                residue = search_result.peptide_clean_sequence[0]

        success = search_result.add_modification_by_mass(
            modification_mass,
            residue,
            residue_loc_in_peptide,
            search_result.determine_residue_terminus_state(residue_loc_in_peptide),
            update_occurrence_counts,
            digits=self.mass_digits,
            digits_loose=self.mass_digits,
        )
        if not success:
            message = search_result.error_message or (
                f"Could not add modification {token} to residue {residue}"
            )
            self._record_error(f"{message}; ResultID = {search_result.result_id}")

    def _record_error(self, message: str):
        if not self.error_log.add(message):
            logger.debug(message)

    def add_modifications_and_compute_mass(
        self,
        search_result: SearchResult,
        update_occurrence_counts: bool,
        allow_duplicate_mod_on_terminus: bool = True,
    ) -> bool:
        """
        Annotate all modifications of a search result, then compute its mass.

        Isotopic mods are added first, then residue mods and static terminus
        mods. Finally the monoisotopic mass and the modification description are
        computed.

        Returns
        -------
        bool
            False if the annotation failed; details are in
            ``search_result.error_message``.

        """
        try:
            search_result.add_isotopic_modifications(update_occurrence_counts)
            self.annotate_modifications(search_result, update_occurrence_counts)
            search_result.add_static_terminus_mods(
                allow_duplicate_mod_on_terminus, update_occurrence_counts
            )
            search_result.compute_monoisotopic_mass()
            search_result.update_mod_description()
        except (ValueError, IndexError, KeyError, TypeError) as e:
            search_result.error_message = f"Error adding modifications: {e}"
            logger.debug(
                "Annotation of %s failed: %s", search_result.peptide_sequence_with_mods, e
            )
            return False
        return True


class PlusMassModificationAnnotator(ModificationAnnotator):
    """Annotator for signed modification masses following the modified residue."""

    def annotate_modifications(self, search_result: SearchResult, update_occurrence_counts: bool):
        parsing_mod_mass = False
        mod_mass_digits = ""
        most_recent_residue = NO_RESIDUE
        residue_loc_in_peptide = 0

        for character in search_result.peptide_sequence_with_mods:
            if is_letter_a_to_z(character):
                if parsing_mod_mass:
                    self._associate_mod_mass(
                        search_result,
                        mod_mass_digits,
                        most_recent_residue,
                        residue_loc_in_peptide,
                        update_occurrence_counts,
                    )
                    parsing_mod_mass = False

                most_recent_residue = character
                residue_loc_in_peptide += 1
                self._add_static_residue_mods(
                    search_result, character, residue_loc_in_peptide, update_occurrence_counts
                )
                continue

            is_number_char = character in "+-" or character.isdigit()
            if parsing_mod_mass:
                if is_number_char or character == ".":
                    mod_mass_digits += character
            elif is_number_char:
                mod_mass_digits = character
                parsing_mod_mass = True

        if parsing_mod_mass:
            self._associate_mod_mass(
                search_result,
                mod_mass_digits,
                most_recent_residue,
                residue_loc_in_peptide,
                update_occurrence_counts,
            )

    def _associate_mod_mass(
        self,
        search_result: SearchResult,
        mod_mass_digits: str,
        residue: str,
        residue_loc_in_peptide: int,
        update_occurrence_counts: bool,
    ):
        try:
            modification_mass = float(mod_mass_digits)
        except ValueError:
            search_result.error_message = f"Invalid modification mass: {mod_mass_digits}"
            self._record_error(
                f"{search_result.error_message}; ResultID = {search_result.result_id}"
            )
            return

        self._add_modification_by_mass(
            search_result,
            modification_mass,
            residue,
            residue_loc_in_peptide,
            update_occurrence_counts,
            mod_mass_digits,
        )


class BracketModificationAnnotator(ModificationAnnotator):
    """
    Annotator for ``[mass]`` and ``[Name]`` modification tags.

    A tag that follows a parenthesized residue group is associated with the
    first residue of that group.
    """

    def __init__(
        self,
        catalog: ModificationCatalog,
        error_log: Optional[ErrorLog] = None,
        mass_digits: int = MASS_DIGITS_OF_PRECISION,
    ) -> None:
        super().__init__(catalog, error_log=error_log, mass_digits=mass_digits)
        self.unknown_named_mods: Set[str] = set()

    def lookup_modification_mass_by_name(self, modification_name: str) -> Optional[float]:
        """Look up a named modification, logging each unknown name only once."""
        modification_mass = self.catalog.lookup_modification_mass_by_name(modification_name)
        if modification_mass is None and modification_name not in self.unknown_named_mods:
            self.unknown_named_mods.add(modification_name)
            logger.warning("Unrecognized named modification: %s", modification_name)
        return modification_mass

    def annotate_modifications(self, search_result: SearchResult, update_occurrence_counts: bool):
        parsing_mod_info = False
        mod_mass_or_name = ""
        most_recent_residue = NO_RESIDUE
        residue_loc_in_peptide = 0
        ambiguous_residue = NO_RESIDUE
        ambiguous_residue_loc_in_peptide = 0
        store_ambiguous_residue = False
        clear_ambiguous_residue = False

        for character in search_result.peptide_sequence_with_mods:
            if not parsing_mod_info and is_letter_a_to_z(character):
                most_recent_residue = character
                residue_loc_in_peptide += 1

                if store_ambiguous_residue:
                    ambiguous_residue = character
                    ambiguous_residue_loc_in_peptide = residue_loc_in_peptide
                    store_ambiguous_residue = False
                elif clear_ambiguous_residue:
                    ambiguous_residue = NO_RESIDUE
                    clear_ambiguous_residue = False

                self._add_static_residue_mods(
                    search_result, character, residue_loc_in_peptide, update_occurrence_counts
                )

            elif character == "(":
                store_ambiguous_residue = True

            elif character == ")":
                clear_ambiguous_residue = True

            elif character == "[":
                mod_mass_or_name = ""
                parsing_mod_info = True

            elif character == "]":
                if not parsing_mod_info:
                    continue
                parsing_mod_info = False

                if ambiguous_residue == NO_RESIDUE:
                    residue, residue_loc = most_recent_residue, residue_loc_in_peptide
                else:
                    residue, residue_loc = ambiguous_residue, ambiguous_residue_loc_in_peptide

                self._associate_mod_mass_or_name(
                    search_result, mod_mass_or_name, residue, residue_loc, update_occurrence_counts
                )

            elif parsing_mod_info:
                mod_mass_or_name += character

        if parsing_mod_info and mod_mass_or_name:
            # Unterminated tag
            if ambiguous_residue == NO_RESIDUE:
                residue, residue_loc = most_recent_residue, residue_loc_in_peptide
            else:
                residue, residue_loc = ambiguous_residue, ambiguous_residue_loc_in_peptide
            self._associate_mod_mass_or_name(
                search_result, mod_mass_or_name, residue, residue_loc, update_occurrence_counts
            )

    def _associate_mod_mass_or_name(
        self,
        search_result: SearchResult,
        mod_mass_or_name: str,
        residue: str,
        residue_loc_in_peptide: int,
        update_occurrence_counts: bool,
    ):
        try:
            modification_mass = float(mod_mass_or_name)
        except ValueError:
            modification_mass = self.lookup_modification_mass_by_name(mod_mass_or_name)
            if modification_mass is None:
                search_result.error_message = f"Unknown mod name: {mod_mass_or_name}"
                self._record_error(
                    f"{search_result.error_message}; ResultID = {search_result.result_id}"
                )
                return

        self._add_modification_by_mass(
            search_result,
            modification_mass,
            residue,
            residue_loc_in_peptide,
            update_occurrence_counts,
            mod_mass_or_name,
        )
