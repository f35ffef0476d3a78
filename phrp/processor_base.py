"""Base class for search tool results processors."""

import csv
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple, Union

import pandas as pd

from phrp.annotator import ModificationAnnotator
from phrp.exceptions import ResultsFileParsingError
from phrp.mass_calculator import PeptideMassCalculator
from phrp.modification_catalog import ModificationCatalog
from phrp.modification_definition import modification_type_to_symbol
from phrp.rank_fdr import (
    assign_ranks_per_scan,
    compute_fdr,
    compute_q_values,
    filter_by_threshold,
)
from phrp.reconciliation import MassReconciler
from phrp.search_result import SearchResult
from phrp.unique_sequences import UniqueSequenceRegistry
from phrp.utils import ErrorLog, dbl_to_string, replace_filename_suffix

logger = logging.getLogger(__name__)

SYNOPSIS_FILE_SUFFIX = "_syn.txt"
FILENAME_SUFFIX_RESULT_TO_SEQ_MAP = "_ResultToSeqMap.txt"
FILENAME_SUFFIX_SEQ_INFO = "_SeqInfo.txt"
FILENAME_SUFFIX_MOD_DETAILS = "_ModDetails.txt"
FILENAME_SUFFIX_SEQ_TO_PROTEIN_MAP = "_SeqToProteinMap.txt"
FILENAME_SUFFIX_MOD_SUMMARY = "_ModSummary.txt"

COLUMN_NAME_UNIQUE_SEQ_ID = "Unique_Seq_ID"
COLUMN_NAME_PROTEIN_NAME = "Protein_Name"

RESULT_TO_SEQ_MAP_COLUMNS = ["Result_ID", COLUMN_NAME_UNIQUE_SEQ_ID]
SEQ_INFO_COLUMNS = [COLUMN_NAME_UNIQUE_SEQ_ID, "Mod_Count", "Mod_Description", "Monoisotopic_Mass"]
MOD_DETAILS_COLUMNS = [COLUMN_NAME_UNIQUE_SEQ_ID, "Mass_Correction_Tag", "Position"]
SEQ_TO_PROTEIN_MAP_COLUMNS = [
    COLUMN_NAME_UNIQUE_SEQ_ID,
    "Cleavage_State",
    "Terminus_State",
    COLUMN_NAME_PROTEIN_NAME,
    "Protein_Expectation_Value_Log(e)",
    "Protein_Intensity_Log(I)",
]
MOD_SUMMARY_COLUMNS = [
    "Modification_Symbol",
    "Modification_Mass",
    "Target_Residues",
    "Modification_Type",
    "Mass_Correction_Tag",
    "Occurrence_Count",
]


def read_results_table(
    path: Union[str, os.PathLike], names: Optional[List[str]] = None
) -> pd.DataFrame:
    """
    Read a search tool results file with all values as strings.

    Missing values are read as NaN, so that short rows can be recognized with
    :py:func:`iter_results_rows`. If `names` is given, the file is read without
    a header row.
    """
    return pd.read_csv(
        path,
        sep="\t",
        header=None if names else 0,
        names=names,
        dtype=str,
        quoting=csv.QUOTE_NONE,
        skip_blank_lines=True,
        on_bad_lines="warn",
    )


def iter_results_rows(results_df: pd.DataFrame) -> Iterator[Tuple[int, Dict[str, str]]]:
    """
    Iterate over the rows of a results table.

    Yields
    ------
    field_count : int
        Number of fields in the row, up to and including the last non-empty one.
    row : Dict[str, str]
        Column name to value; missing values are empty strings.

    """
    columns = list(results_df.columns)
    for values in results_df.itertuples(index=False, name=None):
        present = [not pd.isna(value) for value in values]
        field_count = len(present) - present[::-1].index(True) if any(present) else 0
        yield field_count, {
            column: (value.strip() if isinstance(value, str) else "")
            for column, value in zip(columns, values)
        }


def read_tab_delimited(path: Union[str, os.PathLike]) -> pd.DataFrame:
    """Read a tab-delimited file written by PHRP, with all values as strings."""
    return pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False)


def write_tab_delimited(
    records: List[Dict[str, Any]], columns: List[str], path: Union[str, os.PathLike]
):
    pd.DataFrame(records, columns=columns).to_csv(path, sep="\t", index=False)


class ResultsProcessorBase(ABC):
    """
    Convert a search tool results file to a synopsis file and PHRP sequence files.

    Processing is done in two passes. The first pass reads the search tool
    results, recomputes peptide masses, ranks and filters the results and writes
    the ``_syn.txt`` synopsis file. The second pass reads the synopsis file,
    annotates the modifications of each peptide, and writes the sequence files
    (``_ResultToSeqMap.txt``, ``_SeqInfo.txt``, ``_ModDetails.txt`` and
    ``_SeqToProteinMap.txt``) and the ``_ModSummary.txt`` file.

    Each processor owns its modification catalog, mass calculator and unique
    sequence registry, so processors for different files can run independently.

    Parameters
    ----------
    parameter_file
        Search tool parameter file with the static and dynamic modifications.
    output_path
        Directory in which to write the output files.
    allow_duplicate_mod_on_terminus
        Allow a static terminus mod on a terminal residue that already carries
        an equivalent modification.
    create_modification_summary_file
        Write the ``_ModSummary.txt`` file.
    abort
        Callable that is polled between lines; processing stops when it returns
        True.

    """

    tool_name: str = ""

    # Internal score used for ranking and filtering
    score_ascending: bool = True
    rank_key: str = "rank"

    # Column of the synopsis file that holds the score used to group PSMs
    synopsis_score_column: str = ""
    synopsis_columns: List[str] = []
    synopsis_minimum_column_count: int = 13

    compute_decoy_q_values: bool = True

    def __init__(
        self,
        *args,
        parameter_file: Optional[str] = None,
        output_path: Optional[str] = None,
        allow_duplicate_mod_on_terminus: bool = True,
        create_modification_summary_file: bool = True,
        abort: Optional[Callable[[], bool]] = None,
        **kwargs,
    ) -> None:
        super().__init__()
        self.parameter_file = parameter_file
        self.output_path = output_path
        self.allow_duplicate_mod_on_terminus = allow_duplicate_mod_on_terminus
        self.create_modification_summary_file = create_modification_summary_file
        self.abort = abort if abort is not None else (lambda: False)

        self.catalog = ModificationCatalog()
        self.mass_calculator = PeptideMassCalculator()
        self.registry = UniqueSequenceRegistry()
        self.error_log = ErrorLog()
        self.reconciler = MassReconciler(self.mass_calculator, self.tool_name)
        self.annotator = self._create_annotator()

    @property
    @abstractmethod
    def score_threshold(self) -> float:
        """Results with a worse score than this threshold are not written to the synopsis."""
        pass

    @abstractmethod
    def _create_annotator(self) -> ModificationAnnotator:
        pass

    @abstractmethod
    def get_base_name(self, input_file: Union[str, os.PathLike]) -> str:
        """Base name of the output files for `input_file`."""
        pass

    @abstractmethod
    def load_parameter_file(self, parameter_file: Optional[str]):
        """Register the modifications defined in the search tool parameter file."""
        pass

    @abstractmethod
    def read_results_file(self, input_file: Union[str, os.PathLike]) -> pd.DataFrame:
        """Read the search tool results file, with standardized column names."""
        pass

    @abstractmethod
    def parse_results_entry(
        self, row: Dict[str, str], field_count: int, line_number: int
    ) -> Optional[Dict]:
        """
        Convert a row of the results file to a result mapping.

        Must contain the keys ``scan``, ``charge``, ``peptide``, ``protein`` and
        ``score``. Return None to skip the row.
        """
        pass

    @abstractmethod
    def sort_unfiltered_results(self, results: List[Dict]) -> List[Dict]:
        """Sort results by scan before ranking."""
        pass

    @abstractmethod
    def sort_filtered_results(self, results: List[Dict]) -> List[Dict]:
        """Sort results in the order in which they are written to the synopsis file."""
        pass

    @abstractmethod
    def format_synopsis_row(self, result_id: int, result: Dict) -> Dict[str, str]:
        pass

    @abstractmethod
    def set_synopsis_peptide(self, search_result: SearchResult, peptide: str):
        """Store the peptide of a synopsis row, with its prefix, suffix and clean sequence."""
        pass

    def parse_synopsis_entry(
        self, row: Dict[str, str], line_number: int, search_result: SearchResult
    ) -> bool:
        """Populate `search_result` from a synopsis file row; returns False if invalid."""
        if len(row) < self.synopsis_minimum_column_count:
            return False

        try:
            search_result.result_id = int(row.get("ResultID", ""))
        except ValueError:
            self._record_error(
                f"Error reading ResultID value from {self.tool_name} results, line {line_number}"
            )
            return False

        peptide = row.get("Peptide", "")
        if not peptide:
            self._record_error(
                f"Error reading peptide sequence from {self.tool_name} results, line {line_number}"
            )
            return False

        search_result.scan = row.get("Scan", "")
        search_result.charge = row.get("Charge", "")
        search_result.protein_name = row.get("Protein", "")

        # DelM is observed minus theoretical; the peptide delta mass is the reverse
        search_result.peptide_delta_mass = row.get("DelM", "")
        try:
            search_result.peptide_delta_mass = str(-float(search_result.peptide_delta_mass))
        except ValueError:
            pass

        self.set_synopsis_peptide(search_result, peptide)
        search_result.compute_pseudo_peptide_loc_in_protein()
        search_result.compute_peptide_cleavage_state_in_protein()

        search_result.tool_fields = {
            column: value
            for column, value in row.items()
            if column not in ("ResultID", "Scan", "Charge", "Peptide", "Protein")
        }
        return True

    def _get_synopsis_columns(self, results: List[Dict]) -> List[str]:
        return self.synopsis_columns

    def _get_synopsis_score_column(self, columns: List[str]) -> str:
        return self.synopsis_score_column

    def _reset(self):
        self.catalog.clear_modifications()
        self.mass_calculator.reset_amino_acid_masses()
        self.mass_calculator.reset_terminus_masses()
        self.registry.clear()
        self.error_log.clear()
        self.reconciler.reset()

    def _get_output_directory(self, input_file: Union[str, os.PathLike]) -> Path:
        if self.output_path:
            output_directory = Path(self.output_path)
            output_directory.mkdir(parents=True, exist_ok=True)
            return output_directory
        return Path(input_file).parent

    def process_file(self, input_file: Union[str, os.PathLike]) -> Dict[str, str]:
        """
        Create the synopsis file and the PHRP files for a search tool results file.

        Returns
        -------
        Dict[str, str]
            Paths of the files that were written, by file type.

        """
        if not Path(input_file).is_file():
            raise FileNotFoundError(input_file)

        self._reset()
        self.load_parameter_file(self.parameter_file)

        output_directory = self._get_output_directory(input_file)
        base_name = self.get_base_name(input_file)
        synopsis_file = (output_directory / (base_name + SYNOPSIS_FILE_SUFFIX)).as_posix()

        logger.info("Creating the synopsis file %s", synopsis_file)
        self._create_synopsis_file(input_file, synopsis_file)
        output_files = {"synopsis": synopsis_file}

        if self.abort():
            logger.warning("Processing aborted")
            return output_files

        logger.info("Creating the PHRP files for %s", Path(synopsis_file).name)
        output_files.update(self._parse_synopsis_file(synopsis_file))

        if self.create_modification_summary_file:
            mod_summary_file = replace_filename_suffix(synopsis_file, FILENAME_SUFFIX_MOD_SUMMARY)
            self.save_modification_summary_file(mod_summary_file)
            output_files["mod_summary"] = mod_summary_file

        if self.error_log:
            logger.error(self.error_log.summary())

        return output_files

    def _create_synopsis_file(self, input_file: Union[str, os.PathLike], synopsis_file: str):
        results = []
        results_df = self.read_results_file(input_file)
        for line_number, (field_count, row) in enumerate(iter_results_rows(results_df), start=1):
            if self.abort():
                break
            result = self.parse_results_entry(row, field_count, line_number)
            if result is not None:
                results.append(result)
        logger.debug("Read %i results from %s", len(results), Path(input_file).name)

        results = self.sort_unfiltered_results(results)
        assign_ranks_per_scan(
            results, "score", ascending=self.score_ascending, rank_key=self.rank_key
        )

        filtered_results = filter_by_threshold(
            results, "score", self.score_threshold, ascending=self.score_ascending
        )
        logger.info(
            "%i of %i results pass the score threshold of %s",
            len(filtered_results),
            len(results),
            self.score_threshold,
        )

        if self.compute_decoy_q_values:
            filtered_results.sort(
                key=lambda r: (
                    r["score"] if self.score_ascending else -r["score"],
                    r["scan"],
                    r["charge"],
                    r["peptide"],
                    r["protein"],
                )
            )
            compute_fdr(filtered_results)
            compute_q_values(filtered_results)

        filtered_results = self.sort_filtered_results(filtered_results)
        write_tab_delimited(
            [
                self.format_synopsis_row(result_id, result)
                for result_id, result in enumerate(filtered_results, start=1)
            ],
            self._get_synopsis_columns(filtered_results),
            synopsis_file,
        )

    def _parse_synopsis_file(self, synopsis_file: str) -> Dict[str, str]:
        synopsis = read_tab_delimited(synopsis_file)
        missing_columns = {"ResultID", "Peptide"} - set(synopsis.columns)
        if missing_columns:
            raise ResultsFileParsingError(
                f"Synopsis file {synopsis_file} is missing required columns: {missing_columns}"
            )

        self.catalog.reset_occurrence_count_stats()
        self.registry.clear()

        result_to_seq_map = []
        seq_info = []
        mod_details = []
        seq_to_protein_map = []
        seq_to_protein_pairs: Set[Tuple[int, str]] = set()

        peptides_found_for_score_level: Set[str] = set()
        previous_score = None

        search_result = SearchResult(self.catalog, self.mass_calculator)
        score_column = self._get_synopsis_score_column(list(synopsis.columns))

        for line_number, row in enumerate(synopsis.to_dict("records"), start=2):
            if self.abort():
                break

            search_result.clear()
            if not self.parse_synopsis_entry(row, line_number, search_result):
                continue

            key = (
                f"{search_result.peptide_sequence_with_mods}_{search_result.scan}_"
                f"{search_result.charge}"
            )
            score = row.get(score_column, "")
            if score == previous_score:
                first_match_for_group = key not in peptides_found_for_score_level
                peptides_found_for_score_level.add(key)
            else:
                peptides_found_for_score_level = {key}
                previous_score = score
                first_match_for_group = True

            mods_added = self.annotator.add_modifications_and_compute_mass(
                search_result,
                first_match_for_group,
                allow_duplicate_mod_on_terminus=self.allow_duplicate_mod_on_terminus,
            )
            if not mods_added:
                self._record_error(
                    f"Error adding modifications to sequence for ResultID '{search_result.result_id}'"
                )

            unique_seq_id, existing_sequence_found = self.registry.get_or_assign_id(
                search_result.peptide_clean_sequence, search_result.peptide_mod_description
            )

            if first_match_for_group:
                result_to_seq_map.append(
                    {"Result_ID": search_result.result_id, COLUMN_NAME_UNIQUE_SEQ_ID: unique_seq_id}
                )
                if not existing_sequence_found:
                    seq_info.append(
                        {
                            COLUMN_NAME_UNIQUE_SEQ_ID: unique_seq_id,
                            "Mod_Count": search_result.modification_count,
                            "Mod_Description": search_result.peptide_mod_description,
                            "Monoisotopic_Mass": dbl_to_string(
                                search_result.peptide_monoisotopic_mass, 5, 0.000001
                            ),
                        }
                    )
                    for modification in sorted(
                        search_result.modifications,
                        key=lambda m: (
                            m.residue_loc_in_peptide,
                            m.modification_definition.mass_correction_tag,
                        ),
                    ):
                        mod_details.append(
                            {
                                COLUMN_NAME_UNIQUE_SEQ_ID: unique_seq_id,
                                "Mass_Correction_Tag": (
                                    modification.modification_definition.mass_correction_tag
                                ),
                                "Position": modification.residue_loc_in_peptide,
                            }
                        )

            if (unique_seq_id, search_result.protein_name) not in seq_to_protein_pairs:
                seq_to_protein_pairs.add((unique_seq_id, search_result.protein_name))
                seq_to_protein_map.append(
                    {
                        COLUMN_NAME_UNIQUE_SEQ_ID: unique_seq_id,
                        "Cleavage_State": int(search_result.peptide_cleavage_state),
                        "Terminus_State": int(search_result.peptide_terminus_state),
                        COLUMN_NAME_PROTEIN_NAME: search_result.protein_name,
                        "Protein_Expectation_Value_Log(e)": "",
                        "Protein_Intensity_Log(I)": "",
                    }
                )

        output_files = {
            "result_to_seq_map": replace_filename_suffix(
                synopsis_file, FILENAME_SUFFIX_RESULT_TO_SEQ_MAP
            ),
            "seq_info": replace_filename_suffix(synopsis_file, FILENAME_SUFFIX_SEQ_INFO),
            "mod_details": replace_filename_suffix(synopsis_file, FILENAME_SUFFIX_MOD_DETAILS),
            "seq_to_protein_map": replace_filename_suffix(
                synopsis_file, FILENAME_SUFFIX_SEQ_TO_PROTEIN_MAP
            ),
        }
        write_tab_delimited(
            result_to_seq_map, RESULT_TO_SEQ_MAP_COLUMNS, output_files["result_to_seq_map"]
        )
        write_tab_delimited(seq_info, SEQ_INFO_COLUMNS, output_files["seq_info"])
        write_tab_delimited(mod_details, MOD_DETAILS_COLUMNS, output_files["mod_details"])
        write_tab_delimited(
            seq_to_protein_map, SEQ_TO_PROTEIN_MAP_COLUMNS, output_files["seq_to_protein_map"]
        )
        logger.debug("Found %i unique sequences", len(self.registry))
        return output_files

    def save_modification_summary_file(self, modification_summary_file: str):
        """Write the modifications that were found, with their occurrence counts."""
        write_tab_delimited(
            [
                {
                    "Modification_Symbol": modification.modification_symbol,
                    "Modification_Mass": dbl_to_string(modification.modification_mass, 6),
                    "Target_Residues": modification.target_residues,
                    "Modification_Type": modification_type_to_symbol(
                        modification.modification_type
                    ),
                    "Mass_Correction_Tag": modification.mass_correction_tag,
                    "Occurrence_Count": modification.occurrence_count,
                }
                for modification in self.catalog
                if not (
                    modification.occurrence_count <= 0 and modification.unknown_mod_auto_defined
                )
            ],
            MOD_SUMMARY_COLUMNS,
            modification_summary_file,
        )

    def _record_error(self, message: str):
        if not self.error_log.add(message):
            logger.debug(message)
