"""Convert MODa results files (``_moda.id.txt``) to PHRP synopsis and sequence files."""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from phrp.annotator import PlusMassModificationAnnotator
from phrp.cleavage_state import extract_clean_sequence_from_sequence_with_mods
from phrp.exceptions import ParameterFileError
from phrp.modification_definition import (
    C_TERMINAL_PEPTIDE_SYMBOL,
    N_TERMINAL_PEPTIDE_SYMBOL,
    ModificationType,
    ResidueTerminusState,
)
from phrp.processor_base import ResultsProcessorBase, read_results_table
from phrp.reconciliation import compute_total_mod_mass_plus_dialect
from phrp.search_result import SearchResult
from phrp.utils import dbl_to_string, mass_error_to_string, truncate_protein_name

logger = logging.getLogger(__name__)

MODA_MASS_DIGITS_OF_PRECISION = 0
FILENAME_SUFFIX_MODA = "_moda"
MODA_ID_SUFFIX = "_moda.id"
INDEX_TO_SCAN_MAP_PATTERN = "mgf_IndexToScanMap"

MODA_RESULTS_COLUMNS = [
    "SpectrumFile",
    "Index",
    "ObservedMW",
    "Charge",
    "CalculatedMW",
    "DeltaMass",
    "Score",
    "Probability",
    "Peptide",
    "Protein",
    "PeptidePosition",
]
MINIMUM_RESULTS_COLUMN_COUNT = 11

SYNOPSIS_COLUMNS = [
    "ResultID",
    "Scan",
    "Spectrum_Index",
    "Charge",
    "PrecursorMZ",
    "DelM",
    "DelM_PPM",
    "MH",
    "Peptide",
    "Protein",
    "Score",
    "Probability",
    "Rank_Probability",
    "PeptidePosition",
    "QValue",
]


def read_moda_parameter_file(parameter_file: Union[str, os.PathLike]) -> List[tuple]:
    """
    Read the static modifications from a MODa parameter file.

    Static mods are defined with ``ADD=residue, mass`` lines, for example
    ``ADD=C, 57.021``. ``NTerm`` and ``CTerm`` refer to the peptide termini.

    Returns
    -------
    List[tuple]
        ``(target_residue, modification_mass)`` pairs; mods with mass 0 are
        skipped.

    """
    if not Path(parameter_file).is_file():
        raise ParameterFileError(f"MODa parameter file not found: {parameter_file}")

    static_mods = []
    with open(parameter_file, "rt") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            if key.strip().lower() != "add":
                continue

            value = value.split("#", 1)[0]
            fields = [field.strip() for field in value.split(",")]
            if len(fields) < 2:
                logger.warning("Invalid ADD line in the MODa parameter file: %s", line)
                continue

            residue, mass = fields[0], fields[1]
            try:
                modification_mass = float(mass)
            except ValueError:
                logger.warning("Invalid modification mass in the MODa parameter file: %s", line)
                continue
            if modification_mass == 0:
                continue

            if residue.lower() == "nterm":
                residue = N_TERMINAL_PEPTIDE_SYMBOL
            elif residue.lower() == "cterm":
                residue = C_TERMINAL_PEPTIDE_SYMBOL
            static_mods.append((residue, modification_mass))

    return static_mods


def find_index_to_scan_map_file(input_file: Union[str, os.PathLike]) -> Optional[Path]:
    """
    Find the MGF index to scan map file in the directory of a MODa results file.

    Files named ``<dataset>*mgf_IndexToScanMap*`` are preferred, where
    ``<dataset>`` is the results file name up to ``_moda``.
    """
    input_file = Path(input_file)
    candidates = []
    suffix_index = input_file.name.lower().rfind(FILENAME_SUFFIX_MODA)
    if suffix_index > 0:
        dataset_name = input_file.name[:suffix_index]
        candidates = sorted(input_file.parent.glob(f"{dataset_name}*{INDEX_TO_SCAN_MAP_PATTERN}*"))
    if not candidates:
        candidates = sorted(input_file.parent.glob(f"*{INDEX_TO_SCAN_MAP_PATTERN}*"))

    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        logger.warning(
            "MGF index to scan map file not found in %s; scan numbers will be 0",
            input_file.parent,
        )
    else:
        logger.warning(
            "Found %i MGF index to scan map files in %s; scan numbers will be 0",
            len(candidates),
            input_file.parent,
        )
    return None


def read_index_to_scan_map(map_file: Union[str, os.PathLike]) -> Dict[int, int]:
    """Read an MGF index to scan map file (index, scan start, scan end)."""
    index_to_scan = {}
    with open(map_file, "rt") as f:
        for line in f:
            fields = line.rstrip("\n").split("\t")
            if len(fields) < 3:
                continue
            try:
                index_to_scan[int(fields[0])] = int(fields[1])
            except ValueError:
                # Header line
                continue
    return index_to_scan


class MODaResultsProcessor(ResultsProcessorBase):
    """
    Results processor for MODa.

    Parameters
    ----------
    moda_probability_threshold
        Minimum probability for a result to be written to the synopsis file.
    mgf_index_to_scan_map_file
        MGF index to scan map file. Looked up next to the input file if not set.

    """

    tool_name = "MODa"
    score_ascending = False
    synopsis_score_column = "Probability"
    synopsis_columns = SYNOPSIS_COLUMNS
    synopsis_minimum_column_count = 13
    compute_decoy_q_values = True

    def __init__(
        self,
        *args,
        moda_probability_threshold: float = 0.05,
        mgf_index_to_scan_map_file: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.moda_probability_threshold = moda_probability_threshold
        self.mgf_index_to_scan_map_file = mgf_index_to_scan_map_file
        self.index_to_scan: Dict[int, int] = {}
        self._scan_warning_shown = False

    @property
    def score_threshold(self) -> float:
        return self.moda_probability_threshold

    def _create_annotator(self) -> PlusMassModificationAnnotator:
        return PlusMassModificationAnnotator(
            self.catalog, error_log=self.error_log, mass_digits=MODA_MASS_DIGITS_OF_PRECISION
        )

    def get_base_name(self, input_file: Union[str, os.PathLike]) -> str:
        base_name = Path(input_file).stem
        if base_name.lower().endswith(MODA_ID_SUFFIX):
            base_name = base_name[: -len(MODA_ID_SUFFIX)] + FILENAME_SUFFIX_MODA
        return base_name

    def load_parameter_file(self, parameter_file: Optional[str]):
        if not parameter_file:
            logger.debug("No MODa parameter file defined; assuming no static mods")
            return

        for residue, modification_mass in read_moda_parameter_file(parameter_file):
            if residue in (N_TERMINAL_PEPTIDE_SYMBOL, C_TERMINAL_PEPTIDE_SYMBOL):
                modification_type = ModificationType.TERMINAL_PEPTIDE_STATIC
            else:
                modification_type = ModificationType.STATIC
            for target_residue in residue:
                self.catalog.lookup_modification_definition_by_mass_and_mod_type(
                    modification_mass,
                    modification_type,
                    target_residue,
                    ResidueTerminusState.NONE,
                    add_if_unknown=True,
                    digits=MODA_MASS_DIGITS_OF_PRECISION,
                    digits_loose=MODA_MASS_DIGITS_OF_PRECISION,
                )

    def _load_index_to_scan_map(self, input_file: Union[str, os.PathLike]):
        self.index_to_scan = {}
        self._scan_warning_shown = False
        if self.mgf_index_to_scan_map_file:
            map_file = Path(self.mgf_index_to_scan_map_file)
            if not map_file.is_file():
                raise FileNotFoundError(self.mgf_index_to_scan_map_file)
        else:
            map_file = find_index_to_scan_map_file(input_file)
        if map_file is not None:
            logger.info("Reading scan numbers from %s", map_file.name)
            self.index_to_scan = read_index_to_scan_map(map_file)

    @staticmethod
    def _has_header_line(input_file: Union[str, os.PathLike]) -> bool:
        with open(input_file, "rt") as f:
            first_line = f.readline()
        fields = first_line.split("\t")
        if len(fields) > 1:
            try:
                int(fields[1])
                return False
            except ValueError:
                pass
        return True

    def read_results_file(self, input_file: Union[str, os.PathLike]) -> pd.DataFrame:
        self._load_index_to_scan_map(input_file)

        if not self._has_header_line(input_file):
            return read_results_table(input_file, names=MODA_RESULTS_COLUMNS)

        results_df = read_results_table(input_file)
        case_mapping = {column.lower(): column for column in MODA_RESULTS_COLUMNS}
        results_df.rename(
            columns={
                column: case_mapping[column.strip().lower()]
                for column in results_df.columns
                if column.strip().lower() in case_mapping
            },
            inplace=True,
        )
        return results_df

    def _get_scan(self, spectrum_index: int) -> int:
        if spectrum_index in self.index_to_scan:
            return self.index_to_scan[spectrum_index]
        if not self._scan_warning_shown:
            logger.warning(
                "Could not resolve spectrum index %i to a scan number; using 0", spectrum_index
            )
            self._scan_warning_shown = True
        return 0

    def parse_results_entry(
        self, row: Dict[str, str], field_count: int, line_number: int
    ) -> Optional[Dict]:
        if field_count < MINIMUM_RESULTS_COLUMN_COUNT:
            return None

        try:
            spectrum_index = int(row.get("Index", ""))
        except ValueError:
            self._record_error(f"Error reading Index value from MODa results, line {line_number}")
            return None

        peptide = row.get("Peptide", "")
        if not peptide:
            self._record_error(f"Error reading Peptide from MODa results, line {line_number}")
            return None

        try:
            charge = int(row.get("Charge", ""))
        except ValueError:
            charge = 0

        try:
            precursor_mono_mass = float(row.get("ObservedMW", ""))
        except ValueError:
            precursor_mono_mass = 0.0
        try:
            peptide_mono_mass_moda = float(row.get("CalculatedMW", ""))
        except ValueError:
            peptide_mono_mass_moda = 0.0

        precursor_mz = ""
        if charge > 0:
            precursor_mz = dbl_to_string(
                self.mass_calculator.convolute_mass(precursor_mono_mass, 0, charge), 6
            )

        probability = row.get("Probability", "")
        if probability.lower() == "infinity":
            probability = "0"
        try:
            probability_value = float(probability)
        except ValueError:
            probability = ""
            probability_value = 0.0

        total_mod_mass = compute_total_mod_mass_plus_dialect(peptide, self.catalog)
        reconciliation = self.reconciler.reconcile(
            extract_clean_sequence_from_sequence_with_mods(peptide, True),
            total_mod_mass,
            peptide_mono_mass_moda,
            precursor_mono_mass,
        )

        return {
            "scan": self._get_scan(spectrum_index),
            "spectrum_index": spectrum_index,
            "charge": charge,
            "peptide": peptide,
            "protein": truncate_protein_name(row.get("Protein", "")),
            "score": probability_value,
            "precursor_mz": precursor_mz,
            "del_m": mass_error_to_string(reconciliation.del_m),
            "del_m_ppm": dbl_to_string(reconciliation.del_m_ppm, 5, 0.00005),
            "mh": dbl_to_string(
                self.mass_calculator.convolute_mass(reconciliation.computed_mass, 0), 6
            ),
            "moda_score": row.get("Score", ""),
            "probability": probability,
            "peptide_position": row.get("PeptidePosition", ""),
        }

    def sort_unfiltered_results(self, results: List[Dict]) -> List[Dict]:
        return sorted(
            results, key=lambda r: (r["scan"], r["charge"], -r["score"], r["peptide"])
        )

    def sort_filtered_results(self, results: List[Dict]) -> List[Dict]:
        return sorted(
            results,
            key=lambda r: (-r["score"], r["scan"], r["charge"], r["peptide"], r["protein"]),
        )

    def format_synopsis_row(self, result_id: int, result: Dict) -> Dict[str, str]:
        return {
            "ResultID": result_id,
            "Scan": result["scan"],
            "Spectrum_Index": result["spectrum_index"],
            "Charge": result["charge"],
            "PrecursorMZ": result["precursor_mz"],
            "DelM": result["del_m"],
            "DelM_PPM": result["del_m_ppm"],
            "MH": result["mh"],
            "Peptide": result["peptide"],
            "Protein": result["protein"],
            "Score": result["moda_score"],
            "Probability": result["probability"],
            "Rank_Probability": result["rank"],
            "PeptidePosition": result["peptide_position"],
            "QValue": dbl_to_string(result.get("q_value", 0.0), 5, 0.00005),
        }

    def set_synopsis_peptide(self, search_result: SearchResult, peptide: str):
        search_result.set_peptide_sequence_with_mods(peptide, True, True)
