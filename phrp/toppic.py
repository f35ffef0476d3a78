"""Convert TopPIC PrSM and proteoform results files to PHRP synopsis and sequence files."""

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

import pandas as pd

from phrp.annotator import BracketModificationAnnotator
from phrp.cleavage_state import TERMINUS_SYMBOL_SEQUEST, split_prefix_and_suffix_from_sequence
from phrp.exceptions import ModificationParsingError, ParameterFileError, ResultsFileParsingError
from phrp.mass_calculator import mass_to_ppm
from phrp.modification_definition import (
    C_TERMINAL_PEPTIDE_SYMBOL,
    C_TERMINAL_PROTEIN_SYMBOL,
    N_TERMINAL_PEPTIDE_SYMBOL,
    N_TERMINAL_PROTEIN_SYMBOL,
    ModificationType,
    ResidueTerminusState,
)
from phrp.processor_base import ResultsProcessorBase, read_results_table
from phrp.reconciliation import compute_total_mod_mass_bracket_dialect
from phrp.search_result import SearchResult
from phrp.utils import dbl_to_string, is_letter_a_to_z, mass_error_to_string, truncate_protein_name

logger = logging.getLogger(__name__)

FILENAME_SUFFIX_TOPPIC = "_toppic"
FILENAME_SUFFIX_TOPPIC_PRSMS_FILE = "_TopPIC_PrSMs"
FILENAME_SUFFIX_TOPPIC_PROTEOFORMS_FILE = "_TopPIC_Proteoforms"

# TopPIC marks both peptide termini with a period
TERMINUS_SYMBOL_TOPPIC = "."

MINIMUM_RESULTS_COLUMN_COUNT = 15
DEFAULT_PPM_REFERENCE_MZ = 1000

MOD_TAG_REGEX = re.compile(r"\[[^\]]*\]")

# Column names of TopPIC versions up to 1.4, case-insensitive
RESULTS_COLUMN_MAPPING = {
    "data file name": "SpectrumFileName",
    "prsm id": "Prsm_ID",
    "spectrum id": "Spectrum_ID",
    "fragmentation": "FragMethod",
    "scan(s)": "Scans",
    "retention time": "RetentionTime",
    "#peaks": "Peaks",
    "charge": "Charge",
    "precursor mass": "Precursor_mass",
    "adjusted precursor mass": "Adjusted_precursor_mass",
    "proteoform id": "Proteoform_ID",
    "feature intensity": "Feature_intensity",
    "feature score": "Feature_score",
    "protein name": "Protein_accession",
    "protein accession": "Protein_accession",
    "protein description": "Protein_description",
    "first residue": "First_residue",
    "last residue": "Last_residue",
    "proteoform": "Proteoform",
    "#unexpected modifications": "Unexpected_modifications",
    "miscore": "MIScore",
    "#variable ptms": "Variable_PTMs",
    "#matched peaks": "Matched_peaks",
    "#matched fragment ions": "Matched_fragment_ions",
    "p-value": "Pvalue",
    "e-value": "Evalue",
    "q-value (spectral fdr)": "Qvalue",
    "spectrum-level q-value": "Qvalue",
    "proteoform fdr": "Proteoform_QValue",
    "proteoform-level q-value": "Proteoform_QValue",
}

SYNOPSIS_COLUMNS = [
    "ResultID",
    "Scan",
    "Prsm_ID",
    "Spectrum_ID",
    "FragMethod",
    "Charge",
    "PrecursorMZ",
    "DelM",
    "DelM_PPM",
    "MH",
    "Peptide",
    "Proteoform_ID",
    "Feature_Intensity",
    "Feature_Score",
    "Protein",
    "ResidueStart",
    "ResidueEnd",
    "Unexpected_Mod_Count",
    "Peak_Count",
    "Matched_Peak_Count",
    "Matched_Fragment_Ion_Count",
    "PValue",
    "Rank_PValue",
    "EValue",
    "QValue",
    "ProteoformFDR",
    "VariablePTMs",
]
P_VALUE_COLUMNS = ("PValue", "Rank_PValue")

MOD_TYPE_STATIC = "fix"
MOD_TYPE_DYNAMIC = "opt"


class TopPICModification(NamedTuple):
    """Modification defined in a TopPIC parameter file."""

    name: str
    modification_mass: float
    residues: str
    modification_type: ModificationType
    terminus_state: ResidueTerminusState


def replace_terminus(peptide: str) -> str:
    """Replace TopPIC terminus periods with ``-.`` and ``.-``."""
    if peptide.startswith(TERMINUS_SYMBOL_TOPPIC):
        peptide = TERMINUS_SYMBOL_SEQUEST + "." + peptide[len(TERMINUS_SYMBOL_TOPPIC) :]
    if peptide.endswith(TERMINUS_SYMBOL_TOPPIC):
        peptide = peptide[: -len(TERMINUS_SYMBOL_TOPPIC)] + "." + TERMINUS_SYMBOL_SEQUEST
    return peptide


def assure_integer(value: str, default_value: int = 0) -> str:
    """Normalize an integer that TopPIC may write as a float, e.g. ``8.0``."""
    if value.endswith(".0"):
        value = value[:-2]
    try:
        return str(int(value))
    except ValueError:
        pass
    try:
        return str(int(round(float(value))))
    except ValueError:
        return str(default_value)


def get_clean_sequence(sequence_with_mods: str) -> Tuple[str, str, str, str]:
    """
    Remove prefix and suffix residues and all mod tags from a proteoform.

    Returns
    -------
    clean_sequence : str
    prefix : str
    suffix : str
    primary_sequence_with_mods : str
        Proteoform without the prefix and suffix residues.

    """
    found, primary_sequence_with_mods, prefix, suffix = split_prefix_and_suffix_from_sequence(
        sequence_with_mods
    )
    if not found:
        primary_sequence_with_mods, prefix, suffix = sequence_with_mods, "", ""

    without_tags = MOD_TAG_REGEX.sub("", primary_sequence_with_mods)
    clean_sequence = "".join(c for c in without_tags if is_letter_a_to_z(c))
    return clean_sequence, prefix, suffix, primary_sequence_with_mods


def _first_scan_number(scans: str) -> Optional[int]:
    try:
        return int(scans)
    except ValueError:
        pass
    match = re.search(r"\d+", scans)
    if match:
        return int(match.group())
    return None


def _parse_float(value: str, default: float = 0.0) -> float:
    try:
        return float(value)
    except ValueError:
        return default


def _parse_modification_spec(spec: str, fixed: bool) -> Optional[TopPICModification]:
    fields = [field.strip() for field in spec.split(",")]
    if len(fields) < 5:
        return None

    mass, residues, _, position, name = fields[:5]
    try:
        modification_mass = float(mass)
    except ValueError:
        logger.warning("Non-numeric mod mass in the TopPIC parameter file, skipping: %s", spec)
        return None

    position = position.lower().replace("-", "")
    modification_type = ModificationType.STATIC if fixed else ModificationType.DYNAMIC
    terminus_state = ResidueTerminusState.NONE

    if position == "any":
        pass
    elif position in ("nterm", "cterm"):
        if fixed and residues != "*":
            # Static terminus mods that only apply to specific residues are dynamic
            modification_type = ModificationType.DYNAMIC
        if position == "nterm":
            residues = N_TERMINAL_PEPTIDE_SYMBOL
            terminus_state = ResidueTerminusState.PEPTIDE_N_TERMINUS
        else:
            residues = C_TERMINAL_PEPTIDE_SYMBOL
            terminus_state = ResidueTerminusState.PEPTIDE_C_TERMINUS
        if modification_type == ModificationType.STATIC:
            modification_type = ModificationType.TERMINAL_PEPTIDE_STATIC
    elif position in ("protnterm", "protcterm"):
        if fixed and residues != "*":
            modification_type = ModificationType.DYNAMIC
        if position == "protnterm":
            residues = N_TERMINAL_PROTEIN_SYMBOL
            terminus_state = ResidueTerminusState.PROTEIN_N_TERMINUS
        else:
            residues = C_TERMINAL_PROTEIN_SYMBOL
            terminus_state = ResidueTerminusState.PROTEIN_C_TERMINUS
        if modification_type == ModificationType.STATIC:
            modification_type = ModificationType.PROTEIN_TERMINUS_STATIC
    else:
        raise ModificationParsingError(
            f"Unrecognized mod position '{position}' in TopPIC mod spec: {spec}; should be "
            "'any', 'N-term', 'C-term', 'Prot-N-term', or 'Prot-C-term'"
        )

    return TopPICModification(name, modification_mass, residues, modification_type, terminus_state)


def read_toppic_parameter_file(parameter_file: Union[str, os.PathLike]) -> List[TopPICModification]:
    """
    Read the modifications from a TopPIC parameter file.

    Modifications are defined in MS-GF+ style, for example
    ``StaticMod=57.021464,C,fix,any,Carbamidomethyl`` or
    ``DynamicMod=15.994915,M,opt,any,Oxidation``. Lines without a keyword are
    recognized by their ``fix`` or ``opt`` field.
    """
    if not Path(parameter_file).is_file():
        raise ParameterFileError(f"TopPIC parameter file not found: {parameter_file}")

    modifications = []
    with open(parameter_file, "rt") as f:
        for line in f:
            line = line.split("#", 1)[0].strip()
            if not line:
                continue

            if "=" in line:
                key, spec = (part.strip() for part in line.split("=", 1))
                if key.lower() not in ("staticmod", "dynamicmod"):
                    continue
                if not spec or spec.lower() == "none":
                    continue
                fixed = key.lower() == "staticmod"
            else:
                spec = line.replace(" ", "")
                if f",{MOD_TYPE_DYNAMIC}," in spec:
                    fixed = False
                elif f",{MOD_TYPE_STATIC}," in spec:
                    fixed = True
                else:
                    continue

            modification = _parse_modification_spec(spec, fixed)
            if modification is not None:
                modifications.append(modification)

    return modifications


class TopPICResultsProcessor(ResultsProcessorBase):
    """
    Results processor for TopPIC.

    Results are ranked by P-value, or by E-value for TopPIC versions that do not
    report P-values.

    Parameters
    ----------
    toppic_pvalue_threshold
        Maximum P-value (or E-value) for a result to be written to the synopsis
        file.

    """

    tool_name = "TopPIC"
    score_ascending = True
    synopsis_columns = SYNOPSIS_COLUMNS
    synopsis_minimum_column_count = 15
    compute_decoy_q_values = False

    def __init__(self, *args, toppic_pvalue_threshold: float = 0.01, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.toppic_pvalue_threshold = toppic_pvalue_threshold
        self.data_has_p_values = True

    @property
    def score_threshold(self) -> float:
        return self.toppic_pvalue_threshold

    def _create_annotator(self) -> BracketModificationAnnotator:
        return BracketModificationAnnotator(self.catalog, error_log=self.error_log)

    def _reset(self):
        super()._reset()
        self.annotator.unknown_named_mods.clear()

    def get_base_name(self, input_file: Union[str, os.PathLike]) -> str:
        base_name = Path(input_file).stem
        for suffix in (FILENAME_SUFFIX_TOPPIC_PRSMS_FILE, FILENAME_SUFFIX_TOPPIC_PROTEOFORMS_FILE):
            if base_name.lower().endswith(suffix.lower()):
                return base_name[: -len(suffix)] + FILENAME_SUFFIX_TOPPIC
        return base_name

    def load_parameter_file(self, parameter_file: Optional[str]):
        if not parameter_file:
            logger.debug("No TopPIC parameter file defined; assuming no static or dynamic mods")
            return

        for modification in read_toppic_parameter_file(parameter_file):
            for residue in modification.residues:
                target_residue = "" if residue == "*" else residue
                self.catalog.lookup_modification_definition_by_mass_and_mod_type(
                    modification.modification_mass,
                    modification.modification_type,
                    target_residue,
                    modification.terminus_state,
                    add_if_unknown=True,
                )

    def read_results_file(self, input_file: Union[str, os.PathLike]) -> pd.DataFrame:
        results_df = read_results_table(input_file)

        rename_mapping = {}
        for column in results_df.columns:
            standard_name = RESULTS_COLUMN_MAPPING.get(str(column).strip().lower())
            if standard_name is None:
                logger.debug("Unrecognized column header name '%s' in TopPIC results", column)
            else:
                rename_mapping[column] = standard_name
        results_df.rename(columns=rename_mapping, inplace=True)

        for required_column in ("Scans", "Proteoform"):
            if required_column not in results_df.columns:
                raise ResultsFileParsingError(
                    f"TopPIC results file {input_file} is missing the {required_column} column"
                )

        self.data_has_p_values = "Pvalue" in results_df.columns
        if not self.data_has_p_values:
            logger.info("TopPIC results do not have P-values; ranking on E-value")
        return results_df

    def parse_results_entry(
        self, row: Dict[str, str], field_count: int, line_number: int
    ) -> Optional[Dict]:
        if field_count < MINIMUM_RESULTS_COLUMN_COUNT:
            return None

        scans = row.get("Scans", "")
        scan = _first_scan_number(scans)
        if scan is None:
            logger.warning("Could not find an integer in the scan list '%s'; using scan 0", scans)
            scan = 0

        proteoform = row.get("Proteoform", "")
        if not proteoform:
            self._record_error(f"Error reading Proteoform from TopPIC results, line {line_number}")
            return None
        proteoform = replace_terminus(proteoform)

        try:
            charge = int(row.get("Charge", ""))
        except ValueError:
            charge = 0

        precursor_mz = 0.0
        precursor_mz_text = ""
        try:
            precursor_mono_mass = float(row.get("Precursor_mass", ""))
        except ValueError:
            precursor_mono_mass = None
        if precursor_mono_mass is not None and charge > 0:
            precursor_mz = self.mass_calculator.convolute_mass(precursor_mono_mass, 0, charge)
            precursor_mz_text = dbl_to_string(precursor_mz, 6)

        peptide_mono_mass_toppic = _parse_float(row.get("Adjusted_precursor_mass", ""))

        # Mods can be ambiguous, so mod tags stay in the proteoform
        total_mod_mass = compute_total_mod_mass_bracket_dialect(
            proteoform, self.catalog, annotator=self.annotator
        )
        clean_sequence = get_clean_sequence(proteoform)[0]

        del_m = ""
        del_m_ppm = ""
        if precursor_mono_mass is not None:
            reconciliation = self.reconciler.reconcile(
                clean_sequence, total_mod_mass, peptide_mono_mass_toppic, precursor_mono_mass
            )
            computed_mass = reconciliation.computed_mass
            del_m = mass_error_to_string(reconciliation.del_m)
            reference_mz = precursor_mz if precursor_mz > 0 else DEFAULT_PPM_REFERENCE_MZ
            del_m_ppm = dbl_to_string(mass_to_ppm(reconciliation.del_m, reference_mz), 5, 0.00005)
        else:
            computed_mass = self.reconciler.compute_peptide_mass(clean_sequence, total_mod_mass)

        p_value = row.get("Pvalue", "")
        e_value = row.get("Evalue", "")
        if self.data_has_p_values:
            score = _parse_float(p_value)
        else:
            score = _parse_float(e_value)

        q_value = row.get("Qvalue", "")
        if q_value.lower() == "infinity":
            q_value = "10"
        elif q_value:
            try:
                float(q_value)
            except ValueError:
                q_value = ""

        return {
            "scan": scan,
            "charge": charge,
            "peptide": proteoform,
            "protein": truncate_protein_name(row.get("Protein_accession", "")),
            "score": score,
            "p_value": p_value,
            "e_value": e_value,
            "q_value_text": q_value,
            "prsm_id": row.get("Prsm_ID", ""),
            "spectrum_id": row.get("Spectrum_ID", ""),
            "frag_method": row.get("FragMethod", ""),
            "charge_text": row.get("Charge", ""),
            "precursor_mz": precursor_mz_text,
            "del_m": del_m,
            "del_m_ppm": del_m_ppm,
            "mh": dbl_to_string(self.mass_calculator.convolute_mass(computed_mass, 0), 6),
            "proteoform_id": row.get("Proteoform_ID", ""),
            "feature_intensity": row.get("Feature_intensity", ""),
            "feature_score": row.get("Feature_score", ""),
            "residue_start": row.get("First_residue", ""),
            "residue_end": row.get("Last_residue", ""),
            "unexpected_mod_count": assure_integer(row.get("Unexpected_modifications", "")),
            "peak_count": assure_integer(row.get("Peaks", "")),
            "matched_peak_count": assure_integer(row.get("Matched_peaks", "")),
            "matched_fragment_ion_count": assure_integer(row.get("Matched_fragment_ions", "")),
            "proteoform_fdr": row.get("Proteoform_QValue", ""),
            "variable_ptms": row.get("Variable_PTMs", ""),
        }

    def sort_unfiltered_results(self, results: List[Dict]) -> List[Dict]:
        return sorted(
            results,
            key=lambda r: (r["scan"], r["charge"], r["p_value"], r["peptide"], r["protein"]),
        )

    def sort_filtered_results(self, results: List[Dict]) -> List[Dict]:
        return sorted(
            results,
            key=lambda r: (r["score"], r["scan"], r["charge"], r["peptide"], r["protein"]),
        )

    def _get_synopsis_columns(self, results: List[Dict]) -> List[str]:
        if self.data_has_p_values:
            return self.synopsis_columns
        return [column for column in self.synopsis_columns if column not in P_VALUE_COLUMNS]

    def _get_synopsis_score_column(self, columns: List[str]) -> str:
        return "PValue" if "PValue" in columns else "EValue"

    def format_synopsis_row(self, result_id: int, result: Dict) -> Dict[str, str]:
        return {
            "ResultID": result_id,
            "Scan": result["scan"],
            "Prsm_ID": result["prsm_id"],
            "Spectrum_ID": result["spectrum_id"],
            "FragMethod": result["frag_method"],
            "Charge": result["charge_text"],
            "PrecursorMZ": result["precursor_mz"],
            "DelM": result["del_m"],
            "DelM_PPM": result["del_m_ppm"],
            "MH": result["mh"],
            "Peptide": result["peptide"],
            "Proteoform_ID": result["proteoform_id"],
            "Feature_Intensity": result["feature_intensity"],
            "Feature_Score": result["feature_score"],
            "Protein": result["protein"],
            "ResidueStart": result["residue_start"],
            "ResidueEnd": result["residue_end"],
            "Unexpected_Mod_Count": result["unexpected_mod_count"],
            "Peak_Count": result["peak_count"],
            "Matched_Peak_Count": result["matched_peak_count"],
            "Matched_Fragment_Ion_Count": result["matched_fragment_ion_count"],
            "PValue": result["p_value"],
            "Rank_PValue": result["rank"],
            "EValue": result["e_value"],
            "QValue": result["q_value_text"],
            "ProteoformFDR": result["proteoform_fdr"],
            "VariablePTMs": result["variable_ptms"],
        }

    def set_synopsis_peptide(self, search_result: SearchResult, peptide: str):
        # Named mods contain letters, so the clean sequence is computed without the tags
        clean_sequence, prefix, suffix, primary_sequence_with_mods = get_clean_sequence(peptide)
        search_result.peptide_pre_residues = prefix
        search_result.peptide_post_residues = suffix
        search_result.peptide_clean_sequence = clean_sequence
        search_result.peptide_sequence_with_mods = primary_sequence_with_mods
