"""TopPIC processor unit tests."""

import pytest

from phrp.exceptions import ModificationParsingError, ParameterFileError, ResultsFileParsingError
from phrp.modification_definition import ModificationType, ResidueTerminusState
from phrp.processor_base import read_tab_delimited
from phrp.toppic import (
    SYNOPSIS_COLUMNS,
    TopPICResultsProcessor,
    assure_integer,
    get_clean_sequence,
    read_toppic_parameter_file,
    replace_terminus,
)

TOPPIC_COLUMNS = [
    "Data file name",
    "Prsm ID",
    "Spectrum ID",
    "Fragmentation",
    "Scan(s)",
    "Retention time",
    "#peaks",
    "Charge",
    "Precursor mass",
    "Adjusted precursor mass",
    "Proteoform ID",
    "Feature intensity",
    "Feature score",
    "Protein accession",
    "Protein description",
    "First residue",
    "Last residue",
    "Proteoform",
    "#unexpected modifications",
    "MIScore",
    "#variable PTMs",
    "#matched peaks",
    "#matched fragment ions",
    "P-value",
    "E-value",
    "Q-value (spectral FDR)",
    "Proteoform FDR",
]


def _toppic_row(prsm_id, scans, charge, precursor_mass, protein, proteoform, p_value, q_value):
    values = {
        "Data file name": "Dataset.msalign",
        "Prsm ID": prsm_id,
        "Spectrum ID": prsm_id,
        "Fragmentation": "HCD",
        "Scan(s)": scans,
        "Retention time": "600.5",
        "#peaks": "50.0",
        "Charge": charge,
        "Precursor mass": precursor_mass,
        "Adjusted precursor mass": precursor_mass,
        "Proteoform ID": prsm_id,
        "Feature intensity": "150000",
        "Feature score": "12.3",
        "Protein accession": protein,
        "Protein description": "Some protein",
        "First residue": "1",
        "Last residue": "9",
        "Proteoform": proteoform,
        "#unexpected modifications": "0",
        "MIScore": "-",
        "#variable PTMs": "0",
        "#matched peaks": "20",
        "#matched fragment ions": "18.0",
        "P-value": p_value,
        "E-value": p_value,
        "Q-value (spectral FDR)": q_value,
        "Proteoform FDR": "0",
    }
    return values


TOPPIC_RESULTS = [
    _toppic_row(
        "0",
        "100",
        "2",
        "1097.3998",
        "sp|P1|PROT1",
        ".(AM)[Oxidation]PEPT[79.96633]IDE.",
        "1E-10",
        "0",
    ),
    _toppic_row("1", "101", "3", "927.4569", "P2", "K.PEPTIDEK.L", "0.005", "Infinity"),
    _toppic_row("2", "100", "2", "799.3619", "P3", "R.PEPTIDE.K", "0.001", "0.002"),
    _toppic_row("3", "102 103", "2", "799.3619", "P4", "R.PEPTIDE.K", "0.5", "0.9"),
]


def _write_results(path, columns, rows):
    lines = ["\t".join(columns)]
    lines.extend("\t".join(row[column] for column in columns) for row in rows)
    path.write_text("\n".join(lines) + "\n")


@pytest.fixture
def toppic_dataset(tmp_path):
    input_file = tmp_path / "Dataset_TopPIC_PrSMs.txt"
    _write_results(input_file, TOPPIC_COLUMNS, TOPPIC_RESULTS)
    return input_file


def test_replace_terminus():
    test_cases = {
        "input": [".PEPTIDE.", "K.PEPTIDE.", ".PEPTIDE.R", "K.PEPTIDE.R"],
        "expected_output": ["-.PEPTIDE.-", "K.PEPTIDE.-", "-.PEPTIDE.R", "K.PEPTIDE.R"],
    }

    for peptide, expected in zip(test_cases["input"], test_cases["expected_output"]):
        assert replace_terminus(peptide) == expected


def test_assure_integer():
    test_cases = {
        "input": ["8", "8.0", "7.6", "", "abc"],
        "expected_output": ["8", "8", "8", "0", "0"],
    }

    for value, expected in zip(test_cases["input"], test_cases["expected_output"]):
        assert assure_integer(value) == expected


def test_get_clean_sequence():
    assert get_clean_sequence("-.(AM)[Oxidation]PEPT[79.96633]IDE.-") == (
        "AMPEPTIDE",
        "-",
        "-",
        "(AM)[Oxidation]PEPT[79.96633]IDE",
    )
    assert get_clean_sequence("PEPT[Phospho]IDE") == ("PEPTIDE", "", "", "PEPT[Phospho]IDE")


class TestTopPICParameterFile:
    def test_read_toppic_parameter_file(self, tmp_path):
        parameter_file = tmp_path / "TopPIC_Params.txt"
        parameter_file.write_text(
            "# TopPIC modifications\n"
            "StaticMod=57.021464,C,fix,any,Carbamidomethyl\n"
            "DynamicMod=15.994915,M,opt,any,Oxidation\n"
            "StaticMod=42.010565,*,fix,N-term,Acetyl\n"
            "StaticMod=42.010565,K,fix,Prot-N-term,Acetyl\n"
            "DynamicMod=C2H3NO,C,opt,any,Foo\n"
            "StaticMod=None\n"
            "79.966331,STY,opt,any,Phospho\n"
            "ErrorTolerance=15\n"
        )

        modifications = read_toppic_parameter_file(parameter_file)
        assert [
            (m.name, m.residues, m.modification_type, m.terminus_state) for m in modifications
        ] == [
            ("Carbamidomethyl", "C", ModificationType.STATIC, ResidueTerminusState.NONE),
            ("Oxidation", "M", ModificationType.DYNAMIC, ResidueTerminusState.NONE),
            (
                "Acetyl",
                "<",
                ModificationType.TERMINAL_PEPTIDE_STATIC,
                ResidueTerminusState.PEPTIDE_N_TERMINUS,
            ),
            ("Acetyl", "[", ModificationType.DYNAMIC, ResidueTerminusState.PROTEIN_N_TERMINUS),
            ("Phospho", "STY", ModificationType.DYNAMIC, ResidueTerminusState.NONE),
        ]
        assert modifications[0].modification_mass == pytest.approx(57.021464)

    def test_unknown_position(self, tmp_path):
        parameter_file = tmp_path / "TopPIC_Params.txt"
        parameter_file.write_text("DynamicMod=15.994915,M,opt,middle,Oxidation\n")

        with pytest.raises(ModificationParsingError):
            read_toppic_parameter_file(parameter_file)

    def test_missing_parameter_file(self, tmp_path):
        with pytest.raises(ParameterFileError):
            read_toppic_parameter_file(tmp_path / "missing.txt")

    def test_load_parameter_file(self, tmp_path):
        parameter_file = tmp_path / "TopPIC_Params.txt"
        parameter_file.write_text(
            "StaticMod=57.021464,C,fix,any,Carbamidomethyl\n"
            "StaticMod=42.010565,*,fix,N-term,Acetyl\n"
            "DynamicMod=79.966331,STY,opt,any,Phospho\n"
        )
        processor = TopPICResultsProcessor()
        processor.load_parameter_file(str(parameter_file))

        assert len(processor.catalog) == 3
        definitions = list(processor.catalog)
        assert definitions[0].mass_correction_tag == "IodoAcet"
        assert definitions[0].modification_type == ModificationType.STATIC
        assert definitions[1].target_residues == "<"
        assert definitions[1].modification_type == ModificationType.TERMINAL_PEPTIDE_STATIC
        assert definitions[2].target_residues == "STY"
        assert definitions[2].mass_correction_tag == "Phosph"


class TestTopPICResultsProcessor:
    def test_get_base_name(self):
        processor = TopPICResultsProcessor()
        test_cases = {
            "input": [
                "some/dir/Dataset_TopPIC_PrSMs.txt",
                "Dataset_TopPIC_Proteoforms.txt",
                "Results.txt",
            ],
            "expected_output": ["Dataset_toppic", "Dataset_toppic", "Results"],
        }

        for input_file, expected in zip(test_cases["input"], test_cases["expected_output"]):
            assert processor.get_base_name(input_file) == expected

    def test_missing_required_column(self, tmp_path):
        input_file = tmp_path / "Dataset_TopPIC_PrSMs.txt"
        columns = [column for column in TOPPIC_COLUMNS if column != "Proteoform"]
        _write_results(input_file, columns, TOPPIC_RESULTS)

        with pytest.raises(ResultsFileParsingError):
            TopPICResultsProcessor().read_results_file(input_file)

    def test_parse_results_entry(self, toppic_dataset):
        processor = TopPICResultsProcessor()
        results_df = processor.read_results_file(toppic_dataset)
        row = {column: str(value) for column, value in results_df.iloc[0].items()}

        result = processor.parse_results_entry(row, len(TOPPIC_COLUMNS), 1)
        assert result["scan"] == 100
        assert result["peptide"] == "-.(AM)[Oxidation]PEPT[79.96633]IDE.-"
        assert result["score"] == pytest.approx(1e-10)
        assert result["precursor_mz"] == "549.707176"
        assert result["del_m"] == "0.00104"
        assert float(result["del_m_ppm"]) == pytest.approx(1.8894, abs=1e-3)
        assert result["peak_count"] == "50"
        assert result["matched_fragment_ion_count"] == "18"
        assert result["q_value_text"] == "0"

        assert processor.parse_results_entry(row, 10, 1) is None

    def test_process_file(self, toppic_dataset):
        processor = TopPICResultsProcessor()
        output_files = processor.process_file(toppic_dataset)

        assert output_files["synopsis"] == (
            toppic_dataset.parent / "Dataset_toppic_syn.txt"
        ).as_posix()

        synopsis = read_tab_delimited(output_files["synopsis"])
        assert list(synopsis.columns) == SYNOPSIS_COLUMNS
        assert synopsis["ResultID"].tolist() == ["1", "2", "3"]
        assert synopsis["Scan"].tolist() == ["100", "100", "101"]
        assert synopsis["Protein"].tolist() == ["sp|P1|PROT1", "P3", "P2"]
        assert synopsis["PValue"].tolist() == ["1E-10", "0.001", "0.005"]
        assert synopsis["Rank_PValue"].tolist() == ["1", "2", "1"]
        assert synopsis["QValue"].tolist() == ["0", "0.002", "10"]
        assert synopsis["Peptide"].tolist()[0] == "-.(AM)[Oxidation]PEPT[79.96633]IDE.-"

        seq_info = read_tab_delimited(output_files["seq_info"])
        assert seq_info["Mod_Description"].tolist() == ["Plus1Oxy:1,Phosph:6", "", ""]

        seq_to_protein_map = read_tab_delimited(output_files["seq_to_protein_map"])
        assert seq_to_protein_map["Cleavage_State"].tolist() == ["2", "0", "1"]

        mod_summary = read_tab_delimited(output_files["mod_summary"])
        counts = dict(zip(mod_summary["Mass_Correction_Tag"], mod_summary["Occurrence_Count"]))
        assert counts == {"Plus1Oxy": "1", "Phosph": "1"}

    def test_process_file_without_p_values(self, tmp_path):
        input_file = tmp_path / "Dataset_TopPIC_PrSMs.txt"
        columns = [column for column in TOPPIC_COLUMNS if column != "P-value"]
        _write_results(input_file, columns, TOPPIC_RESULTS)

        processor = TopPICResultsProcessor()
        output_files = processor.process_file(input_file)
        assert not processor.data_has_p_values

        synopsis = read_tab_delimited(output_files["synopsis"])
        assert "PValue" not in synopsis.columns
        assert "Rank_PValue" not in synopsis.columns
        assert synopsis["EValue"].tolist() == ["1E-10", "0.001", "0.005"]
