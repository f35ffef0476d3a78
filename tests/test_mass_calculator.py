"""mass_calculator module unit tests."""

import pytest

from phrp.mass_calculator import (
    MASS_PROTON,
    PeptideMassCalculator,
    PeptideSequenceModInfo,
    mass_to_ppm,
    ppm_to_mass,
)

PEPTIDE_MASS = 799.35997


class TestPeptideMassCalculator:
    def test_compute_sequence_mass(self):
        calculator = PeptideMassCalculator()
        test_cases = {
            "input": ["PEPTIDE", "K.PEPTIDE.R", "-.PEPTIDE.-", "MPEPTIDE", ""],
            "expected_output": [PEPTIDE_MASS, PEPTIDE_MASS, PEPTIDE_MASS, 930.40041, 0.0],
        }

        for sequence, expected in zip(test_cases["input"], test_cases["expected_output"]):
            assert calculator.compute_sequence_mass(sequence) == pytest.approx(expected, abs=1e-4)

    def test_unknown_residues_contribute_no_mass(self):
        calculator = PeptideMassCalculator()
        assert calculator.compute_sequence_mass("PEP1TIDE") == pytest.approx(
            calculator.compute_sequence_mass("PEPTIDE")
        )
        assert calculator.get_amino_acid_mass("!") == 0.0

    def test_modifications(self):
        calculator = PeptideMassCalculator()
        mass = calculator.compute_sequence_mass(
            "PEPTIDE", [PeptideSequenceModInfo(4, 79.966331), PeptideSequenceModInfo(1, 42.010567)]
        )
        assert mass == pytest.approx(PEPTIDE_MASS + 79.966331 + 42.010567, abs=1e-4)

    def test_isotopic_modifications(self):
        calculator = PeptideMassCalculator()
        # G contains one nitrogen atom
        mass = calculator.compute_sequence_mass("GG", [PeptideSequenceModInfo(0, 0.997035, "N")])
        assert mass == pytest.approx(calculator.compute_sequence_mass("GG") + 2 * 0.997035)

        assert calculator.compute_sequence_mass("GG", [PeptideSequenceModInfo(0, 1.0, "Q")]) == -1
        assert calculator.error_message == "Unknown Affected Atom 'Q'"

    def test_isotopic_modifications_element_counts(self):
        calculator = PeptideMassCalculator()
        test_cases = {
            "input": [("U", "Se"), ("B", "N"), ("O", "N"), ("MC", "S"), ("J", "C")],
            "expected_output": [1, 2, 2, 2, 0],
        }

        for (sequence, atom), expected in zip(test_cases["input"], test_cases["expected_output"]):
            mass = calculator.compute_sequence_mass(sequence, [PeptideSequenceModInfo(0, 1.0, atom)])
            assert mass == pytest.approx(calculator.compute_sequence_mass(sequence) + expected)

    def test_compute_sequence_mass_numeric_mods(self):
        calculator = PeptideMassCalculator()
        assert calculator.compute_sequence_mass_numeric_mods("PEPT+79.966IDE") == pytest.approx(
            PEPTIDE_MASS + 79.966, abs=1e-4
        )

    def test_set_amino_acid_mass(self):
        calculator = PeptideMassCalculator()
        calculator.set_amino_acid_mass("b", 100.0)
        assert calculator.get_amino_acid_mass("B") == 100.0
        with pytest.raises(ValueError):
            calculator.set_amino_acid_mass("1", 100.0)

        calculator.reset_amino_acid_masses()
        assert calculator.get_amino_acid_mass("B") == pytest.approx(114.042921543121)

    def test_convolute_mass(self):
        calculator = PeptideMassCalculator()
        mz_2 = calculator.monoisotopic_mass_to_mz(PEPTIDE_MASS, 2)
        assert mz_2 == pytest.approx((PEPTIDE_MASS + 2 * MASS_PROTON) / 2)
        assert calculator.convolute_mass(mz_2, 2, 0) == pytest.approx(PEPTIDE_MASS)
        assert calculator.convolute_mass(mz_2, 2, 3) == pytest.approx(
            (PEPTIDE_MASS + 3 * MASS_PROTON) / 3
        )
        assert calculator.mh_to_monoisotopic_mass(PEPTIDE_MASS + MASS_PROTON) == pytest.approx(
            PEPTIDE_MASS
        )
        assert calculator.convolute_mass(500.0, -1, 1) == 0.0


def test_ppm_conversion():
    assert mass_to_ppm(0.001, 1000) == pytest.approx(1.0)
    assert ppm_to_mass(1.0, 1000) == pytest.approx(0.001)
