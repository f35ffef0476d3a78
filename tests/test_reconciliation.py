"""reconciliation module unit tests."""

import pytest

from phrp.mass_calculator import PeptideMassCalculator
from phrp.modification_catalog import ModificationCatalog
from phrp.modification_definition import ModificationType
from phrp.reconciliation import (
    MassReconciler,
    compute_total_mod_mass_bracket_dialect,
    compute_total_mod_mass_plus_dialect,
)
from phrp.search_result import MASS_C13, compute_del_m_corrected, compute_del_m_corrected_ppm

PEPTIDE_MASS = 799.35993


class TestTotalModMass:
    def test_plus_dialect(self):
        catalog = ModificationCatalog()
        test_cases = {
            "input": ["K.M+15.995PEPT-17.03IDE.R", "K.PEPTIDEK+42.011.R", "PEPTIDE"],
            "expected_output": [15.995 - 17.03, 42.011, 0.0],
        }

        for peptide, expected in zip(test_cases["input"], test_cases["expected_output"]):
            assert compute_total_mod_mass_plus_dialect(peptide, catalog) == pytest.approx(expected)

    def test_plus_dialect_static_mods(self):
        catalog = ModificationCatalog()
        catalog.lookup_modification_definition_by_mass_and_mod_type(
            57.021465, ModificationType.STATIC, "C"
        )
        catalog.lookup_modification_definition_by_mass_and_mod_type(
            229.162932, ModificationType.TERMINAL_PEPTIDE_STATIC, "<"
        )
        assert compute_total_mod_mass_plus_dialect("K.ACDC+15.995.R", catalog) == pytest.approx(
            2 * 57.021465 + 229.162932 + 15.995
        )

    def test_bracket_dialect(self):
        catalog = ModificationCatalog()
        test_cases = {
            "input": [
                "-.(AM)[Oxidation]PEPT[79.96633]IDE.-",
                "K.PEPT[-17.0265]IDE.R",
                "K.PEPT[NotAModification]IDE.R",
            ],
            "expected_output": [15.994915 + 79.96633, -17.0265, 0.0],
        }

        for peptide, expected in zip(test_cases["input"], test_cases["expected_output"]):
            assert compute_total_mod_mass_bracket_dialect(peptide, catalog) == pytest.approx(
                expected
            )


class TestDelMCorrection:
    def test_compute_del_m_corrected(self):
        test_cases = {
            "input": [0.002, MASS_C13 + 0.002, 2 * MASS_C13 - 0.001, -MASS_C13 + 0.003],
            "expected_output": [0.002, 0.002, -0.001, 0.003],
        }

        for del_m, expected in zip(test_cases["input"], test_cases["expected_output"]):
            corrected, del_m_ppm = compute_del_m_corrected(
                del_m, PEPTIDE_MASS + del_m, PEPTIDE_MASS
            )
            assert corrected == pytest.approx(expected, abs=1e-6)
            assert del_m_ppm == pytest.approx(expected * 1e6 / PEPTIDE_MASS, abs=1e-3)

    def test_large_mass_errors_converge(self):
        for del_m in [25 * MASS_C13 + 0.002, 1000.3, -733.7]:
            corrected, _ = compute_del_m_corrected(del_m, PEPTIDE_MASS + del_m, PEPTIDE_MASS)
            assert -0.5 <= corrected <= 0.5

        del_m_ppm = compute_del_m_corrected_ppm(
            25 * MASS_C13 + 0.002, PEPTIDE_MASS + 25 * MASS_C13 + 0.002, PEPTIDE_MASS
        )
        assert del_m_ppm == pytest.approx(0.002 * 1e6 / PEPTIDE_MASS, abs=1e-3)


class TestMassReconciler:
    def test_reconcile_c13(self):
        reconciler = MassReconciler(PeptideMassCalculator(), "MODa")
        precursor_mass = PEPTIDE_MASS + MASS_C13 + 0.001

        result = reconciler.reconcile("PEPTIDE", 0.0, 0.0, precursor_mass)
        assert result.computed_mass == pytest.approx(PEPTIDE_MASS, abs=1e-4)
        assert result.del_m == pytest.approx(MASS_C13 + 0.001, abs=1e-4)
        assert result.del_m_ppm == pytest.approx(1.25, abs=0.2)
        assert result.warning is None
        assert reconciler.warning_count == 0

    def test_reconcile_with_modifications(self):
        reconciler = MassReconciler(PeptideMassCalculator(), "MODa")
        result = reconciler.reconcile("K.PEPTIDE.R", 79.966331, PEPTIDE_MASS + 79.9663, 0.0)
        assert result.computed_mass == pytest.approx(PEPTIDE_MASS + 79.966331, abs=1e-4)
        assert result.warning is None

    def test_mass_mismatch_warning(self):
        reconciler = MassReconciler(PeptideMassCalculator(), "TopPIC")
        result = reconciler.reconcile("PEPTIDE", 0.0, PEPTIDE_MASS + 5.0, PEPTIDE_MASS)
        assert result.warning.startswith(
            "The monoisotopic mass computed by PHRP is more than 0.10 Da away from the mass "
            "computed by TopPIC"
        )
        assert reconciler.warning_count == 1

        reconciler.reset()
        assert reconciler.warning_count == 0

    def test_relative_tolerance(self):
        # Above 5000 Da the tolerance scales with the mass
        reconciler = MassReconciler(PeptideMassCalculator())
        peptide = "PEPTIDE" * 10
        computed_mass = PeptideMassCalculator().compute_sequence_mass(peptide)
        assert computed_mass > 5000

        result = reconciler.reconcile(peptide, 0.0, computed_mass + 0.11, computed_mass)
        assert result.warning is None
