"""unique_sequences module unit tests."""

from phrp.unique_sequences import UniqueSequenceRegistry


class TestUniqueSequenceRegistry:
    def test_get_or_assign_id(self):
        registry = UniqueSequenceRegistry()
        test_cases = {
            "input": [
                ("PEPTIDE", ""),
                ("PEPTIDE", "Phosph:4"),
                ("PEPTIDE", ""),
                ("MPEPTIDE", "Plus1Oxy:1"),
                ("PEPTIDE", "Phosph:4"),
            ],
            "expected_output": [(1, False), (2, False), (1, True), (3, False), (2, True)],
        }

        for (sequence, mod_description), expected in zip(
            test_cases["input"], test_cases["expected_output"]
        ):
            assert registry.get_or_assign_id(sequence, mod_description) == expected

        assert len(registry) == 3
        assert "PEPTIDE_Phosph:4" in registry

    def test_clear(self):
        registry = UniqueSequenceRegistry(start_id=10)
        assert registry.get_or_assign_id("PEPTIDE", "") == (10, False)

        registry.clear()
        assert len(registry) == 0
        assert registry.get_or_assign_id("PEPTIDE", "") == (1, False)
