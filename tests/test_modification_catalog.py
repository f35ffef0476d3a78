"""modification_catalog and modification_definition module unit tests."""

import pytest

from phrp.exceptions import ModificationParsingError
from phrp.modification_catalog import ModificationCatalog
from phrp.modification_definition import (
    ModificationDefinition,
    ModificationType,
    ResidueTerminusState,
    clean_mass_correction_tag,
)


class TestModificationDefinition:
    def test_clean_mass_correction_tag(self):
        assert clean_mass_correction_tag("Oxidation") == "Oxidatio"
        assert clean_mass_correction_tag("Gly:Gly") == "Gly_Gly"
        assert clean_mass_correction_tag("") == ""

    def test_equivalent_target_residues(self):
        assert ModificationDefinition.equivalent_target_residues("STY", "YTS", False)
        assert not ModificationDefinition.equivalent_target_residues("STY", "ST", False)
        assert ModificationDefinition.equivalent_target_residues("STY", "ST", True)
        assert not ModificationDefinition.equivalent_target_residues("", "ST", True)

    def test_terminus_targets(self):
        n_terminal = ModificationDefinition(
            "-", 42.010567, "<", ModificationType.TERMINAL_PEPTIDE_STATIC, "Acetyl"
        )
        assert n_terminal.can_affect_peptide_or_protein_terminus()
        assert not n_terminal.can_affect_peptide_residues()

        dynamic = ModificationDefinition("*", 15.994915, "M", ModificationType.DYNAMIC, "Plus1Oxy")
        assert not dynamic.can_affect_peptide_or_protein_terminus()
        assert dynamic.can_affect_peptide_residues()

    def test_equivalent_mass_type_tag_atom_and_residues(self):
        phospho = ModificationDefinition("*", 79.966331, "STY", ModificationType.DYNAMIC, "Phosph")
        test_cases = {
            "input": [
                ModificationDefinition("#", 79.9663, "YTS", ModificationType.DYNAMIC, "Phosph"),
                ModificationDefinition("#", 79.9663, "ST", ModificationType.DYNAMIC, "Phosph"),
                ModificationDefinition("*", 79.966331, "STY", ModificationType.STATIC, "Phosph"),
            ],
            "expected_output": [True, False, False],
        }

        for other, expected in zip(test_cases["input"], test_cases["expected_output"]):
            assert phospho.equivalent_mass_type_tag_atom_and_residues(other) == expected

        n_terminal = ModificationDefinition(
            "-", 42.010567, "<", ModificationType.TERMINAL_PEPTIDE_STATIC, "Acetyl"
        )
        c_terminal = ModificationDefinition(
            "-", 42.010567, ">", ModificationType.TERMINAL_PEPTIDE_STATIC, "Acetyl"
        )
        assert not n_terminal.equivalent_mass_type_tag_atom_and_residues(c_terminal)
        assert n_terminal.equivalent_mass_type_tag_atom_and_residues(n_terminal.copy())


class TestMassCorrectionTags:
    def test_lookup_mass_correction_tag_by_mass(self):
        catalog = ModificationCatalog()
        test_cases = {
            "input": [
                (15.994915, 3, 3),
                (57.021, 3, 3),
                (79.9663, 3, 3),
                (16.0, 0, 0),
                (57.021, 0, 0),
                (-17.0265, 3, 1),
            ],
            "expected_output": [
                "Plus1Oxy",
                "IodoAcet",
                "Phosph",
                "Plus1Oxy",
                "IodoAcet",
                "NH3_Loss",
            ],
        }

        for (mass, digits, digits_loose), expected in zip(
            test_cases["input"], test_cases["expected_output"]
        ):
            tag = catalog.lookup_mass_correction_tag_by_mass(
                mass, digits=digits, digits_loose=digits_loose
            )
            assert tag == expected

    def test_unknown_tags_are_numbered(self):
        catalog = ModificationCatalog()
        assert catalog.lookup_mass_correction_tag_by_mass(
            123.4567, add_if_unknown=True, digits_loose=3
        ) == "UnkMod01"
        assert catalog.lookup_mass_correction_tag_by_mass(
            234.5678, add_if_unknown=True, digits_loose=3
        ) == "UnkMod02"
        assert catalog.mass_correction_tags["UnkMod01"] == 123.4567
        # Stored unknown tags are found again
        assert catalog.lookup_mass_correction_tag_by_mass(123.4567, digits_loose=3) == "UnkMod01"

    def test_unknown_tag_numbering_skips_lookups_that_do_not_store(self):
        catalog = ModificationCatalog(mass_correction_tags={})
        assert catalog.lookup_mass_correction_tag_by_mass(99.1234) == "UnkMod01"
        _, found = catalog.lookup_dynamic_modification_definition_by_target_info("#", "M")
        assert not found

        assert catalog.lookup_mass_correction_tag_by_mass(
            123.4567, add_if_unknown=True, digits_loose=3
        ) == "UnkMod01"
        assert catalog.lookup_mass_correction_tag_by_mass(
            234.5678, add_if_unknown=True, digits_loose=3
        ) == "UnkMod02"

    def test_lookup_modification_mass_by_name(self):
        catalog = ModificationCatalog()
        assert catalog.lookup_modification_mass_by_name("Phosph") == pytest.approx(79.966331)
        assert catalog.lookup_modification_mass_by_name("oxidation") == pytest.approx(15.994915)
        assert catalog.lookup_modification_mass_by_name("Carbamidomethyl") == pytest.approx(
            57.021465
        )
        assert catalog.lookup_modification_mass_by_name("NotAModification") is None
        assert catalog.lookup_modification_mass_by_name("") is None

    def test_read_mass_correction_tags_file(self, tmp_path):
        tags_file = tmp_path / "Mass_Correction_Tags.txt"
        tags_file.write_text("Mass_Correction_Tag\tMonoisotopic_Mass\nMyTag\t12.3456\n")

        catalog = ModificationCatalog()
        catalog.read_mass_correction_tags_file(tags_file)
        assert catalog.mass_correction_tags == {"MyTag": 12.3456}


class TestModificationDefinitionLookup:
    def test_auto_defined_dynamic_modification(self):
        catalog = ModificationCatalog()
        definition, found = catalog.lookup_modification_definition_by_mass(79.966331, "S")
        assert not found
        assert definition.mass_correction_tag == "Phosph"
        assert definition.modification_type == ModificationType.DYNAMIC
        assert definition.modification_symbol == "*"
        assert definition.unknown_mod_auto_defined
        assert len(catalog) == 1

        # Same mass on another residue extends the existing definition
        other, found = catalog.lookup_modification_definition_by_mass(79.9663, "T")
        assert found
        assert other is definition
        assert definition.target_residues == "ST"
        assert len(catalog) == 1

    def test_unknown_mass_gets_unknown_tag(self):
        catalog = ModificationCatalog()
        definition, found = catalog.lookup_modification_definition_by_mass(123.4567, "K")
        assert not found
        assert definition.mass_correction_tag == "UnkMod01"

    def test_terminus_target(self):
        catalog = ModificationCatalog()
        definition, _ = catalog.lookup_modification_definition_by_mass(
            42.010567, "M", ResidueTerminusState.PROTEIN_N_TERMINUS
        )
        assert definition.target_residues == "<"
        assert definition.mass_correction_tag == "Acetyl"

    def test_standard_refinement_modification(self):
        catalog = ModificationCatalog()
        definition, found = catalog.lookup_modification_definition_by_mass(-17.026549, "Q")
        assert found
        assert definition.mass_correction_tag == "NH3_Loss"

    def test_closest_mass_wins(self):
        catalog = ModificationCatalog()
        far = catalog.add_modification(
            ModificationDefinition("*", 15.999, "M", ModificationType.DYNAMIC, "FarTag")
        )
        near = catalog.add_modification(
            ModificationDefinition("*", 15.995, "M", ModificationType.DYNAMIC, "NearTag")
        )

        definition, found = catalog.lookup_modification_definition_by_mass(15.9949, "M", digits=2)
        assert found
        assert definition is near

        # Fallback to any dynamic mod also prefers the closest mass
        definition, found = catalog.lookup_modification_definition_by_mass(15.9949, "K", digits=2)
        assert found
        assert definition is near
        assert near.target_residues == "MK"
        assert far.target_residues == "M"

    def test_append_standard_refinement_modifications(self):
        catalog = ModificationCatalog()
        assert not catalog.verify_modification_present(-17.026549, "Q", ModificationType.DYNAMIC)

        catalog.append_standard_refinement_modifications()
        catalog.append_standard_refinement_modifications()
        assert len(catalog) == 2
        assert [m.mass_correction_tag for m in catalog] == ["NH3_Loss", "MinusH2O"]
        assert all(m.modification_symbol != "_" for m in catalog)

        test_cases = {
            "input": [
                (-17.026549, "Q", ModificationType.DYNAMIC),
                (-17.0265, "Q", ModificationType.DYNAMIC),
                (-17.026549, "N", ModificationType.DYNAMIC),
                (-17.026549, "Q", ModificationType.STATIC),
                (-18.0106, "E", ModificationType.DYNAMIC),
            ],
            "expected_output": [True, True, False, False, True],
        }

        for (mass, residues, mod_type), expected in zip(
            test_cases["input"], test_cases["expected_output"]
        ):
            assert catalog.verify_modification_present(mass, residues, mod_type) == expected

    def test_lookup_by_mass_and_mod_type(self):
        catalog = ModificationCatalog()
        definition, found = catalog.lookup_modification_definition_by_mass_and_mod_type(
            57.021465, ModificationType.STATIC, "C"
        )
        assert not found
        assert definition.modification_type == ModificationType.STATIC
        assert definition.modification_symbol == "-"
        assert definition.mass_correction_tag == "IodoAcet"

        same, found = catalog.lookup_modification_definition_by_mass_and_mod_type(
            57.021465, ModificationType.STATIC, "C"
        )
        assert found
        assert same is definition
        assert len(catalog) == 1

    def test_lookup_dynamic_modification_by_symbol(self):
        catalog = ModificationCatalog()
        definition, _ = catalog.lookup_modification_definition_by_mass(15.994915, "M")
        found_definition, found = catalog.lookup_dynamic_modification_definition_by_target_info(
            definition.modification_symbol, "M"
        )
        assert found
        assert found_definition is definition

        _, found = catalog.lookup_dynamic_modification_definition_by_target_info("#", "M")
        assert not found

    def test_clear_modifications(self):
        catalog = ModificationCatalog()
        catalog.lookup_modification_definition_by_mass(15.994915, "M")
        catalog.clear_modifications()
        assert len(catalog) == 0
        definition, _ = catalog.lookup_modification_definition_by_mass(79.966331, "S")
        assert definition.modification_symbol == "*"


class TestReadModificationDefinitionsFile:
    def test_read_file(self, tmp_path):
        definitions_file = tmp_path / "mods.txt"
        definitions_file.write_text(
            "*\t15.994915\tM\tD\tPlus1Oxy\n"
            "C\t57.021465\tC\tS\tIodoAcet\n"
            "-\t42.010567\t<\tS\tAcetyl\n"
            "-\t0.997035\t\tI\t15N\tN\n"
        )

        catalog = ModificationCatalog()
        catalog.read_modification_definitions_file(definitions_file)
        types = [definition.modification_type for definition in catalog]
        assert types == [
            ModificationType.DYNAMIC,
            ModificationType.STATIC,
            ModificationType.TERMINAL_PEPTIDE_STATIC,
            ModificationType.ISOTOPIC,
        ]

    def test_invalid_isotopic_definition(self, tmp_path):
        definitions_file = tmp_path / "mods.txt"
        definitions_file.write_text("-\t0.997035\t\tI\t15N\t\n")

        with pytest.raises(ModificationParsingError):
            ModificationCatalog().read_modification_definitions_file(definitions_file)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ModificationCatalog().read_modification_definitions_file(tmp_path / "missing.txt")
