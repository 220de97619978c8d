"""Tests for code translation tables."""

import logging

from transfair.domain import profiles as p
from transfair.domain.concept_map import ConceptMap, TranslationTables


class TestConceptMap:
    """Test ConceptMap lookups and construction."""

    def test_lookup_hit_and_miss(self):
        """Test that a missing entry returns None instead of raising."""
        table = ConceptMap({"C50.9": "C50.9"}, p.SYSTEM_ICD10, p.SYSTEM_ICD10_GM)

        assert table.lookup("C50.9") == "C50.9"
        assert table.lookup("X99") is None
        assert table.lookup(None) is None

    def test_entries_are_read_only(self):
        """Test that the underlying mapping cannot be modified."""
        source = {"a": "b"}
        table = ConceptMap(source)
        source["c"] = "d"

        assert "c" not in table
        assert len(table) == 1

    def test_from_pairs_first_entry_wins(self, caplog):
        """Test that conflicting duplicates keep the first target and warn."""
        with caplog.at_level(logging.WARNING):
            table = ConceptMap.from_pairs([("E11", "E11.9"), ("E11", "E11.0"), ("E11", "E11.9")], name="dx")

        assert table.lookup("E11") == "E11.9"
        assert "conflicting targets for 'E11'" in caplog.text

    def test_from_pairs_skips_blank_codes(self):
        table = ConceptMap.from_pairs([("", "x"), ("a", ""), (None, "y"), (" a ", " b ")])

        assert dict(table.items()) == {"a": "b"}

    def test_repr(self):
        assert repr(ConceptMap({"a": "b"}, name="sample_type")) == "ConceptMap(name='sample_type', entries=1)"


class TestTranslationTables:
    """Test divergence detection between diagnosis and cause-of-death tables."""

    def test_no_tables_no_divergences(self):
        assert TranslationTables().divergences() == {"forward": [], "reverse": []}

    def test_divergence_detected_per_direction(self, caplog):
        """Test that codes mapped differently by the two tables are reported."""
        tables = TranslationTables(
            diagnosis=ConceptMap({"I21.9": "I21.9", "C50.9": "C50.9"}),
            cause_of_death=ConceptMap({"I21.9": "I21.4", "C50.9": "C50.9"}),
            diagnosis_reverse=ConceptMap({"I21.9": "I21"}),
            cause_of_death_reverse=ConceptMap({"I21.9": "I21"}),
        )

        with caplog.at_level(logging.WARNING):
            count = tables.log_divergences()

        assert tables.divergences() == {"forward": [("I21.9", "I21.9", "I21.4")], "reverse": []}
        assert count == 1
        assert "'I21.9' maps to 'I21.9' as diagnosis but 'I21.4' as cause of death" in caplog.text

    def test_codes_missing_from_one_table_are_not_divergent(self):
        tables = TranslationTables(
            diagnosis=ConceptMap({"E11": "E11.9"}),
            cause_of_death=ConceptMap({"I21.9": "I21.9"}),
        )

        assert tables.divergences()["forward"] == []
