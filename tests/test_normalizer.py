"""
Tests for the category/item normalizer

Tests key normalization, description cleaning and core-concept keys.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from estimator.normalizer import (
    FALLBACK_KEY_LENGTH,
    clean_description,
    item_key,
    match_core_terms,
    normalize_item_description,
    normalize_key,
    strip_accents,
)


class TestNormalizeKey:
    """Tests for category-name keys."""

    def test_accents_case_and_spaces(self):
        assert normalize_key("  Électricité ") == "electricite"
        assert normalize_key("Fenêtres   et portes") == "fenetres et portes"

    def test_same_category_different_spelling(self):
        assert normalize_key("Revêtement extérieur") == normalize_key("REVETEMENT EXTERIEUR")

    def test_empty_values(self):
        assert normalize_key(None) == ""
        assert normalize_key("") == ""

    def test_strip_accents(self):
        assert strip_accents("béton façade") == "beton facade"


class TestCleanDescription:
    """Tests for description cleaning before concept matching."""

    def test_removes_page_reference(self):
        assert clean_description("Semelles page 2") == "semelles"

    def test_removes_parenthetical(self):
        assert clean_description("Semelles (Page 2)") == "semelles"

    def test_removes_stop_words(self):
        assert clean_description("Béton pour la dalle") == "beton dalle"
        assert clean_description("Coffrage du mur de fondation") == "coffrage mur fondation"

    def test_removes_elided_article(self):
        assert clean_description("Pose de l'isolant") == "pose isolant"


class TestNormalizeItemDescription:
    """Tests for core-concept item keys."""

    def test_page_variants_collapse(self):
        """The same footing described on two pages gets one key."""
        assert normalize_item_description("Semelles") == "semelle"
        assert normalize_item_description("Semelles (Page 2)") == "semelle"

    def test_concepts_sorted_and_joined(self):
        assert normalize_item_description("Béton pour la dalle") == "beton|dalle"
        assert normalize_item_description("Dalle de béton") == "beton|dalle"

    def test_english_stems(self):
        assert normalize_item_description("Concrete footing") == "beton|semelle"

    def test_multiword_stem(self):
        assert match_core_terms("pierre concassee 3 4") == ["gravier"]

    def test_formwork_is_distinct_from_wall(self):
        """Formwork keeps its own concept, so it does not merge with the wall itself."""
        formwork = normalize_item_description("Coffrage du mur de fondation")
        wall = normalize_item_description("Mur de fondation (page 2)")
        assert formwork == "coffrage|fondation|mur"
        assert wall == "fondation|mur"
        assert formwork != wall

    def test_fallback_prefix(self):
        """Descriptions with no known concept fall back to a prefix."""
        key = normalize_item_description("Nettoyage final du chantier et disposition des rebuts")
        assert len(key) <= FALLBACK_KEY_LENGTH
        assert key.startswith("nettoyage final")

    def test_empty_description(self):
        assert normalize_item_description(None) == ""


class TestItemKey:
    """Tests for the item identity used by the merger."""

    def test_unit_is_part_of_the_key(self):
        assert item_key("Semelles", "m³") != item_key("Semelles", "pi lin")

    def test_unit_normalized(self):
        assert item_key("Semelles (Page 2)", " PI2 ") == item_key("Semelles", "pi2")

    @pytest.mark.parametrize("description", ["Béton de semelle", "semelle béton", "Concrete footings"])
    def test_equivalent_descriptions(self, description):
        assert item_key(description, "m3") == "beton|semelle|m3"
