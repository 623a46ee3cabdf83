"""
Tests for the material-choice filter

Tests item partitioning, client-id aliases and category recalculation.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from estimator.models import CostCategory, LineItem
from estimator.material_filter import (
    CABINETS,
    ROOFING,
    filter_by_material_choices,
    filter_category,
    partition_items,
)


@pytest.fixture
def roof():
    """Roof category listing both an asphalt and a metal option."""
    return CostCategory(
        name="Toiture",
        items=[
            LineItem("Bardeaux d'asphalte 30 ans", quantity=20, unit="carré", total=6000),
            LineItem("Tôle métal prépeinte", quantity=20, unit="carré", total=11000),
            LineItem("Main-d'oeuvre couvreur", quantity=1, unit="forfait", total=500),
        ],
        materials_subtotal=17500,
        labor_subtotal=8000,
        category_total=25500,
    )


class TestPartitionItems:
    """Tests for splitting items into active and alternatives."""

    def test_metal_roof(self, roof):
        active, alternatives = partition_items(roof.items, ROOFING, "metal")
        assert [i.description for i in active] == ["Tôle métal prépeinte", "Main-d'oeuvre couvreur"]
        assert [i.description for i in alternatives] == ["Bardeaux d'asphalte 30 ans"]
        assert alternatives[0].is_alternative

    def test_unrelated_items_stay_active(self):
        items = [LineItem("Fascia et soffite", total=900)]
        active, alternatives = partition_items(items, ROOFING, "metal")
        assert active == items
        assert alternatives == []


class TestFilterCategory:
    """Tests for filtering one category."""

    def test_metal_choice(self, roof):
        result = filter_category(roof, {"roofingType": "metal"})
        assert len(result.items) == 2
        assert len(result.alternative_items) == 1
        assert result.materials_subtotal == 11500
        assert result.labor_subtotal == 8000
        assert result.category_total == 19500

    def test_input_not_mutated(self, roof):
        filter_category(roof, {"roofingType": "metal"})
        assert len(roof.items) == 3
        assert roof.materials_subtotal == 17500

    def test_no_choice_for_trade(self, roof):
        assert filter_category(roof, {"flooringType": "ceramique"}) is roof

    def test_unknown_material_id(self, roof):
        assert filter_category(roof, {"roofingType": "chaume"}) is roof

    def test_category_without_trade(self):
        plumbing = CostCategory("Plomberie", items=[LineItem("Tuyau PEX", total=300)])
        assert filter_category(plumbing, {"roofingType": "metal"}) is plumbing

    def test_benchmark_estimate_untouched(self):
        """A benchmark-only category is left as it was."""
        estimate = CostCategory(
            "Toiture",
            items=[LineItem("Estimation basée sur repères Québec 2025", total=37500, source="Estimé")],
            materials_subtotal=21750,
            labor_subtotal=15750,
            category_total=37500,
        )
        assert filter_category(estimate, {"roofingType": "metal"}) is estimate

    def test_nothing_moved_still_recomputes_materials(self):
        """Materials follow the active items even when every item is kept."""
        roof = CostCategory(
            "Toiture",
            items=[LineItem("Tôle métal", total=4000, source="Page 1")],
            materials_subtotal=5000,
            labor_subtotal=2000,
            category_total=7000,
        )
        result = filter_category(roof, {"roofingType": "metal"})
        assert result.alternative_items == []
        assert result.materials_subtotal == 4000
        assert result.category_total == 6000

    def test_all_items_moved_keeps_materials(self):
        roof = CostCategory(
            "Toiture",
            items=[LineItem("Bardeaux d'asphalte", total=6000)],
            materials_subtotal=6000,
            labor_subtotal=2000,
            category_total=8000,
        )
        result = filter_category(roof, {"roofingType": "metal"})
        assert result.items == []
        assert result.materials_subtotal == 6000
        assert result.category_total == 8000

    def test_client_alias(self):
        kitchen = CostCategory(
            "Cuisine",
            items=[
                LineItem("Armoires en mélamine", total=8000),
                LineItem("Armoires sur mesure en bois massif", total=30000),
            ],
            materials_subtotal=38000,
            labor_subtotal=6000,
        )
        result = filter_category(kitchen, {"cabinetType": "thermoplastique"})
        assert [i.description for i in result.items] == ["Armoires en mélamine"]
        assert result.materials_subtotal == 8000
        assert CABINETS.resolve("thermoplastique") == "melamine"


class TestFilterByMaterialChoices:
    """Tests for the category-list filter."""

    def test_empty_choices(self, roof):
        categories = [roof]
        assert filter_by_material_choices(categories, {}) == categories
        assert filter_by_material_choices(categories, None) == categories

    def test_applies_per_category(self, roof):
        plumbing = CostCategory("Plomberie", materials_subtotal=1000)
        result = filter_by_material_choices([roof, plumbing], {"roofingType": "metal"})
        assert result[0].category_total == 19500
        assert result[1] is plumbing

    def test_accented_category_name(self):
        siding = CostCategory(
            "Revêtement extérieur",
            items=[LineItem("Déclin de vinyle", total=9000), LineItem("Brique d'argile", total=20000)],
            materials_subtotal=29000,
        )
        result = filter_by_material_choices([siding], {"exteriorSiding": "vinyle"})
        assert [i.description for i in result[0].items] == ["Déclin de vinyle"]
