"""
Tests for the page extraction merger

Tests MAX/SUM policies, item deduplication, diagnostics union and hints.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from estimator.models import CostCategory, LineItem, PageExtraction
from estimator.merger import (
    MergePolicy,
    MergeResult,
    default_policy_resolver,
    merge_categories,
    merge_line_items,
    merge_page_extractions,
)


def _category(name, materials, labor, items=None):
    return CostCategory(
        name=name,
        items=items or [],
        materials_subtotal=materials,
        labor_subtotal=labor,
        category_total=materials + labor,
    )


@pytest.fixture
def foundation_pages():
    """Two plan pages that both describe the foundation."""
    page1 = PageExtraction(
        project_type_hint="CONSTRUCTION_NEUVE",
        new_floor_area_hint=1200,
        categories=[
            _category("Fondation", 10000, 4000, [
                LineItem("Semelles", quantity=40, unit="m3", unit_price=250, total=10000, source="Page 1"),
            ]),
            _category("Électricité", 6000, 3000),
        ],
        missing_elements=["Plan de drainage"],
    )
    page2 = PageExtraction(
        floor_count_hint=2,
        categories=[
            _category("fondation", 12000, 3500, [
                LineItem("Semelles (Page 2)", quantity=48, unit="m3", unit_price=250, total=12000, source="Page 2"),
            ]),
            _category("Plomberie", 5000, 2500),
        ],
        missing_elements=["Plan de drainage", "Devis électrique"],
        ambiguities=["Hauteur du sous-sol"],
    )
    return [page1, page2]


class TestPolicies:
    """Tests for policy selection."""

    def test_default_resolver(self):
        assert default_policy_resolver("fondation", [14000, 15500]) is MergePolicy.MAX
        assert default_policy_resolver("fondation", [14000]) is MergePolicy.SUM
        assert default_policy_resolver("fondation", []) is MergePolicy.SUM

    def test_combine(self):
        assert MergePolicy.MAX.combine(3, 5) == 5
        assert MergePolicy.SUM.combine(3, 5) == 8


class TestMergeLineItems:
    """Tests for merging two descriptions of the same element."""

    def test_keeps_maximums_and_first_source(self):
        a = LineItem("Semelles", quantity=40, unit="m3", unit_price=250, total=10000, source="Page 1")
        b = LineItem("Semelles (Page 2)", quantity=48, unit="m3", unit_price=240, total=11520, source="Page 2")
        merged = merge_line_items(a, b)
        assert merged.quantity == 48
        assert merged.total == 11520
        assert merged.unit_price == 250
        assert merged.source == "Page 1"
        assert merged.description == "Semelles"

    def test_inputs_untouched(self):
        a = LineItem("Semelles", quantity=40, total=10000)
        b = LineItem("Semelles", quantity=48, total=12000)
        merge_line_items(a, b)
        assert a.quantity == 40


class TestMergeCategories:
    """Tests for merging two views of one category."""

    def test_max_policy(self):
        a = _category("Fondation", 10000, 4000)
        b = _category("Fondation", 12000, 3500)
        merged = merge_categories(a, b, MergePolicy.MAX)
        assert merged.materials_subtotal == 12000
        assert merged.labor_subtotal == 4000
        assert merged.category_total == 0

    def test_sum_policy(self):
        a = _category("Électricité", 6000, 3000)
        b = _category("Électricité", 1000, 500)
        merged = merge_categories(a, b, MergePolicy.SUM)
        assert merged.materials_subtotal == 7000
        assert merged.labor_subtotal == 3500

    def test_first_labor_rate(self):
        a = _category("Structure", 1, 1)
        b = _category("Structure", 1, 1)
        b.labor_rate = 48.5
        assert merge_categories(a, b, MergePolicy.MAX).labor_rate == 48.5


class TestMergePageExtractions:
    """Tests for the full page merge."""

    def test_repeated_category_takes_max(self, foundation_pages):
        result = merge_page_extractions(foundation_pages)
        foundation = result.categories[0]
        assert foundation.name == "Fondation"
        assert foundation.materials_subtotal == 12000
        assert foundation.labor_subtotal == 4000
        assert result.policies["fondation"] is MergePolicy.MAX

    def test_single_page_categories_kept(self, foundation_pages):
        result = merge_page_extractions(foundation_pages)
        names = [cat.name for cat in result.categories]
        assert names == ["Fondation", "Électricité", "Plomberie"]
        electric = result.categories[1]
        assert electric.materials_subtotal == 6000
        assert electric.labor_subtotal == 3000
        assert result.policies["electricite"] is MergePolicy.SUM

    def test_items_deduplicated_across_pages(self, foundation_pages):
        result = merge_page_extractions(foundation_pages)
        items = result.categories[0].items
        assert len(items) == 1
        assert items[0].quantity == 48
        assert items[0].total == 12000
        assert items[0].source == "Page 1"

    def test_page_order_does_not_change_totals(self, foundation_pages):
        forward = merge_page_extractions(foundation_pages)
        backward = merge_page_extractions(list(reversed(foundation_pages)))

        def by_key(result):
            return {
                cat.name.lower(): (cat.materials_subtotal, cat.labor_subtotal)
                for cat in result.categories
            }
        assert by_key(forward) == by_key(backward)

    def test_diagnostics_union_without_duplicates(self, foundation_pages):
        result = merge_page_extractions(foundation_pages)
        assert result.missing_elements == ["Plan de drainage", "Devis électrique"]
        assert result.ambiguities == ["Hauteur du sous-sol"]
        assert result.inconsistencies == []

    def test_first_non_empty_hints(self, foundation_pages):
        result = merge_page_extractions(foundation_pages)
        assert result.project_type == "CONSTRUCTION_NEUVE"
        assert result.new_floor_area == 1200
        assert result.floor_count == 2

    def test_override_to_sum(self, foundation_pages):
        result = merge_page_extractions(
            foundation_pages,
            policy_overrides={"Fondation": MergePolicy.SUM}
        )
        foundation = result.categories[0]
        assert foundation.materials_subtotal == 22000
        assert foundation.labor_subtotal == 7500

    def test_custom_resolver(self, foundation_pages):
        result = merge_page_extractions(
            foundation_pages,
            policy_resolver=lambda key, totals: MergePolicy.SUM
        )
        assert result.categories[0].materials_subtotal == 22000

    def test_empty_input(self):
        result = merge_page_extractions([])
        assert result.is_empty
        assert result.categories == []
        assert result.project_type is None

    def test_pages_without_categories(self):
        result = merge_page_extractions([PageExtraction(missing_elements=["Coupe"])])
        assert result.is_empty
        assert result.missing_elements == ["Coupe"]

    def test_inputs_not_mutated(self, foundation_pages):
        merge_page_extractions(foundation_pages)
        assert foundation_pages[0].categories[0].materials_subtotal == 10000
        assert foundation_pages[0].categories[0].category_total == 14000


class TestMergeResultDict:
    """Tests for the state-friendly dict form."""

    def test_dict_keeps_policies_and_hints(self, foundation_pages):
        result = merge_page_extractions(foundation_pages)
        restored = MergeResult.from_dict(result.to_dict())
        assert restored.policies == result.policies
        assert restored.new_floor_area == 1200
        assert [c.name for c in restored.categories] == [c.name for c in result.categories]
