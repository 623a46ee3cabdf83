"""
Page Extraction Merger
Combines per-page AI extractions into a single category set.

Plan pages (floor plans, elevations, sections) often re-describe the same
structural elements. By default a category reported with a positive
total on more than one page is merged with MAX so repeated pages are not
double counted; a category seen once keeps its values. The rule is a
pluggable policy so callers can declare genuinely additive categories.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import CostCategory, LineItem, PageExtraction
from .normalizer import item_key, normalize_key

logger = logging.getLogger(__name__)


class MergePolicy(Enum):
    """How numeric category fields combine across pages."""
    MAX = "max"
    SUM = "sum"

    def combine(self, a: float, b: float) -> float:
        if self is MergePolicy.MAX:
            return max(a, b)
        return a + b


# (normalized category key, per-page positive totals) -> policy
PolicyResolver = Callable[[str, List[float]], MergePolicy]


def default_policy_resolver(category_key: str, page_totals: List[float]) -> MergePolicy:
    """MAX when more than one page reports a positive total, else SUM."""
    if len(page_totals) > 1:
        return MergePolicy.MAX
    return MergePolicy.SUM


@dataclass
class MergeResult:
    """Merged categories plus unioned diagnostics and best-effort hints."""
    categories: List[CostCategory] = field(default_factory=list)
    missing_elements: List[str] = field(default_factory=list)
    ambiguities: List[str] = field(default_factory=list)
    inconsistencies: List[str] = field(default_factory=list)
    project_type: Optional[str] = None
    new_floor_area: float = 0.0
    floor_count: float = 0.0
    policies: Dict[str, MergePolicy] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.categories

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": [cat.to_dict() for cat in self.categories],
            "elements_manquants": list(self.missing_elements),
            "ambiguites": list(self.ambiguities),
            "incoherences": list(self.inconsistencies),
            "type_projet": self.project_type,
            "superficie_nouvelle_pi2": self.new_floor_area,
            "nombre_etages": self.floor_count,
            "policies": {key: policy.value for key, policy in self.policies.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MergeResult":
        page = PageExtraction.from_dict(data)
        return cls(
            categories=page.categories,
            missing_elements=page.missing_elements,
            ambiguities=page.ambiguities,
            inconsistencies=page.inconsistencies,
            project_type=page.project_type_hint,
            new_floor_area=page.new_floor_area_hint,
            floor_count=page.floor_count_hint,
            policies={key: MergePolicy(value) for key, value in (data.get("policies") or {}).items()},
        )


# ============================================================================
# Item and category merge
# ============================================================================

def merge_line_items(a: LineItem, b: LineItem) -> LineItem:
    """
    Merge two items that describe the same element.

    Keeps the MAX of quantity, total and unit price, and the first
    non-empty source. Description, unit and confidence come from a.
    """
    return replace(
        a,
        quantity=max(a.quantity, b.quantity),
        total=max(a.total, b.total),
        unit_price=max(a.unit_price, b.unit_price),
        source=a.source or b.source,
        dimension=a.dimension or b.dimension,
    )


def _merge_item_lists(first: Iterable[LineItem], second: Iterable[LineItem]) -> List[LineItem]:
    merged: Dict[str, LineItem] = {}
    for item in list(first) + list(second):
        key = item_key(item.description, item.unit)
        if key in merged:
            merged[key] = merge_line_items(merged[key], item)
        else:
            merged[key] = replace(item)
    return list(merged.values())


def merge_categories(a: CostCategory, b: CostCategory, policy: MergePolicy) -> CostCategory:
    """
    Merge two views of the same category into a new category.

    Inputs are not mutated.

    Args:
        a: Category seen first
        b: Category seen later
        policy: How labour hours and subtotals combine

    Returns:
        New CostCategory named after a
    """
    return CostCategory(
        name=a.name,
        items=_merge_item_lists(a.items, b.items),
        alternative_items=_merge_item_lists(a.alternative_items, b.alternative_items),
        materials_subtotal=policy.combine(a.materials_subtotal, b.materials_subtotal),
        labor_hours=policy.combine(a.labor_hours, b.labor_hours),
        labor_rate=a.labor_rate or b.labor_rate,
        labor_subtotal=policy.combine(a.labor_subtotal, b.labor_subtotal),
        category_total=0.0,
    )


def _dedupe_items(category: CostCategory) -> CostCategory:
    """Copy of a single-page category with colliding item keys merged."""
    return replace(
        category,
        items=_merge_item_lists(category.items, []),
        alternative_items=_merge_item_lists(category.alternative_items, []),
        category_total=0.0,
    )


def _union(target: List[str], values: Iterable[str]) -> None:
    seen = set(target)
    for value in values:
        if value not in seen:
            seen.add(value)
            target.append(value)


# ============================================================================
# Page merge
# ============================================================================

def merge_page_extractions(
    pages: List[PageExtraction],
    policy_resolver: Optional[PolicyResolver] = None,
    policy_overrides: Optional[Dict[str, MergePolicy]] = None
) -> MergeResult:
    """
    Merge N page extractions into one category set.

    Args:
        pages: Page extractions in page order
        policy_resolver: Decides MAX/SUM per category (default: MAX when
            more than one page reports a positive total)
        policy_overrides: {category name: policy}, checked before the resolver

    Returns:
        MergeResult (empty but valid when no page has categories)
    """
    resolver = policy_resolver or default_policy_resolver
    overrides = {normalize_key(name): policy for name, policy in (policy_overrides or {}).items()}
    result = MergeResult()

    # Pass 1: per-category page totals and first-seen order
    page_totals: Dict[str, List[float]] = {}
    order: List[str] = []
    for page in pages:
        for category in page.categories:
            key = normalize_key(category.name)
            if not key:
                continue
            if key not in page_totals:
                page_totals[key] = []
                order.append(key)
            total = category.materials_subtotal + category.labor_subtotal
            if total > 0:
                page_totals[key].append(total)

    policies = {
        key: overrides.get(key) or resolver(key, page_totals[key])
        for key in order
    }

    # Pass 2: fold categories, collect diagnostics and hints
    merged: Dict[str, CostCategory] = {}
    for page in pages:
        for category in page.categories:
            key = normalize_key(category.name)
            if not key:
                continue
            if key in merged:
                merged[key] = merge_categories(merged[key], category, policies[key])
            else:
                merged[key] = _dedupe_items(category)

        _union(result.missing_elements, page.missing_elements)
        _union(result.ambiguities, page.ambiguities)
        _union(result.inconsistencies, page.inconsistencies)

        if not result.project_type and page.project_type_hint:
            result.project_type = page.project_type_hint
        if not result.new_floor_area and page.new_floor_area_hint > 0:
            result.new_floor_area = page.new_floor_area_hint
        if not result.floor_count and page.floor_count_hint > 0:
            result.floor_count = page.floor_count_hint

    result.categories = [merged[key] for key in order]
    result.policies = policies

    max_count = sum(1 for p in policies.values() if p is MergePolicy.MAX)
    logger.info(
        f"Merged {len(pages)} page(s) into {len(result.categories)} categories "
        f"({max_count} deduplicated with MAX)"
    )
    if result.is_empty:
        logger.warning("No page produced a usable category list")
    return result
