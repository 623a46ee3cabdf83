"""
Category Completion Engine
Fills in mandatory cost categories the plans did not cover.

Every budget carries the twelve standard categories of the price book.
A category the extraction already produced is kept as-is; a missing one
is synthesized from the benchmark for the finish tier, flagged with low
confidence so it can be told apart from extracted costs.
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from .models import Confidence, CostCategory, LineItem, ProjectTotals
from .normalizer import normalize_key
from .pricing import PriceBook, default_price_book, midpoint, resolve_tier
from .totals import compute_project_totals

logger = logging.getLogger(__name__)

ESTIMATE_DESCRIPTION = "Estimation basée sur repères Québec 2025"
ESTIMATE_SOURCE = "Estimé"
ESTIMATE_UNIT = "forfait"
BATHROOM_CATEGORY = "Salle de bain"


@dataclass
class CompletionResult:
    categories: List[CostCategory]
    totals: ProjectTotals
    synthesized: List[str]


def synthesize_category(
    name: str,
    floor_area: float,
    tier: str,
    price_book: PriceBook,
    bathroom_count: int = 1
) -> CostCategory:
    """
    Build a benchmark-based category.

    Per-ft² categories use mid(min, max) * floor_area (0 when the area is
    unknown); fixed-price categories use mid(min, max), times the
    bathroom count for bathrooms.
    """
    kind, price_range = price_book.benchmark(name, tier)
    total = 0.0
    if kind == "per_sqft" and price_range and floor_area > 0:
        total = midpoint(price_range) * floor_area
    elif kind == "fixed" and price_range:
        total = midpoint(price_range)
        if normalize_key(name) == normalize_key(BATHROOM_CATEGORY):
            total *= max(int(bathroom_count or 1), 1)

    labor = total * price_book.labor_share
    return CostCategory(
        name=name,
        items=[
            LineItem(
                description=ESTIMATE_DESCRIPTION,
                quantity=1,
                unit=ESTIMATE_UNIT,
                unit_price=total,
                total=total,
                source=ESTIMATE_SOURCE,
                confidence=Confidence.LOW,
            )
        ],
        materials_subtotal=total - labor,
        labor_subtotal=labor,
        category_total=total,
    )


def recalculate_category(category: CostCategory, labor_share: float = 0.42) -> CostCategory:
    """
    Make a category's subtotals consistent.

    With neither subtotal stored, the category total (else the sum of item
    totals) is split with the default labour share. Otherwise, in order:
    1. materials missing or non-positive -> sum of item totals
    2. category total non-positive -> materials + labour
    3. labour 0 but total above materials -> labour = total - materials
    4. labour still 0 with materials -> default labour share
    Finally total = materials + labour.

    Returns:
        New CostCategory; the input is not mutated
    """
    materials = category.materials_subtotal
    labor = max(category.labor_subtotal, 0.0)
    total = category.category_total

    if materials <= 0 and labor <= 0:
        if total <= 0:
            total = category.items_total
        labor = total * labor_share
        materials = total - labor
    else:
        if materials <= 0:
            materials = category.items_total
        if total <= 0:
            total = materials + labor
        if labor == 0 and total > materials:
            labor = total - materials
        if labor == 0 and materials > 0:
            labor = materials * labor_share / (1 - labor_share)

    return replace(
        category,
        materials_subtotal=materials,
        labor_subtotal=labor,
        category_total=materials + labor,
    )


def complete_categories(
    categories: List[CostCategory],
    floor_area: float,
    tier: Optional[str] = "standard",
    price_book: Optional[PriceBook] = None,
    bathroom_count: int = 1
) -> CompletionResult:
    """
    Add the missing mandatory categories and recalculate everything.

    Args:
        categories: Merged categories
        floor_area: New floor area in ft²
        tier: economique | standard | haut-de-gamme (unknown -> standard)
        price_book: Benchmark source (defaults to the bundled book)
        bathroom_count: Bathrooms for the fixed bathroom estimate

    Returns:
        CompletionResult with recalculated categories and project totals
    """
    book = price_book or default_price_book()
    quality = resolve_tier(tier)

    existing = {normalize_key(cat.name) for cat in categories}
    completed = list(categories)
    synthesized = []

    for name in book.required_categories:
        if normalize_key(name) in existing:
            continue
        completed.append(synthesize_category(name, floor_area, quality, book, bathroom_count))
        synthesized.append(name)

    if synthesized:
        logger.info(
            f"Synthesized {len(synthesized)} categories ({quality}, {floor_area:,.0f} pi²): "
            f"{', '.join(synthesized)}"
        )
    if synthesized and floor_area <= 0:
        logger.warning("Floor area unknown: per-ft² estimates are zero")

    recalculated = [recalculate_category(cat, book.labor_share) for cat in completed]
    return CompletionResult(
        categories=recalculated,
        totals=compute_project_totals(recalculated, book),
        synthesized=synthesized,
    )
