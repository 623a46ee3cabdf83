"""
Totals Recalculator
Derives project-wide totals from a category list.
"""

from typing import List, Optional

from .models import CostCategory, ProjectTotals
from .pricing import PriceBook, default_price_book


def compute_project_totals(
    categories: List[CostCategory],
    price_book: Optional[PriceBook] = None
) -> ProjectTotals:
    """
    Compute materials, labour, contingency, taxes and grand total.

    Pure and idempotent: the same categories always give the same totals.
    Contingency is applied before taxes, and both taxes apply to the
    subtotal with contingency.

    Args:
        categories: Categories after recalculation
        price_book: Rates source (defaults to the bundled book)

    Returns:
        ProjectTotals
    """
    book = price_book or default_price_book()

    total_materials = sum(cat.materials_subtotal for cat in categories)
    total_labor = sum(cat.labor_subtotal for cat in categories)
    subtotal = total_materials + total_labor

    contingency = subtotal * book.contingency_rate
    with_contingency = subtotal + contingency
    federal_tax = with_contingency * book.federal_tax_rate
    provincial_tax = with_contingency * book.provincial_tax_rate
    grand_total = with_contingency + federal_tax + provincial_tax

    ratio = total_labor / total_materials if total_materials > 0 else None
    if ratio is None:
        within_band = None
    else:
        low, high = book.acceptable_labor_ratio
        within_band = low <= ratio <= high

    return ProjectTotals(
        total_materials=total_materials,
        total_labor=total_labor,
        subtotal_before_tax=subtotal,
        contingency_amount=contingency,
        subtotal_with_contingency=with_contingency,
        federal_tax=federal_tax,
        provincial_tax=provincial_tax,
        grand_total=grand_total,
        labor_to_material_ratio=ratio,
        ratio_within_acceptable_band=within_band,
    )
