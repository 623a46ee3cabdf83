"""
Node 5: Totals Recalculation
Re-derives category subtotals and project totals after filtering.
"""

import logging
from dataclasses import asdict
from typing import Dict, Any

from estimator.completion import recalculate_category
from estimator.models import CostCategory
from estimator.totals import compute_project_totals

from ..state import AnalysisState
from .complete_categories import resolve_price_book

logger = logging.getLogger(__name__)


def recalculate_totals_node(state: AnalysisState) -> Dict[str, Any]:
    """
    Recalculate every category, then compute project totals.

    Returns:
        State updates with recalculated categories and totals
    """
    book = resolve_price_book(state)
    categories = [
        recalculate_category(CostCategory.from_dict(cat), book.labor_share)
        for cat in state.get("categories") or []
    ]
    totals = compute_project_totals(categories, book)

    logger.info(
        f"Totals: materials ${totals.total_materials:,.2f}, labour ${totals.total_labor:,.2f}, "
        f"grand total ${totals.grand_total:,.2f}"
    )
    if totals.ratio_within_acceptable_band is False:
        logger.warning(f"Labour/materials ratio {totals.labor_to_material_ratio:.2f} outside acceptable band")

    return {
        "categories": [cat.to_dict() for cat in categories],
        "totals": asdict(totals),
    }
