"""
Node 3: Category Completion
Adds the mandatory categories the plans did not cover.
"""

import logging
from typing import Dict, Any, Optional

from estimator.completion import complete_categories
from estimator.merger import MergeResult
from estimator.models import ClientContext
from estimator.pricing import PriceBook, default_price_book, load_price_book

from ..state import AnalysisState

logger = logging.getLogger(__name__)


def resolve_price_book(state: AnalysisState) -> PriceBook:
    """Price book from state['price_book_path'], else the bundled one."""
    path: Optional[str] = state.get("price_book_path")
    if path:
        return load_price_book(path)
    return default_price_book()


def project_floor_area(state: AnalysisState) -> float:
    """New floor area from the plans, else the client's square footage."""
    merged = state.get("merged") or {}
    area = merged.get("superficie_nouvelle_pi2") or 0
    if area > 0:
        return float(area)
    return ClientContext.from_dict(state.get("client_context")).square_footage


def complete_categories_node(state: AnalysisState) -> Dict[str, Any]:
    """
    Synthesize missing categories from benchmarks and recalculate all.

    Args:
        state: Current workflow state

    Returns:
        State updates with completed categories and synthesized names
    """
    merged = MergeResult.from_dict(state.get("merged") or {})
    context = ClientContext.from_dict(state.get("client_context"))

    result = complete_categories(
        merged.categories,
        project_floor_area(state),
        tier=state.get("quality"),
        price_book=resolve_price_book(state),
        bathroom_count=context.bathroom_count
    )
    logger.info(
        f"Completion: {len(result.categories)} categories "
        f"({len(result.synthesized)} estimated from benchmarks)"
    )

    return {
        "categories": [cat.to_dict() for cat in result.categories],
        "synthesized_categories": result.synthesized,
        "last_error": None,
    }
