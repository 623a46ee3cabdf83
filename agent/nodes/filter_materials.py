"""
Node 4: Material-Choice Filter
Moves items that contradict the client's material choices to alternatives.
"""

import logging
from typing import Dict, Any

from estimator.material_filter import filter_by_material_choices
from estimator.models import CostCategory

from ..state import AnalysisState

logger = logging.getLogger(__name__)


def filter_materials_node(state: AnalysisState) -> Dict[str, Any]:
    """Apply state['material_choices'] to the completed categories."""
    choices = state.get("material_choices") or {}
    categories = [CostCategory.from_dict(cat) for cat in state.get("categories") or []]
    if not choices:
        logger.debug("No material choices, keeping all items")
        return {"categories": [cat.to_dict() for cat in categories]}

    filtered = filter_by_material_choices(categories, choices)
    moved = sum(
        len(after.alternative_items) - len(before.alternative_items)
        for before, after in zip(categories, filtered)
    )
    logger.info(f"Material filter: {moved} item(s) moved to alternatives ({len(choices)} choice(s))")

    return {"categories": [cat.to_dict() for cat in filtered]}
