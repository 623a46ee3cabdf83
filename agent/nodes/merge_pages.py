"""
Node 2: Page Merge
Folds the page extractions into one category set.
"""

import logging
from typing import Dict, Any

from estimator.merger import MergePolicy, MergeResult, merge_page_extractions
from estimator.models import PageExtraction

from ..state import AnalysisState

logger = logging.getLogger(__name__)


def _policy_overrides(raw: Dict[str, str]) -> Dict[str, MergePolicy]:
    overrides = {}
    for name, value in (raw or {}).items():
        try:
            overrides[name] = MergePolicy(str(value).lower())
        except ValueError:
            logger.warning(f"Ignoring merge policy '{value}' for {name} (expected 'max' or 'sum')")
    return overrides


def merge_pages_node(state: AnalysisState) -> Dict[str, Any]:
    """
    Merge page extractions.

    Manual mode has a single, already merged answer: its categories are
    kept with their own totals.

    Args:
        state: Current workflow state

    Returns:
        State updates with the merge result
    """
    pages = [PageExtraction.from_dict(page) for page in state.get("page_extractions") or []]

    if state.get("mode") == "manual":
        page = pages[0] if pages else PageExtraction()
        merged = MergeResult(
            categories=page.categories,
            missing_elements=page.missing_elements,
            ambiguities=page.ambiguities,
            inconsistencies=page.inconsistencies,
            project_type=page.project_type_hint,
            new_floor_area=page.new_floor_area_hint,
            floor_count=page.floor_count_hint,
        )
        logger.info(f"Manual estimate: {len(merged.categories)} categories taken as merged")
    else:
        merged = merge_page_extractions(
            pages,
            policy_overrides=_policy_overrides(state.get("policy_overrides"))
        )

    return {"merged": merged.to_dict()}
