"""
Error Handling Edges
Routing after extraction and the terminal failure node.
"""

import logging
from datetime import datetime
from typing import Literal

from ..state import AnalysisState, ANALYSIS_MODES

logger = logging.getLogger(__name__)

GENERIC_FAILURE_ERROR = "L'analyse n'a pas pu être complétée."
INVALID_MODE_ERROR = "Mode d'analyse inconnu (attendu: plan, merge ou manual)."


def route_after_extraction(state: AnalysisState) -> Literal["merge", "fail"]:
    """
    Route after plan analysis, batch collection or manual estimate.

    Decision logic:
    - If the extraction node reported an error: fail
    - Otherwise: merge pages (manual mode passes its single answer through)

    Args:
        state: Current workflow state

    Returns:
        Next node: "merge" or "fail"
    """
    last_error = state.get("last_error")
    if last_error:
        logger.error(f"Extraction failed, ending run: {last_error}")
        return "fail"

    logger.debug(f"{len(state.get('page_extractions') or [])} extraction(s), routing to merge")
    return "merge"


def mark_failed(state: AnalysisState) -> dict:
    """
    Mark the whole run as failed.

    Keeps a single user-facing error message and no categories.

    Args:
        state: Current workflow state

    Returns:
        State updates with success=False and the error message
    """
    error = state.get("error")
    if not error:
        error = GENERIC_FAILURE_ERROR if state.get("mode") in ANALYSIS_MODES else INVALID_MODE_ERROR

    logger.warning(f"Analysis failed: {error}")

    return {
        "success": False,
        "error": error,
        "last_error": state.get("last_error") or error,
        "categories": [],
        "totals": None,
        "budget": None,
        "end_time": datetime.now().isoformat(),
    }
