"""
Mode Router
Entry routing between plan analysis, batch merge and manual estimate.
"""

import logging
from typing import Literal

from ..state import AnalysisState, ANALYSIS_MODES

logger = logging.getLogger(__name__)


def route_by_mode(state: AnalysisState) -> Literal["plan", "merge", "manual", "invalid"]:
    """
    Route to the first node for the requested mode.

    Args:
        state: Current workflow state

    Returns:
        The mode, or "invalid" for an unknown one
    """
    mode = state.get("mode")
    if mode in ANALYSIS_MODES:
        logger.debug(f"Routing to {mode} mode")
        return mode

    logger.error(f"Unknown analysis mode: {mode!r}")
    return "invalid"
