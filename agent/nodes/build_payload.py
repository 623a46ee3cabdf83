"""
Node 6: Budget Payload
Builds the raw analysis and display payload, and writes reports.
"""

import logging
from datetime import datetime
from typing import Dict, Any

from estimator.models import ClientContext, CostCategory, ProjectTotals
from estimator.output_format import (
    build_budget_payload,
    build_raw_analysis,
    project_summary,
    write_report,
)

from ..state import AnalysisState
from .complete_categories import project_floor_area, resolve_price_book

logger = logging.getLogger(__name__)


def _plans_analyzed(state: AnalysisState) -> int:
    mode = state.get("mode")
    if mode == "merge":
        return state.get("total_images") or 0
    if mode == "plan":
        return state.get("pages_total") or 0
    return 0


def build_payload_node(state: AnalysisState) -> Dict[str, Any]:
    """
    Build the final budget.

    Steps:
    1. Gather hints: project type, floor area, floor count
    2. Build the French-keyed raw analysis
    3. Build the display payload
    4. Save JSON and CSV reports when an output path is set

    Args:
        state: Current workflow state

    Returns:
        State updates with raw_analysis, budget, report_paths and success
    """
    merged = state.get("merged") or {}
    context = ClientContext.from_dict(state.get("client_context"))
    categories = [CostCategory.from_dict(cat) for cat in state.get("categories") or []]
    totals = ProjectTotals(**state["totals"])
    book = resolve_price_book(state)

    mode = state.get("mode")
    project_type = merged.get("type_projet") or context.project_type
    floor_area = project_floor_area(state)
    floor_count = merged.get("nombre_etages") or context.number_of_floors or 1
    plans_analyzed = _plans_analyzed(state)

    summary = state.get("model_summary") if mode == "manual" else None
    summary = summary or project_summary(
        mode,
        project_type,
        floor_area,
        floor_count,
        plans_analyzed,
        has_client_notes=bool(context.additional_notes)
    )

    raw = build_raw_analysis(
        categories,
        totals,
        project_type=project_type,
        floor_area=floor_area,
        floor_count=floor_count,
        plans_analyzed=plans_analyzed,
        missing_elements=merged.get("elements_manquants"),
        ambiguities=merged.get("ambiguites"),
        inconsistencies=merged.get("incoherences"),
        alerts=state.get("alerts"),
        recommendations=state.get("recommendations"),
        summary=summary,
        acceptable_band=book.acceptable_labor_ratio
    )
    payload = build_budget_payload(raw, state.get("quality"))
    logger.info(
        f"Budget ready: {len(categories)} categories, total ${payload['estimatedTotal']:,.2f}"
    )

    updates = {
        "raw_analysis": raw,
        "budget": payload,
        "success": True,
        "error": None,
        "last_error": None,
        "end_time": datetime.now().isoformat(),
    }

    output_path = state.get("output_path")
    if output_path:
        try:
            updates["report_paths"] = write_report(payload, output_path, raw_analysis=raw)
        except OSError as e:
            logger.error(f"Report generation failed: {e}")
            updates["last_error"] = f"Report generation failed: {e}"

    return updates
