"""
Node 1b: Batch Collection
Accepts page or batch results analyzed elsewhere (merge mode).
"""

import logging
from typing import Dict, Any, List

from estimator.models import PageExtraction

from ..state import AnalysisState

logger = logging.getLogger(__name__)

NO_BATCHES_ERROR = "Aucun résultat de lot à fusionner."


def _texts(values) -> List[str]:
    return [str(v) for v in (values or []) if v]


def collect_batches_node(state: AnalysisState) -> Dict[str, Any]:
    """
    Convert each batch result into a page extraction.

    A batch is either a full analysis ({"extraction": ..., "validation":
    ..., "recommandations": ...}) or a bare extraction. Non-dict entries
    are ignored.

    Args:
        state: Current workflow state

    Returns:
        State updates with page extractions, alerts and the batch
        recommendation
    """
    batches = [b for b in (state.get("batch_results") or []) if isinstance(b, dict)]
    if not batches:
        logger.error("No batch results to merge")
        return {"last_error": "No batch results to merge", "error": NO_BATCHES_ERROR}

    extractions = []
    alerts: List[str] = []
    recommendations: List[str] = []
    for index, batch in enumerate(batches, start=1):
        page = PageExtraction.from_dict(batch)
        logger.debug(f"Batch {index}: {len(page.categories)} categories")
        extractions.append(page.to_dict())
        alerts.extend(_texts((batch.get("validation") or {}).get("alertes")))
        recommendations.extend(_texts(batch.get("recommandations")))

    total_images = state.get("total_images") or len(batches)
    recommendations.append(
        f"Analyse multi-lots: {len(batches)} lot(s) fusionnés pour {total_images} plan(s) total."
    )
    logger.info(f"Collected {len(batches)} batch result(s) covering {total_images} plan(s)")

    return {
        "page_extractions": extractions,
        "pages_total": len(batches),
        "total_images": total_images,
        "alerts": alerts,
        "recommendations": recommendations,
        "last_error": None,
    }
