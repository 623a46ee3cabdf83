"""
Node 1: Plan Analysis
Runs the vision model over the plan pages (plan mode) or over the client
context alone (manual mode).
"""

import logging
from typing import Dict, Any, Optional

from estimator.config import load_config
from estimator.models import ClientContext, PageExtraction
from estimator.json_repair import unwrap_extraction
from estimator.plan_analyzer import PlanAnalyzer
from estimator.vision_providers import get_provider

from ..state import AnalysisState

logger = logging.getLogger(__name__)

UNREADABLE_PLANS_ERROR = (
    "Impossible d'analyser les plans. Images trop lourdes/illisibles ou non accessibles."
)
AI_FAILURE_ERROR = (
    "Impossible d'analyser les plans. Erreur IA (réponse vide / rate limit / surcharge). "
    "Réessaie dans 30-60s."
)
NO_PLANS_ERROR = "Aucun plan à analyser."
MULTI_PAGE_RECOMMENDATION = (
    "Analyse multi-pages: extraction séquentielle + complétion automatique des catégories manquantes."
)


def build_analyzer(config_path: Optional[str] = None) -> PlanAnalyzer:
    """
    Build a PlanAnalyzer from configuration and environment.

    Raises:
        ValueError: Unknown provider or missing API key
    """
    config = load_config(config_path)
    provider = get_provider(
        config.provider,
        config.resolve_api_key(),
        model=config.model,
        max_tokens=config.max_tokens
    )
    return PlanAnalyzer(provider, config)


def _ensure_analyzer(analyzer: Optional[PlanAnalyzer]) -> PlanAnalyzer:
    return analyzer if analyzer is not None else build_analyzer()


def analyze_pages_node(state: AnalysisState, analyzer: Optional[PlanAnalyzer] = None) -> Dict[str, Any]:
    """
    Analyze every plan page sequentially.

    Pages that cannot be fetched or exceed the byte cap are skipped; pages
    whose AI call fails are counted as failed. The run only fails when no
    page produced an extraction.

    Args:
        state: Current workflow state
        analyzer: PlanAnalyzer (built from configuration when None)

    Returns:
        State updates with page extractions and counters
    """
    references = state.get("image_references") or []
    if not references:
        logger.error("Plan mode started without plan references")
        return {"last_error": "No plan references provided", "error": NO_PLANS_ERROR}

    try:
        analyzer = _ensure_analyzer(analyzer)
    except ValueError as e:
        logger.error(f"Cannot build plan analyzer: {e}")
        return {"last_error": str(e), "error": AI_FAILURE_ERROR}

    context = ClientContext.from_dict(state.get("client_context"))
    run = analyzer.analyze_plans(references, state.get("quality"), context)

    updates = {
        "page_extractions": [page.to_dict() for page in run.extractions],
        "pages_total": run.pages_total,
        "pages_skipped": run.pages_skipped,
        "pages_failed": run.pages_failed,
        "tokens_used": run.tokens_used,
        "alerts": run.alerts,
        "recommendations": run.recommendations + [MULTI_PAGE_RECOMMENDATION],
        "last_error": None,
    }

    if run.extractions:
        return updates

    if run.all_skipped:
        logger.error(f"All {run.pages_total} page(s) were skipped")
        updates["last_error"] = "All pages skipped"
        updates["error"] = UNREADABLE_PLANS_ERROR
    else:
        logger.error(f"No page could be analyzed ({run.pages_failed} failed)")
        updates["last_error"] = "All page analyses failed"
        updates["error"] = AI_FAILURE_ERROR
    return updates


def manual_analysis_node(state: AnalysisState, analyzer: Optional[PlanAnalyzer] = None) -> Dict[str, Any]:
    """
    Estimate the budget from the client context alone.

    The single answer becomes one page extraction, already merged.
    """
    try:
        analyzer = _ensure_analyzer(analyzer)
    except ValueError as e:
        logger.error(f"Cannot build plan analyzer: {e}")
        return {"last_error": str(e), "error": AI_FAILURE_ERROR}

    context = ClientContext.from_dict(state.get("client_context"))
    parsed = analyzer.analyze_manual(state.get("quality"), context)
    if parsed is None:
        return {"last_error": "Manual estimate failed", "error": AI_FAILURE_ERROR}

    page = PageExtraction.from_dict(unwrap_extraction(parsed))
    validation = parsed.get("validation") or {}
    logger.info(f"Manual estimate: {len(page.categories)} categories")

    return {
        "page_extractions": [page.to_dict()],
        "alerts": [str(a) for a in (validation.get("alertes") or [])],
        "recommendations": [str(r) for r in (parsed.get("recommandations") or [])],
        "model_summary": parsed.get("resume_projet") or None,
        "last_error": None,
    }
