"""
Workflow State Schema for the Plan Budget Agent
Defines the state that flows through the LangGraph workflow.

State holds plain dicts and lists only (French-keyed model shapes), so it
stays checkpoint-friendly. Nodes convert to estimator dataclasses at
their boundaries.
"""

from typing import TypedDict, List, Optional, Dict, Any
from datetime import datetime

ANALYSIS_MODES = ("plan", "merge", "manual")


class AnalysisState(TypedDict):
    """
    State schema for the plan budget workflow.

    This state is passed between nodes in the LangGraph workflow.
    Each node can read from and write to this state.
    """

    # ========================
    # Input Configuration
    # ========================
    mode: str                          # 'plan', 'merge' or 'manual'
    image_references: List[str]        # Plan mode: URLs, images or PDFs
    batch_results: List[Dict]          # Merge mode: pre-collected page/batch JSON
    total_images: int                  # Merge mode: plan count behind the batches
    quality: str                       # economique | standard | haut-de-gamme
    client_context: Dict[str, Any]     # ClientContext.to_dict()
    material_choices: Dict[str, str]   # Trade key -> material id
    policy_overrides: Dict[str, str]   # Category name -> 'max' | 'sum'
    price_book_path: Optional[str]     # Alternate price book YAML
    output_path: Optional[str]         # Directory for reports (None = no files)

    # ========================
    # Extraction
    # ========================
    page_extractions: List[Dict]       # PageExtraction.to_dict() per usable page
    pages_total: int
    pages_skipped: int                 # Unfetchable or oversized
    pages_failed: int                  # AI call or JSON failure
    tokens_used: int
    alerts: List[str]                  # Model validation alerts
    recommendations: List[str]
    model_summary: Optional[str]       # Model-written project summary (manual mode)

    # ========================
    # Budget
    # ========================
    merged: Optional[Dict]             # MergeResult.to_dict()
    categories: Optional[List[Dict]]   # CostCategory.to_dict() list
    synthesized_categories: List[str]  # Names added from benchmarks
    totals: Optional[Dict]             # ProjectTotals as a dict

    # ========================
    # Output
    # ========================
    raw_analysis: Optional[Dict]
    budget: Optional[Dict]             # Display payload
    report_paths: Optional[Dict]

    # ========================
    # Error Handling
    # ========================
    last_error: Optional[str]          # Most recent error message
    success: Optional[bool]
    error: Optional[str]               # User-facing failure message

    # ========================
    # Timing
    # ========================
    start_time: Optional[str]
    end_time: Optional[str]


def create_initial_state(
    mode: str,
    image_references: Optional[List[str]] = None,
    batch_results: Optional[List[Dict]] = None,
    total_images: Optional[int] = None,
    quality: str = "standard",
    client_context: Optional[Dict[str, Any]] = None,
    material_choices: Optional[Dict[str, str]] = None,
    policy_overrides: Optional[Dict[str, str]] = None,
    price_book_path: Optional[str] = None,
    output_path: Optional[str] = None
) -> AnalysisState:
    """
    Create initial state for a new workflow run.

    Args:
        mode: 'plan', 'merge' or 'manual'
        image_references: Plan pages to analyze (plan mode)
        batch_results: Per-page or per-batch JSON results (merge mode)
        total_images: Plans behind the batches (defaults to batch count)
        quality: Finish tier
        client_context: Client context dict (camelCase keys accepted)
        material_choices: Trade key -> material id; falls back to the
            context's materialChoices
        policy_overrides: Category name -> 'max' | 'sum'
        price_book_path: Alternate price book YAML
        output_path: Directory for reports

    Returns:
        Initialized AnalysisState
    """
    context = dict(client_context or {})
    choices = material_choices or context.get("materialChoices") or {}
    batches = list(batch_results or [])

    return AnalysisState(
        # Input
        mode=(mode or "").lower(),
        image_references=list(image_references or []),
        batch_results=batches,
        total_images=total_images or len(batches),
        quality=quality or "standard",
        client_context=context,
        material_choices=dict(choices),
        policy_overrides=dict(policy_overrides or {}),
        price_book_path=price_book_path,
        output_path=output_path,

        # Extraction
        page_extractions=[],
        pages_total=0,
        pages_skipped=0,
        pages_failed=0,
        tokens_used=0,
        alerts=[],
        recommendations=[],
        model_summary=None,

        # Budget
        merged=None,
        categories=None,
        synthesized_categories=[],
        totals=None,

        # Output
        raw_analysis=None,
        budget=None,
        report_paths=None,

        # Error handling
        last_error=None,
        success=None,
        error=None,

        # Timing
        start_time=datetime.now().isoformat(),
        end_time=None,
    )


def get_state_summary(state: AnalysisState) -> Dict[str, Any]:
    """
    Get a summary of current state for logging/debugging.
    """
    return {
        "mode": state.get("mode"),
        "pages_total": state.get("pages_total", 0),
        "pages_ok": len(state.get("page_extractions") or []),
        "pages_skipped": state.get("pages_skipped", 0),
        "pages_failed": state.get("pages_failed", 0),
        "categories": len(state.get("categories") or []),
        "grand_total": (state.get("totals") or {}).get("grand_total"),
        "success": state.get("success"),
        "last_error": state.get("last_error"),
    }
