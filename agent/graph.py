"""
LangGraph Workflow Definition
Wires together nodes and edges for the plan budget agent.
"""

import logging
from functools import partial
from typing import Dict, Any, Optional, Iterator, Tuple, List

from langgraph.graph import StateGraph, START, END
from langgraph.checkpoint.memory import MemorySaver

from estimator.plan_analyzer import PlanAnalyzer

from .state import AnalysisState, create_initial_state, get_state_summary
from .nodes import (
    analyze_pages_node,
    manual_analysis_node,
    collect_batches_node,
    merge_pages_node,
    complete_categories_node,
    filter_materials_node,
    recalculate_totals_node,
    build_payload_node,
)
from .edges import (
    route_by_mode,
    route_after_extraction,
    mark_failed,
)

logger = logging.getLogger(__name__)

RECURSION_LIMIT = 50


def create_analysis_graph(
    analyzer: Optional[PlanAnalyzer] = None,
    checkpointer: Optional[MemorySaver] = None
) -> StateGraph:
    """
    Create the LangGraph workflow for plan budget analysis.

    Graph structure:
    ```
    START
      │
    [route_by_mode]
      │ plan          │ merge            │ manual          │ invalid
      ▼               ▼                  ▼                 │
    analyze_pages   collect_batches   manual_analysis      │
      └───────────────┼──────────────────┘                 │
                      ▼                                    │
            [route_after_extraction] ── fail ──► mark_failed ──► END
                      │ merge
                      ▼
                merge_pages
                      │
                      ▼
             complete_categories
                      │
                      ▼
              filter_materials
                      │
                      ▼
             recalculate_totals
                      │
                      ▼
                build_payload
                      │
                      ▼
                     END
    ```

    Args:
        analyzer: PlanAnalyzer for plan and manual modes (built from
            configuration on first use when None)
        checkpointer: Optional checkpointer for state persistence

    Returns:
        Compiled StateGraph
    """

    # Create the graph with our state schema
    workflow = StateGraph(AnalysisState)

    # ========================
    # Add Nodes
    # ========================

    # Node 1: Extraction, one per mode
    workflow.add_node("analyze_pages", partial(analyze_pages_node, analyzer=analyzer))
    workflow.add_node("collect_batches", collect_batches_node)
    workflow.add_node("manual_analysis", partial(manual_analysis_node, analyzer=analyzer))

    # Failure sink
    workflow.add_node("mark_failed", mark_failed)

    # Node 2: Merge pages
    workflow.add_node("merge_pages", merge_pages_node)

    # Node 3: Complete missing categories
    workflow.add_node("complete_categories", complete_categories_node)

    # Node 4: Apply material choices
    workflow.add_node("filter_materials", filter_materials_node)

    # Node 5: Recalculate totals
    workflow.add_node("recalculate_totals", recalculate_totals_node)

    # Node 6: Build payload and reports
    workflow.add_node("build_payload", build_payload_node)

    # ========================
    # Add Edges
    # ========================

    # Entry point: route on mode
    workflow.add_conditional_edges(
        START,
        route_by_mode,
        {
            "plan": "analyze_pages",
            "merge": "collect_batches",
            "manual": "manual_analysis",
            "invalid": "mark_failed"
        }
    )

    # After extraction: fail or merge
    for node in ("analyze_pages", "collect_batches", "manual_analysis"):
        workflow.add_conditional_edges(
            node,
            route_after_extraction,
            {
                "merge": "merge_pages",
                "fail": "mark_failed"
            }
        )

    # Linear budget flow
    workflow.add_edge("merge_pages", "complete_categories")
    workflow.add_edge("complete_categories", "filter_materials")
    workflow.add_edge("filter_materials", "recalculate_totals")
    workflow.add_edge("recalculate_totals", "build_payload")

    workflow.add_edge("build_payload", END)
    workflow.add_edge("mark_failed", END)

    # Compile the graph
    if checkpointer:
        return workflow.compile(checkpointer=checkpointer)
    return workflow.compile()


def _prepare_run(
    mode: str,
    image_references: Optional[List[str]],
    batch_results: Optional[List[Dict]],
    total_images: Optional[int],
    quality: str,
    client_context: Optional[Dict[str, Any]],
    material_choices: Optional[Dict[str, str]],
    policy_overrides: Optional[Dict[str, str]],
    price_book_path: Optional[str],
    output_path: Optional[str],
    analyzer: Optional[PlanAnalyzer],
    enable_checkpoints: bool,
    thread_id: str
):
    checkpointer = MemorySaver() if enable_checkpoints else None
    graph = create_analysis_graph(analyzer, checkpointer)

    initial_state = create_initial_state(
        mode=mode,
        image_references=image_references,
        batch_results=batch_results,
        total_images=total_images,
        quality=quality,
        client_context=client_context,
        material_choices=material_choices,
        policy_overrides=policy_overrides,
        price_book_path=price_book_path,
        output_path=output_path
    )

    if enable_checkpoints:
        config = {
            "configurable": {"thread_id": thread_id},
            "recursion_limit": RECURSION_LIMIT
        }
    else:
        config = {"recursion_limit": RECURSION_LIMIT}

    return graph, initial_state, config


def run_analysis_workflow(
    mode: str,
    image_references: Optional[List[str]] = None,
    batch_results: Optional[List[Dict]] = None,
    total_images: Optional[int] = None,
    quality: str = "standard",
    client_context: Optional[Dict[str, Any]] = None,
    material_choices: Optional[Dict[str, str]] = None,
    policy_overrides: Optional[Dict[str, str]] = None,
    price_book_path: Optional[str] = None,
    output_path: Optional[str] = None,
    analyzer: Optional[PlanAnalyzer] = None,
    enable_checkpoints: bool = True
) -> Dict[str, Any]:
    """
    Run the complete analysis workflow.

    Args:
        mode: 'plan', 'merge' or 'manual'
        image_references: Plan URLs, images or PDFs (plan mode)
        batch_results: Page or batch JSON results (merge mode)
        total_images: Plans behind the batches (merge mode)
        quality: economique | standard | haut-de-gamme
        client_context: Client context dict
        material_choices: Trade key -> material id
        policy_overrides: Category name -> 'max' | 'sum'
        price_book_path: Alternate price book YAML
        output_path: Directory for reports (None = no files)
        analyzer: PlanAnalyzer (built from configuration when None)
        enable_checkpoints: Enable state persistence

    Returns:
        Final workflow state with results
    """
    graph, initial_state, config = _prepare_run(
        mode, image_references, batch_results, total_images, quality,
        client_context, material_choices, policy_overrides, price_book_path,
        output_path, analyzer, enable_checkpoints, "analysis-1"
    )

    logger.info(f"Starting analysis workflow ({mode} mode)")

    try:
        final_state = graph.invoke(initial_state, config)
        logger.info(f"Workflow completed: {get_state_summary(final_state)}")
        return final_state
    except Exception as e:
        logger.error(f"Workflow failed: {e}")
        raise


def stream_analysis_workflow(
    mode: str,
    image_references: Optional[List[str]] = None,
    batch_results: Optional[List[Dict]] = None,
    total_images: Optional[int] = None,
    quality: str = "standard",
    client_context: Optional[Dict[str, Any]] = None,
    material_choices: Optional[Dict[str, str]] = None,
    policy_overrides: Optional[Dict[str, str]] = None,
    price_book_path: Optional[str] = None,
    output_path: Optional[str] = None,
    analyzer: Optional[PlanAnalyzer] = None,
    enable_checkpoints: bool = True
) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """
    Stream the analysis workflow, yielding progress updates after each node.

    Same arguments as run_analysis_workflow.

    Yields:
        Tuple of (node_name, state_update_dict) after each node executes
    """
    graph, initial_state, config = _prepare_run(
        mode, image_references, batch_results, total_images, quality,
        client_context, material_choices, policy_overrides, price_book_path,
        output_path, analyzer, enable_checkpoints, "analysis-stream-1"
    )

    logger.info(f"Starting analysis workflow (streaming, {mode} mode)")

    try:
        # "updates" mode gives the state update after each node
        for update in graph.stream(initial_state, config, stream_mode="updates"):
            if update:
                node_name = list(update.keys())[0]
                node_output = update[node_name]
                yield (node_name, node_output)

        logger.info("Workflow streaming completed successfully")

    except Exception as e:
        logger.error(f"Workflow streaming failed: {e}")
        raise


def get_workflow_visualization() -> str:
    """
    Get ASCII visualization of the workflow graph.

    Returns:
        ASCII art representation of the graph
    """
    return """
    Plan Budget Workflow
    ====================

                          ┌─────────────────┐
                          │  route_by_mode  │
                          │     (START)     │
                          └────────┬────────┘
              ┌───────────────┬────┴──────────┬───────────────┐
              │ plan          │ merge         │ manual        │ invalid
              ▼               ▼               ▼               │
     ┌────────────────┐ ┌───────────────┐ ┌────────────────┐  │
     │ analyze_pages  │ │collect_batches│ │manual_analysis │  │
     └───────┬────────┘ └───────┬───────┘ └───────┬────────┘  │
             └──────────────────┼─────────────────┘           │
                                ▼                             │
                    ┌──────────────────────┐                  │
                    │route_after_extraction│── fail ──┐       │
                    └──────────┬───────────┘          ▼       ▼
                               │ merge             ┌─────────────┐
                               ▼                   │ mark_failed │──► END
                    ┌──────────────────────┐       └─────────────┘
                    │     merge_pages      │
                    └──────────┬───────────┘
                               ▼
                    ┌──────────────────────┐
                    │ complete_categories  │
                    └──────────┬───────────┘
                               ▼
                    ┌──────────────────────┐
                    │   filter_materials   │
                    └──────────┬───────────┘
                               ▼
                    ┌──────────────────────┐
                    │  recalculate_totals  │
                    └──────────┬───────────┘
                               ▼
                    ┌──────────────────────┐
                    │    build_payload     │
                    └──────────┬───────────┘
                               ▼
                              END
    """
