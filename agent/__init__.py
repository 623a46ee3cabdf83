# Plan Budget Agent
from .graph import (
    create_analysis_graph,
    run_analysis_workflow,
    stream_analysis_workflow,
    get_workflow_visualization,
)
from .state import AnalysisState, create_initial_state

__all__ = [
    "create_analysis_graph",
    "run_analysis_workflow",
    "stream_analysis_workflow",
    "get_workflow_visualization",
    "AnalysisState",
    "create_initial_state",
]
