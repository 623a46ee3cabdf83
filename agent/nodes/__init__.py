# Workflow nodes
from .analyze_plans import analyze_pages_node, manual_analysis_node, build_analyzer
from .collect_batches import collect_batches_node
from .merge_pages import merge_pages_node
from .complete_categories import complete_categories_node
from .filter_materials import filter_materials_node
from .recalculate_totals import recalculate_totals_node
from .build_payload import build_payload_node

__all__ = [
    "analyze_pages_node",
    "manual_analysis_node",
    "build_analyzer",
    "collect_batches_node",
    "merge_pages_node",
    "complete_categories_node",
    "filter_materials_node",
    "recalculate_totals_node",
    "build_payload_node",
]
