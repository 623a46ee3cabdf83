# Construction budget estimator
from .models import (
    Confidence,
    LineItem,
    CostCategory,
    PageExtraction,
    ProjectTotals,
    ClientContext,
)
from .normalizer import normalize_key, normalize_item_description, item_key
from .merger import MergePolicy, MergeResult, merge_categories, merge_page_extractions
from .completion import CompletionResult, complete_categories, recalculate_category
from .material_filter import filter_by_material_choices
from .totals import compute_project_totals
from .pricing import PriceBook, load_price_book, default_price_book

__all__ = [
    "Confidence",
    "LineItem",
    "CostCategory",
    "PageExtraction",
    "ProjectTotals",
    "ClientContext",
    "normalize_key",
    "normalize_item_description",
    "item_key",
    "MergePolicy",
    "MergeResult",
    "merge_categories",
    "merge_page_extractions",
    "CompletionResult",
    "complete_categories",
    "recalculate_category",
    "filter_by_material_choices",
    "compute_project_totals",
    "PriceBook",
    "load_price_book",
    "default_price_book",
]
