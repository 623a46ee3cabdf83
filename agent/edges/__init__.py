# Conditional edges
from .route_by_mode import route_by_mode
from .error_handler import route_after_extraction, mark_failed

__all__ = [
    "route_by_mode",
    "route_after_extraction",
    "mark_failed",
]
