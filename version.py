"""
Version information for PlanBudgetAgent.

This is the single source of truth for the application version.
Used by: CLI and the plan image fetcher's User-Agent.
"""

__version__ = "2.0.0"
APP_NAME = "PlanBudgetAgent"
