"""
Integration modules for the CI runner.
"""

from .actions_runner import ActionsRunner, MockActionsRunner

__all__ = ["ActionsRunner", "MockActionsRunner"]
