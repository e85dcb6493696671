"""
Domain models for envboot.

    from envboot.core.models import Recipe, ResourceDeclaration, RunResult
"""

from envboot.core.models.recipe import Recipe, ResourceDeclaration
from envboot.core.models.result import FetchReport, RecipeOutcome, RunResult, StepResult

__all__ = [
    # recipe.py
    "Recipe",
    "ResourceDeclaration",
    # result.py
    "FetchReport",
    "RecipeOutcome",
    "RunResult",
    "StepResult",
]
