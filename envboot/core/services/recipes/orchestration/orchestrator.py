"""
L5 Orchestration — Run a set of recipes in order.

Recipes run one at a time in the order given (or directory order for
``all``).  The first failing recipe stops the run and its status
becomes the run's exit code; nothing already installed is undone.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from envboot.core.config.loader import Settings
from envboot.core.models.recipe import Recipe
from envboot.core.models.result import RecipeOutcome, RunResult
from envboot.core.persistence.history import HistoryEntry, HistoryWriter
from envboot.core.services.recipes.discovery import expand_recipes
from envboot.core.services.recipes.execution.events import EventStore
from envboot.core.services.recipes.orchestration.runner import check_recipe, run_recipe

logger = logging.getLogger(__name__)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


def all_satisfied(recipes: Sequence[Recipe], settings: Settings) -> bool:
    """Run ``check`` across the set; True if every recipe is satisfied.

    Stops at the first recipe that needs work.
    """
    for recipe in recipes:
        if check_recipe(recipe, settings) != 0:
            logger.debug("%s: needs install", recipe.name)
            return False
    return True


def run_recipe_set(
    recipes: Sequence[Recipe],
    settings: Settings,
    *,
    precheck: bool = False,
) -> RunResult:
    """Run already-resolved recipes in order, stopping at the first failure.

    Args:
        recipes: Recipes in run order.
        settings: Run settings.
        precheck: Run only ``check`` over the whole set first; when
            everything is satisfied the run is a silent no-op.
    """
    result = RunResult(recipes=[r.name for r in recipes])

    if precheck and recipes and all_satisfied(recipes, settings):
        result.noop = True
        result.outcomes = [RecipeOutcome(recipe=r.name, already_satisfied=True) for r in recipes]
        return result

    events = EventStore(settings.events_dir)
    for recipe in recipes:
        outcome = run_recipe(recipe, settings, events)
        result.outcomes.append(outcome)
        if not outcome.ok:
            logger.error(
                "Stopped at %s (%d of %d recipes processed)",
                recipe.name, result.processed, len(recipes),
            )
            break

    return result


def run_recipes(
    identifiers: Sequence[str],
    settings: Settings,
    *,
    precheck: bool = False,
    history: HistoryWriter | None = None,
) -> RunResult:
    """Resolve identifiers and run them, recording the run in history.

    Raises:
        ConfigurationError: If an identifier cannot be resolved.
    """
    operation_id = generate_operation_id()
    start = time.monotonic()

    recipes = expand_recipes(identifiers, settings.recipe_dir)
    logger.debug("%s: %d recipe(s): %s", operation_id, len(recipes), ", ".join(r.name for r in recipes))

    result = run_recipe_set(recipes, settings, precheck=precheck)

    if history is not None:
        failed = next((o for o in result.outcomes if not o.ok), None)
        history.write(HistoryEntry(
            operation_id=operation_id,
            recipes=result.recipes,
            installed=[o.recipe for o in result.outcomes if o.installed],
            status=result.status,
            processed=result.processed,
            failed_recipe=failed.recipe if failed else None,
            failed_step=failed.failed_step if failed else None,
            exit_code=result.exit_code,
            duration_ms=int((time.monotonic() - start) * 1000),
        ))

    return result
