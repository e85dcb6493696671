"""
L5 Orchestration — Drive one recipe through its lifecycle.

    check ──0──▶ done (already satisfied, event untouched)
      │
      └─≠0─▶ resources ─▶ fetch ─▶ pretest ─▶ install ─▶ record event

The first failing stage ends the run with that stage's status.
``resources`` and ``pretest`` may answer 127 (not implemented) and
are then skipped; ``check`` and ``install`` may not.
"""

from __future__ import annotations

import logging

from envboot.core.config.loader import Settings
from envboot.core.errors import ExitCode
from envboot.core.models.recipe import Recipe
from envboot.core.models.result import FetchReport, RecipeOutcome
from envboot.core.services.recipes.domain.subcommands import INSTALL_SEQUENCE, Subcommand
from envboot.core.services.recipes.execution.download import fetch_resources
from envboot.core.services.recipes.execution.events import EventStore
from envboot.core.services.recipes.execution.subprocess_runner import run_subcommand

logger = logging.getLogger(__name__)


def _fail(outcome: RecipeOutcome, step: Subcommand, returncode: int) -> RecipeOutcome:
    outcome.returncode = returncode
    outcome.failed_step = step.value
    if returncode == ExitCode.NOT_IMPLEMENTED and not step.optional:
        logger.error("%s: required subcommand '%s' is not implemented", outcome.recipe, step.value)
    else:
        logger.error("%s: %s failed (exit %d)", outcome.recipe, step.value, returncode)
    return outcome


def check_recipe(recipe: Recipe, settings: Settings) -> int:
    """Run only ``check`` and return its status."""
    return run_subcommand(recipe, Subcommand.CHECK, settings).returncode


def fetch_recipe(recipe: Recipe, settings: Settings) -> FetchReport:
    """Run ``resources`` and fetch whatever it declares.

    A recipe without a ``resources`` subcommand yields an empty report.
    """
    step = run_subcommand(recipe, Subcommand.RESOURCES, settings, capture=True)
    if step.skipped:
        return FetchReport()
    if step.returncode != 0:
        logger.error("%s: resources failed (exit %d)", recipe.name, step.returncode)
        return FetchReport(exit_code=step.returncode, error="resources failed")

    return fetch_resources(
        step.stdout,
        recipe.name,
        settings.resource_dir(recipe.name),
        mirror=settings.mirror,
    )


def run_recipe(recipe: Recipe, settings: Settings, events: EventStore | None = None) -> RecipeOutcome:
    """Run a recipe's full lifecycle.

    Args:
        recipe: The recipe to run.
        settings: Run settings.
        events: Where install events go (default: ``settings.events_dir``).

    Returns:
        RecipeOutcome; ``returncode`` is the failing stage's status or 0.
    """
    events = events or EventStore(settings.events_dir)
    outcome = RecipeOutcome(recipe=recipe.name)

    check = run_subcommand(recipe, Subcommand.CHECK, settings)
    outcome.steps.append(check)
    if check.returncode == 0:
        outcome.already_satisfied = True
        logger.debug("%s: already installed", recipe.name)
        return outcome
    if check.returncode == ExitCode.NOT_IMPLEMENTED:
        return _fail(outcome, Subcommand.CHECK, check.returncode)

    logger.info("%s: installing", recipe.name)
    resource_dir = settings.resource_dir(recipe.name)

    for subcommand in INSTALL_SEQUENCE:
        if subcommand is Subcommand.RESOURCES:
            step = run_subcommand(recipe, subcommand, settings, capture=True)
            outcome.steps.append(step)
            if step.skipped:
                continue
            if step.returncode != 0:
                return _fail(outcome, subcommand, step.returncode)

            report = fetch_resources(
                step.stdout, recipe.name, resource_dir, mirror=settings.mirror,
            )
            outcome.fetch = report
            if not report.ok:
                return _fail(outcome, subcommand, report.exit_code)
            continue

        resource_dir.mkdir(parents=True, exist_ok=True)
        step = run_subcommand(recipe, subcommand, settings, cwd=resource_dir)
        outcome.steps.append(step)
        if step.skipped:
            continue
        if step.returncode != 0:
            return _fail(outcome, subcommand, step.returncode)

    events.record(recipe)
    logger.info("%s: installed", recipe.name)
    return outcome
