"""
L4 Execution — Recipe subcommand runner.

The SINGLE PLACE where a recipe executable is started.  Environment
export, working directory and exit-status capture are centralised here.
Only ``resources`` has its stdout captured, and it must be UTF-8;
every other subcommand writes straight to the terminal.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path

from envboot.core.config.loader import Settings
from envboot.core.errors import ExitCode
from envboot.core.models.recipe import Recipe
from envboot.core.models.result import StepResult
from envboot.core.services.recipes.domain.subcommands import Subcommand, is_not_implemented

logger = logging.getLogger(__name__)

# Same statuses a shell reports for exec failures
_EXIT_NOT_EXECUTABLE = 126


def _decode_output(recipe: Recipe, subcommand: Subcommand, raw: bytes | None) -> str | None:
    """Captured stdout as text; None if it is not valid UTF-8."""
    if not raw:
        return ""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        logger.error(
            "%s: %s output is not valid UTF-8 (byte %d)", recipe.name, subcommand.value, e.start,
        )
        return None


def recipe_environment(recipe: Recipe, settings: Settings) -> dict[str, str]:
    """Process environment for a recipe subcommand."""
    env = os.environ.copy()
    env.update(settings.recipe_env())
    env["ENVBOOT_RECIPE"] = recipe.name
    env["ENVBOOT_RECIPE_PATH"] = str(recipe.path)
    env["ENVBOOT_RESOURCE_DIR"] = str(settings.resource_dir(recipe.name))
    env["ENVBOOT_NESTED"] = "1"
    return env


def run_subcommand(
    recipe: Recipe,
    subcommand: Subcommand,
    settings: Settings,
    *,
    cwd: Path | None = None,
    capture: bool = False,
) -> StepResult:
    """Run ``<recipe> <subcommand>`` and report its exit status.

    Args:
        recipe: The recipe to invoke.
        subcommand: Which protocol step.
        settings: Run settings, exported into the environment.
        cwd: Working directory (default: inherit).
        capture: Capture stdout (used for ``resources``).

    Returns:
        StepResult.  ``skipped`` is set when an optional subcommand
        answered 127.
    """
    cmd = [str(recipe.path), subcommand.value]
    logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), cwd or ".")

    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            env=recipe_environment(recipe, settings),
            stdout=subprocess.PIPE if capture else None,
        )
        returncode = result.returncode
        stdout = _decode_output(recipe, subcommand, result.stdout)
        if stdout is None:
            stdout = ""
            if returncode == 0:
                returncode = int(ExitCode.USAGE)
    except FileNotFoundError:
        logger.error("%s: executable not found: %s", recipe.name, recipe.path)
        returncode, stdout = int(ExitCode.NOT_IMPLEMENTED), ""
    except PermissionError:
        logger.error("%s: cannot execute %s", recipe.name, recipe.path)
        returncode, stdout = _EXIT_NOT_EXECUTABLE, ""
    except OSError as e:
        logger.error("%s: cannot execute %s: %s", recipe.name, recipe.path, e)
        returncode, stdout = _EXIT_NOT_EXECUTABLE, ""

    elapsed_ms = int((time.monotonic() - start) * 1000)
    skipped = is_not_implemented(subcommand, returncode)
    logger.debug(
        "%s %s → %d%s (%dms)",
        recipe.name, subcommand.value, returncode, " (not implemented)" if skipped else "",
        elapsed_ms,
    )
    return StepResult(
        subcommand=subcommand.value,
        returncode=returncode,
        stdout=stdout,
        duration_ms=elapsed_ms,
        skipped=skipped,
    )
