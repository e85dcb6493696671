"""
Recipe discovery — turn caller identifiers into Recipe objects.

``all`` expands to every recipe in the recipe directory (sorted by
name, hidden files ignored).  Explicit names keep the caller's order.
Reserved identifiers never become recipes.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from envboot.core.errors import ConfigurationError, RecipeNotFoundError
from envboot.core.models.recipe import Recipe

logger = logging.getLogger(__name__)

ALL = "all"
PROGRAM_NAME = "envboot"
RESERVED_NAMES = frozenset({ALL, PROGRAM_NAME})


def list_recipe_files(recipe_dir: Path) -> list[Path]:
    """Candidate recipe files, in enumeration order."""
    if not recipe_dir.is_dir():
        raise ConfigurationError(f"Recipe directory does not exist: {recipe_dir}")
    return sorted(
        (p for p in recipe_dir.iterdir() if p.is_file() and not p.name.startswith(".")),
        key=lambda p: p.name,
    )


def _accept(recipe: Recipe) -> bool:
    if recipe.name in RESERVED_NAMES:
        logger.debug("Skipping reserved name %s", recipe.name)
        return False
    if not recipe.is_executable:
        logger.warning("%s: not executable, skipping", recipe.name)
        return False
    return True


def expand_recipes(identifiers: Sequence[str], recipe_dir: Path) -> list[Recipe]:
    """Resolve identifiers to runnable recipes.

    Args:
        identifiers: Recipe names in run order, or ``["all"]``.
            An empty sequence means ``all``.
        recipe_dir: Directory holding the recipe executables.

    Returns:
        Executable recipes in run order.

    Raises:
        RecipeNotFoundError: If an explicitly named recipe does not exist.
        ConfigurationError: If ``all`` is combined with other names.
    """
    names = list(identifiers) or [ALL]

    if ALL in names:
        if len(names) > 1:
            raise ConfigurationError(f"'{ALL}' cannot be combined with recipe names")
        recipes = [Recipe.from_path(p) for p in list_recipe_files(recipe_dir)]
        return [r for r in recipes if _accept(r)]

    selected: list[Recipe] = []
    seen: set[str] = set()
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        if name in RESERVED_NAMES:
            logger.warning("%s is a reserved name, skipping", name)
            continue
        if "/" in name:
            raise ConfigurationError(f"Recipe names cannot contain '/': {name}")
        path = recipe_dir / name
        if not path.is_file():
            raise RecipeNotFoundError(name)
        recipe = Recipe.from_path(path)
        if _accept(recipe):
            selected.append(recipe)
    return selected


def find_recipe(name: str, recipe_dir: Path) -> Recipe:
    """Look up a single recipe by name (executable or not)."""
    if name in RESERVED_NAMES or "/" in name or not (recipe_dir / name).is_file():
        raise RecipeNotFoundError(name)
    return Recipe.from_path(recipe_dir / name)
