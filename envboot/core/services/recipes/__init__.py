"""
Recipe service — package re-exports.

    from envboot.core.services.recipes import run_recipes, EventStore

Layers, inner first: domain (pure parsing and protocol) → execution
(subprocess, download, events) → orchestration (runner, recipe sets).
"""

# ── Discovery ──
from envboot.core.services.recipes.discovery import (  # noqa: F401
    ALL,
    RESERVED_NAMES,
    expand_recipes,
    find_recipe,
)

# ── L1: Domain ──
from envboot.core.services.recipes.domain.resource_line import (  # noqa: F401
    parse_resource_line,
    parse_resources,
)
from envboot.core.services.recipes.domain.subcommands import Subcommand  # noqa: F401

# ── L4: Execution ──
from envboot.core.services.recipes.execution.events import EventStore, RanState  # noqa: F401

# ── L5: Orchestration ──
from envboot.core.services.recipes.orchestration.orchestrator import (  # noqa: F401
    run_recipe_set,
    run_recipes,
)
from envboot.core.services.recipes.orchestration.runner import (  # noqa: F401
    check_recipe,
    fetch_recipe,
    run_recipe,
)
