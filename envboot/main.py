"""
envboot — CLI entrypoint.

Usage:
    envboot --help
    envboot run all
    envboot run python redis
    envboot fetch redis
    envboot event fresh            # from inside a recipe's check
"""

from __future__ import annotations

import json
import os
import shutil
import sys
from pathlib import Path

import click

from envboot import __version__
from envboot.core.config.loader import Settings, load_settings
from envboot.core.errors import EnvbootError, ExitCode, MissingToolError, TerminationRequested
from envboot.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="envboot")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only report errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to envboot.yml (default: auto-detect).",
)
@click.option("--prefix", type=click.Path(file_okay=False), default=None, help="Install prefix.")
@click.option(
    "--recipe-dir", type=click.Path(file_okay=False), default=None,
    help="Directory holding the recipe executables.",
)
@click.option("--mirror", default=None, help="Fetch every resource from this mirror base URL.")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="Job-count hint for recipes.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    prefix: str | None,
    recipe_dir: str | None,
    mirror: str | None,
    jobs: int | None,
) -> None:
    """envboot — bootstrap a local environment from recipes."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["overrides"] = {
        "prefix": prefix,
        "recipe_dir": recipe_dir,
        "mirror": mirror,
        "jobs": jobs,
        "verbose": True if verbose or debug else None,
    }

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(verbose=verbose, quiet=quiet, debug=debug),
        log_file=os.environ.get("ENVBOOT_LOG_FILE"),
        log_file_level=os.environ.get("ENVBOOT_LOG_FILE_LEVEL"),
    )


def _settings(ctx: click.Context) -> Settings:
    """Load settings once per invocation; exit 2 on bad configuration."""
    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = load_settings(ctx.obj["config_path"], ctx.obj["overrides"])
        except EnvbootError as e:
            _exit_with(e)
    return ctx.obj["settings"]


def _exit_with(error: EnvbootError) -> None:
    click.secho(f"❌ {error}", fg="red", err=True)
    sys.exit(error.exit_code)


def _current_recipe(ctx: click.Context, name: str | None):
    """The recipe a staleness query is about.

    Inside a recipe the runner exports ENVBOOT_RECIPE_PATH; otherwise
    the name is looked up in the recipe directory.
    """
    from envboot.core.models.recipe import Recipe
    from envboot.core.services.recipes.discovery import find_recipe

    if not name:
        click.secho("❌ No recipe given (use --recipe or run from a recipe)", fg="red", err=True)
        sys.exit(ExitCode.USAGE)

    env_path = os.environ.get("ENVBOOT_RECIPE_PATH")
    if env_path and os.environ.get("ENVBOOT_RECIPE") == name and Path(env_path).is_file():
        return Recipe.from_path(Path(env_path))

    try:
        return find_recipe(name, _settings(ctx).recipe_dir)
    except EnvbootError as e:
        _exit_with(e)


# ── Run ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("recipes", nargs=-1)
@click.option(
    "--precheck/--no-precheck",
    default=True,
    help="Check every recipe first and do nothing if all are satisfied.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(ctx: click.Context, recipes: tuple[str, ...], precheck: bool, as_json: bool) -> None:
    """Run RECIPES in order (default: all)."""
    from envboot.core.persistence.history import HistoryWriter
    from envboot.core.services.recipes.execution.rollback import termination_signals
    from envboot.core.services.recipes.orchestration.orchestrator import run_recipes

    settings = _settings(ctx)
    try:
        with termination_signals():
            result = run_recipes(
                recipes,
                settings,
                precheck=precheck,
                history=HistoryWriter(settings.history_path),
            )
    except EnvbootError as e:
        _exit_with(e)
    except TerminationRequested as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        click.secho("❌ Interrupted", fg="red", err=True)
        sys.exit(130)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif not result.noop:
        installed = [o.recipe for o in result.outcomes if o.installed]
        if installed:
            click.secho(f"✅ Installed: {', '.join(installed)}", fg="green", err=True)
        if not result.ok:
            click.secho(
                f"❌ {result.failed_recipe} failed (exit {result.exit_code})", fg="red", err=True,
            )
    sys.exit(result.exit_code)


@cli.command()
@click.argument("recipes", nargs=-1)
@click.pass_context
def check(ctx: click.Context, recipes: tuple[str, ...]) -> None:
    """Run only the check step; exit 0 if every recipe is satisfied."""
    from envboot.core.services.recipes.discovery import expand_recipes
    from envboot.core.services.recipes.orchestration.runner import check_recipe

    settings = _settings(ctx)
    try:
        selected = expand_recipes(recipes, settings.recipe_dir)
    except EnvbootError as e:
        _exit_with(e)

    for recipe in selected:
        status = check_recipe(recipe, settings)
        if status != 0:
            click.echo(f"{recipe.name}: needs install (check exit {status})")
            sys.exit(status)
    sys.exit(0)


@cli.command()
@click.argument("recipe")
@click.pass_context
def fetch(ctx: click.Context, recipe: str) -> None:
    """Fetch and verify RECIPE's resources without installing."""
    from envboot.core.services.recipes.discovery import find_recipe
    from envboot.core.services.recipes.execution.rollback import termination_signals
    from envboot.core.services.recipes.orchestration.runner import fetch_recipe

    settings = _settings(ctx)
    try:
        target = find_recipe(recipe, settings.recipe_dir)
        with termination_signals():
            report = fetch_recipe(target, settings)
    except EnvbootError as e:
        _exit_with(e)
    except TerminationRequested as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        click.secho("❌ Interrupted", fg="red", err=True)
        sys.exit(130)

    if report.ok:
        click.echo(
            f"{recipe}: {report.total} resource(s), "
            f"{len(report.fetched)} fetched, {len(report.skipped)} already present"
        )
    sys.exit(report.exit_code)


# ── Observe ─────────────────────────────────────────────────────


@cli.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_recipes(ctx: click.Context, as_json: bool) -> None:
    """List recipes and the state of their install events."""
    from envboot.core.models.recipe import Recipe
    from envboot.core.services.recipes.discovery import RESERVED_NAMES, list_recipe_files
    from envboot.core.services.recipes.execution.events import EventStore

    settings = _settings(ctx)
    events = EventStore(settings.events_dir)
    try:
        files = list_recipe_files(settings.recipe_dir)
    except EnvbootError as e:
        _exit_with(e)

    rows = []
    for path in files:
        recipe = Recipe.from_path(path)
        if recipe.name in RESERVED_NAMES:
            continue
        rows.append({
            "name": recipe.name,
            "executable": recipe.is_executable,
            "state": events.ran_since_modified(recipe).value,
        })

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        click.secho(f"⚠️  No recipes in {settings.recipe_dir}", fg="yellow")
        return
    for row in rows:
        icon = {"fresh": "✅", "stale": "🔄", "never-ran": "⬜"}[row["state"]]
        suffix = "" if row["executable"] else "  (not executable)"
        click.echo(f"   {icon} {row['name']:<24} {row['state']}{suffix}")


@cli.command()
@click.option("-n", "count", type=int, default=10, help="Number of entries.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent runs."""
    from envboot.core.persistence.history import HistoryWriter

    entries = HistoryWriter(_settings(ctx).history_path).read_recent(count)
    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return
    for e in entries:
        detail = f"failed at {e.failed_recipe}:{e.failed_step}" if e.failed_recipe else ", ".join(e.installed) or "-"
        click.echo(f"{e.timestamp[:19]}  {e.status:<6} {e.processed:>3}  {detail}")


# ── Helpers for recipes ─────────────────────────────────────────


@cli.command()
@click.argument("tools", nargs=-1, required=True)
def require(tools: tuple[str, ...]) -> None:
    """Exit 3 unless every TOOL is on PATH."""
    missing = [t for t in tools if shutil.which(t) is None]
    if missing:
        _exit_with(MissingToolError(missing))


@cli.group()
def event() -> None:
    """Install-event queries, for use inside a recipe's check step.

    Exit 0 means yes, 1 means no, 2 means a configuration error.
    """


_recipe_option = click.option(
    "--recipe",
    "-r",
    "name",
    envvar="ENVBOOT_RECIPE",
    default=None,
    help="Recipe name (default: $ENVBOOT_RECIPE).",
)


@event.command()
@_recipe_option
@click.pass_context
def once(ctx: click.Context, name: str | None) -> None:
    """Has the recipe ever been installed?"""
    from envboot.core.services.recipes.execution.events import EventStore

    recipe = _current_recipe(ctx, name)
    events = EventStore(_settings(ctx).events_dir)
    sys.exit(0 if events.ran_at_least_once(recipe.name) else 1)


@event.command()
@_recipe_option
@click.pass_context
def fresh(ctx: click.Context, name: str | None) -> None:
    """Was the recipe installed since its executable last changed?"""
    from envboot.core.services.recipes.execution.events import EventStore, RanState

    recipe = _current_recipe(ctx, name)
    state = EventStore(_settings(ctx).events_dir).ran_since_modified(recipe)
    if ctx.find_root().params.get("verbose"):
        click.echo(state.value)
    sys.exit(0 if state is RanState.FRESH else 1)


@event.command()
@_recipe_option
@click.argument("references", nargs=-1)
@click.pass_context
def newer(ctx: click.Context, name: str | None, references: tuple[str, ...]) -> None:
    """Is the install newer than every REFERENCE (file or recipe name)?

    With no REFERENCE, asks only whether the install is not older than
    the recipe executable.
    """
    from envboot.core.services.recipes.execution.events import EventStore

    recipe = _current_recipe(ctx, name)
    events = EventStore(_settings(ctx).events_dir)
    try:
        answer = events.newer_than(recipe, list(references))
    except EnvbootError as e:
        _exit_with(e)
    sys.exit(0 if answer else 1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
