"""
Tests for the recipe runner — lifecycle sequencing and exit statuses.
"""

import logging
import time
from pathlib import Path

from envboot.core.config.loader import Settings
from envboot.core.models.recipe import Recipe
from envboot.core.services.recipes.execution.events import EventStore
from envboot.core.services.recipes.orchestration.runner import (
    check_recipe,
    fetch_recipe,
    run_recipe,
)


def _run(path: Path, settings: Settings):
    return run_recipe(Recipe.from_path(path), settings)


class TestAlreadySatisfied:
    """Tests for recipes whose check passes."""

    def test_check_zero_runs_nothing_else(self, make_recipe, settings, read_calls):
        """A passing check skips every other step and records nothing."""
        path = make_recipe(
            "redis", check="exit 0", resources="echo x", pretest="exit 0", install="exit 0",
        )
        outcome = _run(path, settings)
        assert outcome.ok
        assert outcome.already_satisfied
        assert read_calls() == ["redis check"]
        assert not EventStore(settings.events_dir).ran_at_least_once("redis")

    def test_existing_event_untouched(self, make_recipe, settings):
        """A passing check does not refresh an existing event."""
        path = make_recipe("redis", check="exit 0", install="exit 0")
        store = EventStore(settings.events_dir)
        event = store.record(Recipe.from_path(path))
        before = event.stat().st_mtime_ns
        time.sleep(0.01)
        _run(path, settings)
        assert event.stat().st_mtime_ns == before


class TestInstallPath:
    """Tests for the resources → pretest → install sequence."""

    def test_full_success_writes_one_event(self, make_recipe, settings, read_calls):
        """A full install runs every step and writes exactly one event."""
        path = make_recipe("redis", check="exit 1", resources="exit 0", pretest="exit 0", install="exit 0")
        start = time.time()
        outcome = _run(path, settings)

        assert outcome.ok
        assert outcome.installed
        assert read_calls() == ["redis check", "redis resources", "redis pretest", "redis install"]
        events = list(settings.events_dir.iterdir())
        assert [e.name for e in events] == ["redis"]
        assert events[0].stat().st_mtime >= start - 1

    def test_optional_steps_not_implemented(self, make_recipe, settings, read_calls):
        """127 from resources and pretest is skipped, not failed."""
        path = make_recipe("jq", check="exit 1", install="exit 0")
        outcome = _run(path, settings)
        assert outcome.ok
        assert [s.skipped for s in outcome.steps] == [False, True, True, False]
        assert read_calls() == ["jq check", "jq resources", "jq pretest", "jq install"]
        assert EventStore(settings.events_dir).ran_at_least_once("jq")

    def test_install_not_implemented_fails(self, make_recipe, settings):
        """127 from install is a failure."""
        path = make_recipe("jq", check="exit 1")
        outcome = _run(path, settings)
        assert outcome.returncode == 127
        assert outcome.failed_step == "install"
        assert not EventStore(settings.events_dir).ran_at_least_once("jq")

    def test_check_not_implemented_fails(self, make_recipe, settings, read_calls):
        """127 from check is a failure and nothing else runs."""
        path = make_recipe("jq", install="exit 0")
        outcome = _run(path, settings)
        assert outcome.returncode == 127
        assert outcome.failed_step == "check"
        assert read_calls() == ["jq check"]

    def test_pretest_failure_aborts(self, make_recipe, settings, read_calls):
        """A failing pretest stops before install."""
        path = make_recipe("redis", check="exit 1", pretest="exit 4", install="exit 0")
        outcome = _run(path, settings)
        assert outcome.returncode == 4
        assert outcome.failed_step == "pretest"
        assert "redis install" not in read_calls()
        assert not EventStore(settings.events_dir).ran_at_least_once("redis")

    def test_install_failure_status_propagates(self, make_recipe, settings):
        """The install exit status becomes the outcome status."""
        path = make_recipe("redis", check="exit 1", install="exit 42")
        outcome = _run(path, settings)
        assert outcome.returncode == 42
        assert outcome.failed_step == "install"

    def test_resources_failure_aborts(self, make_recipe, settings, read_calls):
        """A failing resources step stops the lifecycle."""
        path = make_recipe("redis", check="exit 1", resources="exit 5", install="exit 0")
        outcome = _run(path, settings)
        assert outcome.returncode == 5
        assert outcome.failed_step == "resources"
        assert read_calls() == ["redis check", "redis resources"]

    def test_malformed_resources_abort_with_usage_code(self, make_recipe, settings, read_calls):
        """A malformed resource line fails the recipe with exit 2."""
        path = make_recipe(
            "redis", check="exit 1", resources="echo 'http://x/y.tar.gz a b'", install="exit 0",
        )
        outcome = _run(path, settings)
        assert outcome.returncode == 2
        assert outcome.failed_step == "resources"
        assert "redis install" not in read_calls()

    def test_non_utf8_resources_output_fails(self, make_recipe, settings, read_calls, caplog):
        """Undecodable resources output fails with exit 2 and the recipe name."""
        caplog.set_level(logging.ERROR)
        path = make_recipe(
            "redis", check="exit 1", resources=r"printf '\377\376 junk\n'", install="exit 0",
        )
        outcome = _run(path, settings)
        assert outcome.returncode == 2
        assert outcome.failed_step == "resources"
        assert "redis install" not in read_calls()
        assert "redis: resources output is not valid UTF-8" in caplog.text

    def test_non_utf8_output_keeps_recipe_status(self, make_recipe, settings):
        """A resources step that already failed keeps its own status."""
        path = make_recipe(
            "redis", check="exit 1", resources=r"printf '\377'; exit 5", install="exit 0",
        )
        outcome = _run(path, settings)
        assert outcome.returncode == 5
        assert outcome.failed_step == "resources"

    def test_install_runs_in_resource_dir(self, make_recipe, settings):
        """Install runs with the resource directory as cwd."""
        path = make_recipe("redis", check="exit 1", install='pwd > "$ENVBOOT_PREFIX.pwd"')
        outcome = _run(path, settings)
        assert outcome.ok
        resource_dir = settings.resource_dir("redis")
        assert resource_dir.is_dir()
        recorded = Path(str(settings.prefix) + ".pwd").read_text().strip()
        assert Path(recorded).resolve() == resource_dir.resolve()

    def test_recipe_environment(self, make_recipe, settings):
        """Run settings are exported to the recipe."""
        path = make_recipe(
            "redis",
            check="exit 1",
            install='echo "$ENVBOOT_RECIPE $ENVBOOT_JOBS $ENVBOOT_NESTED" > env.out',
        )
        assert _run(path, settings).ok
        out = (settings.resource_dir("redis") / "env.out").read_text().split()
        assert out == ["redis", "2", "1"]

    def test_resources_are_fetched_before_install(self, make_recipe, settings, upstream):
        """Declared resources are in place when install runs."""
        url, digest = upstream("redis.tar.gz", b"source")
        path = make_recipe(
            "redis",
            check="exit 1",
            resources=f"echo '{url} redis.tar.gz sha256 {digest}'",
            install="test -f redis.tar.gz",
        )
        outcome = _run(path, settings)
        assert outcome.ok
        assert outcome.fetch is not None
        assert outcome.fetch.fetched == ["redis.tar.gz"]


class TestHelpers:
    """Tests for check_recipe and fetch_recipe."""

    def test_check_recipe(self, make_recipe, settings):
        """check_recipe returns the check status."""
        assert check_recipe(Recipe.from_path(make_recipe("a", check="exit 0")), settings) == 0
        assert check_recipe(Recipe.from_path(make_recipe("b", check="exit 3")), settings) == 3

    def test_fetch_recipe_without_resources(self, make_recipe, settings):
        """A recipe with no resources subcommand yields an empty report."""
        report = fetch_recipe(Recipe.from_path(make_recipe("a", check="exit 0")), settings)
        assert report.ok
        assert report.total == 0

    def test_fetch_recipe_does_not_install(self, make_recipe, settings, upstream, read_calls):
        """fetch_recipe runs only resources."""
        url, digest = upstream("a.txt", b"a")
        path = make_recipe("a", check="exit 1", resources=f"echo '{url} a.txt sha256 {digest}'")
        report = fetch_recipe(Recipe.from_path(path), settings)
        assert report.ok
        assert read_calls() == ["a resources"]
        assert (settings.resource_dir("a") / "a.txt").exists()

    def test_fetch_recipe_non_utf8_output(self, make_recipe, settings):
        """fetch_recipe reports undecodable output as exit 2."""
        path = make_recipe("a", check="exit 1", resources=r"printf '\377\n'")
        report = fetch_recipe(Recipe.from_path(path), settings)
        assert report.exit_code == 2
