"""
Tests for domain models — recipes, resource declarations, results.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from envboot.core.models import (
    FetchReport,
    Recipe,
    RecipeOutcome,
    ResourceDeclaration,
    RunResult,
    StepResult,
)


class TestRecipe:
    """Tests for the Recipe model."""

    def test_from_path(self, make_recipe):
        """A recipe is named after its file."""
        path = make_recipe("redis", check="exit 0")
        r = Recipe.from_path(path)
        assert r.name == "redis"
        assert r.path.is_absolute()
        assert r.is_executable

    def test_not_executable(self, make_recipe):
        """A file without the exec bit is not executable."""
        assert not Recipe.from_path(make_recipe("notes", executable=False)).is_executable

    def test_directory_is_not_executable(self, tmp_path: Path):
        """A directory is never a runnable recipe."""
        assert not Recipe.from_path(tmp_path).is_executable


class TestResourceDeclaration:
    """Tests for the ResourceDeclaration model."""

    def test_hash_pair_required(self):
        """An algorithm without a digest is invalid."""
        with pytest.raises(ValidationError):
            ResourceDeclaration(url="http://x/a", local_name="a", algorithm="sha256")

    def test_frozen(self):
        """Declarations cannot be mutated."""
        d = ResourceDeclaration(url="http://x/a", local_name="a")
        with pytest.raises(ValidationError):
            d.local_name = "b"


class TestResults:
    """Tests for result dataclasses."""

    def test_step_skipped_counts_as_ok(self):
        """Only a skipped 127 counts as ok."""
        assert StepResult(subcommand="pretest", returncode=127, skipped=True).ok
        assert not StepResult(subcommand="install", returncode=127).ok

    def test_fetch_report(self):
        """A report is ok only with exit code 0."""
        assert FetchReport().ok
        assert not FetchReport(exit_code=2).ok

    def test_run_result_exit_code_from_first_failure(self):
        """The run takes the first failing recipe's status."""
        result = RunResult(outcomes=[
            RecipeOutcome(recipe="a"),
            RecipeOutcome(recipe="b", returncode=7, failed_step="install"),
        ])
        assert result.processed == 2
        assert result.exit_code == 7
        assert result.failed_recipe == "b"
        assert result.status == "failed"

    def test_run_result_noop(self):
        """A no-op run is ok with status noop."""
        result = RunResult(noop=True, outcomes=[RecipeOutcome(recipe="a", already_satisfied=True)])
        assert result.ok
        assert result.status == "noop"
        assert not result.outcomes[0].installed

    def test_to_dict(self):
        """to_dict is JSON-ready."""
        result = RunResult(recipes=["a"], outcomes=[RecipeOutcome(recipe="a")])
        d = result.to_dict()
        assert d["status"] == "ok"
        assert d["outcomes"][0]["recipe"] == "a"
