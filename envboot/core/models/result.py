"""
Result models — what each layer reports back to its caller.

Recipe exit statuses are data here, never exceptions: a failing
``install`` is a ``StepResult`` with a non-zero status, and the
orchestrator turns the first one into the process exit code.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class StepResult:
    """Outcome of one recipe subcommand."""

    subcommand: str
    returncode: int
    stdout: str = ""
    duration_ms: int = 0
    skipped: bool = False           # optional subcommand not implemented

    @property
    def ok(self) -> bool:
        return self.returncode == 0 or self.skipped


@dataclass
class FetchReport:
    """Aggregate outcome of materializing a recipe's resources."""

    total: int = 0
    fetched: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)     # already present
    unverified: list[str] = field(default_factory=list)  # no checksum declared
    failed: str | None = None
    exit_code: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class RecipeOutcome:
    """Outcome of driving one recipe through its lifecycle."""

    recipe: str
    returncode: int = 0
    failed_step: str | None = None
    already_satisfied: bool = False
    steps: list[StepResult] = field(default_factory=list)
    fetch: FetchReport | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def installed(self) -> bool:
        return self.ok and not self.already_satisfied

    def to_dict(self) -> dict:
        return {
            "recipe": self.recipe,
            "returncode": self.returncode,
            "failed_step": self.failed_step,
            "already_satisfied": self.already_satisfied,
            "steps": [
                {"subcommand": s.subcommand, "returncode": s.returncode, "skipped": s.skipped}
                for s in self.steps
            ],
        }


@dataclass
class RunResult:
    """Outcome of orchestrating a set of recipes."""

    recipes: list[str] = field(default_factory=list)
    outcomes: list[RecipeOutcome] = field(default_factory=list)
    noop: bool = False              # precheck found everything satisfied

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def failed_recipe(self) -> str | None:
        for outcome in self.outcomes:
            if not outcome.ok:
                return outcome.recipe
        return None

    @property
    def exit_code(self) -> int:
        for outcome in self.outcomes:
            if not outcome.ok:
                return outcome.returncode
        return 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def status(self) -> str:
        if self.noop:
            return "noop"
        return "ok" if self.ok else "failed"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "processed": self.processed,
            "failed_recipe": self.failed_recipe,
            "exit_code": self.exit_code,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
