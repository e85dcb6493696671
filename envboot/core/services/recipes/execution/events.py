"""
L4 Execution — Install events and staleness queries.

An install event is a file named after the recipe in the events
directory.  Its modification time is the only state that matters; the
small JSON body is informational.  Recipes ask these questions from
their own ``check`` step; the runner only ever records events.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from envboot.core.errors import UnresolvedReferenceError
from envboot.core.models.recipe import Recipe

logger = logging.getLogger(__name__)


class RanState(str, Enum):
    NEVER_RAN = "never-ran"
    STALE = "stale"
    FRESH = "fresh"


class EventStore:
    """Install events for all recipes, under one directory."""

    def __init__(self, events_dir: Path) -> None:
        self._dir = Path(events_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def event_path(self, name: str) -> Path:
        return self._dir / name

    def event_time(self, name: str) -> int | None:
        """Event mtime in nanoseconds, or None if never recorded."""
        try:
            return self.event_path(name).stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def record(self, recipe: Recipe) -> Path:
        """Write (or refresh) the event for ``recipe`` atomically."""
        path = self.event_path(recipe.name)
        self._dir.mkdir(parents=True, exist_ok=True)

        content = json.dumps(
            {
                "recipe": recipe.name,
                "path": str(recipe.path),
                "recorded_at": datetime.now(UTC).isoformat(),
            },
            indent=2,
        ) + "\n"

        fd, tmp_path = tempfile.mkstemp(dir=self._dir, prefix=".event_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Recorded install event for %s", recipe.name)
        return path

    def ran_at_least_once(self, name: str) -> bool:
        return self.event_path(name).is_file()

    def ran_since_modified(self, recipe: Recipe) -> RanState:
        """FRESH if the event is not older than the recipe executable."""
        event = self.event_time(recipe.name)
        if event is None:
            return RanState.NEVER_RAN
        if event >= recipe.mtime_ns:
            return RanState.FRESH
        return RanState.STALE

    def resolve_reference(self, reference: str) -> int:
        """Timestamp of a reference: a file path, else a recipe's event.

        Raises:
            UnresolvedReferenceError: If it is neither.
        """
        path = Path(reference)
        if path.exists():
            return path.stat().st_mtime_ns
        if "/" not in reference:
            event = self.event_time(reference)
            if event is not None:
                return event
        raise UnresolvedReferenceError(reference)

    def newer_than(self, recipe: Recipe, references: list[str]) -> bool:
        """Whether the event is strictly newer than every reference.

        The event must also not be older than the recipe executable.
        All references are resolved first, so an unresolvable one is an
        error even if the answer is already known to be False.
        """
        stamps = [self.resolve_reference(ref) for ref in references]
        event = self.event_time(recipe.name)
        if event is None:
            return False
        if event < recipe.mtime_ns:
            return False
        return all(event > stamp for stamp in stamps)
