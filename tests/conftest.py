"""
Shared test fixtures and configuration.

Recipes are tiny ``/bin/sh`` scripts written into ``tmp_path``.  Each
one appends ``<name> <subcommand>`` to ``calls.log`` so tests can see
exactly which subcommands ran; subcommands without a body exit 127.
"""

import hashlib
import logging
import os
import stat
from pathlib import Path

import pytest

from envboot.core.config.loader import Settings


@pytest.fixture(autouse=True)
def _clean_envboot_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests never inherit envboot variables from the outer shell."""
    for key in list(os.environ):
        if key.startswith("ENVBOOT_"):
            monkeypatch.delenv(key)


@pytest.fixture
def recipe_dir(tmp_path: Path) -> Path:
    d = tmp_path / "recipes"
    d.mkdir()
    return d


@pytest.fixture
def calls_log(tmp_path: Path) -> Path:
    return tmp_path / "calls.log"


@pytest.fixture
def settings(tmp_path: Path, recipe_dir: Path) -> Settings:
    prefix = tmp_path / "local"
    return Settings(
        prefix=prefix,
        recipe_dir=recipe_dir,
        cache_dir=prefix / "var" / "envboot" / "resources",
        events_dir=prefix / "var" / "envboot" / "events",
        jobs=2,
    )


@pytest.fixture
def make_recipe(recipe_dir: Path, calls_log: Path):
    """Factory: ``make_recipe("redis", check="exit 1", install="exit 0")``."""

    def _make(name: str, executable: bool = True, **bodies: str) -> Path:
        lines = [
            "#!/bin/sh",
            f'echo "{name} $1" >> "{calls_log}"',
            'case "$1" in',
        ]
        for sub, body in bodies.items():
            lines.append(f"  {sub})")
            lines.append(f"    {body}")
            lines.append("    ;;")
        lines += ["  *)", "    exit 127", "    ;;", "esac", ""]

        path = recipe_dir / name
        path.write_text("\n".join(lines))
        mode = path.stat().st_mode
        if executable:
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        else:
            path.chmod(mode & ~(stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
        return path

    return _make


@pytest.fixture
def read_calls(calls_log: Path):
    """Return the logged ``<name> <subcommand>`` lines."""

    def _read() -> list[str]:
        if not calls_log.is_file():
            return []
        return [line for line in calls_log.read_text().splitlines() if line]

    return _read


@pytest.fixture
def upstream(tmp_path: Path):
    """Factory: publish ``content`` as a file:// URL, return (url, sha256)."""
    root = tmp_path / "upstream"
    root.mkdir()

    def _publish(name: str, content: bytes) -> tuple[str, str]:
        path = root / name
        path.write_bytes(content)
        return path.as_uri(), hashlib.sha256(content).hexdigest()

    return _publish


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI tests call setup_logging(); undo it after each test."""
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield
    root.setLevel(level)
    root.handlers[:] = handlers
