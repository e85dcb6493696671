"""
Recipe and ResourceDeclaration models.

A recipe is an executable; its name is its file name.  A resource
declaration is one line of the recipe's ``resources`` output.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, model_validator


class Recipe(BaseModel):
    """An executable implementing check/resources/pretest/install."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path

    @classmethod
    def from_path(cls, path: Path) -> Recipe:
        path = Path(path).absolute()
        return cls(name=path.name, path=path)

    @property
    def is_executable(self) -> bool:
        return self.path.is_file() and os.access(self.path, os.X_OK)

    @property
    def mtime_ns(self) -> int:
        return self.path.stat().st_mtime_ns


class ResourceDeclaration(BaseModel):
    """``URL [LOCAL_NAME [ALGORITHM HASH]]``."""

    model_config = ConfigDict(frozen=True)

    url: str
    local_name: str
    algorithm: str | None = None
    digest: str | None = None

    @model_validator(mode="after")
    def _hash_pair(self) -> ResourceDeclaration:
        if (self.algorithm is None) != (self.digest is None):
            raise ValueError("algorithm and digest must be given together")
        return self

    @property
    def has_checksum(self) -> bool:
        return self.algorithm is not None

    def effective_url(self, recipe_name: str, mirror: str | None) -> str:
        """The URL actually fetched; a mirror replaces the declared URL."""
        if mirror:
            return f"{mirror.rstrip('/')}/{recipe_name}/{self.local_name}"
        return self.url
