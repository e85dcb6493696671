"""
L1 Domain — The recipe subcommand protocol (pure).

Every recipe is invoked as ``recipe <subcommand>``.  The set is closed:
anything else is rejected when parsed, never looked up at runtime.
No I/O, no subprocess.
"""

from __future__ import annotations

from enum import Enum

from envboot.core.errors import ConfigurationError, ExitCode


class Subcommand(str, Enum):
    CHECK = "check"
    RESOURCES = "resources"
    PRETEST = "pretest"
    INSTALL = "install"

    @property
    def optional(self) -> bool:
        """Optional subcommands treat 127 as "nothing to do"."""
        return self in _OPTIONAL

    @property
    def runs_in_resource_dir(self) -> bool:
        return self in (Subcommand.PRETEST, Subcommand.INSTALL)

    @classmethod
    def parse(cls, name: str) -> Subcommand:
        try:
            return cls(name)
        except ValueError:
            raise ConfigurationError(f"Unknown recipe subcommand: {name}") from None


_OPTIONAL = frozenset({Subcommand.RESOURCES, Subcommand.PRETEST})

# Order of the install path once ``check`` has reported "needs install"
INSTALL_SEQUENCE = (Subcommand.RESOURCES, Subcommand.PRETEST, Subcommand.INSTALL)


def is_not_implemented(subcommand: Subcommand, returncode: int) -> bool:
    """Whether ``returncode`` means an optional step has nothing to do."""
    return subcommand.optional and returncode == ExitCode.NOT_IMPLEMENTED
