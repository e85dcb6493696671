"""
Error taxonomy — every failure the core raises carries its exit code.

Configuration errors are fatal and never retried (exit 2). Bad internal
configuration, such as a missing required tool, exits 3. Verification
and transport errors exit 1: the artifact is discarded and the user
re-runs. Recipe exit statuses are not exceptions; they travel in
``StepResult`` / ``RecipeOutcome`` verbatim.
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Process-level exit codes."""

    OK = 0
    ERROR = 1
    USAGE = 2
    INTERNAL_CONFIG = 3
    NOT_IMPLEMENTED = 127


class EnvbootError(Exception):
    """Base class for all envboot errors."""

    exit_code: int = ExitCode.ERROR


# ── Configuration (exit 2) ──────────────────────────────────────


class ConfigurationError(EnvbootError):
    """Invalid invocation or configuration."""

    exit_code = ExitCode.USAGE


class MalformedResourceError(ConfigurationError):
    """A resource line does not have 1, 2 or 4 tokens."""

    def __init__(self, line: str, reason: str = "") -> None:
        self.line = line
        detail = reason or "expected URL [LOCAL_NAME [ALGORITHM HASH]]"
        super().__init__(f"Malformed resource line {line!r}: {detail}")


class UnknownAlgorithmError(ConfigurationError):
    """The declared hash algorithm is not supported."""

    def __init__(self, algorithm: str) -> None:
        self.algorithm = algorithm
        super().__init__(f"Unknown checksum algorithm: {algorithm}")


class UnresolvedReferenceError(ConfigurationError):
    """A staleness reference is neither a file nor a recorded recipe event."""

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(
            f"Reference {reference!r} is neither an existing file "
            "nor a recipe with an install event"
        )


class RecipeNotFoundError(ConfigurationError):
    """An explicitly named recipe does not exist in the recipe directory."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No such recipe: {name}")


# ── Internal configuration (exit 3) ─────────────────────────────


class InternalConfigurationError(EnvbootError):
    """The environment envboot runs in is not usable."""

    exit_code = ExitCode.INTERNAL_CONFIG


class MissingToolError(InternalConfigurationError):
    """A required executable is not on PATH."""

    def __init__(self, tools: list[str]) -> None:
        self.tools = tools
        super().__init__(f"Required tool(s) not found: {', '.join(tools)}")


# ── Verification / transport (exit 1) ───────────────────────────


class VerificationError(EnvbootError):
    """A downloaded artifact failed verification."""


class ChecksumMismatchError(VerificationError):
    """Computed digest differs from the declared one."""

    def __init__(self, path: str, algorithm: str, expected: str, actual: str) -> None:
        self.path = path
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{algorithm} mismatch for {path}\n"
            f"Expected: {expected}\n"
            f"Got:      {actual}"
        )


class ChecksumComputeError(EnvbootError):
    """The digest could not be computed (unreadable file)."""


class TransportError(EnvbootError):
    """The transfer of a resource failed."""


class TerminationRequested(BaseException):
    """Raised from the SIGTERM/SIGHUP handler so cleanup runs on unwind.

    Derives from ``BaseException`` like ``KeyboardInterrupt`` so that
    ``except Exception`` blocks do not swallow it.
    """

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"Terminated by signal {signum}")

    @property
    def exit_code(self) -> int:
        return 128 + self.signum
