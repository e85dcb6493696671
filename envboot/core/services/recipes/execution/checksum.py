"""
L4 Execution — Checksum verification.

Computes a file digest with ``hashlib`` and compares it against the
value a recipe declared.  Three distinct failures:

- unknown algorithm name  → ``UnknownAlgorithmError`` (configuration)
- unreadable file         → ``ChecksumComputeError``
- digest mismatch         → ``ChecksumMismatchError`` (verification)
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from envboot.core.errors import (
    ChecksumComputeError,
    ChecksumMismatchError,
    UnknownAlgorithmError,
)
from envboot.core.services.recipes.domain.resource_line import (
    SUPPORTED_ALGORITHMS,
    WEAK_ALGORITHMS,
)

logger = logging.getLogger(__name__)

_CHUNK = 1024 * 1024


def compute_digest(path: Path, algorithm: str) -> str:
    """Hex digest of ``path``.

    Raises:
        UnknownAlgorithmError: If ``algorithm`` is not supported.
        ChecksumComputeError: If the file cannot be read.
    """
    algorithm = algorithm.strip().lower()
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise UnknownAlgorithmError(algorithm)

    h = hashlib.new(algorithm)
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK), b""):
                h.update(chunk)
    except OSError as e:
        raise ChecksumComputeError(f"Cannot compute {algorithm} of {path}: {e}") from e
    return h.hexdigest().strip()


def verify_checksum(path: Path, algorithm: str, expected: str) -> bool:
    """Whether ``path`` has the declared digest.

    Returns False on mismatch; raises on an unknown algorithm or an
    unreadable file.
    """
    try:
        require_checksum(path, algorithm, expected)
    except ChecksumMismatchError:
        return False
    return True


def require_checksum(path: Path, algorithm: str, expected: str) -> str:
    """Verify ``path`` and return its digest.

    Raises:
        ChecksumMismatchError: If the digest differs from ``expected``.
    """
    algorithm = algorithm.strip().lower()
    expected = expected.strip()
    actual = compute_digest(path, algorithm)
    if algorithm in WEAK_ALGORITHMS:
        logger.warning(
            "%s: %s is a weak checksum, consider declaring sha256 instead",
            Path(path).name, algorithm,
        )
    if actual != expected:
        raise ChecksumMismatchError(str(path), algorithm, expected, actual)
    logger.debug("%s: %s ok", Path(path).name, algorithm)
    return actual
