"""
Tests for checksum verification.
"""

import hashlib
import logging
from pathlib import Path

import pytest

from envboot.core.errors import (
    ChecksumComputeError,
    ChecksumMismatchError,
    ConfigurationError,
    UnknownAlgorithmError,
    VerificationError,
)
from envboot.core.services.recipes.execution.checksum import (
    SUPPORTED_ALGORITHMS,
    compute_digest,
    require_checksum,
    verify_checksum,
)

CONTENT = b"redis source tarball\n"


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    path = tmp_path / "redis.tar.gz"
    path.write_bytes(CONTENT)
    return path


class TestComputeDigest:
    """Tests for digest computation."""

    @pytest.mark.parametrize("algo", SUPPORTED_ALGORITHMS)
    def test_matches_hashlib(self, artifact: Path, algo: str):
        """Every supported algorithm matches hashlib."""
        assert compute_digest(artifact, algo) == hashlib.new(algo, CONTENT).hexdigest()

    def test_unknown_algorithm(self, artifact: Path):
        """An unknown algorithm is a configuration error."""
        with pytest.raises(UnknownAlgorithmError) as exc:
            compute_digest(artifact, "crc32")
        assert isinstance(exc.value, ConfigurationError)

    def test_missing_file(self, tmp_path: Path):
        """An unreadable file raises ChecksumComputeError."""
        with pytest.raises(ChecksumComputeError):
            compute_digest(tmp_path / "nope", "sha256")


class TestVerify:
    """Tests for verify_checksum and require_checksum."""

    def test_match(self, artifact: Path):
        """A matching digest verifies."""
        expected = hashlib.sha256(CONTENT).hexdigest()
        assert verify_checksum(artifact, "sha256", expected) is True

    def test_expected_is_trimmed(self, artifact: Path):
        """Whitespace around the declared value is ignored."""
        expected = hashlib.sha512(CONTENT).hexdigest()
        assert verify_checksum(artifact, "SHA512", f"  {expected}\n") is True

    def test_mismatch_returns_false(self, artifact: Path):
        """A mismatch returns False."""
        assert verify_checksum(artifact, "sha256", "0" * 64) is False

    def test_require_raises_mismatch(self, artifact: Path):
        """require_checksum raises on mismatch."""
        with pytest.raises(ChecksumMismatchError) as exc:
            require_checksum(artifact, "sha256", "0" * 64)
        assert isinstance(exc.value, VerificationError)
        assert exc.value.actual == hashlib.sha256(CONTENT).hexdigest()

    def test_unknown_algorithm_is_not_a_mismatch(self, artifact: Path):
        """An unknown algorithm raises rather than returning False."""
        with pytest.raises(UnknownAlgorithmError):
            verify_checksum(artifact, "whirlpool9", "abc")

    def test_weak_algorithm_warns(self, artifact: Path, caplog: pytest.LogCaptureFixture):
        """md5 verifies but logs an advisory warning."""
        expected = hashlib.md5(CONTENT).hexdigest()
        with caplog.at_level(logging.WARNING):
            assert verify_checksum(artifact, "md5", expected) is True
        assert "weak checksum" in caplog.text

    def test_strong_algorithm_no_warning(self, artifact: Path, caplog: pytest.LogCaptureFixture):
        """sha256 logs no warning."""
        expected = hashlib.sha256(CONTENT).hexdigest()
        with caplog.at_level(logging.WARNING):
            verify_checksum(artifact, "sha256", expected)
        assert "weak checksum" not in caplog.text
