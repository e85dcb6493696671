"""
L4 Execution — Resource download and verification.

Materializes every resource a recipe declares into its resource
directory.  The pipeline is fail-fast and never retries:

    parse all lines → for each: (mirror) URL → transfer unless present
                    → verify checksum → confirm

A guard is armed before each transfer; anything short of a confirmed
download (error, mismatch, Ctrl-C, SIGTERM) renames the file to
``<local_name>.rej`` so a later run starts clean.
"""

from __future__ import annotations

import logging
import shutil
import time
import urllib.error
import urllib.request
from pathlib import Path

from envboot import __version__
from envboot.core.errors import EnvbootError, TransportError
from envboot.core.models.recipe import ResourceDeclaration
from envboot.core.models.result import FetchReport
from envboot.core.services.recipes.domain.resource_line import parse_resources
from envboot.core.services.recipes.execution.checksum import require_checksum
from envboot.core.services.recipes.execution.rollback import artifact_guard, reject_path

logger = logging.getLogger(__name__)

_USER_AGENT = f"envboot/{__version__}"
_CHUNK = 64 * 1024


def _fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def transfer(url: str, dest: Path, *, timeout: int = 60) -> int:
    """Stream ``url`` into ``dest`` and return the byte count.

    Supports whatever ``urllib`` opens: http, https, ftp and file URLs.

    Raises:
        TransportError: On any network or local write failure.
    """
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    start = time.monotonic()
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp, open(dest, "wb") as out:
            shutil.copyfileobj(resp, out, _CHUNK)
            size = out.tell()
    except urllib.error.HTTPError as e:
        raise TransportError(f"Download of {url} failed: HTTP {e.code} {e.reason}") from e
    except urllib.error.URLError as e:
        raise TransportError(f"Download of {url} failed: {e.reason}") from e
    except (OSError, ValueError) as e:
        raise TransportError(f"Download of {url} failed: {e}") from e

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.debug("Downloaded %s (%s in %dms)", dest.name, _fmt_size(size), elapsed_ms)
    return size


def fetch_resource(
    decl: ResourceDeclaration,
    recipe_name: str,
    resource_dir: Path,
    *,
    mirror: str | None = None,
    timeout: int = 60,
) -> bool:
    """Materialize one declared resource.

    Args:
        decl: The parsed resource line.
        recipe_name: Owning recipe; part of the mirror URL.
        resource_dir: Destination directory (must exist).
        mirror: Mirror base URL; replaces ``decl.url`` entirely.
        timeout: Transfer timeout in seconds.

    Returns:
        True if a transfer happened, False if the file was already present.

    Raises:
        TransportError, ChecksumMismatchError, UnknownAlgorithmError,
        ChecksumComputeError.  The artifact has been rejected by then.
    """
    dest = resource_dir / decl.local_name
    url = decl.effective_url(recipe_name, mirror)
    transferred = False

    with artifact_guard(dest) as guard:
        if dest.exists():
            logger.debug("%s: %s already present", recipe_name, decl.local_name)
        else:
            logger.info("%s: fetching %s", recipe_name, url)
            transfer(url, dest, timeout=timeout)
            transferred = True

        if decl.has_checksum:
            require_checksum(dest, decl.algorithm, decl.digest)
            guard.cancel()
            stale = reject_path(dest)
            if stale.exists():
                stale.unlink()
        else:
            guard.cancel()
            logger.warning(
                "%s: no checksum declared for %s, download not verified",
                recipe_name, decl.local_name,
            )

    return transferred


def fetch_resources(
    text: str,
    recipe_name: str,
    resource_dir: Path,
    *,
    mirror: str | None = None,
    timeout: int = 60,
) -> FetchReport:
    """Materialize every resource in a recipe's ``resources`` output.

    A malformed line or unknown algorithm fails the whole batch before
    any transfer; the first failing resource stops the remaining ones.

    Returns:
        FetchReport; ``exit_code`` is non-zero on failure.
    """
    report = FetchReport()

    try:
        declarations = parse_resources(text)
    except EnvbootError as e:
        logger.error("%s: %s", recipe_name, e)
        report.exit_code = e.exit_code
        report.error = str(e)
        return report

    report.total = len(declarations)
    if not declarations:
        return report

    resource_dir.mkdir(parents=True, exist_ok=True)
    if mirror:
        logger.debug("%s: using mirror %s", recipe_name, mirror)

    for decl in declarations:
        try:
            transferred = fetch_resource(
                decl, recipe_name, resource_dir, mirror=mirror, timeout=timeout,
            )
        except EnvbootError as e:
            logger.error("%s: %s", recipe_name, e)
            report.failed = decl.local_name
            report.exit_code = e.exit_code
            report.error = str(e)
            return report

        (report.fetched if transferred else report.skipped).append(decl.local_name)
        if not decl.has_checksum:
            report.unverified.append(decl.local_name)

    return report
