"""
L1 Domain — Resource line parsing (pure).

Grammar::

    URL
    URL LOCAL_NAME
    URL LOCAL_NAME ALGORITHM HASH

Exactly 1, 2 or 4 whitespace-separated tokens.  Blank lines and
``#`` comments are ignored.  ALGORITHM must be one of
``SUPPORTED_ALGORITHMS``.  No I/O.
"""

from __future__ import annotations

import posixpath
from urllib.parse import unquote, urlsplit

from envboot.core.errors import MalformedResourceError, UnknownAlgorithmError
from envboot.core.models.recipe import ResourceDeclaration

SUPPORTED_ALGORITHMS = ("md5", "sha1", "sha224", "sha256", "sha384", "sha512")

# Still accepted, but collisions are practical
WEAK_ALGORITHMS = frozenset({"md5", "sha1"})


def url_basename(url: str) -> str:
    """Last path component of a URL, ignoring query and fragment."""
    path = urlsplit(url).path or url
    return unquote(posixpath.basename(path.rstrip("/")))


def parse_resource_line(line: str) -> ResourceDeclaration:
    """Parse one non-empty resource line.

    Raises:
        MalformedResourceError: On a token count other than 1, 2 or 4,
            or when no local name can be derived.
        UnknownAlgorithmError: On an ALGORITHM outside SUPPORTED_ALGORITHMS.
    """
    tokens = line.split()
    if len(tokens) == 3:
        raise MalformedResourceError(line, "a hash needs both ALGORITHM and HASH")
    if len(tokens) not in (1, 2, 4):
        raise MalformedResourceError(line)

    url = tokens[0]
    local_name = tokens[1] if len(tokens) >= 2 else url_basename(url)
    if not local_name or local_name in (".", "..") or "/" in local_name:
        raise MalformedResourceError(line, f"invalid local name {local_name!r}")

    if len(tokens) == 4:
        algorithm = tokens[2].lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise UnknownAlgorithmError(algorithm)
        return ResourceDeclaration(
            url=url, local_name=local_name,
            algorithm=algorithm, digest=tokens[3],
        )
    return ResourceDeclaration(url=url, local_name=local_name)


def parse_resources(text: str) -> list[ResourceDeclaration]:
    """Parse a whole ``resources`` output.

    Every line is parsed before anything is returned, so a malformed
    line or an unknown algorithm rejects the batch before any transfer
    starts.
    """
    declarations: list[ResourceDeclaration] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        declarations.append(parse_resource_line(line))
    return declarations
