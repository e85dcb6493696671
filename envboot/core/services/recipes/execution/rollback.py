"""
L4 Execution — Rollback guards and termination signals.

A ``RollbackGuard`` is armed before a risky operation and runs its
action on every exit path unless ``cancel()`` was called first.
Failure returns, exceptions and ``KeyboardInterrupt`` all unwind through
``__exit__``; ``termination_signals()`` turns SIGTERM/SIGHUP into a
``TerminationRequested`` exception so they unwind the same way.
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import threading
from collections.abc import Callable, Iterator
from pathlib import Path

from envboot.core.errors import TerminationRequested

logger = logging.getLogger(__name__)

REJECT_SUFFIX = ".rej"

_TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


class RollbackGuard:
    """Run ``action`` on exit unless cancelled."""

    def __init__(self, action: Callable[[], None], label: str = "") -> None:
        self._action = action
        self.label = label
        self.cancelled = False
        self.ran = False

    def cancel(self) -> None:
        self.cancelled = True

    def __enter__(self) -> RollbackGuard:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.cancelled:
            return
        self.ran = True
        logger.debug("Rolling back %s", self.label or self._action)
        try:
            self._action()
        except OSError as e:
            # the original exception is more useful than the cleanup failure
            logger.error("Rollback of %s failed: %s", self.label, e)
            if exc_type is None:
                raise


def reject_path(path: Path) -> Path:
    return path.with_name(path.name + REJECT_SUFFIX)


def reject_artifact(path: Path) -> Path | None:
    """Rename ``path`` aside to ``<name>.rej``, replacing an older reject."""
    if not path.exists():
        return None
    target = reject_path(path)
    os.replace(path, target)
    logger.warning("Rejected %s → %s", path.name, target.name)
    return target


def artifact_guard(path: Path) -> RollbackGuard:
    """Guard that quarantines ``path`` unless the download is confirmed."""
    return RollbackGuard(lambda: reject_artifact(path), label=str(path))


def _raise_termination(signum, frame) -> None:
    raise TerminationRequested(signum)


@contextlib.contextmanager
def termination_signals() -> Iterator[None]:
    """Convert SIGTERM/SIGHUP into ``TerminationRequested`` for the block.

    Handlers can only be installed from the main thread; elsewhere the
    block runs with the existing handlers.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = {sig: signal.getsignal(sig) for sig in _TERMINATION_SIGNALS}
    for sig in _TERMINATION_SIGNALS:
        signal.signal(sig, _raise_termination)
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
