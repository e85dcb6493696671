"""
L4 Execution — these functions touch the system: subprocesses,
downloads, file renames and install events.
"""

from envboot.core.services.recipes.execution.checksum import (  # noqa: F401
    compute_digest,
    require_checksum,
    verify_checksum,
)
from envboot.core.services.recipes.execution.download import (  # noqa: F401
    fetch_resource,
    fetch_resources,
    transfer,
)
from envboot.core.services.recipes.execution.events import EventStore, RanState  # noqa: F401
from envboot.core.services.recipes.execution.rollback import (  # noqa: F401
    RollbackGuard,
    artifact_guard,
    reject_artifact,
    termination_signals,
)
from envboot.core.services.recipes.execution.subprocess_runner import (  # noqa: F401
    run_subcommand,
)
