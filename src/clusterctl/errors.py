"""Error types for clusterctl.

Every error raised on purpose by the controller derives from
``ClusterCtlError``.  Two families matter to callers:

ValidationError
    Bad input detected before any process or directory is touched:
    unknown role, out-of-range index, malformed placement, missing
    binary, too many placement entries.
ClusterStateError
    User-facing precondition failures (cluster already exists, cluster
    missing, data directory locked).  The CLI reports these as a plain
    message rather than an internal failure.

The remaining classes describe external process failures.
"""
from __future__ import annotations

from collections.abc import Sequence


class ClusterCtlError(Exception):
    """Base class for all clusterctl errors."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ClusterCtlError, ValueError):
    """Raised when command input fails validation."""


class PlacementError(ValidationError):
    """Raised when a placement entry is not a ``cloud.region.zone`` triple."""

    def __init__(self, entry: str) -> None:
        self.entry = entry
        super().__init__(
            f"Invalid placement entry {entry!r}: expected 'cloud.region.zone' "
            "with all three components present."
        )


class BinaryNotFoundError(ValidationError):
    """Raised when a server binary cannot be found in any search directory."""

    def __init__(self, binary: str, probed_dirs: Sequence[str]) -> None:
        self.binary = binary
        self.probed_dirs = list(probed_dirs)
        super().__init__(
            f"Binary {binary!r} not found in any of: {', '.join(self.probed_dirs) or '(none)'}"
        )


# ---------------------------------------------------------------------------
# User-facing preconditions
# ---------------------------------------------------------------------------


class ClusterStateError(ClusterCtlError):
    """Raised when the cluster is not in the state a command requires."""


class ClusterExistsError(ClusterStateError):
    """Raised by ``create`` when the data directory is already present."""

    def __init__(self, data_dir: str) -> None:
        self.data_dir = data_dir
        super().__init__(
            f"Found existing cluster data at {data_dir}. "
            "Use 'start' to start it or 'destroy' to remove it first."
        )


class ClusterNotFoundError(ClusterStateError):
    """Raised when a command needs a cluster but the data directory is missing."""

    def __init__(self, data_dir: str) -> None:
        self.data_dir = data_dir
        super().__init__(
            f"No cluster data found at {data_dir}. Use 'create' to create a cluster."
        )


class ClusterLockedError(ClusterStateError):
    """Raised when another controller holds the data directory lock."""

    def __init__(self, lock_path: str) -> None:
        self.lock_path = lock_path
        super().__init__(
            f"Another clusterctl command is running against this data directory "
            f"(lock held on {lock_path})."
        )


# ---------------------------------------------------------------------------
# External process failures
# ---------------------------------------------------------------------------


class ProcessProbeError(ClusterCtlError):
    """Raised when the liveness probe itself fails."""


class TerminationTimeout(ClusterCtlError):
    """Raised when a daemon does not exit within the stop timeout."""

    def __init__(self, daemon: str, pid: int, waited: float, cancelled: bool = False) -> None:
        self.daemon = daemon
        self.pid = pid
        self.waited = waited
        self.cancelled = cancelled
        reason = "stop was cancelled" if cancelled else f"still running after {waited:.1f}s"
        super().__init__(f"Daemon {daemon} (pid {pid}) did not terminate: {reason}")


class ReconfigurationFailed(ClusterCtlError):
    """Raised when the admin tool keeps failing after the full retry budget."""

    def __init__(self, operation: str, attempts: int, returncode: int | None) -> None:
        self.operation = operation
        self.attempts = attempts
        self.returncode = returncode
        super().__init__(
            f"{operation} failed after {attempts} attempt(s) "
            f"(last exit status: {returncode})"
        )
