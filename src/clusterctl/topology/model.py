"""Cluster topology: cluster-wide settings and the on-disk node layout.

``ClusterTopology`` is rebuilt for every controller invocation.  Nothing
in it is persisted; which nodes exist is always re-read from the
directory tree under ``base_data_dir``::

    <base_data_dir>/node-<index>/disk-<n>/yb-data/<role>

The ``yb-data/<role>`` subdirectories are created by the server binary,
not by the controller.  A node started by this controller is also
recognised by its ``<role>.out`` log file on the first drive, so it is
known before the binary has written anything.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from clusterctl.core.config import ClusterConfig
from clusterctl.daemon.identity import DaemonId, DaemonRole
from clusterctl.errors import PlacementError, ValidationError

logger = logging.getLogger(__name__)

_NODE_DIR_RE = re.compile(r"^node-(\d+)$")


@dataclass(frozen=True)
class PlacementInfo:
    """A ``(cloud, region, zone)`` label for one node."""

    cloud: str
    region: str
    zone: str

    def __str__(self) -> str:
        return f"{self.cloud}.{self.region}.{self.zone}"


# ---------------------------------------------------------------------------
# Input parsing and validation
# ---------------------------------------------------------------------------


def parse_role(value: str | DaemonRole) -> DaemonRole:
    """Return the ``DaemonRole`` named by ``value``.

    Raises
    ------
    ValidationError
        If ``value`` names neither role.
    """
    if isinstance(value, DaemonRole):
        return value
    try:
        return DaemonRole(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown daemon role {value!r}; expected one of: "
            + ", ".join(r.value for r in DaemonRole)
        ) from None


def validate_index(index: int, max_index: int) -> int:
    """Return ``index`` if it lies in ``[1, max_index]``."""
    if not 1 <= index <= max_index:
        raise ValidationError(f"Node index {index} is out of range [1, {max_index}]")
    return index


def parse_placement(text: str | None) -> tuple[PlacementInfo, ...]:
    """Parse ``cloud.region.zone[,cloud.region.zone...]``.

    Empty or ``None`` input yields an empty tuple.

    Raises
    ------
    PlacementError
        If any entry does not have exactly three non-empty components.
    """
    if not text or not text.strip():
        return ()
    entries: list[PlacementInfo] = []
    for raw in text.split(","):
        entry = raw.strip()
        parts = entry.split(".")
        if len(parts) != 3 or not all(p.strip() for p in parts):
            raise PlacementError(entry)
        entries.append(PlacementInfo(*(p.strip() for p in parts)))
    return tuple(entries)


def parse_extra_flags(text: str | None) -> list[str]:
    """Parse ``key=value[,key=value...]`` into ``--key=value`` arguments."""
    if not text or not text.strip():
        return []
    flags: list[str] = []
    for raw in text.split(","):
        item = raw.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        key = key.strip().lstrip("-")
        if not sep or not key:
            raise ValidationError(f"Invalid flag {item!r}: expected 'key=value'")
        flags.append(f"--{key}={value.strip()}")
    return flags


def validate_placement_count(placement: tuple[PlacementInfo, ...], limit: int, what: str) -> None:
    """Reject more than ``limit`` placement entries for ``what``."""
    if len(placement) > limit:
        raise ValidationError(
            f"Too many placement entries for {what}: got {len(placement)}, at most {limit} allowed"
        )


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------


@dataclass
class ClusterTopology:
    """Cluster-wide settings owned by the controller for one invocation.

    ``master_quorum_addresses`` and ``shell_master`` are rewritten while
    commands run; everything else is fixed once built.
    """

    base_data_dir: Path
    binary_search_paths: list[Path]
    replication_factor: int = 3
    shard_count_per_node: int = 2
    num_drives: int = 2
    placement: tuple[PlacementInfo, ...] = ()
    master_extra_flags: list[str] = field(default_factory=list)
    tserver_extra_flags: list[str] = field(default_factory=list)
    verbosity_level: int = 0
    auth_enabled: bool = False
    require_clock_sync: bool = False
    master_quorum_addresses: str = ""
    shell_master: bool = False

    def __post_init__(self) -> None:
        if self.replication_factor < 1:
            raise ValidationError(
                f"Replication factor must be at least 1, got {self.replication_factor}"
            )
        if self.shard_count_per_node < 1:
            raise ValidationError(
                f"Shard count per node must be at least 1, got {self.shard_count_per_node}"
            )
        if not 0 <= self.verbosity_level <= 4:
            raise ValidationError(
                f"Verbosity level must be between 0 and 4, got {self.verbosity_level}"
            )

    @classmethod
    def from_config(cls, config: ClusterConfig, **settings: object) -> "ClusterTopology":
        """Build a topology whose paths come from ``config``."""
        return cls(
            base_data_dir=config.data_dir,
            binary_search_paths=list(config.binary_search_paths),
            num_drives=config.num_drives,
            **settings,  # type: ignore[arg-type]
        )

    def extra_flags(self, role: DaemonRole) -> list[str]:
        if role is DaemonRole.MASTER:
            return list(self.master_extra_flags)
        return list(self.tserver_extra_flags)

    def placement_for(self, index: int) -> PlacementInfo | None:
        """Round-robin placement entry for a node index, or ``None``."""
        if not self.placement:
            return None
        return self.placement[(index - 1) % len(self.placement)]

    # ------------------------------------------------------------------
    # On-disk layout
    # ------------------------------------------------------------------

    @property
    def exists(self) -> bool:
        return self.base_data_dir.is_dir()

    def node_dir(self, index: int) -> Path:
        return self.base_data_dir / f"node-{index}"

    def drive_dirs(self, index: int) -> list[Path]:
        node = self.node_dir(index)
        return [node / f"disk-{n}" for n in range(1, self.num_drives + 1)]

    def log_paths(self, daemon_id: DaemonId) -> tuple[Path, Path]:
        """``(stdout, stderr)`` log files on the node's first drive."""
        first = self.drive_dirs(daemon_id.index)[0]
        role = daemon_id.role.value
        return first / f"{role}.out", first / f"{role}.err"

    def has_node(self, daemon_id: DaemonId) -> bool:
        """Return True if the node for ``daemon_id`` exists on disk."""
        first = self.drive_dirs(daemon_id.index)[0]
        if (first / "yb-data" / daemon_id.role.value).is_dir():
            return True
        return self.log_paths(daemon_id)[0].exists()

    def node_indices(self, role: DaemonRole) -> list[int]:
        """Sorted indices of every on-disk node of ``role``."""
        if not self.exists:
            return []
        indices: list[int] = []
        for child in self.base_data_dir.iterdir():
            match = _NODE_DIR_RE.match(child.name)
            if match is None or not child.is_dir():
                continue
            index = int(match.group(1))
            if index >= 1 and self.has_node(DaemonId(role, index)):
                indices.append(index)
        indices.sort()
        logger.debug("Found %d %s node(s) on disk: %s", len(indices), role, indices)
        return indices

    def known_daemons(self) -> list[DaemonId]:
        """Every on-disk daemon, masters first."""
        return [
            DaemonId(role, index)
            for role in (DaemonRole.MASTER, DaemonRole.TSERVER)
            for index in self.node_indices(role)
        ]

    def next_index(self, role: DaemonRole) -> int:
        """Next unused index for ``role``."""
        return max(self.node_indices(role), default=0) + 1
