"""clusterctl: run a multi-node database cluster on local loopback addresses.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
::

    import clusterctl

    config = clusterctl.ClusterConfig.from_env(data_dir="/tmp/yb-data")
    topology = clusterctl.ClusterTopology.from_config(config, replication_factor=3)
    controller = clusterctl.ClusterController(config, topology)

    controller.run(clusterctl.ClusterCommand.CREATE)
    for node in controller.run(clusterctl.ClusterCommand.STATUS):
        print(node.daemon_id, node.live, node.admin_endpoint)

    clusterctl.__version__
    '0.1.0'
"""
from __future__ import annotations

__version__: str = "0.1.0"

from clusterctl.controller import ClusterCommand, ClusterController, DataDirLock, NodeStatus
from clusterctl.core.config import ClusterConfig
from clusterctl.daemon.identity import DaemonId, DaemonRole
from clusterctl.errors import (
    BinaryNotFoundError,
    ClusterCtlError,
    ClusterExistsError,
    ClusterLockedError,
    ClusterNotFoundError,
    ClusterStateError,
    PlacementError,
    ProcessProbeError,
    ReconfigurationFailed,
    TerminationTimeout,
    ValidationError,
)
from clusterctl.topology.model import ClusterTopology, PlacementInfo

__all__ = [
    "__version__",
    "BinaryNotFoundError",
    "ClusterCommand",
    "ClusterConfig",
    "ClusterController",
    "ClusterCtlError",
    "ClusterExistsError",
    "ClusterLockedError",
    "ClusterNotFoundError",
    "ClusterStateError",
    "ClusterTopology",
    "DaemonId",
    "DaemonRole",
    "DataDirLock",
    "NodeStatus",
    "PlacementError",
    "PlacementInfo",
    "ProcessProbeError",
    "ReconfigurationFailed",
    "TerminationTimeout",
    "ValidationError",
]
