"""Cluster lifecycle controller module.

Exports ``ClusterController``, the ``ClusterCommand`` enum, ``NodeStatus``
and the ``DataDirLock`` held around mutating commands.
"""
from __future__ import annotations

from clusterctl.controller.commands import ClusterCommand
from clusterctl.controller.controller import ClusterController, NodeStatus
from clusterctl.controller.lock import DataDirLock

__all__ = [
    "ClusterCommand",
    "ClusterController",
    "DataDirLock",
    "NodeStatus",
]
