"""Compute the master quorum address list.

Provisioning mode is used while a cluster is being created: no master
exists yet, so the quorum is synthesised from indices
``1..replication_factor``.  Discovery mode reads the master nodes found
on disk and, with ``running_only``, keeps only those that are live.
"""
from __future__ import annotations

import logging

from clusterctl.daemon.identity import DaemonId, DaemonRole
from clusterctl.supervisor.process import ProcessSupervisor
from clusterctl.topology.model import ClusterTopology

logger = logging.getLogger(__name__)


class MasterAddressResolver:
    """Resolve master addresses and record them on the topology."""

    def __init__(self, topology: ClusterTopology, supervisor: ProcessSupervisor) -> None:
        self._topology = topology
        self._supervisor = supervisor

    def master_ids(self, on_create: bool = False, running_only: bool = False) -> list[DaemonId]:
        if on_create:
            indices = list(range(1, self._topology.replication_factor + 1))
        else:
            indices = self._topology.node_indices(DaemonRole.MASTER)
        masters = [DaemonId(DaemonRole.MASTER, i) for i in indices]
        if running_only and not on_create:
            masters = [m for m in masters if self._supervisor.is_live(m)]
        return masters

    def resolve(self, on_create: bool = False, running_only: bool = False) -> str:
        """Return the ``address:rpc_port`` list and store it on the topology.

        Parameters
        ----------
        on_create:
            Synthesise the quorum from the replication factor.
        running_only:
            In discovery mode, drop masters whose process is not live.
        """
        addresses = ",".join(
            m.rpc_endpoint for m in self.master_ids(on_create=on_create, running_only=running_only)
        )
        self._topology.master_quorum_addresses = addresses
        logger.debug(
            "Master quorum (on_create=%s, running_only=%s): %s",
            on_create,
            running_only,
            addresses or "(empty)",
        )
        return addresses
