"""Cluster lifecycle controller.

The controller sequences the other components for each command.  Its
only notion of cluster state is whether ``base_data_dir`` exists; which
nodes exist and which are live is re-read from disk and the process
table every time.

Usage
-----
::

    config = ClusterConfig.from_env(data_dir="/tmp/yb-data")
    topology = ClusterTopology.from_config(config, replication_factor=3)
    controller = ClusterController(config, topology)
    controller.run(ClusterCommand.CREATE)
    for node in controller.run(ClusterCommand.STATUS):
        print(node.daemon_id, node.live)
"""
from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from clusterctl.controller.commands import ClusterCommand
from clusterctl.controller.lock import DataDirLock
from clusterctl.core.config import ClusterConfig
from clusterctl.daemon.identity import DaemonId, DaemonRole
from clusterctl.errors import ClusterExistsError, ClusterNotFoundError
from clusterctl.reconfig.client import ReconfigMode, ReconfigurationClient
from clusterctl.resolver.masters import MasterAddressResolver
from clusterctl.supervisor.process import ProcessSupervisor
from clusterctl.topology.binaries import resolve_binary
from clusterctl.topology.model import (
    ClusterTopology,
    parse_role,
    validate_index,
    validate_placement_count,
)

logger = logging.getLogger(__name__)

_TSERVER_PROTOCOLS = ("redis", "cql", "pgsql")


@dataclass(frozen=True)
class NodeStatus:
    """Status line for one on-disk daemon."""

    daemon_id: DaemonId
    pid: int
    admin_endpoint: str
    endpoints: dict[str, str] = field(default_factory=dict)

    @property
    def live(self) -> bool:
        return self.pid != 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.daemon_id.role.value,
            "index": self.daemon_id.index,
            "address": self.daemon_id.address,
            "live": self.live,
            "pid": self.pid,
            "admin": self.admin_endpoint,
            "endpoints": dict(self.endpoints),
        }


class ClusterController:
    """Top-level command handler.

    Parameters
    ----------
    config:
        Process-wide settings.
    topology:
        Cluster settings for this invocation.
    supervisor, resolver, reconfig:
        Collaborators; built from ``config`` and ``topology`` when omitted.
    lock_factory:
        Returns the context manager held around mutating commands.
    cancel:
        Event that aborts any stop wait in progress.
    """

    def __init__(
        self,
        config: ClusterConfig,
        topology: ClusterTopology,
        supervisor: ProcessSupervisor | None = None,
        resolver: MasterAddressResolver | None = None,
        reconfig: ReconfigurationClient | None = None,
        lock_factory: Callable[[], Any] | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.topology = topology
        self.supervisor = supervisor or ProcessSupervisor(config, topology)
        self.resolver = resolver or MasterAddressResolver(topology, self.supervisor)
        self.reconfig = reconfig or ReconfigurationClient(config, topology)
        self._lock_factory = lock_factory or (lambda: DataDirLock(config.lock_path))
        self.cancel = cancel or threading.Event()
        self._handlers: dict[ClusterCommand, Callable[..., Any]] = {
            ClusterCommand.CREATE: self.create,
            ClusterCommand.START: self.start,
            ClusterCommand.STOP: self.stop,
            ClusterCommand.RESTART: self.restart,
            ClusterCommand.DESTROY: self.destroy,
            ClusterCommand.WIPE_RESTART: self.wipe_restart,
            ClusterCommand.ADD_NODE: self.add_node,
            ClusterCommand.REMOVE_NODE: self.remove_node,
            ClusterCommand.START_NODE: self.start_node,
            ClusterCommand.STOP_NODE: self.stop_node,
            ClusterCommand.RESTART_NODE: self.restart_node,
            ClusterCommand.STATUS: self.status,
            ClusterCommand.SETUP_REDIS: self.setup_redis,
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def run(self, command: ClusterCommand | str, **kwargs: Any) -> Any:
        """Run ``command``, holding the data directory lock if it mutates."""
        if isinstance(command, str):
            command = ClusterCommand.from_name(command)
        handler = self._handlers[command]
        logger.debug("Running %s with %s", command.value, kwargs)
        if not command.mutating:
            return handler(**kwargs)
        with self._lock_factory():
            return handler(**kwargs)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def cluster_exists(self) -> bool:
        return self.topology.exists

    def _require_cluster(self) -> None:
        if not self.cluster_exists:
            raise ClusterNotFoundError(str(self.topology.base_data_dir))

    def _check_binaries(self) -> None:
        for role in DaemonRole:
            resolve_binary(role.binary_name, self.topology.binary_search_paths)

    def _validate_startup(self, placement_limit: int, command: str) -> None:
        """Reject bad placement or missing binaries before anything changes."""
        validate_placement_count(self.topology.placement, placement_limit, command)
        self._check_binaries()

    def _daemon(self, role: DaemonRole | str, index: int) -> DaemonId:
        role = parse_role(role)
        validate_index(index, self.config.max_index)
        return DaemonId(role, index)

    def _stop_order(self) -> list[DaemonId]:
        known = self.topology.known_daemons()
        return [d for d in known if d.role is DaemonRole.TSERVER] + [
            d for d in known if d.role is DaemonRole.MASTER
        ]

    def _start_all(self, daemons: list[DaemonId]) -> None:
        for daemon_id in daemons:
            self.supervisor.start(daemon_id)

    def _stop_all(self, timeout: float | None) -> None:
        for daemon_id in self._stop_order():
            self.supervisor.stop(daemon_id, timeout=timeout, cancel=self.cancel)

    def node_counts(self) -> dict[DaemonRole, int]:
        """Number of on-disk nodes per role."""
        return {role: len(self.topology.node_indices(role)) for role in DaemonRole}

    # ------------------------------------------------------------------
    # Cluster commands
    # ------------------------------------------------------------------

    def create(self, num_masters: int | None = None, num_tservers: int | None = None) -> list[DaemonId]:
        """Create a new cluster and start its daemons.

        Raises
        ------
        ClusterExistsError
            If the data directory already exists.
        ValidationError
            On bad placement or missing binaries; nothing is created.
        """
        if self.cluster_exists:
            raise ClusterExistsError(str(self.topology.base_data_dir))
        self._validate_startup(self.topology.replication_factor, "create")
        self.resolver.resolve(on_create=True)
        return self._provision(num_masters, num_tservers)

    def _provision(self, num_masters: int | None, num_tservers: int | None) -> list[DaemonId]:
        """Lay out the data directory and start fresh daemons.

        Uses the master quorum already stored on the topology.
        """
        rf = self.topology.replication_factor
        num_masters = rf if num_masters is None else num_masters
        num_tservers = rf if num_tservers is None else num_tservers

        logger.info("Creating cluster in %s", self.topology.base_data_dir)
        self.topology.base_data_dir.mkdir(parents=True)

        started = [DaemonId(DaemonRole.MASTER, i) for i in range(1, num_masters + 1)]
        started += [DaemonId(DaemonRole.TSERVER, i) for i in range(1, num_tservers + 1)]
        for daemon_id in started:
            self.supervisor.start(daemon_id, creating=True)
        return started

    def start(self) -> list[DaemonId]:
        """Start every stopped node, or create the cluster if it is missing."""
        if not self.cluster_exists:
            return self.create()
        self._validate_startup(self.topology.replication_factor, "start")
        self.resolver.resolve()
        daemons = self.topology.known_daemons()
        self._start_all(daemons)
        return daemons

    def stop(self, timeout: float | None = None) -> None:
        self._stop_all(timeout)

    def destroy(self, timeout: float | None = None) -> None:
        """Stop every node and delete the data directory."""
        self._stop_all(timeout)
        if self.cluster_exists:
            logger.info("Removing %s", self.topology.base_data_dir)
            shutil.rmtree(self.topology.base_data_dir)
        else:
            logger.info("No cluster data at %s; nothing to remove", self.topology.base_data_dir)

    def restart(self, timeout: float | None = None) -> list[DaemonId]:
        self._require_cluster()
        self._validate_startup(self.topology.replication_factor, "restart")
        self.resolver.resolve()
        daemons = self.topology.known_daemons()
        self._stop_all(timeout)
        self._start_all(daemons)
        return daemons

    def wipe_restart(self, timeout: float | None = None) -> list[DaemonId]:
        """Destroy the cluster and recreate it with the same node counts.

        The master quorum is read from disk before the wipe, so masters
        added after creation are part of the recreated quorum.  Custom
        flags given when the cluster was first created are not
        remembered; only the flags of this invocation apply.
        """
        self._validate_startup(self.topology.replication_factor, "wipe_restart")
        counts = self.node_counts()
        if counts[DaemonRole.MASTER]:
            self.resolver.resolve()
        else:
            self.resolver.resolve(on_create=True)
        self.destroy(timeout=timeout)
        return self._provision(
            counts[DaemonRole.MASTER] or None,
            counts[DaemonRole.TSERVER] or None,
        )

    def setup_redis(self) -> None:
        self._require_cluster()
        self.resolver.resolve()
        self.reconfig.setup_redis_table()

    # ------------------------------------------------------------------
    # Node commands
    # ------------------------------------------------------------------

    def add_node(self, role: DaemonRole | str = DaemonRole.TSERVER) -> DaemonId:
        """Add and start one node of ``role`` at the next free index.

        A new master starts as a shell master and is then added to the
        quorum through the reconfiguration client.

        Raises
        ------
        ClusterNotFoundError
            If the cluster does not exist.
        ReconfigurationFailed
            If the new master could not be added to the quorum.
        """
        role = parse_role(role)
        self._require_cluster()
        self._validate_startup(1, "add_node")
        self.resolver.resolve(running_only=True)
        daemon_id = self._daemon(role, self.topology.next_index(role))

        self.topology.shell_master = role is DaemonRole.MASTER
        try:
            self.supervisor.start(daemon_id)
        finally:
            self.topology.shell_master = False

        if role is DaemonRole.MASTER:
            self.reconfig.change_master_config(ReconfigMode.ADD_SERVER, daemon_id)
        return daemon_id

    def remove_node(self, role: DaemonRole | str, index: int, timeout: float | None = None) -> bool:
        """Stop a node.  Masters are not removed from the quorum."""
        return self.stop_node(role, index, timeout=timeout)

    def stop_node(self, role: DaemonRole | str, index: int, timeout: float | None = None) -> bool:
        daemon_id = self._daemon(role, index)
        return self.supervisor.stop(daemon_id, timeout=timeout, cancel=self.cancel)

    def start_node(self, role: DaemonRole | str, index: int) -> int:
        daemon_id = self._daemon(role, index)
        self.resolver.resolve()
        return self.supervisor.start(daemon_id)

    def restart_node(self, role: DaemonRole | str, index: int, timeout: float | None = None) -> int:
        daemon_id = self._daemon(role, index)
        validate_placement_count(self.topology.placement, 1, "restart_node")
        self.supervisor.stop(daemon_id, timeout=timeout, cancel=self.cancel)
        self.resolver.resolve()
        return self.supervisor.start(daemon_id)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> list[NodeStatus]:
        """Report every on-disk daemon with its pid and endpoints."""
        statuses: list[NodeStatus] = []
        for daemon_id in self.topology.known_daemons():
            endpoints: dict[str, str] = {}
            if daemon_id.role is DaemonRole.TSERVER:
                endpoints = {p: daemon_id.endpoint(f"{p}_rpc") for p in _TSERVER_PROTOCOLS}
            statuses.append(
                NodeStatus(
                    daemon_id=daemon_id,
                    pid=self.supervisor.pid_of(daemon_id),
                    admin_endpoint=daemon_id.http_endpoint,
                    endpoints=endpoints,
                )
            )
        return statuses
