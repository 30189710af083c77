"""Build launch commands for server daemons.

Arguments are assembled in a fixed order: shared flags, role flags,
placement flags, then the user's extra flags.  The server's flag parser
keeps the last occurrence of a flag, so user flags override anything
computed here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from clusterctl.core.config import ClusterConfig
from clusterctl.daemon.identity import DaemonId, DaemonRole
from clusterctl.topology.binaries import resolve_binary
from clusterctl.topology.model import ClusterTopology

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaunchSpec:
    """Everything needed to start one daemon process.

    Parameters
    ----------
    daemon_id:
        The daemon this command launches.
    argv:
        Full argument vector, binary path first.
    stdout_path:
        File receiving the daemon's standard output.
    stderr_path:
        File receiving the daemon's standard error.
    """

    daemon_id: DaemonId
    argv: tuple[str, ...]
    stdout_path: Path
    stderr_path: Path

    @property
    def flags(self) -> tuple[str, ...]:
        return self.argv[1:]

    def flag_value(self, name: str) -> str | None:
        """Return the last value given for ``--name``, or ``None``."""
        prefix = f"--{name}="
        value: str | None = None
        for arg in self.argv[1:]:
            if arg.startswith(prefix):
                value = arg[len(prefix):]
            elif arg == f"--{name}":
                value = ""
        return value


class CommandComposer:
    """Compose ``LaunchSpec`` objects from the config and topology.

    Parameters
    ----------
    config:
        Process-wide settings (paths, telemetry toggle, memory ceiling).
    topology:
        Cluster settings for the current invocation.  Read on every call
        so that quorum changes made by the controller are picked up.
    """

    def __init__(self, config: ClusterConfig, topology: ClusterTopology) -> None:
        self._config = config
        self._topology = topology

    def compose(self, daemon_id: DaemonId) -> LaunchSpec:
        binary = resolve_binary(daemon_id.role.binary_name, self._topology.binary_search_paths)
        argv = [str(binary)]
        argv.extend(self.shared_flags(daemon_id))
        if daemon_id.role is DaemonRole.MASTER:
            argv.extend(self.master_flags(daemon_id))
        else:
            argv.extend(self.tserver_flags(daemon_id))
        argv.extend(self.placement_flags(daemon_id))
        argv.extend(self._topology.extra_flags(daemon_id.role))
        stdout_path, stderr_path = self._topology.log_paths(daemon_id)
        logger.debug("Composed %s: %s", daemon_id, " ".join(argv))
        return LaunchSpec(daemon_id, tuple(argv), stdout_path, stderr_path)

    def shared_flags(self, daemon_id: DaemonId) -> list[str]:
        topology = self._topology
        drives = ",".join(str(d) for d in topology.drive_dirs(daemon_id.index))
        flags = [
            f"--fs_data_dirs={drives}",
            f"--webserver_interface={daemon_id.address}",
            f"--rpc_bind_addresses={daemon_id.address}",
            f"--v={topology.verbosity_level}",
            f"--version_file_json_path={self._config.version_metadata_dir}",
        ]
        doc_root = self._config.web_doc_root
        if doc_root.is_dir():
            flags.append(f"--webserver_doc_root={doc_root}")
        if self._config.disable_callhome:
            flags.append("--callhome_enabled=false")
        if not topology.require_clock_sync:
            flags.append("--disable_clock_sync_error")
        return flags

    def master_flags(self, daemon_id: DaemonId) -> list[str]:
        topology = self._topology
        flags = [
            f"--replication_factor={topology.replication_factor}",
            f"--yb_num_shards_per_tserver={topology.shard_count_per_node}",
        ]
        if topology.shell_master:
            logger.debug("Starting %s as a shell master without a peer list", daemon_id)
        else:
            flags.append(f"--master_addresses={topology.master_quorum_addresses}")
        return flags

    def tserver_flags(self, daemon_id: DaemonId) -> list[str]:
        topology = self._topology
        address = daemon_id.address
        return [
            f"--tserver_master_addrs={topology.master_quorum_addresses}",
            f"--memory_limit_hard_bytes={self._config.memory_limit_bytes}",
            f"--yb_num_shards_per_tserver={topology.shard_count_per_node}",
            f"--redis_proxy_bind_address={address}",
            f"--cql_proxy_bind_address={address}",
            f"--pgsql_proxy_bind_address={address}",
            f"--local_ip_for_outbound_sockets={address}",
            f"--use_cassandra_authentication={str(topology.auth_enabled).lower()}",
        ]

    def placement_flags(self, daemon_id: DaemonId) -> list[str]:
        info = self._topology.placement_for(daemon_id.index)
        if info is None:
            return []
        return [
            f"--placement_cloud={info.cloud}",
            f"--placement_region={info.region}",
            f"--placement_zone={info.zone}",
        ]
