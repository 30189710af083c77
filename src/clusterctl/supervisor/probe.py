"""Liveness probe: find the process serving a daemon.

A daemon is live when some running process was started from the role's
binary with ``--rpc_bind_addresses=<its loopback address>``.  That is the
only health check performed.
"""
from __future__ import annotations

import logging
from pathlib import PurePath

import psutil

from clusterctl.daemon.identity import DaemonId
from clusterctl.errors import ProcessProbeError

logger = logging.getLogger(__name__)


def matches_daemon(cmdline: list[str], daemon_id: DaemonId) -> bool:
    """Return True if ``cmdline`` belongs to the daemon ``daemon_id``."""
    if not cmdline:
        return False
    binary = daemon_id.role.binary_name
    if PurePath(cmdline[0]).name != binary and binary not in cmdline[0]:
        return False
    return f"--rpc_bind_addresses={daemon_id.address}" in cmdline[1:]


class ProcessProbe:
    """Look up and signal daemon processes through psutil."""

    def find(self, daemon_id: DaemonId) -> int:
        """Return the pid serving ``daemon_id``, or 0 if none is running.

        Raises
        ------
        ProcessProbeError
            If the process table cannot be read.
        """
        try:
            for proc in psutil.process_iter(["pid", "cmdline", "status"]):
                info = proc.info
                if info.get("status") == psutil.STATUS_ZOMBIE:
                    continue
                if matches_daemon(info.get("cmdline") or [], daemon_id):
                    return int(info["pid"])
        except psutil.Error as exc:
            raise ProcessProbeError(f"Liveness probe for {daemon_id} failed: {exc}") from exc
        return 0

    def terminate(self, pid: int) -> None:
        """Send SIGTERM to ``pid``; a process that is already gone is ignored."""
        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess:
            logger.debug("Process %d exited before it could be signalled", pid)
        except psutil.Error as exc:
            raise ProcessProbeError(f"Cannot signal process {pid}: {exc}") from exc
