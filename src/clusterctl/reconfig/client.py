"""Quorum reconfiguration through the external admin tool.

A master that has just been started is not ready for membership RPCs
straight away, so each change is retried up to ``reconfig_attempts``
times, ``reconfig_delay`` seconds apart.  Running out of attempts raises
``ReconfigurationFailed``; the caller decides whether that is fatal.
"""
from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable, Sequence
from enum import Enum

from clusterctl.core.config import ClusterConfig
from clusterctl.daemon.identity import DaemonId, DaemonRole, port
from clusterctl.errors import ReconfigurationFailed, ValidationError
from clusterctl.topology.binaries import resolve_binary
from clusterctl.topology.model import ClusterTopology

logger = logging.getLogger(__name__)

ADMIN_BINARY = "yb-admin"

Runner = Callable[[Sequence[str]], int]


class ReconfigMode(Enum):
    """Quorum membership change requested from the admin tool."""

    ADD_SERVER = "ADD_SERVER"
    REMOVE_SERVER = "REMOVE_SERVER"


def run_admin(argv: Sequence[str]) -> int:
    """Run the admin tool and return its exit status."""
    completed = subprocess.run(  # noqa: S603
        list(argv),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        check=False,
    )
    if completed.returncode != 0:
        logger.debug(
            "%s exited with %d: %s",
            argv[0],
            completed.returncode,
            completed.stderr.decode(errors="replace").strip(),
        )
    return completed.returncode


class ReconfigurationClient:
    """Invoke the admin tool against the current master quorum.

    Parameters
    ----------
    config:
        Supplies the retry budget and delay.
    topology:
        Supplies the quorum address list and binary search paths.
    runner:
        Executes an argument vector and returns its exit status.
    sleep:
        Delay function, replaceable in tests.
    """

    def __init__(
        self,
        config: ClusterConfig,
        topology: ClusterTopology,
        runner: Runner = run_admin,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._topology = topology
        self._runner = runner
        self._sleep = sleep

    def _base_argv(self) -> list[str]:
        admin = resolve_binary(ADMIN_BINARY, self._topology.binary_search_paths)
        return [str(admin), "--master_addresses", self._topology.master_quorum_addresses]

    def change_master_config(self, mode: ReconfigMode, daemon_id: DaemonId) -> int:
        """Add or remove ``daemon_id`` from the master quorum.

        Returns the number of attempts used.

        Raises
        ------
        ValidationError
            If ``daemon_id`` is not a master.
        ReconfigurationFailed
            If every attempt exits nonzero.
        """
        if daemon_id.role is not DaemonRole.MASTER:
            raise ValidationError(f"Only masters can change the quorum, got {daemon_id}")

        argv = self._base_argv() + [
            "change_master_config",
            mode.value,
            daemon_id.address,
            str(port(DaemonRole.MASTER, "rpc")),
        ]
        attempts = self._config.reconfig_attempts
        returncode: int | None = None
        for attempt in range(1, attempts + 1):
            returncode = self._runner(argv)
            if returncode == 0:
                logger.info("%s %s succeeded on attempt %d", mode.value, daemon_id, attempt)
                return attempt
            logger.debug(
                "%s %s attempt %d/%d failed with status %d",
                mode.value,
                daemon_id,
                attempt,
                attempts,
                returncode,
            )
            if attempt < attempts:
                self._sleep(self._config.reconfig_delay)
        raise ReconfigurationFailed(f"{mode.value} {daemon_id}", attempts, returncode)

    def setup_redis_table(self) -> None:
        """Create the system table backing the Redis-compatible API."""
        argv = self._base_argv() + ["setup_redis_table"]
        returncode = self._runner(argv)
        if returncode != 0:
            raise ReconfigurationFailed("setup_redis_table", 1, returncode)
        logger.info("Redis table set up")
