"""Start, stop and restart individual daemon processes.

Daemons are launched detached: the controller never waits for them and
they keep running after it exits.  Starting a live daemon or stopping a
stopped one is a logged no-op.
"""
from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections.abc import Callable

from clusterctl.composer.command import CommandComposer, LaunchSpec
from clusterctl.core.config import ClusterConfig
from clusterctl.daemon.identity import DaemonId
from clusterctl.errors import ClusterNotFoundError, TerminationTimeout
from clusterctl.supervisor.probe import ProcessProbe
from clusterctl.topology.model import ClusterTopology, validate_index

logger = logging.getLogger(__name__)

Launcher = Callable[[LaunchSpec], "subprocess.Popen[bytes]"]


def launch_detached(spec: LaunchSpec) -> "subprocess.Popen[bytes]":
    """Start ``spec`` in its own session with output sent to its log files."""
    spec.stdout_path.parent.mkdir(parents=True, exist_ok=True)
    with open(spec.stdout_path, "ab") as out, open(spec.stderr_path, "ab") as err:
        return subprocess.Popen(  # noqa: S603
            list(spec.argv),
            stdin=subprocess.DEVNULL,
            stdout=out,
            stderr=err,
            close_fds=True,
            start_new_session=True,
        )


class ProcessSupervisor:
    """Lifecycle operations on single daemons.

    Parameters
    ----------
    config:
        Process-wide settings (index limit, poll interval).
    topology:
        Cluster settings and on-disk layout.
    composer:
        Builds the launch command; defaults to a ``CommandComposer`` over
        ``config`` and ``topology``.
    probe:
        Liveness probe; defaults to a psutil-backed ``ProcessProbe``.
    launcher:
        Callable that starts a ``LaunchSpec``; defaults to ``launch_detached``.
    sleep, clock:
        Time sources, replaceable in tests.
    """

    def __init__(
        self,
        config: ClusterConfig,
        topology: ClusterTopology,
        composer: CommandComposer | None = None,
        probe: ProcessProbe | None = None,
        launcher: Launcher | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._topology = topology
        self._composer = composer or CommandComposer(config, topology)
        self._probe = probe or ProcessProbe()
        self._launcher = launcher or launch_detached
        self._sleep = sleep
        self._clock = clock
        self._children: dict[int, subprocess.Popen[bytes]] = {}

    def pid_of(self, daemon_id: DaemonId) -> int:
        """Return the live pid for ``daemon_id``, or 0."""
        return self._probe.find(daemon_id)

    def is_live(self, daemon_id: DaemonId) -> bool:
        return self.pid_of(daemon_id) != 0

    def start(self, daemon_id: DaemonId, creating: bool = False) -> int:
        """Start ``daemon_id`` unless it is already running; return its pid.

        Parameters
        ----------
        daemon_id:
            The daemon to start.
        creating:
            True while the cluster is being created, the only time the
            base data directory may be missing.

        Raises
        ------
        ValidationError
            If the index is out of range or a binary is missing.
        ClusterNotFoundError
            If the data directory does not exist and ``creating`` is False.
        """
        pid = self.pid_of(daemon_id)
        if pid:
            logger.info("%s is already running (pid %d)", daemon_id, pid)
            return pid

        validate_index(daemon_id.index, self._config.max_index)
        if not creating and not self._topology.exists:
            raise ClusterNotFoundError(str(self._topology.base_data_dir))

        for drive in self._topology.drive_dirs(daemon_id.index):
            drive.mkdir(parents=True, exist_ok=True)

        spec = self._composer.compose(daemon_id)
        proc = self._launcher(spec)
        self._children[proc.pid] = proc
        logger.info("Started %s on %s (pid %d)", daemon_id, daemon_id.address, proc.pid)
        return proc.pid

    def stop(
        self,
        daemon_id: DaemonId,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> bool:
        """Stop ``daemon_id`` and wait for it to exit.

        Returns ``False`` when the daemon was not running.

        Raises
        ------
        TerminationTimeout
            If ``timeout`` seconds pass, or ``cancel`` is set, before the
            process disappears.
        """
        pid = self.pid_of(daemon_id)
        if not pid:
            logger.info("%s is already stopped", daemon_id)
            return False

        logger.info("Stopping %s (pid %d)", daemon_id, pid)
        self._probe.terminate(pid)
        started = self._clock()
        while True:
            child = self._children.get(pid)
            if child is not None and child.poll() is not None:
                del self._children[pid]
            if not self.pid_of(daemon_id):
                break
            waited = self._clock() - started
            if cancel is not None and cancel.is_set():
                raise TerminationTimeout(str(daemon_id), pid, waited, cancelled=True)
            if timeout is not None and waited >= timeout:
                raise TerminationTimeout(str(daemon_id), pid, waited)
            self._sleep(self._config.stop_poll_interval)
        logger.info("Stopped %s", daemon_id)
        return True

    def restart(self, daemon_id: DaemonId, timeout: float | None = None) -> int:
        self.stop(daemon_id, timeout=timeout)
        return self.start(daemon_id)
