"""Shared test fixtures for clusterctl.

Fixtures defined here are available to all tests in the suite without
needing an explicit import.  No real server process is ever started:
``FakeProcessTable`` stands in for both the liveness probe and the
process launcher.
"""
from __future__ import annotations

import itertools
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from clusterctl.composer.command import LaunchSpec
from clusterctl.controller import ClusterController
from clusterctl.core.config import ClusterConfig
from clusterctl.daemon.identity import DaemonId
from clusterctl.reconfig.client import ReconfigurationClient
from clusterctl.supervisor.process import ProcessSupervisor
from clusterctl.topology.model import ClusterTopology

BINARIES = ("yb-master", "yb-tserver", "yb-admin")


class FakeChild:
    """Minimal ``Popen`` stand-in."""

    def __init__(self, pid: int) -> None:
        self.pid = pid
        self.returncode: int | None = None

    def poll(self) -> int | None:
        return self.returncode


class FakeProcessTable:
    """In-memory process table acting as probe and launcher.

    ``stubborn`` holds pids that ignore SIGTERM.
    """

    def __init__(self) -> None:
        self.running: dict[DaemonId, int] = {}
        self.launched: list[LaunchSpec] = []
        self.terminated: list[int] = []
        self.stubborn: set[int] = set()
        self.children: dict[int, FakeChild] = {}
        self._pids = itertools.count(1000)

    # probe interface
    def find(self, daemon_id: DaemonId) -> int:
        return self.running.get(daemon_id, 0)

    def terminate(self, pid: int) -> None:
        self.terminated.append(pid)
        if pid in self.stubborn:
            return
        for daemon_id, running_pid in list(self.running.items()):
            if running_pid == pid:
                del self.running[daemon_id]
        if pid in self.children:
            self.children[pid].returncode = 0

    # launcher interface
    def launch(self, spec: LaunchSpec) -> FakeChild:
        spec.stdout_path.parent.mkdir(parents=True, exist_ok=True)
        spec.stdout_path.touch()
        spec.stderr_path.touch()
        pid = next(self._pids)
        self.running[spec.daemon_id] = pid
        self.launched.append(spec)
        child = FakeChild(pid)
        self.children[pid] = child
        return child

    def kill(self, daemon_id: DaemonId) -> None:
        """Simulate a crash: the process disappears without a stop."""
        self.running.pop(daemon_id, None)


class FakeAdmin:
    """Records admin-tool invocations and returns scripted exit codes."""

    def __init__(self, returncodes: Sequence[int] = (0,)) -> None:
        self.calls: list[list[str]] = []
        self.returncodes = list(returncodes)

    def __call__(self, argv: Sequence[str]) -> int:
        self.calls.append(list(argv))
        if len(self.returncodes) > 1:
            return self.returncodes.pop(0)
        return self.returncodes[0]


@pytest.fixture()
def package_name() -> str:
    """Return the importable package name for assertions."""
    return "clusterctl"


@pytest.fixture()
def expected_version() -> str:
    """Return the current expected version string."""
    return "0.1.0"


@pytest.fixture()
def bin_dir(tmp_path: Path) -> Path:
    """Directory holding executable placeholder server binaries."""
    directory = tmp_path / "bin"
    directory.mkdir()
    for name in BINARIES:
        binary = directory / name
        binary.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
        binary.chmod(0o755)
    return directory


@pytest.fixture()
def config(tmp_path: Path, bin_dir: Path) -> ClusterConfig:
    return ClusterConfig(
        data_dir=tmp_path / "data",
        binary_dir=bin_dir,
        controller_dir=tmp_path / "root" / "bin",
        project_root=tmp_path / "root",
        stop_poll_interval=0.0,
        reconfig_delay=0.0,
    )


@pytest.fixture()
def processes() -> FakeProcessTable:
    return FakeProcessTable()


@pytest.fixture()
def admin() -> FakeAdmin:
    return FakeAdmin()


@pytest.fixture()
def make_controller(
    config: ClusterConfig, processes: FakeProcessTable, admin: FakeAdmin
) -> Callable[..., ClusterController]:
    """Factory building a controller wired to the fake process table."""

    def factory(**settings: Any) -> ClusterController:
        topology = ClusterTopology.from_config(config, **settings)
        supervisor = ProcessSupervisor(
            config,
            topology,
            probe=processes,  # type: ignore[arg-type]
            launcher=processes.launch,  # type: ignore[arg-type]
            sleep=lambda _seconds: None,
        )
        reconfig = ReconfigurationClient(
            config, topology, runner=admin, sleep=lambda _seconds: None
        )
        return ClusterController(config, topology, supervisor=supervisor, reconfig=reconfig)

    return factory


@pytest.fixture()
def make_admin() -> Callable[..., FakeAdmin]:
    """Factory for admin-tool fakes with scripted exit codes."""
    return FakeAdmin
