"""Process supervisor module."""
from __future__ import annotations

from clusterctl.supervisor.probe import ProcessProbe, matches_daemon
from clusterctl.supervisor.process import ProcessSupervisor, launch_detached

__all__ = [
    "ProcessProbe",
    "ProcessSupervisor",
    "launch_detached",
    "matches_daemon",
]
