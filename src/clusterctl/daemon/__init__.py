"""Daemon identity module.

Exports ``DaemonRole``, ``DaemonId`` and the fixed per-role port table.
"""
from __future__ import annotations

from clusterctl.daemon.identity import PORTS, DaemonId, DaemonRole, address_for, port

__all__ = [
    "DaemonId",
    "DaemonRole",
    "PORTS",
    "address_for",
    "port",
]
