"""Reconfiguration client module."""
from __future__ import annotations

from clusterctl.reconfig.client import ReconfigMode, ReconfigurationClient, run_admin

__all__ = ["ReconfigMode", "ReconfigurationClient", "run_admin"]
