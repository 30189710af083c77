"""Core configuration.

Submodules in core/ should not import from controller/ or cli/.
"""
from __future__ import annotations

from clusterctl.core.config import DEFAULT_DATA_DIR, ClusterConfig

__all__ = ["ClusterConfig", "DEFAULT_DATA_DIR"]
