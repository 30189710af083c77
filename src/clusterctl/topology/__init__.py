"""Cluster topology module.

Exports ``ClusterTopology``, ``PlacementInfo``, the input parsers and
``resolve_binary``.
"""
from __future__ import annotations

from clusterctl.topology.binaries import resolve_binary
from clusterctl.topology.model import (
    ClusterTopology,
    PlacementInfo,
    parse_extra_flags,
    parse_placement,
    parse_role,
    validate_index,
    validate_placement_count,
)

__all__ = [
    "ClusterTopology",
    "PlacementInfo",
    "parse_extra_flags",
    "parse_placement",
    "parse_role",
    "resolve_binary",
    "validate_index",
    "validate_placement_count",
]
