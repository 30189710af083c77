"""Command composer module."""
from __future__ import annotations

from clusterctl.composer.command import CommandComposer, LaunchSpec

__all__ = ["CommandComposer", "LaunchSpec"]
