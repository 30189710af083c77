"""Master address resolver module."""
from __future__ import annotations

from clusterctl.resolver.masters import MasterAddressResolver

__all__ = ["MasterAddressResolver"]
