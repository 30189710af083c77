"""Locate server binaries on disk."""
from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from clusterctl.errors import BinaryNotFoundError

logger = logging.getLogger(__name__)


def resolve_binary(name: str, search_paths: Sequence[Path]) -> Path:
    """Return the first executable called ``name`` in ``search_paths``.

    Parameters
    ----------
    name:
        Executable file name, e.g. ``"yb-master"``.
    search_paths:
        Directories to probe, in priority order.

    Raises
    ------
    BinaryNotFoundError
        If no directory contains an executable regular file ``name``.
    """
    for directory in search_paths:
        candidate = Path(directory) / name
        if candidate.is_file() and os.access(candidate, os.X_OK):
            logger.debug("Resolved %s to %s", name, candidate)
            return candidate
    raise BinaryNotFoundError(name, [str(p) for p in search_paths])
