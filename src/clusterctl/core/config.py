"""Process-wide configuration for clusterctl.

``ClusterConfig`` is built once at startup and handed to every component.
It is the only place that reads the environment or inspects where the
controller is installed; component code only sees the resulting fields.

Usage
-----
::

    config = ClusterConfig.from_env(data_dir="/tmp/yb-data")
    controller = ClusterController(config, topology)
"""
from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

DEFAULT_DATA_DIR = Path("~/yugabyte-data").expanduser()
DEFAULT_BUILD_TYPE = "latest"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _controller_dir() -> Path:
    """Directory containing the running controller executable."""
    return Path(sys.argv[0] or ".").resolve().parent


@dataclass(frozen=True)
class ClusterConfig:
    """Immutable settings shared by every component.

    Parameters
    ----------
    data_dir:
        Base directory holding one ``node-<index>`` subdirectory per node.
    binary_dir:
        Custom directory holding the server binaries.  When set it is the
        only directory probed.
    controller_dir:
        Directory of the controller itself; probed first when no custom
        binary directory is given.
    project_root:
        Root of the installation; its ``build/<build_type>/bin`` is the
        fallback binary directory and it also holds version metadata and
        the web doc root.
    build_type:
        Build output flavour selecting the fallback binary directory.
    disable_callhome:
        Pass ``--callhome_enabled=false`` to every daemon.
    num_drives:
        Number of simulated drives per node.
    max_index:
        Largest node index accepted by per-node commands.
    memory_limit_bytes:
        Hard memory ceiling passed to every tserver.
    stop_poll_interval:
        Seconds between liveness probes while waiting for a daemon to exit.
    reconfig_attempts:
        Attempts made by the reconfiguration client before giving up.
    reconfig_delay:
        Seconds between reconfiguration attempts.
    """

    data_dir: Path = DEFAULT_DATA_DIR
    binary_dir: Path | None = None
    controller_dir: Path = field(default_factory=_controller_dir)
    project_root: Path | None = None
    build_type: str = DEFAULT_BUILD_TYPE
    disable_callhome: bool = False
    num_drives: int = 2
    max_index: int = 20
    memory_limit_bytes: int = 1 << 30
    stop_poll_interval: float = 0.5
    reconfig_attempts: int = 20
    reconfig_delay: float = 1.0

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> "ClusterConfig":
        """Build a config from environment variables plus explicit overrides.

        Recognised variables are ``YB_DISABLE_CALLHOME`` (truthy values
        disable telemetry) and ``YB_BUILD_TYPE`` (fallback build directory
        name).  Keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {
            "disable_callhome": env.get("YB_DISABLE_CALLHOME", "").strip().lower() in _TRUTHY,
            "build_type": env.get("YB_BUILD_TYPE") or DEFAULT_BUILD_TYPE,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        for key in ("data_dir", "binary_dir", "controller_dir", "project_root"):
            if isinstance(values.get(key), str):
                values[key] = Path(str(values[key])).expanduser()
        return cls(**values)  # type: ignore[arg-type]

    def with_overrides(self, **changes: object) -> "ClusterConfig":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)  # type: ignore[arg-type]

    @property
    def root(self) -> Path:
        """Installation root, defaulting to the parent of ``controller_dir``."""
        return self.project_root if self.project_root is not None else self.controller_dir.parent

    @property
    def binary_search_paths(self) -> list[Path]:
        """Ordered directories probed for server binaries."""
        if self.binary_dir is not None:
            return [self.binary_dir]
        return [self.controller_dir, self.root / "build" / self.build_type / "bin"]

    @property
    def web_doc_root(self) -> Path:
        return self.root / "www"

    @property
    def version_metadata_dir(self) -> Path:
        return self.root

    @property
    def lock_path(self) -> Path:
        """Advisory lock file, kept beside the data directory."""
        data_dir = self.data_dir
        return data_dir.parent / f".{data_dir.name}.lock"
