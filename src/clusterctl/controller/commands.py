"""The closed set of controller commands."""
from __future__ import annotations

from enum import Enum

from clusterctl.errors import ValidationError


class ClusterCommand(Enum):
    """Commands understood by ``ClusterController.run``."""

    CREATE = "create"
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    DESTROY = "destroy"
    WIPE_RESTART = "wipe_restart"
    ADD_NODE = "add_node"
    REMOVE_NODE = "remove_node"
    START_NODE = "start_node"
    STOP_NODE = "stop_node"
    RESTART_NODE = "restart_node"
    STATUS = "status"
    SETUP_REDIS = "setup_redis"

    @property
    def mutating(self) -> bool:
        """True for every command that may change processes or directories."""
        return self is not ClusterCommand.STATUS

    @property
    def targets_node(self) -> bool:
        return self in _NODE_COMMANDS

    @property
    def starts_daemons(self) -> bool:
        """True for commands that accept startup options (placement, flags)."""
        return self in _STARTUP_COMMANDS

    @classmethod
    def from_name(cls, name: str) -> "ClusterCommand":
        """Look up a command by name; ``kebab-case`` is accepted too."""
        try:
            return cls(name.strip().lower().replace("-", "_"))
        except ValueError:
            raise ValidationError(
                f"Unknown command {name!r}; expected one of: "
                + ", ".join(c.value for c in cls)
            ) from None


_NODE_COMMANDS = frozenset(
    {
        ClusterCommand.ADD_NODE,
        ClusterCommand.REMOVE_NODE,
        ClusterCommand.START_NODE,
        ClusterCommand.STOP_NODE,
        ClusterCommand.RESTART_NODE,
    }
)

_STARTUP_COMMANDS = frozenset(
    {
        ClusterCommand.CREATE,
        ClusterCommand.START,
        ClusterCommand.RESTART,
        ClusterCommand.WIPE_RESTART,
        ClusterCommand.ADD_NODE,
        ClusterCommand.START_NODE,
        ClusterCommand.RESTART_NODE,
    }
)
