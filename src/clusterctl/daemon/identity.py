"""Daemon identity and loopback addressing.

Each daemon is identified by its role and a 1-based index.  The index
alone decides the loopback address, so a master and a tserver with the
same index share ``127.0.0.<index>`` and are told apart by their ports.
Ports depend only on the role.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class DaemonRole(Enum):
    """The two kinds of server process in a cluster."""

    MASTER = "master"
    TSERVER = "tserver"

    @property
    def binary_name(self) -> str:
        """Name of the server executable for this role."""
        return f"yb-{self.value}"

    def __str__(self) -> str:
        return self.value


_MASTER_PORTS = MappingProxyType({"http": 7000, "rpc": 7100})
_TSERVER_PORTS = MappingProxyType(
    {
        "http": 9000,
        "rpc": 9100,
        "redis_rpc": 6379,
        "redis_http": 11000,
        "cql_rpc": 9042,
        "cql_http": 12000,
        "pgsql_rpc": 5433,
        "pgsql_http": 13000,
    }
)

PORTS: Mapping[DaemonRole, Mapping[str, int]] = MappingProxyType(
    {DaemonRole.MASTER: _MASTER_PORTS, DaemonRole.TSERVER: _TSERVER_PORTS}
)


def port(role: DaemonRole, name: str) -> int:
    """Return the named port for ``role``.

    Raises
    ------
    KeyError
        If ``role`` has no endpoint called ``name``.
    """
    return PORTS[role][name]


def address_for(index: int) -> str:
    """Return the loopback address for a node index."""
    return f"127.0.0.{index}"


@dataclass(frozen=True, order=True)
class DaemonId:
    """Immutable ``(role, index)`` pair naming one daemon.

    Parameters
    ----------
    role:
        Master or tserver.
    index:
        1-based node index; also the last octet of the loopback address.
    """

    role: DaemonRole
    index: int

    def __post_init__(self) -> None:
        if not isinstance(self.role, DaemonRole):
            raise TypeError(f"role must be a DaemonRole, got {self.role!r}")
        if self.index < 1:
            raise ValueError(f"daemon index must be >= 1, got {self.index}")

    @property
    def address(self) -> str:
        return address_for(self.index)

    @property
    def ports(self) -> Mapping[str, int]:
        return PORTS[self.role]

    def endpoint(self, name: str) -> str:
        """Return ``address:port`` for the named endpoint."""
        return f"{self.address}:{port(self.role, name)}"

    @property
    def rpc_endpoint(self) -> str:
        return self.endpoint("rpc")

    @property
    def http_endpoint(self) -> str:
        return self.endpoint("http")

    def __str__(self) -> str:
        return f"{self.role.value}-{self.index}"
