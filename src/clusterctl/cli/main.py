"""CLI entry point for clusterctl.

Invoked as::

    clusterctl [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m clusterctl.cli.main

Commands
--------
create          Create a new cluster and start it
start           Start a stopped cluster (creates it if missing)
stop            Stop every node
restart         Stop and start every node
destroy         Stop every node and delete the data directory
wipe_restart    Destroy and recreate with the same node counts
add_node        Add one master or tserver
remove_node     Stop one node
start_node      Start one node
stop_node       Stop one node
restart_node    Restart one node
status          Show every node with its endpoints
setup_redis     Create the Redis system table

Command names may also be written in kebab-case (``wipe-restart``).
"""
from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from typing import Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from clusterctl.controller import ClusterCommand, ClusterController, NodeStatus
from clusterctl.core.config import DEFAULT_DATA_DIR, ClusterConfig
from clusterctl.daemon.identity import DaemonRole
from clusterctl.errors import ClusterCtlError, ClusterStateError
from clusterctl.topology.model import ClusterTopology, parse_extra_flags, parse_placement

console = Console()
err_console = Console(stderr=True)

_ROLE_CHOICE = click.Choice([r.value for r in DaemonRole], case_sensitive=False)


def _configure_logging(level: str) -> None:
    """Send ``clusterctl`` log records to stderr through Rich."""
    logger = logging.getLogger("clusterctl")
    logger.handlers.clear()
    handler = RichHandler(console=err_console, show_path=False, show_time=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False


def _build_controller(ctx: click.Context, startup: dict[str, Any]) -> ClusterController:
    settings: dict[str, Any] = ctx.obj
    config = ClusterConfig.from_env(
        data_dir=settings["data_dir"],
        binary_dir=settings["binary_dir"],
    )
    topology = ClusterTopology.from_config(
        config,
        replication_factor=settings["replication_factor"],
        shard_count_per_node=settings["num_shards_per_tserver"],
        require_clock_sync=settings["require_clock_sync"],
        placement=parse_placement(startup.get("placement_info")),
        verbosity_level=startup.get("verbose_level", 0),
        auth_enabled=startup.get("use_cassandra_authentication", False),
        master_extra_flags=parse_extra_flags(startup.get("master_flags")),
        tserver_extra_flags=parse_extra_flags(startup.get("tserver_flags")),
    )
    return ClusterController(config, topology)


def _execute(
    ctx: click.Context,
    command: ClusterCommand,
    startup: dict[str, Any] | None = None,
    **kwargs: Any,
) -> Any:
    """Run ``command``, turning clusterctl errors into a message and exit 1.

    Ctrl-C sets the controller's cancel event and exits with status 130.
    """
    controller: ClusterController | None = None
    try:
        controller = _build_controller(ctx, startup or {})
        return controller.run(command, **kwargs)
    except KeyboardInterrupt:
        if controller is not None:
            controller.cancel.set()
        err_console.print(
            f"[yellow]Interrupted:[/yellow] {command.value} did not finish; "
            "run 'status' to check the cluster"
        )
        sys.exit(130)
    except ClusterStateError as exc:
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        sys.exit(1)
    except ClusterCtlError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(1)


def _startup_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that launches daemons."""
    options = [
        click.option(
            "--placement-info",
            default=None,
            help="Comma-separated cloud.region.zone entries, assigned round-robin",
        ),
        click.option(
            "--verbose-level",
            type=click.IntRange(0, 4),
            default=0,
            show_default=True,
            help="Server log verbosity",
        ),
        click.option(
            "--use-cassandra-authentication",
            is_flag=True,
            default=False,
            help="Require authentication on the CQL endpoint",
        ),
        click.option("--master-flags", default=None, help="Extra master flags: key=value[,key=value]"),
        click.option("--tserver-flags", default=None, help="Extra tserver flags: key=value[,key=value]"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _timeout_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--timeout",
        type=click.FloatRange(min=0),
        default=None,
        help="Seconds to wait for each daemon to exit (default: wait forever)",
    )(func)


def _print_status(statuses: list[NodeStatus], output_format: str) -> None:
    if output_format == "json":
        click.echo(json.dumps([s.to_dict() for s in statuses], indent=2))
        return
    if output_format == "yaml":
        click.echo(yaml.safe_dump([s.to_dict() for s in statuses], sort_keys=False), nl=False)
        return

    table = Table(title="Cluster status")
    table.add_column("Node", style="bold", no_wrap=True)
    table.add_column("Status")
    table.add_column("PID", justify="right")
    table.add_column("Admin")
    table.add_column("Endpoints")
    for status in statuses:
        state = "[green]running[/green]" if status.live else "[red]stopped[/red]"
        endpoints = "\n".join(f"{name}: {addr}" for name, addr in status.endpoints.items())
        table.add_row(
            str(status.daemon_id),
            state,
            str(status.pid) if status.live else "-",
            status.admin_endpoint,
            endpoints,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


class _CommandGroup(click.Group):
    """Group that accepts ``kebab-case`` spellings of command names."""

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        return super().get_command(ctx, cmd_name.replace("-", "_"))


@click.group(cls=_CommandGroup)
@click.version_option(package_name="clusterctl")
@click.option(
    "--replication-factor",
    "--rf",
    "replication_factor",
    type=click.IntRange(min=1),
    default=3,
    show_default=True,
    help="Number of masters and initial tservers",
)
@click.option("--binary-dir", default=None, help="Directory containing the server binaries")
@click.option(
    "--data-dir",
    default=str(DEFAULT_DATA_DIR),
    show_default=True,
    help="Base directory for node data",
)
@click.option(
    "--require-clock-sync",
    is_flag=True,
    default=False,
    help="Fail daemon startup when the system clock is not synchronised",
)
@click.option(
    "--num-shards-per-tserver",
    type=click.IntRange(min=1),
    default=2,
    show_default=True,
    help="Shards per table per tserver",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
@click.pass_context
def cli(
    ctx: click.Context,
    replication_factor: int,
    binary_dir: str | None,
    data_dir: str,
    require_clock_sync: bool,
    num_shards_per_tserver: int,
    log_level: str,
) -> None:
    """Create and manage a multi-node cluster on local loopback addresses."""
    _configure_logging(log_level)
    ctx.obj = {
        "replication_factor": replication_factor,
        "binary_dir": binary_dir,
        "data_dir": data_dir,
        "require_clock_sync": require_clock_sync,
        "num_shards_per_tserver": num_shards_per_tserver,
    }


# ---------------------------------------------------------------------------
# Cluster commands
# ---------------------------------------------------------------------------


@cli.command(name="create")
@_startup_options
@click.pass_context
def create_command(ctx: click.Context, **startup: Any) -> None:
    """Create a new cluster and start replication-factor masters and tservers."""
    started = _execute(ctx, ClusterCommand.CREATE, startup)
    console.print(f"[green]Created[/green] cluster with {len(started)} daemon(s)")


@cli.command(name="start")
@_startup_options
@click.pass_context
def start_command(ctx: click.Context, **startup: Any) -> None:
    """Start every stopped node; create the cluster if it does not exist."""
    started = _execute(ctx, ClusterCommand.START, startup)
    console.print(f"[green]Started[/green] {len(started)} daemon(s)")


@cli.command(name="stop")
@_timeout_option
@click.pass_context
def stop_command(ctx: click.Context, timeout: float | None) -> None:
    """Stop every node, keeping its data."""
    _execute(ctx, ClusterCommand.STOP, timeout=timeout)
    console.print("[green]Stopped[/green] cluster")


@cli.command(name="restart")
@_startup_options
@_timeout_option
@click.pass_context
def restart_command(ctx: click.Context, timeout: float | None, **startup: Any) -> None:
    """Stop and start every node."""
    _execute(ctx, ClusterCommand.RESTART, startup, timeout=timeout)
    console.print("[green]Restarted[/green] cluster")


@cli.command(name="destroy")
@_timeout_option
@click.pass_context
def destroy_command(ctx: click.Context, timeout: float | None) -> None:
    """Stop every node and delete the data directory."""
    _execute(ctx, ClusterCommand.DESTROY, timeout=timeout)
    console.print("[green]Destroyed[/green] cluster")


@cli.command(name="wipe_restart")
@_startup_options
@_timeout_option
@click.pass_context
def wipe_restart_command(ctx: click.Context, timeout: float | None, **startup: Any) -> None:
    """Destroy the cluster and recreate it with the same node counts.

    Flags given when the cluster was first created are not remembered.
    """
    started = _execute(ctx, ClusterCommand.WIPE_RESTART, startup, timeout=timeout)
    console.print(f"[green]Recreated[/green] cluster with {len(started)} daemon(s)")


@cli.command(name="setup_redis")
@click.pass_context
def setup_redis_command(ctx: click.Context) -> None:
    """Create the system table used by the Redis-compatible API."""
    _execute(ctx, ClusterCommand.SETUP_REDIS)
    console.print("[green]Redis table ready[/green]")


@cli.command(name="status")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "yaml"], case_sensitive=False),
    default="table",
    help="Output format",
)
@click.pass_context
def status_command(ctx: click.Context, output_format: str) -> None:
    """Show every node, whether it is running, and its endpoints."""
    statuses = _execute(ctx, ClusterCommand.STATUS)
    if not statuses and output_format.lower() == "table":
        console.print(f"No cluster nodes found in {ctx.obj['data_dir']}")
        return
    _print_status(statuses, output_format.lower())


# ---------------------------------------------------------------------------
# Node commands
# ---------------------------------------------------------------------------


@cli.command(name="add_node")
@click.argument("role", type=_ROLE_CHOICE, default="tserver")
@_startup_options
@click.pass_context
def add_node_command(ctx: click.Context, role: str, **startup: Any) -> None:
    """Add one node of ROLE (master or tserver) at the next free index."""
    daemon_id = _execute(ctx, ClusterCommand.ADD_NODE, startup, role=role)
    console.print(f"[green]Added[/green] {daemon_id} on {daemon_id.address}")


@cli.command(name="remove_node")
@click.argument("role", type=_ROLE_CHOICE)
@click.argument("index", type=int)
@_timeout_option
@click.pass_context
def remove_node_command(ctx: click.Context, role: str, index: int, timeout: float | None) -> None:
    """Stop node INDEX of ROLE.  Masters are not removed from the quorum."""
    _execute(ctx, ClusterCommand.REMOVE_NODE, role=role, index=index, timeout=timeout)
    console.print(f"[green]Removed[/green] {role}-{index}")


@cli.command(name="start_node")
@click.argument("role", type=_ROLE_CHOICE)
@click.argument("index", type=int)
@_startup_options
@click.pass_context
def start_node_command(ctx: click.Context, role: str, index: int, **startup: Any) -> None:
    """Start node INDEX of ROLE."""
    pid = _execute(ctx, ClusterCommand.START_NODE, startup, role=role, index=index)
    console.print(f"[green]Started[/green] {role}-{index} (pid {pid})")


@cli.command(name="stop_node")
@click.argument("role", type=_ROLE_CHOICE)
@click.argument("index", type=int)
@_timeout_option
@click.pass_context
def stop_node_command(ctx: click.Context, role: str, index: int, timeout: float | None) -> None:
    """Stop node INDEX of ROLE."""
    _execute(ctx, ClusterCommand.STOP_NODE, role=role, index=index, timeout=timeout)
    console.print(f"[green]Stopped[/green] {role}-{index}")


@cli.command(name="restart_node")
@click.argument("role", type=_ROLE_CHOICE)
@click.argument("index", type=int)
@_startup_options
@_timeout_option
@click.pass_context
def restart_node_command(
    ctx: click.Context, role: str, index: int, timeout: float | None, **startup: Any
) -> None:
    """Restart node INDEX of ROLE."""
    pid = _execute(
        ctx, ClusterCommand.RESTART_NODE, startup, role=role, index=index, timeout=timeout
    )
    console.print(f"[green]Restarted[/green] {role}-{index} (pid {pid})")


if __name__ == "__main__":
    cli()
