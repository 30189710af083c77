"""Unit tests for clusterctl.controller: ClusterController commands and dispatch."""
from __future__ import annotations

import pytest

from clusterctl.controller import ClusterCommand, ClusterController, DataDirLock
from clusterctl.daemon.identity import DaemonId, DaemonRole
from clusterctl.errors import (
    BinaryNotFoundError,
    ClusterExistsError,
    ClusterLockedError,
    ClusterNotFoundError,
    ReconfigurationFailed,
    ValidationError,
)
from clusterctl.topology.model import parse_placement

QUORUM_3 = "127.0.0.1:7100,127.0.0.2:7100,127.0.0.3:7100"


def _m(index: int) -> DaemonId:
    return DaemonId(DaemonRole.MASTER, index)


def _t(index: int) -> DaemonId:
    return DaemonId(DaemonRole.TSERVER, index)


@pytest.fixture()
def controller(make_controller) -> ClusterController:
    return make_controller(replication_factor=3)


@pytest.fixture()
def running(controller) -> ClusterController:
    """A freshly created three-node cluster."""
    controller.run(ClusterCommand.CREATE)
    return controller


# ---------------------------------------------------------------------------
# ClusterCommand
# ---------------------------------------------------------------------------


class TestClusterCommand:
    def test_from_name_accepts_kebab_case(self) -> None:
        assert ClusterCommand.from_name("wipe-restart") is ClusterCommand.WIPE_RESTART

    def test_from_name_unknown(self) -> None:
        with pytest.raises(ValidationError):
            ClusterCommand.from_name("explode")

    def test_only_status_is_read_only(self) -> None:
        assert [c for c in ClusterCommand if not c.mutating] == [ClusterCommand.STATUS]

    def test_node_commands(self) -> None:
        assert ClusterCommand.ADD_NODE.targets_node
        assert not ClusterCommand.CREATE.targets_node

    def test_startup_commands(self) -> None:
        assert ClusterCommand.RESTART_NODE.starts_daemons
        assert not ClusterCommand.STOP.starts_daemons


# ---------------------------------------------------------------------------
# create / start
# ---------------------------------------------------------------------------


class TestCreate:
    def test_three_node_cluster(self, running, processes) -> None:
        assert running.topology.master_quorum_addresses == QUORUM_3
        assert set(processes.running) == {_m(1), _m(2), _m(3), _t(1), _t(2), _t(3)}

    def test_status_after_create(self, running) -> None:
        statuses = running.run(ClusterCommand.STATUS)
        assert len(statuses) == 6
        assert all(s.live for s in statuses)
        masters = [s for s in statuses if s.daemon_id.role is DaemonRole.MASTER]
        tservers = [s for s in statuses if s.daemon_id.role is DaemonRole.TSERVER]
        assert [s.admin_endpoint for s in masters] == [
            "127.0.0.1:7000",
            "127.0.0.2:7000",
            "127.0.0.3:7000",
        ]
        assert all(s.endpoints == {} for s in masters)
        assert tservers[0].admin_endpoint == "127.0.0.1:9000"
        assert tservers[0].endpoints == {
            "redis": "127.0.0.1:6379",
            "cql": "127.0.0.1:9042",
            "pgsql": "127.0.0.1:5433",
        }

    def test_masters_launched_with_quorum(self, running, processes) -> None:
        for spec in processes.launched:
            if spec.daemon_id.role is DaemonRole.MASTER:
                assert spec.flag_value("master_addresses") == QUORUM_3
            else:
                assert spec.flag_value("tserver_master_addrs") == QUORUM_3

    def test_existing_cluster_rejected(self, running, processes) -> None:
        launched = len(processes.launched)
        with pytest.raises(ClusterExistsError):
            running.run(ClusterCommand.CREATE)
        assert len(processes.launched) == launched

    def test_too_many_placements(self, make_controller, processes) -> None:
        controller = make_controller(replication_factor=1, placement=parse_placement("a.b.c,d.e.f"))
        with pytest.raises(ValidationError):
            controller.run(ClusterCommand.CREATE)
        assert not controller.topology.base_data_dir.exists()
        assert processes.launched == []

    def test_missing_binary_touches_nothing(self, make_controller, tmp_path, processes) -> None:
        controller = make_controller()
        controller.topology.binary_search_paths = [tmp_path / "nowhere"]
        with pytest.raises(BinaryNotFoundError):
            controller.run(ClusterCommand.CREATE)
        assert not controller.topology.base_data_dir.exists()
        assert processes.launched == []

    def test_custom_counts(self, controller, processes) -> None:
        controller.create(num_masters=1, num_tservers=2)
        assert set(processes.running) == {_m(1), _t(1), _t(2)}


class TestStart:
    def test_creates_missing_cluster(self, controller, processes) -> None:
        controller.run(ClusterCommand.START)
        assert len(processes.running) == 6

    def test_starts_only_stopped_nodes(self, running, processes) -> None:
        processes.kill(_t(2))
        launched = len(processes.launched)
        running.run(ClusterCommand.START)
        assert len(processes.launched) == launched + 1
        assert processes.launched[-1].daemon_id == _t(2)
        assert processes.launched[-1].flag_value("tserver_master_addrs") == QUORUM_3


# ---------------------------------------------------------------------------
# stop / destroy / restart / wipe_restart
# ---------------------------------------------------------------------------


class TestStopAndDestroy:
    def test_stop_keeps_data(self, running, processes) -> None:
        running.run(ClusterCommand.STOP)
        assert processes.running == {}
        statuses = running.run(ClusterCommand.STATUS)
        assert len(statuses) == 6
        assert not any(s.live for s in statuses)

    def test_stop_order_tservers_first(self, running, processes) -> None:
        pids = {pid: daemon for daemon, pid in processes.running.items()}
        running.run(ClusterCommand.STOP)
        roles = [pids[pid].role for pid in processes.terminated]
        assert roles == [DaemonRole.TSERVER] * 3 + [DaemonRole.MASTER] * 3

    def test_destroy_removes_data(self, running, processes) -> None:
        running.run(ClusterCommand.DESTROY)
        assert processes.running == {}
        assert not running.topology.base_data_dir.exists()
        assert running.run(ClusterCommand.STATUS) == []

    def test_destroy_without_cluster(self, controller) -> None:
        controller.run(ClusterCommand.DESTROY)
        assert not controller.topology.base_data_dir.exists()

    def test_restart_gives_new_pids(self, running, processes) -> None:
        before = dict(processes.running)
        running.run(ClusterCommand.RESTART)
        assert set(processes.running) == set(before)
        assert not set(processes.running.values()) & set(before.values())

    def test_restart_requires_cluster(self, controller) -> None:
        with pytest.raises(ClusterNotFoundError):
            controller.run(ClusterCommand.RESTART)

    def test_restart_rejects_placement_before_stopping(self, make_controller, processes) -> None:
        make_controller().run(ClusterCommand.CREATE)
        before = dict(processes.running)
        controller = make_controller(placement=parse_placement("a.b.c,d.e.f,g.h.i,j.k.l"))
        with pytest.raises(ValidationError):
            controller.run(ClusterCommand.RESTART)
        assert processes.terminated == []
        assert processes.running == before

    def test_restart_missing_binary_before_stopping(self, running, tmp_path, processes) -> None:
        running.topology.binary_search_paths = [tmp_path / "nowhere"]
        with pytest.raises(BinaryNotFoundError):
            running.run(ClusterCommand.RESTART)
        assert processes.terminated == []


class TestWipeRestart:
    def test_preserves_counts_with_new_pids(self, running, processes) -> None:
        running.run(ClusterCommand.ADD_NODE, role="tserver")
        before_counts = running.node_counts()
        before_pids = {s.pid for s in running.run(ClusterCommand.STATUS)}

        running.run(ClusterCommand.WIPE_RESTART)

        statuses = running.run(ClusterCommand.STATUS)
        assert running.node_counts() == before_counts == {
            DaemonRole.MASTER: 3,
            DaemonRole.TSERVER: 4,
        }
        assert all(s.live for s in statuses)
        assert not {s.pid for s in statuses} & before_pids

    def test_on_missing_cluster_creates_defaults(self, controller, processes) -> None:
        controller.run(ClusterCommand.WIPE_RESTART)
        assert len(processes.running) == 6

    def test_bad_placement_leaves_cluster_intact(self, make_controller, processes) -> None:
        make_controller(replication_factor=1).run(ClusterCommand.CREATE)
        before = dict(processes.running)
        controller = make_controller(
            replication_factor=1, placement=parse_placement("a.b.c,d.e.f")
        )
        with pytest.raises(ValidationError):
            controller.run(ClusterCommand.WIPE_RESTART)
        assert controller.topology.exists
        assert processes.terminated == []
        assert processes.running == before

    def test_missing_binary_leaves_cluster_intact(self, running, tmp_path, processes) -> None:
        running.topology.binary_search_paths = [tmp_path / "nowhere"]
        with pytest.raises(BinaryNotFoundError):
            running.run(ClusterCommand.WIPE_RESTART)
        assert running.topology.exists
        assert processes.terminated == []

    def test_added_master_joins_recreated_quorum(self, running, processes) -> None:
        running.run(ClusterCommand.ADD_NODE, role="master")
        running.run(ClusterCommand.WIPE_RESTART)

        assert running.node_counts()[DaemonRole.MASTER] == 4
        quorum = QUORUM_3 + ",127.0.0.4:7100"
        relaunched = processes.launched[-7:]
        assert {spec.daemon_id for spec in relaunched} == {_m(i) for i in range(1, 5)} | {
            _t(i) for i in range(1, 4)
        }
        for spec in relaunched:
            if spec.daemon_id.role is DaemonRole.MASTER:
                assert spec.flag_value("master_addresses") == quorum
            else:
                assert spec.flag_value("tserver_master_addrs") == quorum


# ---------------------------------------------------------------------------
# Node commands
# ---------------------------------------------------------------------------


class TestAddNode:
    def test_requires_cluster(self, controller) -> None:
        with pytest.raises(ClusterNotFoundError) as exc_info:
            controller.run(ClusterCommand.ADD_NODE, role="tserver")
        assert not isinstance(exc_info.value, ValidationError)

    def test_adds_tserver_at_next_index(self, running, processes, admin) -> None:
        daemon_id = running.run(ClusterCommand.ADD_NODE, role="tserver")
        assert daemon_id == _t(4)
        assert processes.running[_t(4)]
        assert admin.calls == []

    def test_rejects_multiple_placements(self, make_controller, processes) -> None:
        make_controller().run(ClusterCommand.CREATE)
        controller = make_controller(placement=parse_placement("a.b.c,d.e.f"))
        launched = len(processes.launched)
        with pytest.raises(ValidationError):
            controller.run(ClusterCommand.ADD_NODE, role="tserver")
        assert len(processes.launched) == launched

    def test_single_placement_applied(self, make_controller, processes) -> None:
        make_controller().run(ClusterCommand.CREATE)
        controller = make_controller(placement=parse_placement("aws.west.z9"))
        controller.run(ClusterCommand.ADD_NODE, role="tserver")
        assert processes.launched[-1].flag_value("placement_zone") == "z9"

    def test_adds_shell_master_then_reconfigures(self, running, processes, admin) -> None:
        daemon_id = running.run(ClusterCommand.ADD_NODE, role="master")
        assert daemon_id == _m(4)
        spec = processes.launched[-1]
        assert spec.daemon_id == _m(4)
        assert spec.flag_value("master_addresses") is None
        assert running.topology.shell_master is False
        assert admin.calls[-1][1:] == [
            "--master_addresses",
            QUORUM_3,
            "change_master_config",
            "ADD_SERVER",
            "127.0.0.4",
            "7100",
        ]

    def test_quorum_only_includes_running_masters(self, running, processes, admin) -> None:
        running.run(ClusterCommand.STOP_NODE, role="master", index=2)
        running.run(ClusterCommand.ADD_NODE, role="master")
        assert admin.calls[-1][2] == "127.0.0.1:7100,127.0.0.3:7100"

    def test_reconfiguration_failure_propagates(self, running, processes, admin) -> None:
        admin.returncodes[:] = [1]
        with pytest.raises(ReconfigurationFailed):
            running.run(ClusterCommand.ADD_NODE, role="master")
        assert processes.running[_m(4)]
        assert len(admin.calls) == running.config.reconfig_attempts

    def test_unknown_role(self, running) -> None:
        with pytest.raises(ValidationError):
            running.run(ClusterCommand.ADD_NODE, role="proxy")


class TestSingleNodeCommands:
    def test_remove_master_does_not_reconfigure(self, running, processes, admin) -> None:
        assert running.run(ClusterCommand.REMOVE_NODE, role="master", index=3) is True
        assert _m(3) not in processes.running
        assert admin.calls == []
        assert running.topology.has_node(_m(3))

    def test_stop_node_already_stopped(self, running) -> None:
        running.run(ClusterCommand.STOP_NODE, role="tserver", index=1)
        assert running.run(ClusterCommand.STOP_NODE, role="tserver", index=1) is False

    def test_start_node(self, running, processes) -> None:
        running.run(ClusterCommand.STOP_NODE, role="tserver", index=2)
        pid = running.run(ClusterCommand.START_NODE, role="tserver", index=2)
        assert processes.running[_t(2)] == pid
        assert processes.launched[-1].flag_value("tserver_master_addrs") == QUORUM_3

    def test_start_node_idempotent(self, running, processes) -> None:
        launched = len(processes.launched)
        running.run(ClusterCommand.START_NODE, role="master", index=1)
        assert len(processes.launched) == launched

    @pytest.mark.parametrize("index", [0, 21])
    def test_index_out_of_range(self, running, index: int) -> None:
        with pytest.raises(ValidationError):
            running.run(ClusterCommand.STOP_NODE, role="master", index=index)

    def test_restart_node(self, running, processes) -> None:
        before = processes.running[_m(2)]
        after = running.run(ClusterCommand.RESTART_NODE, role="master", index=2)
        assert after != before
        assert processes.running[_m(2)] == after

    def test_restart_node_rejects_multiple_placements(self, make_controller, processes) -> None:
        make_controller().run(ClusterCommand.CREATE)
        controller = make_controller(placement=parse_placement("a.b.c,d.e.f"))
        with pytest.raises(ValidationError):
            controller.run(ClusterCommand.RESTART_NODE, role="tserver", index=1)
        assert _t(1) in processes.running


# ---------------------------------------------------------------------------
# setup_redis, dispatch and locking
# ---------------------------------------------------------------------------


class TestSetupRedis:
    def test_calls_admin(self, running, admin) -> None:
        running.run(ClusterCommand.SETUP_REDIS)
        assert admin.calls[-1][1:] == ["--master_addresses", QUORUM_3, "setup_redis_table"]

    def test_requires_cluster(self, controller) -> None:
        with pytest.raises(ClusterNotFoundError):
            controller.run(ClusterCommand.SETUP_REDIS)


class TestDispatchAndLocking:
    def test_run_accepts_names(self, running) -> None:
        assert len(running.run("status")) == 6

    def test_mutating_command_refused_while_locked(self, running, processes) -> None:
        with DataDirLock(running.config.lock_path):
            with pytest.raises(ClusterLockedError):
                running.run(ClusterCommand.STOP)
        assert len(processes.running) == 6

    def test_status_ignores_lock(self, running) -> None:
        with DataDirLock(running.config.lock_path):
            assert len(running.run(ClusterCommand.STATUS)) == 6

    def test_lock_released_after_failure(self, running) -> None:
        with pytest.raises(ClusterExistsError):
            running.run(ClusterCommand.CREATE)
        with DataDirLock(running.config.lock_path) as lock:
            assert lock.held

    def test_node_status_to_dict(self, running) -> None:
        data = running.run(ClusterCommand.STATUS)[-1].to_dict()
        assert data["role"] == "tserver"
        assert data["index"] == 3
        assert data["live"] is True
        assert data["endpoints"]["cql"] == "127.0.0.3:9042"
