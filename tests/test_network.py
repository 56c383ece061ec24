# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Tests for the Network lifecycle object."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from zombienet.errors import AlreadyStoppedError, ProviderOperationError
from zombienet.network import Network, NetworkState
from zombienet.schemas import NetworkNode, Scope


def _client():
    client = MagicMock()
    client.create_namespace = AsyncMock()
    client.destroy_namespace = AsyncMock()
    client.is_node_up = AsyncMock(return_value=True)
    client.dump_logs = AsyncMock(side_effect=lambda node, dest: dest / f"{node.name}.log")
    return client


@pytest.fixture
def network(tmp_path):
    return Network(_client(), "zombie-test", tmp_path, console=MagicMock())


class TestState:
    """Tests for lifecycle transitions."""

    def test_initial_state(self, network):
        assert network.state == NetworkState.CREATED
        assert not network.launched
        assert not network.stopped

    def test_launch_transitions(self, network):
        network.begin_launch()
        assert network.state == NetworkState.LAUNCHING
        assert not network.launched

        network.mark_launched()
        assert network.state == NetworkState.LAUNCHED
        assert network.launched

    @pytest.mark.asyncio
    async def test_monitoring_counts_as_launched(self, network):
        network.mark_launched()
        network.start_monitoring(interval=60)

        assert network.state == NetworkState.MONITORING
        assert network.launched

        await network.stop()

    def test_monitoring_requires_launch(self, network):
        with pytest.raises(RuntimeError, match="before it is launched"):
            network.start_monitoring()

    @pytest.mark.asyncio
    async def test_mutations_rejected_after_stop(self, network):
        await network.stop()

        with pytest.raises(AlreadyStoppedError):
            network.begin_launch()
        with pytest.raises(AlreadyStoppedError):
            network.mark_launched()
        with pytest.raises(AlreadyStoppedError):
            network.add_node(NetworkNode(name="alice"))
        with pytest.raises(AlreadyStoppedError):
            network.start_monitoring()
        with pytest.raises(AlreadyStoppedError):
            await network.create_namespace()

        network.client.create_namespace.assert_not_awaited()


class TestRegistry:
    """Tests for the node registry."""

    def test_groups_by_scope(self, network):
        network.add_node(NetworkNode(name="alice"))
        network.add_node(NetworkNode(name="bob"))
        network.add_node(NetworkNode(name="collator-1", scope=Scope.PARA, para_id=100))
        network.add_node(NetworkNode(name="collator-2", scope=Scope.PARA, para_id=200))
        network.add_node(NetworkNode(name="helper", scope=Scope.COMPANION))

        assert [n.name for n in network.relay] == ["alice", "bob"]
        assert {pid: [n.name for n in nodes] for pid, nodes in network.paras.items()} == {
            100: ["collator-1"],
            200: ["collator-2"],
        }
        assert [n.name for n in network.companions] == ["helper"]
        assert len(network.nodes) == 5

    def test_get_node(self, network):
        alice = NetworkNode(name="alice")
        network.add_node(alice)

        assert network.get_node("alice") is alice
        with pytest.raises(KeyError, match="ghost"):
            network.get_node("ghost")

    def test_duplicate_node_rejected(self, network):
        network.add_node(NetworkNode(name="alice"))

        with pytest.raises(ValueError, match="already registered"):
            network.add_node(NetworkNode(name="alice"))


class TestStop:
    """Tests for stop()."""

    @pytest.mark.asyncio
    async def test_stop_releases_namespace(self, network):
        await network.create_namespace()
        await network.stop()

        assert network.state == NetworkState.STOPPED
        network.client.destroy_namespace.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, network):
        await network.create_namespace()

        await network.stop()
        await network.stop()

        network.client.destroy_namespace.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_without_namespace_skips_provider(self, network):
        await network.stop()

        assert network.stopped
        network.client.destroy_namespace.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_after_failed_namespace_creation(self, network):
        """A partially created namespace is still released."""
        network.client.create_namespace.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(RuntimeError):
            await network.create_namespace()
        await network.stop()

        network.client.destroy_namespace.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_failure_is_typed(self, network):
        network.client.destroy_namespace.side_effect = RuntimeError("api down")
        await network.create_namespace()

        with pytest.raises(ProviderOperationError, match="destroy_namespace"):
            await network.stop()

        assert network.stopped
        await network.stop()
        network.client.destroy_namespace.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_cancels_monitor(self, network):
        network.mark_launched()
        network.start_monitoring(interval=60)
        task = network._monitor_task

        await network.stop()

        assert task.cancelled()


class TestDumpLogs:
    """Tests for dump_logs()."""

    @pytest.mark.asyncio
    async def test_collects_every_node(self, network, tmp_path):
        network.add_node(NetworkNode(name="alice"))
        network.add_node(NetworkNode(name="bob"))

        collected = await network.dump_logs()

        assert collected == {
            "alice": tmp_path / "logs" / "alice.log",
            "bob": tmp_path / "logs" / "bob.log",
        }
        assert network.log_errors == {}

    @pytest.mark.asyncio
    async def test_failures_recorded_not_raised(self, network, tmp_path, caplog):
        def dump(node, dest):
            if node.name == "bob":
                raise FileNotFoundError("no log for bob")
            return dest / f"{node.name}.log"

        network.client.dump_logs.side_effect = dump
        network.add_node(NetworkNode(name="alice"))
        network.add_node(NetworkNode(name="bob"))

        collected = await network.dump_logs()

        assert list(collected) == ["alice"]
        assert network.log_errors == {"bob": "no log for bob"}
        assert "Failed to dump logs for bob" in caplog.text

    @pytest.mark.asyncio
    async def test_dump_after_stop_is_noop(self, network):
        network.add_node(NetworkNode(name="alice"))
        await network.stop()

        assert await network.dump_logs() == {}
        network.client.dump_logs.assert_not_awaited()


class TestMonitor:
    """Tests for background liveness polling."""

    @pytest.mark.asyncio
    async def test_warns_when_node_down(self, network):
        network.add_node(NetworkNode(name="alice"))
        network.client.is_node_up.return_value = False
        network.mark_launched()

        network.start_monitoring(interval=0.01)
        await asyncio.sleep(0.05)
        await network.stop()

        network.console.warn.assert_any_call("Node alice is down")

    @pytest.mark.asyncio
    async def test_check_errors_do_not_kill_monitor(self, network):
        network.add_node(NetworkNode(name="alice"))
        network.client.is_node_up.side_effect = RuntimeError("rpc timeout")
        network.mark_launched()

        network.start_monitoring(interval=0.01)
        await asyncio.sleep(0.05)

        assert not network._monitor_task.done()
        await network.stop()


def test_repr(tmp_path):
    network = Network(_client(), "zombie-abc", Path(tmp_path))

    assert repr(network) == "Network(namespace='zombie-abc', state=created)"
