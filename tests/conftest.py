"""Shared fixtures: an in-memory provider backend."""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from zombienet.providers import Provider, register_provider, unregister_provider
from zombienet.providers.client import Client, CommandResult
from zombienet.schemas import LaunchConfig, NetworkNode, NodeSpec, RelayChainSpec


class FakeBackend:
    """Records every provider call and lets tests inject failures or hangs."""

    def __init__(self):
        self.calls: List[str] = []
        self.clients: List["FakeClient"] = []
        self.access_ok = True
        self.hang_on: Optional[str] = None
        self.fail_on: Optional[str] = None
        self.help_output = "  --rpc-port <PORT>"
        # stdout by subcommand, e.g. {"export-genesis-state": "0x..."}
        self.command_output: Dict[str, str] = {}
        self.commands: List[List[str]] = []
        self.spawn_delay = 0.0
        self.spawned: List[NodeSpec] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def step(self, name: str) -> None:
        self.calls.append(name)
        if self.hang_on == name:
            await asyncio.Event().wait()
        if self.fail_on == name:
            raise RuntimeError(f"{name} exploded")

    def count(self, name: str) -> int:
        return self.calls.count(name)


class FakeClient(Client):
    provider_name = "fake"

    def __init__(self, backend: FakeBackend, credentials: str, namespace: str, workspace_dir: Path):
        super().__init__(credentials, namespace, workspace_dir)
        self.backend = backend
        self.remote_dir = "/remote/dir"

    async def validate_access(self) -> bool:
        await self.backend.step("validate_access")
        return self.backend.access_ok

    async def create_namespace(self) -> None:
        await self.backend.step("create_namespace")

    async def destroy_namespace(self) -> None:
        await self.backend.step("destroy_namespace")

    async def run_command(self, args: List[str]) -> CommandResult:
        await self.backend.step("run_command")
        self.backend.commands.append(list(args))
        subcommand = args[1] if len(args) > 1 else ""
        stdout = self.backend.command_output.get(subcommand, self.backend.help_output)
        return CommandResult(exit_code=0, stdout=stdout)

    async def spawn_node(self, node: NodeSpec, chain_spec_path: Path) -> NetworkNode:
        backend = self.backend
        backend.in_flight += 1
        backend.max_in_flight = max(backend.max_in_flight, backend.in_flight)
        try:
            await backend.step("spawn_node")
            await asyncio.sleep(backend.spawn_delay)
        finally:
            backend.in_flight -= 1
        backend.spawned.append(node)
        index = len(backend.spawned)
        return NetworkNode(
            name=node.name,
            scope=node.scope,
            para_id=node.para_id,
            ws_uri=f"ws://127.0.0.1:{9900 + index}",
            multi_address=f"/ip4/127.0.0.1/tcp/{30300 + index}",
        )

    async def is_node_up(self, node: NetworkNode) -> bool:
        return True

    async def dump_logs(self, node: NetworkNode, dest_dir: Path) -> Path:
        await self.backend.step("dump_logs")
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / f"{node.name}.log"
        dest.write_text(f"logs for {node.name}\n")
        return dest


@pytest.fixture
def backend():
    """Register the 'fake' provider backed by a fresh FakeBackend."""
    fake = FakeBackend()

    def init_client(credentials: str, namespace: str, workspace_dir: Path) -> FakeClient:
        client = FakeClient(fake, credentials, namespace, workspace_dir)
        fake.clients.append(client)
        return client

    async def setup_chain_spec(namespace: str, relaychain: RelayChainSpec, chain_name: str, output_path: Path) -> None:
        await fake.step("setup_chain_spec")
        Path(output_path).write_text(json.dumps({
            "name": chain_name,
            "bootNodes": ["/dns/old-bootnode/tcp/30333"],
            "genesis": {"runtime": {}},
        }))

    async def get_chain_spec_raw(namespace: str, relaychain: RelayChainSpec, chain_name: str, plain_path: Path, raw_path: Path) -> Path:
        await fake.step("get_chain_spec_raw")
        plain = json.loads(Path(plain_path).read_text())
        Path(raw_path).write_text(json.dumps({
            "name": chain_name,
            "bootNodes": plain.get("bootNodes", []),
            "genesis": {"raw": {"top": {}}},
        }))
        return Path(raw_path)

    register_provider(Provider(
        name="fake",
        init_client=init_client,
        setup_chain_spec=setup_chain_spec,
        get_chain_spec_raw=get_chain_spec_raw,
    ))
    yield fake
    unregister_provider("fake")


def make_launch_config(
    base_path: Path,
    nodes: Optional[List[Dict[str, Any]]] = None,
    parachains: Optional[List[Dict[str, Any]]] = None,
    **settings: Any,
) -> LaunchConfig:
    """Launch config for the fake provider."""
    settings = {"provider": "fake", "timeout": 30, **settings}
    return LaunchConfig.from_dict(
        {
            "settings": settings,
            "relaychain": {
                "chain": "rococo-local",
                "nodes": nodes if nodes is not None else [{"name": "alice"}, {"name": "bob"}],
            },
            "parachains": parachains or [],
        },
        config_base_path=base_path,
    )


@pytest.fixture
def launch_config(backend, tmp_path):
    return make_launch_config(tmp_path)
