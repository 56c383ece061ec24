# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Native provider - run every node as a local process.

The namespace is a directory inside the workspace; node processes are started
through the wrapper script and torn down with SIGTERM, then SIGKILL.
"""

import asyncio
import json
import logging
import os
import shlex
import shutil
import socket
from pathlib import Path
from typing import Dict, List

from zombienet.constants import ZOMBIE_WRAPPER
from zombienet.providers import Provider
from zombienet.providers.client import Client, CommandResult
from zombienet.schemas import NetworkNode, NodeSpec, RelayChainSpec, Scope


logger = logging.getLogger(__name__)

# Seconds to wait after SIGTERM before killing a node
TERMINATE_GRACE_S = 5


def _free_port() -> int:
    """Ask the OS for an unused local TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _run(args: List[str]) -> CommandResult:
    """Run a command to completion, capturing output."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        return CommandResult(exit_code=127, stderr=str(e))

    stdout, stderr = await proc.communicate()
    return CommandResult(
        exit_code=proc.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


class NativeClient(Client):
    """Client for nodes running as local processes."""

    provider_name = "native"

    def __init__(self, credentials: str, namespace: str, workspace_dir: Path):
        super().__init__(credentials, namespace, workspace_dir)
        self.namespace_dir = self.workspace_dir / namespace
        self.remote_dir = str(self.namespace_dir)
        self._processes: Dict[str, asyncio.subprocess.Process] = {}

    async def validate_access(self) -> bool:
        return shutil.which("bash") is not None

    async def create_namespace(self) -> None:
        self.namespace_dir.mkdir(parents=True, exist_ok=False)
        logger.debug(f"Created namespace directory {self.namespace_dir}")

    async def destroy_namespace(self) -> None:
        for name, proc in self._processes.items():
            if proc.returncode is not None:
                continue
            logger.debug(f"Terminating {name} (pid {proc.pid})")
            proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), TERMINATE_GRACE_S)
            except asyncio.TimeoutError:
                logger.warning(f"{name} ignored SIGTERM, killing")
                proc.kill()
                await proc.wait()
        self._processes.clear()

    async def run_command(self, args: List[str]) -> CommandResult:
        return await _run(args)

    def _node_args(self, node: NodeSpec, chain_spec_path: Path, ports: Dict[str, int]) -> List[str]:
        rpc_flag = "--ws-port" if node.cli_args_version == 0 else "--rpc-port"
        args = [
            node.command,
            "--name", node.name,
            "--base-path", str(self.namespace_dir / node.name / "data"),
            "--port", str(ports["p2p"]),
            rpc_flag, str(ports["rpc"]),
            "--prometheus-port", str(ports["prometheus"]),
        ]
        if node.scope == Scope.PARA:
            args.append("--collator")
            args.extend(node.args)
            # Embedded relay chain node
            args.extend(["--", "--chain", str(chain_spec_path)])
            return args

        args.extend(["--chain", str(chain_spec_path)])
        if node.validator:
            args.append("--validator")
        args.extend(node.args)
        return args

    async def spawn_node(self, node: NodeSpec, chain_spec_path: Path) -> NetworkNode:
        node_dir = self.namespace_dir / node.name
        node_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.namespace_dir / f"{node.name}.log"

        ports = {"p2p": _free_port(), "rpc": _free_port(), "prometheus": _free_port()}
        args = self._node_args(node, chain_spec_path, ports)
        wrapper = self.workspace_dir / ZOMBIE_WRAPPER

        env = os.environ.copy()
        env.update(dict(node.env))

        logger.info(f"Spawning {node.name}: {shlex.join(args)}")
        with open(log_path, "wb") as log_file:
            proc = await asyncio.create_subprocess_exec(
                "bash", str(wrapper), *args,
                stdout=log_file,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
                cwd=node_dir,
            )
        self._processes[node.name] = proc

        return NetworkNode(
            name=node.name,
            scope=node.scope,
            para_id=node.para_id,
            ws_uri=f"ws://127.0.0.1:{ports['rpc']}",
            prometheus_uri=f"http://127.0.0.1:{ports['prometheus']}/metrics",
            multi_address=f"/ip4/127.0.0.1/tcp/{ports['p2p']}",
            log_path=log_path,
        )

    async def is_node_up(self, node: NetworkNode) -> bool:
        proc = self._processes.get(node.name)
        return proc is not None and proc.returncode is None

    async def dump_logs(self, node: NetworkNode, dest_dir: Path) -> Path:
        if node.log_path is None or not node.log_path.exists():
            raise FileNotFoundError(f"No log file for {node.name}")
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / f"{node.name}.log"
        shutil.copyfile(node.log_path, dest)
        return dest


def init_client(credentials: str, namespace: str, workspace_dir: Path) -> NativeClient:
    return NativeClient(credentials, namespace, workspace_dir)


def _build_spec_command(relaychain: RelayChainSpec, chain: str) -> List[str]:
    """Command that prints the plain chain spec for chain."""
    if relaychain.chain_spec_command:
        template = relaychain.chain_spec_command.replace("{{chainName}}", chain)
        return shlex.split(template)
    return [
        relaychain.default_command,
        "build-spec",
        "--chain", chain,
        "--disable-default-bootnode",
    ]


async def setup_chain_spec(
    namespace: str,
    relaychain: RelayChainSpec,
    chain_name: str,
    output_path: Path,
) -> None:
    """Copy the configured chain spec or generate it with build-spec."""
    if relaychain.chain_spec_path:
        logger.debug(f"[{namespace}] Copying chain spec from {relaychain.chain_spec_path}")
        shutil.copyfile(relaychain.chain_spec_path, output_path)
        return

    args = _build_spec_command(relaychain, chain_name)
    logger.debug(f"[{namespace}] Generating chain spec: {shlex.join(args)}")
    result = await _run(args)
    if result.exit_code != 0:
        raise RuntimeError(
            f"build-spec exited with code {result.exit_code}: {result.stderr.strip()}"
        )
    Path(output_path).write_text(result.stdout)


async def get_chain_spec_raw(
    namespace: str,
    relaychain: RelayChainSpec,
    chain_name: str,
    plain_path: Path,
    raw_path: Path,
) -> Path:
    """Convert the plain spec to raw; already-raw specs are copied as-is."""
    spec = json.loads(Path(plain_path).read_text())
    if "raw" in spec.get("genesis", {}):
        shutil.copyfile(plain_path, raw_path)
        return Path(raw_path)

    args = [
        relaychain.default_command,
        "build-spec",
        "--chain", str(plain_path),
        "--raw",
        "--disable-default-bootnode",
    ]
    logger.debug(f"[{namespace}] Generating raw chain spec for {chain_name}")
    result = await _run(args)
    if result.exit_code != 0:
        raise RuntimeError(
            f"build-spec --raw exited with code {result.exit_code}: {result.stderr.strip()}"
        )
    Path(raw_path).write_text(result.stdout)
    return Path(raw_path)


PROVIDER = Provider(
    name="native",
    init_client=init_client,
    setup_chain_spec=setup_chain_spec,
    get_chain_spec_raw=get_chain_spec_raw,
)
