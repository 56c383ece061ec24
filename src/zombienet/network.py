# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Network - the live handle for one launch.

Owns the provider client, the namespace and the node registry.

States:
    CREATED → LAUNCHING → LAUNCHED → (MONITORING) → STOPPED

STOPPED is terminal: mutating a stopped network raises AlreadyStoppedError,
while dump_logs() and stop() stay safe to call.
"""

import asyncio
import contextlib
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from zombienet.console import Console
from zombienet.constants import LOGS_DIRNAME
from zombienet.errors import AlreadyStoppedError, ProviderOperationError
from zombienet.providers.client import Client
from zombienet.schemas import NetworkNode, Scope


logger = logging.getLogger(__name__)

DEFAULT_MONITOR_INTERVAL_S = 10


class NetworkState(Enum):
    """Lifecycle states of a Network."""

    CREATED = "created"
    LAUNCHING = "launching"
    LAUNCHED = "launched"
    MONITORING = "monitoring"
    STOPPED = "stopped"


class Network:
    """A launched (or launching) test network."""

    def __init__(
        self,
        client: Client,
        namespace: str,
        workspace_dir: Path,
        console: Optional[Console] = None,
    ):
        self.client = client
        self.namespace = namespace
        self.workspace_dir = Path(workspace_dir)
        self.console = console or Console()
        self.state = NetworkState.CREATED

        self.user_types: Dict[str, Any] = {}
        self.chain_spec_path: Optional[Path] = None
        self.log_errors: Dict[str, str] = {}

        self._nodes: Dict[str, NetworkNode] = {}
        self._namespace_requested = False
        self._monitor_task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"Network(namespace={self.namespace!r}, state={self.state.value})"

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def launched(self) -> bool:
        return self.state in (NetworkState.LAUNCHED, NetworkState.MONITORING)

    @property
    def stopped(self) -> bool:
        return self.state == NetworkState.STOPPED

    def _ensure_not_stopped(self, operation: str) -> None:
        if self.stopped:
            raise AlreadyStoppedError(f"Cannot {operation}: network {self.namespace} is stopped")

    async def create_namespace(self) -> None:
        """Create the provider namespace; teardown will release it from here on."""
        self._ensure_not_stopped("create namespace")
        self._namespace_requested = True
        await self.client.create_namespace()

    def begin_launch(self) -> None:
        self._ensure_not_stopped("begin launch")
        self.state = NetworkState.LAUNCHING

    def mark_launched(self) -> None:
        """Called once every required node is confirmed up."""
        self._ensure_not_stopped("mark launched")
        self.state = NetworkState.LAUNCHED

    # -------------------------------------------------------------------------
    # Node registry
    # -------------------------------------------------------------------------

    def add_node(self, node: NetworkNode) -> None:
        self._ensure_not_stopped(f"add node {node.name}")
        if node.name in self._nodes:
            raise ValueError(f"Node already registered: {node.name}")
        self._nodes[node.name] = node

    def get_node(self, name: str) -> NetworkNode:
        try:
            return self._nodes[name]
        except KeyError:
            raise KeyError(f"Node not found in network {self.namespace}: {name}") from None

    @property
    def nodes(self) -> List[NetworkNode]:
        """All registered nodes, in registration order."""
        return list(self._nodes.values())

    @property
    def relay(self) -> List[NetworkNode]:
        return [n for n in self._nodes.values() if n.scope == Scope.RELAY]

    @property
    def paras(self) -> Dict[int, List[NetworkNode]]:
        paras: Dict[int, List[NetworkNode]] = {}
        for node in self._nodes.values():
            if node.scope == Scope.PARA:
                paras.setdefault(node.para_id, []).append(node)
        return paras

    @property
    def companions(self) -> List[NetworkNode]:
        return [n for n in self._nodes.values() if n.scope == Scope.COMPANION]

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def start_monitoring(self, interval: float = DEFAULT_MONITOR_INTERVAL_S) -> None:
        """Poll node liveness in the background until stop()."""
        self._ensure_not_stopped("start monitoring")
        if not self.launched:
            raise RuntimeError(f"Cannot monitor network {self.namespace} before it is launched")
        if self._monitor_task is None:
            self._monitor_task = asyncio.create_task(self._monitor(interval))
        self.state = NetworkState.MONITORING

    async def _monitor(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            for node in self.nodes:
                try:
                    up = await self.client.is_node_up(node)
                except Exception as e:
                    logger.warning(f"Liveness check failed for {node.name}: {e}")
                    continue
                if not up:
                    self.console.warn(f"Node {node.name} is down")

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def dump_logs(self) -> Dict[str, Path]:
        """
        Collect node logs into <workspace>/logs.

        Best effort: per-node failures are recorded in log_errors and logged,
        never raised.

        Returns:
            Mapping of node name → collected log file
        """
        if self.stopped:
            logger.warning(f"Network {self.namespace} is stopped, no logs to dump")
            return {}

        logs_dir = self.workspace_dir / LOGS_DIRNAME
        collected: Dict[str, Path] = {}
        for node in self.nodes:
            try:
                collected[node.name] = await self.client.dump_logs(node, logs_dir)
            except Exception as e:
                self.log_errors[node.name] = str(e)
                logger.warning(f"Failed to dump logs for {node.name}: {e}")

        if collected:
            self.console.info(f"Node logs saved in {logs_dir}")
        return collected

    async def stop(self) -> None:
        """
        Release the namespace and every provider resource.

        Idempotent: only the first call reaches the provider.

        Raises:
            ProviderOperationError: If the provider fails to release resources
        """
        if self.stopped:
            return
        self.state = NetworkState.STOPPED

        if self._monitor_task is not None:
            self._monitor_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._monitor_task
            self._monitor_task = None

        if not self._namespace_requested:
            logger.debug(f"Namespace {self.namespace} was never created, nothing to release")
            return

        logger.info(f"Stopping network {self.namespace}")
        try:
            await self.client.destroy_namespace()
        except Exception as e:
            raise ProviderOperationError("destroy_namespace", str(e)) from e
