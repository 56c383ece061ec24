# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Provider-bound client contract.

A Client is created once per launch by the provider's ``init_client`` and is
owned by the Network for the rest of its life. Spawn operations may call it
concurrently; backends that cannot tolerate that must lock internally.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from zombienet.schemas import NetworkNode, NodeSpec


@dataclass
class CommandResult:
    """Outcome of a command run through the provider."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""


class Client(ABC):
    """Namespace lifecycle, access validation and node primitives for one backend."""

    provider_name: str = "unknown"

    def __init__(self, credentials: str, namespace: str, workspace_dir: Path):
        self.credentials = credentials
        self.namespace = namespace
        self.workspace_dir = Path(workspace_dir)
        # Per-node spawn timeout in seconds; the orchestrator may override it
        self.timeout: float = 300
        self.remote_dir: Optional[str] = None

    @abstractmethod
    async def validate_access(self) -> bool:
        """Return True if the backend is reachable with the given credentials."""

    @abstractmethod
    async def create_namespace(self) -> None:
        """Create the isolation boundary for this launch."""

    @abstractmethod
    async def destroy_namespace(self) -> None:
        """Release the namespace and every resource created inside it."""

    @abstractmethod
    async def run_command(self, args: List[str]) -> CommandResult:
        """Run a one-off command in the backend (e.g. ``<binary> --help``)."""

    @abstractmethod
    async def spawn_node(self, node: NodeSpec, chain_spec_path: Path) -> NetworkNode:
        """Start a node and return its runtime handle."""

    @abstractmethod
    async def is_node_up(self, node: NetworkNode) -> bool:
        """Return True while the node's workload is running."""

    @abstractmethod
    async def dump_logs(self, node: NetworkNode, dest_dir: Path) -> Path:
        """Copy the node's logs into dest_dir and return the written file."""
