# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Spawner - start nodes through the network's client.

Resolves {{ZOMBIE:<node>:<attr>}} references from the registry at spawn time,
bounds in-flight spawns with a semaphore and waits for nodes to come up.
"""

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import Iterable, List

from zombienet.compiler import NODE_ATTRIBUTES, TOKEN_PLACEHOLDER
from zombienet.errors import ProviderOperationError, ZombienetError
from zombienet.network import Network
from zombienet.schemas import NetworkNode, NodeSpec


logger = logging.getLogger(__name__)

VERIFY_INTERVAL_S = 1


def resolve_network_references(node: NodeSpec, network: Network) -> NodeSpec:
    """
    Replace node references with values from already-running nodes.

    {{ZOMBIE:alice:multiAddress}} → network.get_node("alice").multi_address
    """
    def substitute(match) -> str:
        name, attr = match.group(1), match.group(2)
        target = network.get_node(name)
        value = getattr(target, NODE_ATTRIBUTES[attr])
        if value is None:
            raise ValueError(f"{name} has no {attr} (referenced by {node.name})")
        return value

    def resolve(text: str) -> str:
        return TOKEN_PLACEHOLDER.sub(substitute, text)

    return replace(
        node,
        command=resolve(node.command),
        args=tuple(resolve(arg) for arg in node.args),
        env=tuple((key, resolve(value)) for key, value in node.env),
    )


async def spawn_node(network: Network, node: NodeSpec, chain_spec_path: Path) -> NetworkNode:
    """Spawn one node and register it in the network."""
    operation = f"spawn {node.name}"
    try:
        resolved = resolve_network_references(node, network)
        logger.debug(f"Spawning {node.name} in {network.namespace}")
        running = await asyncio.wait_for(
            network.client.spawn_node(resolved, chain_spec_path),
            network.client.timeout,
        )
    except asyncio.TimeoutError:
        raise ProviderOperationError(
            operation, f"timed out after {network.client.timeout}s"
        ) from None
    except ZombienetError:
        raise
    except Exception as e:
        raise ProviderOperationError(operation, str(e)) from e

    network.add_node(running)
    network.console.info(f"Spawned {node.name}")
    return running


async def spawn_nodes(
    network: Network,
    nodes: Iterable[NodeSpec],
    chain_spec_path: Path,
    concurrency: int,
) -> List[NetworkNode]:
    """
    Spawn nodes with at most `concurrency` in flight.

    With concurrency 1 nodes are spawned strictly in order. On any failure or
    cancellation the remaining spawns are cancelled.
    """
    nodes = list(nodes)
    if concurrency <= 1:
        return [await spawn_node(network, node, chain_spec_path) for node in nodes]

    semaphore = asyncio.Semaphore(concurrency)

    async def _bounded(node: NodeSpec) -> NetworkNode:
        async with semaphore:
            return await spawn_node(network, node, chain_spec_path)

    tasks = [asyncio.create_task(_bounded(node)) for node in nodes]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def verify_nodes(network: Network, timeout: float, interval: float = VERIFY_INTERVAL_S) -> None:
    """
    Wait until every registered node reports up.

    Raises:
        ProviderOperationError: If a node is still down after `timeout` seconds
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    pending = {node.name: node for node in network.nodes}

    while pending:
        for name, node in list(pending.items()):
            try:
                up = await network.client.is_node_up(node)
            except Exception as e:
                raise ProviderOperationError(f"verify {name}", str(e)) from e
            if up:
                del pending[name]
        if not pending:
            break
        if loop.time() >= deadline:
            raise ProviderOperationError(
                "verify_nodes",
                f"nodes not up after {timeout}s: {', '.join(sorted(pending))}",
            )
        await asyncio.sleep(interval)

    logger.debug(f"All nodes up in {network.namespace}")
