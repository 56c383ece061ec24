# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Node binary command-line compatibility.

Newer node binaries dropped ``--ws-port`` in favour of a single ``--rpc-port``.
Each distinct command is probed once with ``--help`` and every node using it is
tagged with the argument convention it understands.
"""

import logging
from dataclasses import replace
from typing import Dict, Tuple

from zombienet.compiler import TOKEN_PLACEHOLDER
from zombienet.providers.client import Client
from zombienet.schemas import ComputedNetwork, NodeSpec


logger = logging.getLogger(__name__)

# Arguments convention versions
CLI_ARGS_V0 = 0  # separate --ws-port
CLI_ARGS_V1 = 1  # --rpc-port only


async def detect_cli_args_version(client: Client, command: str) -> int:
    """Probe a node binary for the argument convention it uses."""
    result = await client.run_command([command, "--help"])
    if result.exit_code != 0:
        raise RuntimeError(
            f"Error running '{command} --help' (exit code {result.exit_code}): "
            f"{result.stderr.strip()}"
        )
    return CLI_ARGS_V0 if "--ws-port" in result.stdout else CLI_ARGS_V1


async def set_substrate_cli_args_version(
    network: ComputedNetwork, client: Client
) -> ComputedNetwork:
    """Return a copy of network with each node's cli_args_version set."""
    versions: Dict[str, int] = {}
    for node in network.nodes:
        # Commands built from node references can only be probed once resolved
        if node.command in versions or TOKEN_PLACEHOLDER.search(node.command):
            continue
        versions[node.command] = await detect_cli_args_version(client, node.command)
        logger.debug(f"{node.command} uses cli args v{versions[node.command]}")

    def tag(nodes: Tuple[NodeSpec, ...]) -> Tuple[NodeSpec, ...]:
        return tuple(
            replace(n, cli_args_version=versions.get(n.command, n.cli_args_version))
            for n in nodes
        )

    return replace(
        network,
        relaychain=replace(network.relaychain, nodes=tag(network.relaychain.nodes)),
        parachains=tuple(replace(p, collators=tag(p.collators)) for p in network.parachains),
    )
