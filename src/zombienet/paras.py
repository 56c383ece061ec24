# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Parachain genesis artifacts.

A parachain registered at genesis needs its genesis head (state) and
validation code (wasm). When the launch config does not point at existing
files, they are exported from the first collator's binary through the
provider client:

    <collator> export-genesis-state [--chain <chain>]
    <collator> export-genesis-wasm [--chain <chain>]
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import List

from zombienet.constants import GENESIS_STATE_FILENAME, GENESIS_WASM_FILENAME
from zombienet.providers.client import Client
from zombienet.schemas import ComputedNetwork, ParachainSpec


logger = logging.getLogger(__name__)


async def _export(client: Client, parachain: ParachainSpec, subcommand: str, dest: Path) -> Path:
    command = parachain.collators[0].command
    args: List[str] = [command, subcommand]
    if parachain.chain:
        args.extend(["--chain", parachain.chain])

    result = await client.run_command(args)
    if result.exit_code != 0:
        raise RuntimeError(
            f"'{command} {subcommand}' for parachain {parachain.id} exited with code "
            f"{result.exit_code}: {result.stderr.strip()}"
        )
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(result.stdout.strip())
    logger.debug(f"Wrote {dest}")
    return dest


async def generate_parachain_files(
    client: Client, parachain: ParachainSpec, workspace: Path
) -> ParachainSpec:
    """Return parachain with any missing genesis state/wasm path generated."""
    para_dir = Path(workspace) / str(parachain.id)
    state_path = parachain.genesis_state_path
    wasm_path = parachain.genesis_wasm_path

    if state_path is None:
        state_path = await _export(
            client, parachain, "export-genesis-state", para_dir / GENESIS_STATE_FILENAME
        )
    if wasm_path is None:
        wasm_path = await _export(
            client, parachain, "export-genesis-wasm", para_dir / GENESIS_WASM_FILENAME
        )
    return replace(parachain, genesis_state_path=state_path, genesis_wasm_path=wasm_path)


async def prepare_parachains(
    network: ComputedNetwork, client: Client, workspace: Path
) -> ComputedNetwork:
    """Return network with genesis files in place for every parachain."""
    if not network.parachains:
        return network
    parachains = tuple(
        [await generate_parachain_files(client, para, workspace) for para in network.parachains]
    )
    return replace(network, parachains=parachains)
