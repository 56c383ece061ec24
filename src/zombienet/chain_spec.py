# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Chain spec customization.

Operates on the JSON form of a relay chain spec:
- plain specs get their boot nodes cleared and parachains added to genesis
- raw specs get the launched bootnode's address injected
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable

from zombienet.schemas import ComputedNetwork, ParachainSpec


logger = logging.getLogger(__name__)


class ChainSpecError(Exception):
    """Raised when a chain spec cannot be read or customized."""

    pass


def read_chain_spec(path: Path) -> Dict[str, Any]:
    """Read and parse a chain spec file."""
    path = Path(path)
    if not path.exists():
        raise ChainSpecError(f"Chain spec not found: {path}")
    try:
        spec = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ChainSpecError(f"Invalid chain spec {path}: {e}") from e
    if not isinstance(spec, dict):
        raise ChainSpecError(f"Chain spec must be a JSON object: {path}")
    return spec


def write_chain_spec(path: Path, spec: Dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(spec, indent=2))


def is_raw(spec: Dict[str, Any]) -> bool:
    return "raw" in spec.get("genesis", {})


def clear_boot_nodes(path: Path) -> None:
    """Drop any boot nodes shipped with the spec."""
    spec = read_chain_spec(path)
    spec["bootNodes"] = []
    write_chain_spec(path, spec)


def add_boot_nodes(path: Path, addresses: Iterable[str]) -> None:
    """Append boot node addresses, skipping ones already present."""
    spec = read_chain_spec(path)
    boot_nodes = spec.setdefault("bootNodes", [])
    for address in addresses:
        if address and address not in boot_nodes:
            boot_nodes.append(address)
    write_chain_spec(path, spec)
    logger.debug(f"Boot nodes in {Path(path).name}: {boot_nodes}")


def add_parachain_to_genesis(path: Path, parachain: ParachainSpec) -> None:
    """
    Register a parachain at genesis.

    Reads the genesis head and validation code from the parachain's files and
    appends [id, {genesis_head, validation_code, parachain}] to
    genesis.runtime.paras.paras.

    Raises:
        ChainSpecError: If the spec is raw, files are missing, or the id is taken
    """
    spec = read_chain_spec(path)
    if is_raw(spec):
        raise ChainSpecError("Cannot add parachains to a raw chain spec")

    if parachain.genesis_state_path is None or parachain.genesis_wasm_path is None:
        raise ChainSpecError(
            f"Parachain {parachain.id} needs genesis_state_path and genesis_wasm_path"
        )
    for file_path in (parachain.genesis_state_path, parachain.genesis_wasm_path):
        if not Path(file_path).exists():
            raise ChainSpecError(f"Parachain {parachain.id} file not found: {file_path}")

    runtime = spec.setdefault("genesis", {}).setdefault("runtime", {})
    paras = runtime.setdefault("paras", {}).setdefault("paras", [])
    if any(entry[0] == parachain.id for entry in paras):
        raise ChainSpecError(f"Parachain {parachain.id} already in genesis")

    paras.append([
        parachain.id,
        {
            "genesis_head": Path(parachain.genesis_state_path).read_text().strip(),
            "validation_code": Path(parachain.genesis_wasm_path).read_text().strip(),
            "parachain": True,
        },
    ])
    write_chain_spec(path, spec)
    logger.info(f"Added parachain {parachain.id} to genesis")


def customize_plain_relay_chain(path: Path, network: ComputedNetwork) -> None:
    """Prepare the plain relay chain spec before it is converted to raw."""
    spec = read_chain_spec(path)
    if is_raw(spec):
        if network.parachains:
            raise ChainSpecError("Cannot add parachains to a raw chain spec")
        logger.debug(f"{Path(path).name} is already raw, skipping customization")
        return

    clear_boot_nodes(path)
    for parachain in network.parachains:
        add_parachain_to_genesis(path, parachain)
