# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Compiler - Transform a LaunchConfig into a ComputedNetwork.

Applies defaults, resolves relative paths against the config location and
validates the whole tree once, so the orchestrator never has to.

Preserves {{ZOMBIE:<node>:<attr>}} references for spawn-time resolution, but
checks that each one points at a node spawned earlier.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from zombienet.errors import SpecCompilationError
from zombienet.providers import available_providers
from zombienet.schemas import (
    ComputedNetwork,
    LaunchConfig,
    NodeSpec,
    ParachainSpec,
    RelayChainSpec,
    Scope,
    Settings,
)


DEFAULT_PROVIDER = "native"
DEFAULT_TIMEOUT = 1000
DEFAULT_CHAIN = "rococo-local"
DEFAULT_COMMAND = "polkadot"
DEFAULT_COLLATOR_COMMAND = "polkadot-parachain"

# Node-to-node reference: {{ZOMBIE:alice:multiAddress}}
TOKEN_PLACEHOLDER = re.compile(r"\{\{ZOMBIE:(.*?):(.*?)\}\}", re.IGNORECASE)

# Reference attribute → NetworkNode field
NODE_ATTRIBUTES = {
    "multiAddress": "multi_address",
    "wsUri": "ws_uri",
    "prometheusUri": "prometheus_uri",
}

NODE_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")

SETTINGS_KEYS = {"provider", "timeout", "node_spawn_timeout", "bootnode"}
RELAYCHAIN_KEYS = {
    "chain",
    "default_command",
    "default_args",
    "chain_spec_path",
    "chain_spec_command",
    "nodes",
}
PARACHAIN_KEYS = {"id", "chain", "genesis_state_path", "genesis_wasm_path", "collators"}
NODE_KEYS = {"name", "command", "args", "env", "validator"}


def load_launch_config(path: Path) -> LaunchConfig:
    """Load a launch config from a YAML or JSON file."""
    path = Path(path).expanduser()
    if not path.exists():
        raise SpecCompilationError(f"Launch config not found: {path}")

    try:
        if path.suffix == ".json":
            data = json.loads(path.read_text())
        else:
            data = yaml.safe_load(path.read_text())
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SpecCompilationError(f"Invalid launch config {path}: {e}") from e

    if not isinstance(data, dict):
        raise SpecCompilationError(f"Launch config must be a mapping: {path}")

    try:
        return LaunchConfig.from_dict(data, config_base_path=path.parent.resolve())
    except ValueError as e:
        raise SpecCompilationError(str(e)) from e


def compile_network(launch_config: LaunchConfig) -> ComputedNetwork:
    """
    Compile LaunchConfig → ComputedNetwork.

    Args:
        launch_config: The user-authored network description

    Returns:
        ComputedNetwork ready for launch

    Raises:
        SpecCompilationError: If the configuration is structurally invalid
    """
    base_path = Path(launch_config.config_base_path)

    settings = _compile_settings(launch_config.settings)
    relaychain = _compile_relaychain(launch_config.relaychain, base_path)
    parachains = tuple(
        _compile_parachain(para, base_path) for para in launch_config.parachains
    )

    para_ids = [para.id for para in parachains]
    duplicates = sorted({pid for pid in para_ids if para_ids.count(pid) > 1})
    if duplicates:
        raise SpecCompilationError(f"Duplicate parachain ids: {duplicates}")

    network = ComputedNetwork(
        settings=settings,
        relaychain=relaychain,
        parachains=parachains,
        types=launch_config.types,
        config_base_path=base_path,
    )
    _check_node_names(network.nodes)
    _check_references(network.nodes)
    return network


def uses_network_references(network: ComputedNetwork) -> bool:
    """Return True if any part of the serialized network references another node."""
    return bool(TOKEN_PLACEHOLDER.search(json.dumps(network.to_dict())))


def effective_spawn_concurrency(network: ComputedNetwork, requested: int) -> int:
    """
    Concurrency actually used for spawning.

    Node references can only be satisfied once the referenced sibling is up,
    so any reference forces serial spawning.
    """
    if uses_network_references(network):
        return 1
    return max(1, min(requested, len(network.nodes)))


def load_type_defs(types: Any, base_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load user-defined RPC type definitions.

    Accepts an inline mapping, a path to a JSON file, or None.
    """
    if types is None:
        return {}
    if isinstance(types, dict):
        return types
    if isinstance(types, str):
        path = Path(types).expanduser()
        if not path.is_absolute() and base_path is not None:
            path = base_path / path
        if not path.exists():
            raise SpecCompilationError(f"Types file not found: {path}")
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise SpecCompilationError(f"Invalid types file {path}: {e}") from e
        if not isinstance(data, dict):
            raise SpecCompilationError(f"Types file must contain an object: {path}")
        return data
    raise SpecCompilationError(f"types must be a mapping or a file path, got {type(types).__name__}")


# =============================================================================
# Sections
# =============================================================================

def _check_keys(section: str, data: Any, allowed: set) -> Dict[str, Any]:
    """Ensure a section is a mapping with only known keys."""
    if not isinstance(data, dict):
        raise SpecCompilationError(f"{section} must be a mapping, got {type(data).__name__}")
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise SpecCompilationError(f"Unknown keys in {section}: {', '.join(unknown)}")
    return data


def _positive_number(section: str, key: str, value: Any) -> float:
    """Validate a positive (non-bool) number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise SpecCompilationError(f"{section}.{key} must be a positive number, got {value!r}")
    return value


def _compile_settings(data: Dict[str, Any]) -> Settings:
    data = _check_keys("settings", data, SETTINGS_KEYS)

    provider = data.get("provider", DEFAULT_PROVIDER)
    if provider not in available_providers():
        known = ", ".join(available_providers())
        raise SpecCompilationError(f"Unknown provider: {provider} (available: {known})")

    timeout = _positive_number("settings", "timeout", data.get("timeout", DEFAULT_TIMEOUT))

    node_spawn_timeout = data.get("node_spawn_timeout")
    if node_spawn_timeout is not None:
        node_spawn_timeout = _positive_number("settings", "node_spawn_timeout", node_spawn_timeout)

    bootnode = _boolean("settings.bootnode", data.get("bootnode", True))

    return Settings(
        provider=provider,
        timeout=timeout,
        node_spawn_timeout=node_spawn_timeout,
        bootnode=bootnode,
    )


def _compile_relaychain(data: Dict[str, Any], base_path: Path) -> RelayChainSpec:
    data = _check_keys("relaychain", data, RELAYCHAIN_KEYS)

    chain = data.get("chain", DEFAULT_CHAIN)
    if not isinstance(chain, str) or not chain:
        raise SpecCompilationError("relaychain.chain must be a non-empty string")

    default_command = _string("relaychain.default_command", data.get("default_command", DEFAULT_COMMAND))
    default_args = _string_list("relaychain.default_args", data.get("default_args", []))

    nodes_data = data.get("nodes") or []
    if not isinstance(nodes_data, list) or not nodes_data:
        raise SpecCompilationError("relaychain.nodes must be a non-empty list")

    nodes = tuple(
        _compile_node(
            f"relaychain.nodes[{i}]",
            node,
            default_command=default_command,
            default_args=default_args,
            scope=Scope.RELAY,
        )
        for i, node in enumerate(nodes_data)
    )

    return RelayChainSpec(
        chain=chain,
        default_command=default_command,
        default_args=default_args,
        chain_spec_path=_resolve_path("relaychain.chain_spec_path", data.get("chain_spec_path"), base_path),
        chain_spec_command=_optional_string("relaychain.chain_spec_command", data.get("chain_spec_command")),
        nodes=nodes,
    )


def _compile_parachain(data: Dict[str, Any], base_path: Path) -> ParachainSpec:
    data = _check_keys("parachains[]", data, PARACHAIN_KEYS)

    para_id = data.get("id")
    if isinstance(para_id, bool) or not isinstance(para_id, int) or para_id < 0:
        raise SpecCompilationError(f"parachain id must be a non-negative integer, got {para_id!r}")

    section = f"parachains[{para_id}]"
    collators_data = data.get("collators") or []
    if not isinstance(collators_data, list) or not collators_data:
        raise SpecCompilationError(f"{section}.collators must be a non-empty list")

    collators = tuple(
        _compile_node(
            f"{section}.collators[{i}]",
            collator,
            default_command=DEFAULT_COLLATOR_COMMAND,
            default_args=(),
            scope=Scope.PARA,
            para_id=para_id,
            validator=False,
        )
        for i, collator in enumerate(collators_data)
    )

    return ParachainSpec(
        id=para_id,
        chain=_optional_string(f"{section}.chain", data.get("chain")),
        genesis_state_path=_resolve_path(f"{section}.genesis_state_path", data.get("genesis_state_path"), base_path),
        genesis_wasm_path=_resolve_path(f"{section}.genesis_wasm_path", data.get("genesis_wasm_path"), base_path),
        collators=collators,
    )


def _compile_node(
    section: str,
    data: Dict[str, Any],
    default_command: str,
    default_args: Tuple[str, ...],
    scope: Scope,
    para_id: Optional[int] = None,
    validator: bool = True,
) -> NodeSpec:
    data = _check_keys(section, data, NODE_KEYS)

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise SpecCompilationError(f"{section}.name is required")

    args = default_args + _string_list(f"{section}.args", data.get("args", []))

    return NodeSpec(
        name=name,
        command=_string(f"{section}.command", data.get("command", default_command)),
        args=args,
        env=_env_pairs(f"{section}.env", data.get("env")),
        validator=_boolean(f"{section}.validator", data.get("validator", validator)),
        scope=scope,
        para_id=para_id,
    )


# =============================================================================
# Field helpers
# =============================================================================

def _string(section: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise SpecCompilationError(f"{section} must be a non-empty string, got {value!r}")
    return value


def _optional_string(section: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    return _string(section, value)


def _boolean(section: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise SpecCompilationError(f"{section} must be a boolean, got {value!r}")
    return value


def _string_list(section: str, value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        raise SpecCompilationError(f"{section} must be a list")
    return tuple(str(v) for v in value)


def _env_pairs(section: str, value: Any) -> Tuple[Tuple[str, str], ...]:
    """Accept {"K": "v"} or [{"name": "K", "value": "v"}]."""
    if value is None:
        return ()
    if isinstance(value, dict):
        return tuple((str(k), str(v)) for k, v in value.items())
    if isinstance(value, list):
        pairs = []
        for entry in value:
            if not isinstance(entry, dict) or "name" not in entry:
                raise SpecCompilationError(f"{section} entries need a 'name'")
            pairs.append((str(entry["name"]), str(entry.get("value", ""))))
        return tuple(pairs)
    raise SpecCompilationError(f"{section} must be a mapping or a list")


def _resolve_path(section: str, value: Any, base_path: Path) -> Optional[Path]:
    if value is None:
        return None
    path = Path(_string(section, value)).expanduser()
    if not path.is_absolute():
        path = base_path / path
    return path


# =============================================================================
# Cross-node checks
# =============================================================================

def _check_node_names(nodes: Tuple[NodeSpec, ...]) -> None:
    seen = set()
    for node in nodes:
        if not NODE_NAME_PATTERN.match(node.name):
            raise SpecCompilationError(
                f"Node name must be lowercase alphanumeric with hyphens only: {node.name}"
            )
        if node.name in seen:
            raise SpecCompilationError(f"Duplicate node name: {node.name}")
        seen.add(node.name)


def _node_strings(node: NodeSpec) -> List[str]:
    return [node.command, *node.args, *(value for _, value in node.env)]


def _check_references(nodes: Tuple[NodeSpec, ...]) -> None:
    """Every reference must point at a known attribute of an earlier node."""
    earlier: set = set()
    for node in nodes:
        for text in _node_strings(node):
            for ref_name, ref_attr in TOKEN_PLACEHOLDER.findall(text):
                if ref_attr not in NODE_ATTRIBUTES:
                    raise SpecCompilationError(
                        f"Unknown node attribute in reference from {node.name}: {ref_attr}"
                    )
                if ref_name not in earlier:
                    raise SpecCompilationError(
                        f"Node {node.name} references {ref_name}, which is not spawned before it"
                    )
        earlier.add(node.name)
