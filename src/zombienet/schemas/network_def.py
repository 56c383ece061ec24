# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Launch config and computed network schemas.

Follows the compile/execute split:
- LaunchConfig (YAML/JSON) → compile → ComputedNetwork → launch → Network
- defaults, path resolution and validation happen at compile time
- {{ZOMBIE:<node>:<attr>}} references are resolved at spawn time
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class Scope(Enum):
    """Which part of the topology a node belongs to."""

    RELAY = "relay"
    PARA = "para"
    COMPANION = "companion"


# Top-level keys accepted in a launch config
LAUNCH_CONFIG_KEYS = {"settings", "relaychain", "parachains", "types"}


@dataclass
class LaunchConfig:
    """User-authored network description, before compilation.

    Sections are kept as plain mappings; the compiler owns validation.
    """
    settings: Dict[str, Any] = field(default_factory=dict)
    relaychain: Dict[str, Any] = field(default_factory=dict)
    parachains: List[Dict[str, Any]] = field(default_factory=list)
    types: Any = None
    config_base_path: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config_base_path: Optional[Path] = None) -> "LaunchConfig":
        """Build a LaunchConfig from a parsed YAML/JSON mapping.

        Raises:
            ValueError: If the mapping has unknown top-level keys or a
                section of the wrong shape.
        """
        unknown = sorted(set(data) - LAUNCH_CONFIG_KEYS)
        if unknown:
            raise ValueError(f"Unknown launch config keys: {', '.join(unknown)}")
        for key, kind in (("settings", dict), ("relaychain", dict), ("parachains", list)):
            value = data.get(key)
            if value is not None and not isinstance(value, kind):
                raise ValueError(f"{key} must be a {'mapping' if kind is dict else 'list'}, got {type(value).__name__}")
        return cls(
            settings=dict(data.get("settings") or {}),
            relaychain=dict(data.get("relaychain") or {}),
            parachains=list(data.get("parachains") or []),
            types=data.get("types"),
            config_base_path=config_base_path or Path.cwd(),
        )


@dataclass(frozen=True)
class Settings:
    """Network-wide launch settings."""
    provider: str
    timeout: float
    node_spawn_timeout: Optional[float] = None
    bootnode: bool = True


@dataclass(frozen=True)
class NodeSpec:
    """A fully resolved node, ready to hand to a provider."""
    name: str
    command: str
    args: Tuple[str, ...] = ()
    env: Tuple[Tuple[str, str], ...] = ()
    validator: bool = True
    scope: Scope = Scope.RELAY
    para_id: Optional[int] = None
    cli_args_version: int = 1


@dataclass(frozen=True)
class RelayChainSpec:
    """Relay chain descriptor: chain name, spec source and its nodes."""
    chain: str
    default_command: str
    default_args: Tuple[str, ...] = ()
    chain_spec_path: Optional[Path] = None
    chain_spec_command: Optional[str] = None
    nodes: Tuple[NodeSpec, ...] = ()


@dataclass(frozen=True)
class ParachainSpec:
    """A parachain registered at genesis and its collators."""
    id: int
    chain: Optional[str] = None
    genesis_state_path: Optional[Path] = None
    genesis_wasm_path: Optional[Path] = None
    collators: Tuple[NodeSpec, ...] = ()


@dataclass(frozen=True)
class ComputedNetwork:
    """A compiled network, read-only for the rest of the launch.

    Adjustments (e.g. CLI argument versions) produce a new instance.
    """
    settings: Settings
    relaychain: RelayChainSpec
    parachains: Tuple[ParachainSpec, ...] = ()
    types: Any = None
    config_base_path: Optional[Path] = None

    @property
    def nodes(self) -> Tuple[NodeSpec, ...]:
        """All nodes in spawn order: relay nodes first, then collators."""
        collators = tuple(c for para in self.parachains for c in para.collators)
        return self.relaychain.nodes + collators

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return _jsonable(asdict(self))


def _jsonable(value: Any) -> Any:
    """Convert enums, paths and tuples into JSON-friendly values."""
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    return value


@dataclass
class NetworkNode:
    """A node that a provider has started."""
    name: str
    scope: Scope = Scope.RELAY
    para_id: Optional[int] = None
    ws_uri: Optional[str] = None
    prometheus_uri: Optional[str] = None
    multi_address: Optional[str] = None
    log_path: Optional[Path] = None
