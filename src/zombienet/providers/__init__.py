# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Provider registry.

A provider is a capability set for one backend, selected at runtime by
``settings.provider`` in the computed network.
"""

import importlib
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, List

from zombienet.providers.client import Client, CommandResult
from zombienet.schemas import RelayChainSpec


InitClient = Callable[[str, str, Path], Client]
SetupChainSpec = Callable[[str, RelayChainSpec, str, Path], Awaitable[None]]
GetChainSpecRaw = Callable[[str, RelayChainSpec, str, Path, Path], Awaitable[Path]]


@dataclass(frozen=True)
class Provider:
    """Factory and chain-spec hooks for a backend."""
    name: str
    init_client: InitClient
    setup_chain_spec: SetupChainSpec
    get_chain_spec_raw: GetChainSpecRaw


# Built-in providers, imported on first use
_BUILTIN_PROVIDERS = {
    "native": "zombienet.providers.native",
}

_registry: Dict[str, Provider] = {}


def register_provider(provider: Provider) -> None:
    """Register (or replace) a provider under its name."""
    _registry[provider.name] = provider


def unregister_provider(name: str) -> None:
    """Remove a registered provider; unknown names are ignored."""
    _registry.pop(name, None)


def available_providers() -> List[str]:
    """Names that ``get_provider`` can resolve."""
    return sorted(set(_registry) | set(_BUILTIN_PROVIDERS))


def get_provider(name: str) -> Provider:
    """
    Resolve a provider by name.

    Raises:
        KeyError: If no provider is registered under that name.
    """
    if name not in _registry and name in _BUILTIN_PROVIDERS:
        module = importlib.import_module(_BUILTIN_PROVIDERS[name])
        register_provider(module.PROVIDER)
    try:
        return _registry[name]
    except KeyError:
        raise KeyError(f"Unknown provider: {name}") from None


__all__ = [
    "Client",
    "CommandResult",
    "Provider",
    "available_providers",
    "get_provider",
    "register_provider",
    "unregister_provider",
]
