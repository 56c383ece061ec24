# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Zombienet - launch ephemeral multi-node ledger test networks."""

__version__ = "0.1.0"

from zombienet.errors import (
    AccessValidationError,
    AlreadyStoppedError,
    DirectoryConflictError,
    GlobalTimeoutError,
    ProviderOperationError,
    SpecCompilationError,
    ZombienetError,
)
from zombienet.network import Network, NetworkState
from zombienet.orchestrator import LaunchOptions, start, test

__all__ = [
    "__version__",
    "AccessValidationError",
    "AlreadyStoppedError",
    "DirectoryConflictError",
    "GlobalTimeoutError",
    "LaunchOptions",
    "Network",
    "NetworkState",
    "ProviderOperationError",
    "SpecCompilationError",
    "ZombienetError",
    "start",
    "test",
]
