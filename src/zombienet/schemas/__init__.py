# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Zombienet network schemas."""

from zombienet.schemas.network_def import (
    ComputedNetwork,
    LaunchConfig,
    NetworkNode,
    NodeSpec,
    ParachainSpec,
    RelayChainSpec,
    Scope,
    Settings,
)

__all__ = [
    "ComputedNetwork",
    "LaunchConfig",
    "NetworkNode",
    "NodeSpec",
    "ParachainSpec",
    "RelayChainSpec",
    "Scope",
    "Settings",
]
