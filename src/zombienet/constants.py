# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Names and locations shared by the orchestrator and providers."""

from pathlib import Path

NAMESPACE_PREFIX = "zombie"
NAMESPACE_RANDOM_BYTES = 16

# Presence tells init/helper containers that primary setup is done
MAGIC_FILENAME = "finished.txt"

ZOMBIE_WRAPPER = "zombie-wrapper.sh"
ZOMBIE_WRAPPER_TEMPLATE = Path(__file__).parent / "templates" / ZOMBIE_WRAPPER

LOGS_DIRNAME = "logs"

DEFAULT_SPAWN_CONCURRENCY = 4

# Generated parachain genesis artifacts, under <workspace>/<para_id>/
GENESIS_STATE_FILENAME = "genesis-state"
GENESIS_WASM_FILENAME = "genesis-wasm"
