# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Orchestrator - bring a LaunchConfig up as a live Network.

Sequence (all under one global deadline of settings.timeout):
- namespace, user types, workspace, magic file
- client, Network handle (exposed through set_global_network)
- access gate, wrapper script, namespace creation
- CLI-args shim, parachain genesis files, chain spec (plain → customized → raw)
- bootnode, remaining nodes with bounded concurrency, liveness check

The deadline cancels the sequence at whatever await it is blocked on.
"""

import asyncio
import inspect
import json
import logging
import secrets
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Tuple

import jinja2
import typer

from zombienet.chain_spec import ChainSpecError, add_boot_nodes, customize_plain_relay_chain
from zombienet.cli_args import set_substrate_cli_args_version
from zombienet.compiler import (
    compile_network,
    effective_spawn_concurrency,
    load_type_defs,
    uses_network_references,
)
from zombienet.console import Console
from zombienet.constants import (
    DEFAULT_SPAWN_CONCURRENCY,
    MAGIC_FILENAME,
    NAMESPACE_PREFIX,
    NAMESPACE_RANDOM_BYTES,
    ZOMBIE_WRAPPER,
    ZOMBIE_WRAPPER_TEMPLATE,
)
from zombienet.errors import (
    AccessValidationError,
    DirectoryConflictError,
    GlobalTimeoutError,
    ProviderOperationError,
    SpecCompilationError,
    ZombienetError,
)
from zombienet.network import Network
from zombienet.paras import prepare_parachains
from zombienet.providers import Provider, get_provider
from zombienet.schemas import ComputedNetwork, LaunchConfig
from zombienet.spawner import spawn_node, spawn_nodes, verify_nodes


logger = logging.getLogger(__name__)


def _confirm(message: str) -> bool:
    return typer.confirm(typer.style(message, fg=typer.colors.YELLOW), default=False)


@dataclass
class LaunchOptions:
    """Options recognized by start()."""
    monitor: bool = False
    spawn_concurrency: int = DEFAULT_SPAWN_CONCURRENCY
    in_ci: bool = False
    dir: Optional[Path] = None
    force: bool = False
    silent: bool = False
    set_global_network: Optional[Callable[[Network], None]] = None
    # Asked before reusing an existing workspace
    confirm: Callable[[str], bool] = _confirm


# =============================================================================
# Launch steps
# =============================================================================

def generate_namespace() -> str:
    """zombie-<32 hex chars>, 16 bytes of entropy."""
    return f"{NAMESPACE_PREFIX}-{secrets.token_hex(NAMESPACE_RANDOM_BYTES)}"


async def prepare_workspace(
    dir: Optional[Path],
    force: bool = False,
    in_ci: bool = False,
    confirm: Callable[[str], bool] = _confirm,
) -> Path:
    """
    Resolve the local workspace directory.

    Without `dir` an ephemeral directory is created. An existing `dir` is
    reused only with `force` or the user's confirmation. The prompt runs in a
    worker thread; the global deadline still applies while it is open.

    Raises:
        DirectoryConflictError: If reuse was declined (or cannot be asked in CI)
    """
    if dir is None:
        return Path(tempfile.mkdtemp(prefix=f"{NAMESPACE_PREFIX}-"))

    path = Path(dir).expanduser()
    if not path.exists():
        path.mkdir(parents=True)
        return path
    if force:
        logger.debug(f"Reusing workspace {path}")
        return path
    if in_ci:
        raise DirectoryConflictError(
            str(path), f"Directory already exists: {path} (use force to reuse it in CI)"
        )
    if not await asyncio.to_thread(confirm, "Directory already exists; \nDo you want to continue?"):
        raise DirectoryConflictError(str(path))
    return path


def write_magic_file(workspace: Path) -> Path:
    path = workspace / MAGIC_FILENAME
    path.touch()
    return path


def chain_spec_paths(workspace: Path, chain: str) -> Tuple[Path, Path]:
    """Return (plain, raw) chain spec paths for chain."""
    return workspace / f"{chain}-plain.json", workspace / f"{chain}.json"


def render_wrapper(workspace: Path, remote_dir: str) -> Path:
    """Write the wrapper script with the client's remote dir filled in."""
    env = jinja2.Environment(
        autoescape=False,
        keep_trailing_newline=True,
        undefined=jinja2.StrictUndefined,
    )
    template = env.from_string(ZOMBIE_WRAPPER_TEMPLATE.read_text())

    path = workspace / ZOMBIE_WRAPPER
    path.write_text(template.render(REMOTE_DIR=remote_dir))
    path.chmod(0o755)
    return path


async def _provider_call(operation: str, awaitable: Awaitable[Any]) -> Any:
    """Await a provider call, wrapping untyped failures."""
    try:
        return await awaitable
    except ZombienetError:
        raise
    except Exception as e:
        raise ProviderOperationError(operation, str(e)) from e


# =============================================================================
# Launch
# =============================================================================

class _Launch:
    """One run of the launch sequence.

    Holds the Network as soon as it exists so the watchdog can reach it.
    """

    def __init__(
        self,
        credentials: str,
        spec: ComputedNetwork,
        provider: Provider,
        options: LaunchOptions,
        console: Console,
        concurrency: int,
    ):
        self.credentials = credentials
        self.spec = spec
        self.provider = provider
        self.options = options
        self.console = console
        self.concurrency = concurrency
        self.network: Optional[Network] = None

    async def run(self) -> Network:
        spec = self.spec
        opts = self.options
        chain = spec.relaychain.chain

        namespace = generate_namespace()
        user_types = load_type_defs(spec.types, spec.config_base_path)

        workspace = await prepare_workspace(opts.dir, opts.force, opts.in_ci, opts.confirm)
        write_magic_file(workspace)
        plain_path, raw_path = chain_spec_paths(workspace, chain)

        try:
            client = self.provider.init_client(self.credentials, namespace, workspace)
        except Exception as e:
            raise ProviderOperationError("init_client", str(e)) from e
        if spec.settings.node_spawn_timeout:
            client.timeout = spec.settings.node_spawn_timeout

        network = Network(client, namespace, workspace, console=self.console)
        network.user_types = user_types
        self.network = network
        if opts.set_global_network:
            opts.set_global_network(network)

        if not await _provider_call("validate_access", client.validate_access()):
            raise AccessValidationError(spec.settings.provider)

        remote_dir = client.remote_dir if client.remote_dir is not None else str(workspace)
        render_wrapper(workspace, remote_dir)

        await _provider_call("create_namespace", network.create_namespace())
        network.begin_launch()
        self.console.info(f"Namespace {namespace} created, workspace {workspace}")

        spec = await _provider_call(
            "set_substrate_cli_args_version", set_substrate_cli_args_version(spec, client)
        )
        spec = await _provider_call(
            "generate_parachain_files", prepare_parachains(spec, client, workspace)
        )

        await _provider_call(
            "setup_chain_spec",
            self.provider.setup_chain_spec(namespace, spec.relaychain, chain, plain_path),
        )
        try:
            customize_plain_relay_chain(plain_path, spec)
        except ChainSpecError as e:
            raise ProviderOperationError("customize_chain_spec", str(e)) from e
        raw_path = await _provider_call(
            "get_chain_spec_raw",
            self.provider.get_chain_spec_raw(namespace, spec.relaychain, chain, plain_path, raw_path),
        )
        network.chain_spec_path = Path(raw_path)

        await self._spawn(network, spec, network.chain_spec_path)
        await verify_nodes(network, client.timeout)

        network.mark_launched()
        self.console.node_table(network.nodes)
        self.console.info(f"Network {namespace} launched")
        if opts.monitor:
            network.start_monitoring()
        return network

    async def _spawn(self, network: Network, spec: ComputedNetwork, chain_spec_path: Path) -> None:
        """Bootnode first, so its address can seed the chain spec for the rest."""
        bootnode, *rest = spec.nodes
        running = await spawn_node(network, bootnode, chain_spec_path)

        if spec.settings.bootnode and running.multi_address:
            try:
                add_boot_nodes(chain_spec_path, [running.multi_address])
            except ChainSpecError as e:
                raise ProviderOperationError("add_boot_nodes", str(e)) from e

        await spawn_nodes(network, rest, chain_spec_path, self.concurrency)


async def start(
    credentials: str,
    launch_config: LaunchConfig,
    options: Optional[LaunchOptions] = None,
) -> Network:
    """
    Launch a network and return its live handle.

    Args:
        credentials: Opaque provider credentials
        launch_config: User network description
        options: LaunchOptions (defaults when omitted)

    Returns:
        Network in LAUNCHED (or MONITORING) state

    Raises:
        SpecCompilationError: If the launch config is invalid
        GlobalTimeoutError: If the network is not up within settings.timeout
        ProviderOperationError: If a provider call fails
        SystemExit: Exit status 1 if workspace reuse is declined or access fails
    """
    opts = options or LaunchOptions()
    console = Console(silent=opts.silent)

    network_spec = compile_network(launch_config)

    concurrency = effective_spawn_concurrency(network_spec, opts.spawn_concurrency)
    if uses_network_references(network_spec):
        logger.debug("Network definition uses network references, switching concurrency to 1")
    logger.debug(json.dumps(network_spec.to_dict(), indent=4))

    try:
        provider = get_provider(network_spec.settings.provider)
    except KeyError as e:
        raise SpecCompilationError(str(e)) from e

    launch = _Launch(credentials, network_spec, provider, opts, console, concurrency)
    timeout = network_spec.settings.timeout
    try:
        return await asyncio.wait_for(launch.run(), timeout)
    except asyncio.TimeoutError:
        network = launch.network
        # A handle nobody else holds is ours to release
        if network is not None and opts.set_global_network is None:
            try:
                await network.stop()
            except ProviderOperationError as e:
                logger.error(f"Teardown after timeout failed for {network.namespace}: {e}")
        raise GlobalTimeoutError(timeout) from None
    except DirectoryConflictError as e:
        console.error(str(e))
        console.info("Exiting...")
        sys.exit(1)
    except AccessValidationError as e:
        console.error(f"\n\t\t ⚠ {e}")
        sys.exit(1)


async def test(
    credentials: str,
    launch_config: LaunchConfig,
    callback: Callable[[Network], Any],
) -> None:
    """
    Launch, hand the network to callback, then always tear down.

    dump_logs() and stop() run once on the network whether start() returned,
    raised or exited, as long as the handle was created.
    """
    network: Optional[Network] = None

    def hold(created: Network) -> None:
        nonlocal network
        network = created

    try:
        started = await start(
            credentials,
            launch_config,
            LaunchOptions(force=True, set_global_network=hold),
        )
        result = callback(started)
        if inspect.isawaitable(result):
            await result
    except ZombienetError as e:
        Console().error(f"\n Error: \t {e}\n")
        raise
    finally:
        if network is not None:
            await network.dump_logs()
            await network.stop()


# Not a pytest test function
test.__test__ = False
