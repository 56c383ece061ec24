# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Main CLI entry point for zombienet.

Dumb trigger: parses args, loads the launch config, launches and holds the
network until interrupted. All launch logic lives in the orchestrator.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from zombienet import __version__
from zombienet.compiler import compile_network, load_launch_config
from zombienet.config import load_config
from zombienet.errors import ZombienetError
from zombienet.network import Network
from zombienet.orchestrator import LaunchOptions, start
from zombienet.schemas import LaunchConfig


app = typer.Typer(
    name="zombienet",
    help="Launch ephemeral multi-node ledger test networks",
    no_args_is_help=True,
)


def _configure_logging(verbose: bool, level: Optional[str] = None) -> None:
    if verbose:
        level = "DEBUG"
    logging.basicConfig(
        level=getattr(logging, (level or "WARNING").upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_user_config(config_path: Optional[str]) -> Dict[str, Any]:
    try:
        return load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Config error: {e}", err=True)
        raise typer.Exit(1)


def _load(config_file: Path, provider: Optional[str], user_config: Dict[str, Any]) -> LaunchConfig:
    launch_config = load_launch_config(config_file)
    if provider:
        launch_config.settings["provider"] = provider
    elif "provider" in user_config:
        launch_config.settings.setdefault("provider", user_config["provider"])
    return launch_config


async def _spawn_and_hold(credentials: str, launch_config: LaunchConfig, options: LaunchOptions) -> None:
    """Launch, then keep the network up until cancelled (Ctrl+C)."""
    network: Optional[Network] = None

    def hold(created: Network) -> None:
        nonlocal network
        network = created

    options.set_global_network = hold
    try:
        await start(credentials, launch_config, options)
        typer.echo("Network is up. Press Ctrl+C to stop.")
        await asyncio.Event().wait()
    finally:
        if network is not None:
            await network.dump_logs()
            await network.stop()


@app.command()
def spawn(
    config_file: Path = typer.Argument(..., help="Network definition (YAML or JSON)"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider to use"),
    dir: Optional[Path] = typer.Option(None, "--dir", "-d", help="Workspace directory"),
    force: bool = typer.Option(False, "--force", "-f", help="Reuse an existing workspace without asking"),
    spawn_concurrency: Optional[int] = typer.Option(None, "--spawn-concurrency", "-c", min=1, help="Nodes spawned in parallel"),
    monitor: bool = typer.Option(False, "--monitor", "-m", help="Keep polling node liveness after launch"),
    in_ci: bool = typer.Option(False, "--in-ci", help="Never prompt"),
    silent: bool = typer.Option(False, "--silent", "-s", help="Mute launch output"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to zombienet config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Launch a network and hold it until interrupted."""
    user_config = _load_user_config(config_path)
    _configure_logging(verbose, user_config.get("log_level"))

    workspace = dir or user_config.get("workspace")
    options = LaunchOptions(
        monitor=monitor,
        in_ci=in_ci,
        dir=Path(workspace) if workspace else None,
        force=force,
        silent=silent,
    )
    concurrency = spawn_concurrency or user_config.get("spawn_concurrency")
    if concurrency:
        options.spawn_concurrency = concurrency

    try:
        launch_config = _load(config_file, provider, user_config)
        asyncio.run(_spawn_and_hold(user_config.get("credentials", ""), launch_config, options))
    except KeyboardInterrupt:
        typer.echo("Stopped.")
    except ZombienetError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("compile")
def compile_cmd(
    config_file: Path = typer.Argument(..., help="Network definition (YAML or JSON)"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider to use"),
):
    """Print the computed network as JSON."""
    try:
        network = compile_network(_load(config_file, provider, {}))
    except ZombienetError as e:
        typer.echo(f"Compile error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(network.to_dict(), indent=2))


@app.command()
def version():
    """Show version information."""
    typer.echo(f"zombienet version {__version__}")


# Static commands
from zombienet.commands import config

app.add_typer(config.app, name="config")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
