# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Config command for zombienet.

Provides basic configuration validation.
"""

import typer

from zombienet.config import load_config

app = typer.Typer(help="Manage and validate configuration")


@app.command()
def validate(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """
    Validate configuration file.

    Checks that the config file exists, is valid YAML and only uses known keys.
    """
    typer.echo("Validating configuration...")
    typer.echo()

    try:
        config = load_config(config_path)
        typer.echo("Configuration structure is valid")
        typer.echo()
        for key in sorted(config):
            if key == "credentials":
                typer.echo("credentials: (set)")
            else:
                typer.echo(f"{key}: {config[key]}")
        typer.echo()
        typer.echo("Configuration validation complete!")
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except Exception as e:
        typer.echo(f"Validation failed: {e}", err=True)
        raise typer.Exit(1)
