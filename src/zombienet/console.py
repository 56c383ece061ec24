# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""User-facing output for one launch.

Each launch carries its own Console, so a silent launch never mutes another
launch running in the same process.
"""

from typing import Iterable, List

import typer

from zombienet.schemas import NetworkNode


class Console:
    """Human-readable output, muted when silent."""

    def __init__(self, silent: bool = False):
        self.silent = silent

    def info(self, message: str) -> None:
        if not self.silent:
            typer.echo(message)

    def warn(self, message: str) -> None:
        if not self.silent:
            typer.echo(typer.style(message, fg=typer.colors.YELLOW))

    def error(self, message: str) -> None:
        """Errors are always shown, even when silent."""
        typer.echo(typer.style(message, fg=typer.colors.RED), err=True)

    def node_table(self, nodes: Iterable[NetworkNode]) -> None:
        """Render launched nodes as a simple table."""
        if self.silent:
            return
        rows: List[dict] = [
            {
                "node": node.name,
                "scope": node.scope.value + (f":{node.para_id}" if node.para_id is not None else ""),
                "ws": node.ws_uri or "",
                "logs": str(node.log_path or ""),
            }
            for node in nodes
        ]
        if not rows:
            typer.echo("(no nodes)")
            return
        keys = list(rows[0].keys())
        widths = {k: max(len(k), max(len(r[k]) for r in rows)) for k in keys}
        header = " | ".join(k.ljust(widths[k]) for k in keys)
        typer.echo(header)
        typer.echo("-" * len(header))
        for row in rows:
            typer.echo(" | ".join(row[k].ljust(widths[k]) for k in keys))
