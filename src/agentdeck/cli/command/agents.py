"""Agents command implementation"""

import click
from rich.console import Console
from rich.table import Table

from agentdeck.backend.commands import list_agents
from agentdeck.backend.terminal.allowlist import allowed_binaries

console = Console()


@click.command(name="agents", help="List agent profiles and the executable allowlist")
def agents():
    """Print agent launch profiles and allowed executables"""
    table = Table(title="Agent profiles")
    table.add_column("Agent type", style="cyan")
    table.add_column("Binary")
    table.add_column("Default args")
    table.add_column("Prompt flag")

    for agent in list_agents():
        table.add_row(
            agent.agent_type,
            agent.binary,
            " ".join(agent.default_args) or "-",
            agent.prompt_flag or "-",
        )

    console.print(table)
    console.print(f"Allowed executables: {', '.join(allowed_binaries())}")
