"""Worktree commands implementation"""

import click
from rich.console import Console
from rich.table import Table

from agentdeck.backend import commands
from agentdeck.backend.exception import AgentDeckException

console = Console()


@click.group(name="worktree", help="Manage git worktrees for isolated sessions")
def worktree():
    pass


@worktree.command(name="create", help="Create a worktree on a new branch under REPO/.worktrees")
@click.argument("repo", type=click.Path(file_okay=False))
@click.argument("branch")
def create(repo: str, branch: str):
    try:
        path = commands.create_git_worktree(repo, branch)
    except AgentDeckException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise click.Abort()

    console.print(f"[green]Created worktree: {path}[/green]")


@worktree.command(name="remove", help="Remove a worktree inside REPO/.worktrees")
@click.argument("repo", type=click.Path(file_okay=False))
@click.argument("path", type=click.Path())
def remove(repo: str, path: str):
    try:
        commands.cleanup_git_worktree(repo, path)
    except AgentDeckException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise click.Abort()

    console.print(f"[green]Removed worktree: {path}[/green]")


@worktree.command(name="list", help="List worktrees of REPO")
@click.argument("repo", type=click.Path(file_okay=False))
def list_(repo: str):
    try:
        worktrees = commands.list_git_worktrees(repo)
    except AgentDeckException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise click.Abort()

    if not worktrees:
        console.print("[yellow]No worktrees found[/yellow]")
        return

    table = Table()
    table.add_column("Path")
    table.add_column("Branch", style="cyan")
    table.add_column("HEAD")
    for info in worktrees:
        table.add_row(info.path, info.branch or "(detached)", info.head[:12])
    console.print(table)
