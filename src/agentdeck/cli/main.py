"""agentdeck CLI entry point"""

import click

from agentdeck import __version__
from .command.agents import agents
from .command.init import init
from .command.run import run
from .command.worktree import worktree


@click.group(
    name="agentdeck",
    help="agentdeck - Run AI coding-agent CLIs as managed terminal sessions",
)
@click.version_option(__version__, prog_name="agentdeck")
def main():
    """Main CLI entry point"""
    pass


# Register commands
main.add_command(init)
main.add_command(agents)
main.add_command(run)
main.add_command(worktree)


if __name__ == "__main__":
    main()
