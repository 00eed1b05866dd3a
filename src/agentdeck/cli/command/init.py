"""Init command implementation"""

import json
from datetime import datetime

import click
from rich.console import Console

from agentdeck import __version__
from ..util import INSTANCE_FLAG, get_instance_path, get_log_dir, is_initialized

console = Console()

DEFAULT_CONFIG = """# agentdeck configuration
max_sessions = 20
default_cols = 120
default_rows = 30
read_buffer_size = 4096
remote_max_message_len = 4096
"""


@click.command(name="init", help="Initialize a new agentdeck instance")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
def init(path: str = None):
    """Initialize a new agentdeck instance

    Args:
        path: Instance directory path (default: ~/.agentdeck)
    """
    instance_path = get_instance_path(path)

    if is_initialized(instance_path):
        console.print(
            f"[red]Error: Already initialized at {instance_path}[/red]"
        )
        raise click.Abort()

    console.print(f"Initializing agentdeck instance at {instance_path}")

    instance_path.mkdir(parents=True, exist_ok=True)
    get_log_dir(instance_path).mkdir(exist_ok=True)

    config_file = instance_path / "config.toml"
    if not config_file.exists():
        config_file.write_text(DEFAULT_CONFIG)

    flag_data = {
        "version": __version__,
        "created_at": datetime.now().isoformat(),
    }
    (instance_path / INSTANCE_FLAG).write_text(json.dumps(flag_data, indent=2))

    console.print(f"[green]Initialized agentdeck instance at {instance_path}[/green]")
