"""Run command implementation

Launches one agent CLI (or shell) through the TerminalManager and bridges it
to the current terminal: output chunks are written raw to stdout, stdin lines
are forwarded to the session, Ctrl-C terminates it.
"""

import logging
import shutil
import sys
import threading
from typing import Optional

import click
from rich.console import Console

from agentdeck.backend.config import get_settings
from agentdeck.backend.event.sink import EventSink
from agentdeck.backend.exception import AgentDeckException
from agentdeck.backend.logging import setup_logging
from agentdeck.backend.terminal.manager import TerminalManager
from ..util import get_instance_path, get_log_dir, is_initialized

logger = logging.getLogger(__name__)
console = Console(stderr=True)


class ConsoleSink(EventSink):
    """EventSink writing terminal output straight to this process's stdout"""

    def __init__(self, stream=None):
        self._stream = stream if stream is not None else sys.stdout.buffer
        self._lock = threading.Lock()
        self.exited = threading.Event()
        self.exit_code: Optional[int] = None

    def emit_output(self, session_id: str, data: bytes) -> None:
        with self._lock:
            self._stream.write(data)
            self._stream.flush()

    def emit_exit(self, session_id: str, exit_code: Optional[int]) -> None:
        self.exit_code = exit_code
        self.exited.set()


def _forward_stdin(manager: TerminalManager, session_id: str, exited: threading.Event) -> None:
    for line in sys.stdin:
        if exited.is_set():
            break
        try:
            manager.write(session_id, line.encode("utf-8"))
        except AgentDeckException as e:
            logger.debug(f"Stopped forwarding stdin to {session_id}: {e.message}")
            break


@click.command(
    name="run",
    help="Launch AGENT_TYPE in a managed terminal session",
    context_settings={"ignore_unknown_options": True},
)
@click.argument("agent_type")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option("--exec", "executable", default=None, help="Executable to run instead of the agent profile")
@click.option("--cwd", default="", help="Working directory ('~' expands to home, empty means home)")
@click.option("--prompt", "initial_prompt", default=None, help="Initial prompt for the agent")
@click.option("--cols", type=int, default=None, help="Terminal columns")
@click.option("--rows", type=int, default=None, help="Terminal rows")
@click.option("--instance", type=click.Path(), default=None, help="Instance directory for logs")
@click.pass_context
def run(
    ctx: click.Context,
    agent_type: str,
    args: tuple,
    executable: Optional[str],
    cwd: str,
    initial_prompt: Optional[str],
    cols: Optional[int],
    rows: Optional[int],
    instance: Optional[str],
):
    settings = get_settings()

    instance_path = get_instance_path(instance)
    if is_initialized(instance_path):
        # stdout carries raw terminal bytes, keep log lines off the console
        setup_logging(get_log_dir(instance_path), console=False)

    size = shutil.get_terminal_size((settings.default_cols, settings.default_rows))
    cols = cols or size.columns
    rows = rows or size.lines

    sink = ConsoleSink()
    manager = TerminalManager(
        sink,
        max_sessions=settings.max_sessions,
        read_buffer_size=settings.read_buffer_size,
    )

    try:
        session_id = manager.launch(
            agent_type,
            executable=executable,
            args=list(args),
            cwd=cwd,
            cols=cols,
            rows=rows,
            initial_prompt=initial_prompt,
        )
    except AgentDeckException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise click.Abort()

    logger.info(f"Session {session_id} started for {agent_type}")

    threading.Thread(
        target=_forward_stdin,
        args=(manager, session_id, sink.exited),
        name="stdin-forwarder",
        daemon=True,
    ).start()

    try:
        sink.exited.wait()
    except KeyboardInterrupt:
        console.print("\n[yellow]Terminating session...[/yellow]")
        manager.terminate(session_id)
        sink.exited.wait(timeout=5)
    finally:
        manager.terminate_all()

    exit_code = sink.exit_code
    logger.info(f"Session {session_id} ended with exit code {exit_code}")
    ctx.exit(exit_code if exit_code is not None else 1)
