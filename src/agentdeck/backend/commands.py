"""Desktop command surface.

Thin functions the front end calls. They take plain request data, apply the
surface's defaults and encodings (base64 input, pydantic requests) and
delegate to the TerminalManager and the worktree helper.
"""

import base64
import binascii
import logging
from typing import List

from . import worktree
from .exception import ValidationError
from .schema.session import AgentOut, LaunchRequest, SessionInfo
from .schema.worktree import WorktreeInfo
from .terminal.agents import AGENT_PROFILES
from .terminal.manager import TerminalManager

logger = logging.getLogger(__name__)


def launch_session(manager: TerminalManager, request: LaunchRequest) -> str:
    return manager.launch(
        agent_type=request.agent_type,
        executable=request.executable,
        args=request.args,
        cwd=request.working_dir,
        cols=request.cols,
        rows=request.rows,
        initial_prompt=request.initial_prompt,
    )


def write_to_session(manager: TerminalManager, session_id: str, data_base64: str) -> None:
    """
    Decode base64 input from the front end and write it to the session.

    Raises:
        ValidationError: If data_base64 is not valid base64
        SessionNotFoundError: If the session is not in the registry
    """
    try:
        data = base64.b64decode(data_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64: {e}") from e
    manager.write(session_id, data)


def resize_session(manager: TerminalManager, session_id: str, cols: int, rows: int) -> None:
    manager.resize(session_id, cols, rows)


def terminate_session(manager: TerminalManager, session_id: str) -> None:
    manager.terminate(session_id)


def list_live_sessions(manager: TerminalManager) -> List[SessionInfo]:
    return manager.list_active()


def get_live_session(manager: TerminalManager, session_id: str) -> SessionInfo:
    return manager.get_info(session_id)


def list_agents() -> List[AgentOut]:
    return [
        AgentOut(
            agent_type=agent_type,
            binary=profile.binary,
            default_args=list(profile.default_args),
            prompt_flag=profile.prompt_flag,
        )
        for agent_type, profile in sorted(AGENT_PROFILES.items())
    ]


def create_git_worktree(repo_path: str, branch_name: str) -> str:
    return worktree.create_worktree(repo_path, branch_name)


def cleanup_git_worktree(repo_path: str, worktree_path: str) -> None:
    worktree.cleanup_worktree(repo_path, worktree_path)


def list_git_worktrees(repo_path: str) -> List[WorktreeInfo]:
    return worktree.list_worktrees(repo_path)
