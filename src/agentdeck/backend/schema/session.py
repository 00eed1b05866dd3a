"""Terminal session schemas"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from ..enum import SessionStatus


# ==================== Request Schemas ====================


class LaunchRequest(BaseModel):
    """Request schema for launching a terminal session

    Note:
        - executable bypasses the agent profile but is still checked against the allowlist
        - working_dir may start with '~' or be empty (both resolve to the home directory)
        - cols/rows default to a 120x30 window
    """
    agent_type: str = Field(..., description="Agent profile key (e.g. 'claude_code', 'codex')")
    executable: Optional[str] = Field(
        default=None,
        description="Explicit executable overriding the agent profile"
    )
    args: List[str] = Field(default_factory=list, description="Extra arguments for the child")
    working_dir: str = Field(default="", description="Working directory for the child")
    cols: int = Field(default=120, ge=1, le=65535, description="Terminal width")
    rows: int = Field(default=30, ge=1, le=65535, description="Terminal height")
    initial_prompt: Optional[str] = Field(
        default=None,
        description="Prompt passed via the profile's prompt flag or typed after spawn"
    )


# ==================== Response Schemas ====================


class SessionInfo(BaseModel):
    """Point-in-time snapshot of a terminal session"""

    id: str = Field(..., description="Session id")
    agent_type: str = Field(..., description="Agent profile key the session was launched with")
    agent_name: str = Field(..., description="Resolved binary")
    working_dir: str = Field(..., description="Working directory of the child")
    started_at: datetime = Field(..., description="UTC launch time")
    status: SessionStatus = Field(..., description="Running or Terminated")
    pid: Optional[int] = Field(default=None, description="OS process id")
    exit_code: Optional[int] = Field(
        default=None,
        description="Exit code observed by the exit watcher (None while running or unknown)"
    )
    cumulative_cost_usd: float = Field(default=0.0, description="Externally updated cost")
    token_count: int = Field(default=0, description="Externally updated token count")


class AgentOut(BaseModel):
    """Agent profile as shown to the front end"""
    agent_type: str
    binary: str
    default_args: List[str]
    prompt_flag: Optional[str] = None


class RemoteStatusOut(BaseModel):
    """Remote control status payload"""
    status: str = "ok"
    app: str = "agentdeck"
    active_sessions: int = 0
