"""
Schema package for command surface request/response models.
"""

from .session import (
    LaunchRequest,
    SessionInfo,
    AgentOut,
    RemoteStatusOut,
)
from .event import PtyOutputPayload, PtyExitPayload
from .worktree import WorktreeInfo

__all__ = [
    # Session schemas
    "LaunchRequest",
    "SessionInfo",
    "AgentOut",
    "RemoteStatusOut",
    # Event schemas
    "PtyOutputPayload",
    "PtyExitPayload",
    # Worktree schemas
    "WorktreeInfo",
]
