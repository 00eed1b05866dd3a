"""Git worktree schemas"""

from pydantic import BaseModel, Field


class WorktreeInfo(BaseModel):
    """One entry of `git worktree list --porcelain`"""
    path: str = Field(..., description="Worktree directory")
    branch: str = Field(default="", description="Branch name without refs/heads/ (empty when detached)")
    head: str = Field(default="", description="HEAD commit sha")
