"""Git worktree helper.

Provisions isolated working directories for sessions under
``<repo>/.worktrees/<branch>`` and removes them again. Branch names and
cleanup paths are validated before git is ever invoked.
"""

import logging
import re
import subprocess
from pathlib import Path, PurePath
from typing import List

from .exception import GitError, InvalidBranchNameError, ValidationError
from .schema.worktree import WorktreeInfo

logger = logging.getLogger(__name__)

WORKTREES_DIRNAME = ".worktrees"
MAX_BRANCH_NAME_LEN = 128

_BRANCH_CHARS = re.compile(r"[A-Za-z0-9._-]+")


def is_valid_branch_name(name: str) -> bool:
    """Check a branch name against the worktree allowlist

    Accepted: ASCII letters and digits, '-', '_' and '.', at most 128
    characters, not starting with '-' or '.', and no '..'. Anything that
    could be read as a git flag or a path is rejected.
    """
    return (
        bool(name)
        and len(name) <= MAX_BRANCH_NAME_LEN
        and not name.startswith(("-", "."))
        and ".." not in name
        and _BRANCH_CHARS.fullmatch(name) is not None
    )


def _run_git(args: List[str], cwd: str) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise GitError(f"Failed to run git: {e}") from e


def create_worktree(repo_path: str, branch_name: str) -> str:
    """
    Create a worktree on a new branch under the repository's .worktrees dir.

    Args:
        repo_path: Repository root
        branch_name: New branch name (also the worktree directory name)

    Returns:
        Path of the new worktree

    Raises:
        InvalidBranchNameError: If the branch name fails validation
        ValidationError: If the repository path is not a directory
        GitError: If git fails
    """
    if not is_valid_branch_name(branch_name):
        raise InvalidBranchNameError(branch_name)

    repo = Path(repo_path)
    if not repo.is_dir():
        raise ValidationError(f"Repository path does not exist: {repo_path}")

    worktrees_dir = repo / WORKTREES_DIRNAME
    try:
        worktrees_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise GitError(f"Failed to create worktrees dir: {e}") from e

    worktree_path = str(worktrees_dir / branch_name)
    logger.info(f"Creating worktree: repo={repo_path}, branch={branch_name}, path={worktree_path}")

    result = _run_git(["worktree", "add", worktree_path, "-b", branch_name], cwd=repo_path)
    if result.returncode != 0:
        logger.error(f"git worktree add failed: {result.stderr.strip()}")
        raise GitError(f"git worktree add failed: {result.stderr}")

    return worktree_path


def is_safe_worktree_path(repo_path: str, worktree_path: str) -> bool:
    """Check that a worktree path stays inside ``<repo>/.worktrees``

    If the path exists it is canonicalized (symlinks resolved) and must lie
    within the canonical worktrees directory. A path that no longer exists
    cannot be canonicalized and is accepted only if it has no '..' parts.

    Raises:
        ValidationError: If the repository path cannot be canonicalized
    """
    try:
        worktrees_dir = Path(repo_path).resolve(strict=True) / WORKTREES_DIRNAME
    except (OSError, RuntimeError) as e:
        raise ValidationError(f"Invalid repo path: {e}") from e

    try:
        canonical = Path(worktree_path).resolve(strict=True)
    except (OSError, RuntimeError):
        return ".." not in PurePath(worktree_path).parts

    return canonical.is_relative_to(worktrees_dir)


def cleanup_worktree(repo_path: str, worktree_path: str) -> None:
    """
    Remove a worktree with ``git worktree remove --force``.

    Raises:
        ValidationError: If the path escapes the repository's .worktrees dir
        GitError: If git fails
    """
    if not is_safe_worktree_path(repo_path, worktree_path):
        raise ValidationError(
            "Worktree path must be within the repository's .worktrees directory",
            "UNSAFE_WORKTREE_PATH",
        )

    logger.info(f"Removing worktree: repo={repo_path}, path={worktree_path}")

    result = _run_git(["worktree", "remove", worktree_path, "--force"], cwd=repo_path)
    if result.returncode != 0:
        logger.error(f"git worktree remove failed: {result.stderr.strip()}")
        raise GitError(f"git worktree remove failed: {result.stderr}")


def parse_worktree_porcelain(output: str) -> List[WorktreeInfo]:
    """Parse ``git worktree list --porcelain`` output"""
    worktrees: List[WorktreeInfo] = []
    current: dict = {}

    for line in output.splitlines():
        if line.startswith("worktree "):
            current["path"] = line[len("worktree "):]
        elif line.startswith("HEAD "):
            current["head"] = line[len("HEAD "):]
        elif line.startswith("branch "):
            current["branch"] = line[len("branch "):].replace("refs/heads/", "")
        elif not line and current.get("path"):
            worktrees.append(WorktreeInfo(**current))
            current = {}

    if current.get("path"):
        worktrees.append(WorktreeInfo(**current))

    return worktrees


def list_worktrees(repo_path: str) -> List[WorktreeInfo]:
    """
    List the repository's worktrees (the main working tree included).

    A failing git command (not a repository, for instance) yields an empty list.

    Raises:
        GitError: If git cannot be executed at all
    """
    result = _run_git(["worktree", "list", "--porcelain"], cwd=repo_path)
    if result.returncode != 0:
        logger.debug(f"git worktree list failed: repo={repo_path}, {result.stderr.strip()}")
        return []
    return parse_worktree_porcelain(result.stdout)
