"""Executable allowlist for terminal sessions.

Only interactive shells and known agent CLIs may be launched, so a caller
supplying an arbitrary executable string cannot turn the terminal manager
into a generic command runner.
"""

from pathlib import PurePath

ALLOWED_BINARIES = frozenset({
    "claude",
    "codex",
    "goose",
    "opencode",
    "cursor",
    "copilot",
    "bash",
    "zsh",
    "sh",
    "fish",
    "node",
    "python",
    "python3",
})


def is_allowed_binary(binary: str) -> bool:
    """Check whether the final path component of ``binary`` is allowlisted

    Args:
        binary: Bare command name or a path to it

    Returns:
        True if the base name is in ALLOWED_BINARIES
    """
    base = PurePath(binary).name or binary
    return base in ALLOWED_BINARIES


def allowed_binaries() -> list[str]:
    return sorted(ALLOWED_BINARIES)
