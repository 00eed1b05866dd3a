"""Helpers shared by CLI commands"""

from pathlib import Path

from agentdeck.backend import config

INSTANCE_FLAG = ".agentdeck_instance"


def get_instance_path(path: str | None = None) -> Path:
    """Resolve the instance directory

    An explicit path wins (``~`` expanded); otherwise the same lookup the
    settings use applies: $AGENTDECK_INSTANCE_PATH, then ~/.agentdeck.
    """
    if path is None:
        return config.get_instance_path()
    return Path(path).expanduser().resolve()


def is_initialized(instance_path: Path) -> bool:
    return (instance_path / INSTANCE_FLAG).exists()


def get_log_dir(instance_path: Path) -> Path:
    return instance_path / "logs"
