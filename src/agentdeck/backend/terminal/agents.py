"""Launch profiles for known agent CLIs."""

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class AgentProfile:
    """How to start one agent CLI

    Attributes:
        binary: Command name looked up on PATH
        default_args: Arguments always passed first
        prompt_flag: Flag that takes an initial prompt, if the CLI has one
    """
    binary: str
    default_args: tuple[str, ...] = ()
    prompt_flag: Optional[str] = None


AGENT_PROFILES: dict[str, AgentProfile] = {
    "claude_code": AgentProfile(binary="claude", prompt_flag="--prompt"),
    "codex": AgentProfile(binary="codex"),
    "goose": AgentProfile(binary="goose", default_args=("session",)),
    "open_code": AgentProfile(binary="opencode"),
}


def get_agent_profile(agent_type: str) -> Optional[AgentProfile]:
    return AGENT_PROFILES.get(agent_type)


def list_agent_types() -> list[str]:
    return sorted(AGENT_PROFILES)


def build_command(
    profile: AgentProfile,
    args: Sequence[str] = (),
    initial_prompt: Optional[str] = None,
) -> list[str]:
    """Build the argument list for a profile launch

    Order is: default args, then ``[prompt_flag, prompt]`` when the profile
    declares a prompt flag and a prompt was given, then the caller's args.
    The binary itself is not included.
    """
    command = list(profile.default_args)
    if profile.prompt_flag and initial_prompt is not None:
        command.extend([profile.prompt_flag, initial_prompt])
    command.extend(args)
    return command
