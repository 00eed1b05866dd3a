"""Custom exceptions for agentdeck"""


class AgentDeckException(Exception):
    """Base exception for all agentdeck errors

    All custom exceptions should inherit from this class.
    Callers (command surface, remote control facade, CLI) catch this
    and translate the code into their own error format.

    Attributes:
        message: Human-readable error message
        code: Error code for client-side error handling
    """

    def __init__(self, message: str, code: str):
        """Initialize agentdeck exception

        Args:
            message: Human-readable error message
            code: Error code (e.g., "VALIDATION_ERROR", "NOT_FOUND")
        """
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AgentDeckException):
    """Validation error (invalid input data)

    Examples:
        - Invalid branch name
        - Oversized or malformed remote message
        - Invalid base64 payload
    """

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code)


class UnknownAgentError(ValidationError):
    """Agent type has no launch profile"""

    def __init__(self, agent_type: str):
        self.agent_type = agent_type
        super().__init__(f"Unknown agent type: {agent_type}", "UNKNOWN_AGENT")


class ExecutableNotAllowedError(ValidationError):
    """Requested executable is not in the allowlist"""

    def __init__(self, executable: str, allowed: list[str]):
        self.executable = executable
        super().__init__(
            f"Executable '{executable}' is not in the allowlist. Allowed: {allowed}",
            "EXECUTABLE_NOT_ALLOWED",
        )


class InvalidBranchNameError(ValidationError):
    """Branch name failed the worktree branch allowlist"""

    def __init__(self, branch_name: str):
        self.branch_name = branch_name
        super().__init__(
            f"Invalid branch name '{branch_name}'. "
            f"Use only alphanumeric, dash, underscore, or dot characters.",
            "INVALID_BRANCH_NAME",
        )


class AuthenticationError(AgentDeckException):
    """Authentication error (missing or invalid bearer token)"""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, "AUTHENTICATION_ERROR")


class NotFoundError(AgentDeckException):
    """Resource not found error"""

    def __init__(self, message: str, code: str = "NOT_FOUND"):
        super().__init__(message, code)


# ==================== Terminal Layer Exceptions ====================


class SessionNotFoundError(NotFoundError):
    """Session not found in the registry

    Examples:
        - Session id was never issued
        - Session was removed by a cleanup pass after terminate
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}", "SESSION_NOT_FOUND")


class CapacityExceededError(AgentDeckException):
    """Too many live sessions; the launch was rejected without spawning"""

    def __init__(self, max_sessions: int):
        self.max_sessions = max_sessions
        super().__init__(
            f"Maximum session limit reached ({max_sessions})", "CAPACITY_EXCEEDED"
        )


class PtyError(AgentDeckException):
    """Failed to open or operate the pseudo-terminal pair

    Examples:
        - openpty() failed (out of pty devices)
        - Cloning the reader or taking the writer failed
    """

    def __init__(self, message: str):
        super().__init__(message, "PTY_ERROR")


class SpawnError(AgentDeckException):
    """Failed to start the child process on the pty slave

    Examples:
        - Binary not found on PATH
        - Working directory does not exist
        - Permission denied
    """

    def __init__(self, message: str):
        super().__init__(message, "SPAWN_ERROR")


class SessionIOError(AgentDeckException):
    """I/O failure on an existing session (write, resize, kill)"""

    def __init__(self, message: str):
        super().__init__(message, "SESSION_IO_ERROR")


class GitError(AgentDeckException):
    """git worktree command failed; stderr is passed through"""

    def __init__(self, message: str):
        super().__init__(message, "GIT_ERROR")
