"""Remote control facade.

What a network-facing remote control needs from the core, independent of
any HTTP framework:
- Bearer token generation and verification
- Inbound message validation (size cap, control characters)
- The session operations it is allowed to call
- Mapping of agentdeck exceptions to HTTP status codes
"""

import logging
import secrets
import uuid
from typing import List, Optional

from .config import get_settings
from .exception import (
    AgentDeckException,
    AuthenticationError,
    CapacityExceededError,
    NotFoundError,
    ValidationError,
)
from .schema.session import RemoteStatusOut, SessionInfo
from .terminal.manager import TerminalManager

logger = logging.getLogger(__name__)

MAX_MESSAGE_LEN = 4096

_ALLOWED_CONTROL_CHARS = frozenset("\t\n")


def validate_message(content: str, max_len: int = MAX_MESSAGE_LEN) -> None:
    """
    Validate a message typed into a session from a remote client.

    Rules:
    - Must not be empty
    - At most max_len bytes once UTF-8 encoded
    - No control characters below 0x20 other than tab and newline

    Raises:
        ValidationError: If any rule is violated
    """
    if not content:
        raise ValidationError("Message cannot be empty")
    if len(content.encode("utf-8")) > max_len:
        raise ValidationError("Message too long")
    if any(ord(ch) < 0x20 and ch not in _ALLOWED_CONTROL_CHARS for ch in content):
        raise ValidationError("Invalid characters in message")


def status_code_for(exc: Exception) -> int:
    """HTTP status for an exception raised by a remote control operation"""
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, CapacityExceededError):
        return 429
    return 500


class RemoteControl:
    """
    Remote control operations guarded by a bearer token.

    Every operation takes the raw Authorization header value and verifies it
    before touching the terminal manager.

    Attributes:
        manager: TerminalManager the remote client controls
        token: Bearer token clients must present
    """

    def __init__(
        self,
        manager: TerminalManager,
        token: Optional[str] = None,
        max_message_len: Optional[int] = None,
    ):
        self.manager = manager
        self.token = token or str(uuid.uuid4())
        if max_message_len is None:
            max_message_len = get_settings().remote_max_message_len
        self.max_message_len = max_message_len

    def verify_token(self, authorization: Optional[str]) -> None:
        """
        Check an ``Authorization: Bearer <token>`` header value.

        Raises:
            AuthenticationError: If the header is missing, malformed or wrong
        """
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError()
        provided = authorization[len("Bearer "):]
        if not secrets.compare_digest(provided.encode("utf-8"), self.token.encode("utf-8")):
            logger.warning("Remote control request with invalid token")
            raise AuthenticationError()

    def list_sessions(self, authorization: Optional[str]) -> List[SessionInfo]:
        self.verify_token(authorization)
        return self.manager.list_active()

    def send_message(self, authorization: Optional[str], session_id: str, content: str) -> None:
        """
        Type a validated message, followed by a newline, into a session.

        Raises:
            AuthenticationError: Bad token
            ValidationError: Message failed validation
            SessionNotFoundError: Unknown session
        """
        self.verify_token(authorization)
        validate_message(content, self.max_message_len)
        logger.info(f"Remote message: session_id={session_id}, length={len(content)}")
        self.manager.write(session_id, f"{content}\n".encode("utf-8"))

    def terminate_session(self, authorization: Optional[str], session_id: str) -> None:
        self.verify_token(authorization)
        logger.info(f"Remote terminate: session_id={session_id}")
        self.manager.terminate(session_id)

    def app_status(self) -> RemoteStatusOut:
        return RemoteStatusOut(active_sessions=self.manager.running_count)

    def error_response(self, exc: AgentDeckException) -> tuple[int, dict]:
        """Status code and body for a failed operation"""
        return status_code_for(exc), {"message": exc.message, "error": {"code": exc.code}}
