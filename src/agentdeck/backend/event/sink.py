"""Event sink interface for terminal output and exit events."""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..enum import EventType
from ..schema.event import PtyOutputPayload, PtyExitPayload


def output_event_name(session_id: str) -> str:
    return f"{EventType.PTY_OUTPUT.value}-{session_id}"


def build_output_message(session_id: str, chunk: bytes) -> dict:
    """Build the transport message for one output chunk

    Message Format:
    {
        "event": "pty-output-<session_id>",
        "payload": {"session_id": "...", "data": "<base64>"}
    }
    """
    return {
        "event": output_event_name(session_id),
        "payload": PtyOutputPayload.from_bytes(session_id, chunk).model_dump(),
    }


def build_exit_message(session_id: str, exit_code: Optional[int]) -> dict:
    """Build the transport message for a session exit

    Message Format:
    {
        "event": "pty-exit",
        "payload": {"session_id": "...", "exit_code": 0, "success": true}
    }
    """
    payload = PtyExitPayload(
        session_id=session_id,
        exit_code=exit_code,
        success=exit_code == 0,
    )
    return {"event": EventType.PTY_EXIT.value, "payload": payload.model_dump()}


class EventSink(ABC):
    """Receives events from the per-session background threads

    Implementations are called from reader and exit-watcher threads and
    must be thread-safe. They should not block for long: a slow sink
    delays that session's reader, never other sessions.
    """

    @abstractmethod
    def emit_output(self, session_id: str, data: bytes) -> None:
        """One non-empty chunk of terminal output"""

    @abstractmethod
    def emit_exit(self, session_id: str, exit_code: Optional[int]) -> None:
        """The session's child exited or was killed (called at most once)"""


class CallbackSink(EventSink):
    """EventSink forwarding transport messages to a plain callable"""

    def __init__(self, callback: Callable[[dict], None]):
        self._callback = callback

    def emit_output(self, session_id: str, data: bytes) -> None:
        self._callback(build_output_message(session_id, data))

    def emit_exit(self, session_id: str, exit_code: Optional[int]) -> None:
        self._callback(build_exit_message(session_id, exit_code))
