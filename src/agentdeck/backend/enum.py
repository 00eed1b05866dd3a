"""Enumeration types for backend"""
from enum import Enum


class SessionStatus(str, Enum):
    """Terminal session status enumeration

    Monotonic: once a session is TERMINATED it never becomes RUNNING again.
    Normal exit and an explicit kill both end in TERMINATED; the exit code
    (when known) travels separately on the status cell.
    """
    RUNNING = "Running"
    TERMINATED = "Terminated"


class EventType(str, Enum):
    """Event names emitted to the front end"""
    PTY_OUTPUT = "pty-output"
    PTY_EXIT = "pty-exit"
