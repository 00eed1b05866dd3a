"""Terminal session multiplexing.

This module provides PTY (pseudo-terminal) support for running agent CLIs and
shells as interactive sessions. It handles admission control, terminal
lifecycle, I/O dispatch and background output streaming.

Components:
- TerminalManager: Registry of all terminal sessions
- PTYSession: One session's record and pty handles
- PtyBackend / NativePtyBackend: OS pty capability set
"""

from .manager import TerminalManager, MAX_SESSIONS
from .pty_session import PTYSession, SessionRecord, StatusCell
from .pty_backend import PtyBackend, NativePtyBackend
from .allowlist import ALLOWED_BINARIES, is_allowed_binary
from .agents import AgentProfile, get_agent_profile

__all__ = [
    'TerminalManager',
    'MAX_SESSIONS',
    'PTYSession',
    'SessionRecord',
    'StatusCell',
    'PtyBackend',
    'NativePtyBackend',
    'ALLOWED_BINARIES',
    'is_allowed_binary',
    'AgentProfile',
    'get_agent_profile',
]
