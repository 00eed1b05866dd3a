"""Terminal manager: the registry of all live terminal sessions.

This module provides centralized management of PTY sessions, handling:
- Admission control (capacity limit, executable allowlist, agent profiles)
- Session lifecycle (launch, terminate, cleanup)
- I/O dispatch (write, resize) to the right session
- Point-in-time listing for the front end
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from ..event.sink import EventSink
from ..exception import (
    AgentDeckException,
    CapacityExceededError,
    ExecutableNotAllowedError,
    SessionIOError,
    SessionNotFoundError,
    UnknownAgentError,
)
from ..schema.session import SessionInfo
from .agents import build_command, get_agent_profile
from .allowlist import allowed_binaries, is_allowed_binary
from .pty_backend import NativePtyBackend, PtyBackend
from .pty_session import PTYSession, SessionRecord
from .reader import READ_BUFFER_SIZE, spawn_exit_watcher, spawn_reader_thread
from .rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

MAX_SESSIONS = 20


def default_home_dir() -> str:
    """Home directory used for '~' and empty working directories"""
    home = os.environ.get("HOME")
    if home:
        return home
    try:
        return str(Path.home())
    except RuntimeError:
        return "/tmp"


class TerminalManager:
    """
    Registry of all terminal sessions.

    Architecture:
    - Each session owns one reader thread and one exit-watcher thread
    - Those threads only touch their own pty handles, the event sink and the
      session's status cell, never the registry map
    - Sessions are removed only by the cleanup pass run after terminate()

    Thread Safety:
    - The map is guarded by a reader/writer lock
    - list_active/get_info/write/resize take the read side, so I/O on
      different sessions proceeds in parallel
    - launch admission/insertion and cleanup take the write side
    - Per-session handles have their own locks (see PTYSession)

    Attributes:
        event_sink: Receives output and exit events from background threads
        pty_backend: Opens pty pairs and spawns children
        max_sessions: Maximum number of Running sessions
    """

    def __init__(
        self,
        event_sink: EventSink,
        pty_backend: Optional[PtyBackend] = None,
        max_sessions: int = MAX_SESSIONS,
        read_buffer_size: int = READ_BUFFER_SIZE,
        home_resolver: Callable[[], str] = default_home_dir,
    ):
        """
        Initialize terminal manager.

        Args:
            event_sink: Sink for output and exit events
            pty_backend: PTY implementation (defaults to the native one)
            max_sessions: Admission limit for Running sessions
            read_buffer_size: Reader loop chunk size
            home_resolver: Returns the home directory for cwd expansion
        """
        self.event_sink = event_sink
        self.pty_backend = pty_backend or NativePtyBackend()
        self.max_sessions = max_sessions
        self.read_buffer_size = read_buffer_size
        self._home_resolver = home_resolver

        self._sessions: Dict[str, PTYSession] = {}
        self._lock = ReadWriteLock()

        # Launches that passed admission but are not inserted yet
        self._pending = 0

        logger.info(f"TerminalManager initialized: max_sessions={max_sessions}")

    # ==================== Launch ====================

    def launch(
        self,
        agent_type: str,
        executable: Optional[str] = None,
        args: Optional[Sequence[str]] = None,
        cwd: str = "",
        cols: int = 120,
        rows: int = 30,
        initial_prompt: Optional[str] = None,
    ) -> str:
        """
        Launch a new terminal session.

        Steps:
        1. Reserve a capacity slot (fail fast when full, never evict)
        2. Choose the binary: explicit executable, else the agent profile
        3. Check the binary against the allowlist
        4. Open a sized PTY and spawn the child in the resolved cwd
        5. Start the reader thread and the exit watcher
        6. Type the initial prompt if a custom executable was used
        7. Insert the session as Running and return its id

        Args:
            agent_type: Agent profile key (kept on the record even with an executable)
            executable: Explicit binary overriding the profile
            args: Extra arguments for the child
            cwd: Working directory; leading '~' or empty means the home directory
            cols: Terminal width
            rows: Terminal height
            initial_prompt: Passed via the profile's prompt flag, or typed after spawn

        Returns:
            New session id

        Raises:
            CapacityExceededError: Running sessions already at max_sessions
            UnknownAgentError: No executable and agent_type has no profile
            ExecutableNotAllowedError: Chosen binary is not allowlisted
            PtyError: Opening the PTY failed
            SpawnError: Starting the child failed (including a missing cwd)
            SessionIOError: Typing the initial prompt failed
        """
        self._reserve_slot()
        try:
            session = self._start_session(
                agent_type, executable, list(args or []), cwd, cols, rows, initial_prompt
            )
        except BaseException:
            with self._lock.write_lock():
                self._pending -= 1
            raise

        with self._lock.write_lock():
            self._sessions[session.session_id] = session
            self._pending -= 1

        logger.info(
            f"[TerminalManager] Session launched: session_id={session.session_id}, "
            f"pid={session.record.pid}"
        )
        return session.session_id

    def _reserve_slot(self) -> None:
        with self._lock.write_lock():
            running = sum(1 for s in self._sessions.values() if s.is_running)
            if running + self._pending >= self.max_sessions:
                logger.warning(
                    f"[TerminalManager] Launch rejected: running={running}, "
                    f"pending={self._pending}, max={self.max_sessions}"
                )
                raise CapacityExceededError(self.max_sessions)
            self._pending += 1

    def _resolve_cwd(self, cwd: str) -> str:
        if cwd.startswith("~"):
            return self._home_resolver() + cwd[1:]
        if not cwd:
            return self._home_resolver()
        return cwd

    def _start_session(
        self,
        agent_type: str,
        executable: Optional[str],
        args: List[str],
        cwd: str,
        cols: int,
        rows: int,
        initial_prompt: Optional[str],
    ) -> PTYSession:
        has_custom_executable = executable is not None

        if has_custom_executable:
            binary = executable
            final_args = args
        else:
            profile = get_agent_profile(agent_type)
            if profile is None:
                raise UnknownAgentError(agent_type)
            binary = profile.binary
            final_args = build_command(profile, args, initial_prompt)
            if initial_prompt is not None and not profile.prompt_flag:
                logger.warning(
                    f"[TerminalManager] Agent has no prompt flag, initial prompt ignored: "
                    f"agent_type={agent_type}"
                )

        if not is_allowed_binary(binary):
            raise ExecutableNotAllowedError(binary, allowed_binaries())

        working_dir = self._resolve_cwd(cwd)

        logger.info(
            f"[TerminalManager] Launching PTY session: binary={binary}, "
            f"cwd={working_dir}, agent_type={agent_type}, size={cols}x{rows}"
        )

        master, slave = self.pty_backend.open(rows, cols)
        child = None
        reader = None
        writer = None
        try:
            child = slave.spawn(binary, final_args, working_dir)
            reader = master.try_clone_reader()
            writer = master.take_writer()
        except Exception:
            if child is not None:
                child.kill()
            for handle in (reader, writer, master, slave):
                if handle is not None:
                    handle.close()
            raise

        session_id = str(uuid.uuid4())
        record = SessionRecord(
            id=session_id,
            agent_type=agent_type,
            agent_name=binary,
            working_dir=working_dir,
            pid=child.pid,
        )
        session = PTYSession(record, master, writer, child)

        spawn_reader_thread(reader, session_id, self.event_sink, self.read_buffer_size)
        spawn_exit_watcher(child, session_id, self.event_sink, session.status)

        if has_custom_executable and initial_prompt is not None:
            try:
                session.write(f"{initial_prompt}\n".encode("utf-8"))
            except SessionIOError as e:
                logger.error(
                    f"[TerminalManager] Failed to write initial prompt, killing: "
                    f"session_id={session_id}, {e}"
                )
                self._abandon(session)
                raise SessionIOError(f"Failed to write initial prompt: {e.message}") from e

        return session

    def _abandon(self, session: PTYSession) -> None:
        """Kill and close a session that never made it into the registry"""
        try:
            session.kill()
        except SessionIOError as e:
            logger.error(f"[TerminalManager] Kill failed: session_id={session.session_id}, {e}")
        session.status.mark_terminated()
        session.close()

    # ==================== I/O ====================

    def _get(self, session_id: str) -> PTYSession:
        """Lookup; caller must hold the read lock"""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def write(self, session_id: str, data: bytes) -> None:
        """
        Send raw bytes to a session's terminal input.

        Args:
            session_id: Target session identifier
            data: Bytes to write (keystrokes, pasted text)

        Raises:
            SessionNotFoundError: If the session is not in the registry
            SessionIOError: If the write fails
        """
        with self._lock.read_lock():
            session = self._get(session_id)
            logger.debug(
                f"[TerminalManager] Sending input: session_id={session_id}, "
                f"data_length={len(data)}"
            )
            session.write(data)

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        """
        Resize a session's terminal window.

        Raises:
            SessionNotFoundError: If the session is not in the registry
            SessionIOError: If the resize fails
        """
        with self._lock.read_lock():
            session = self._get(session_id)
            logger.debug(
                f"[TerminalManager] Resizing terminal: session_id={session_id}, "
                f"cols={cols}, rows={rows}"
            )
            session.resize(cols, rows)

    def update_usage(self, session_id: str, cumulative_cost_usd: float, token_count: int) -> None:
        """Record usage figures computed by the cost tracker"""
        with self._lock.read_lock():
            self._get(session_id).update_usage(cumulative_cost_usd, token_count)

    # ==================== Termination ====================

    def terminate(self, session_id: str) -> None:
        """
        Kill a session and clean up every finished session.

        Steps:
        1. Find the session (read lock)
        2. Kill the child and mark the status cell Terminated
        3. Run the cleanup pass, removing all entries that are not Running

        A session whose child already exited is simply marked Terminated.

        Raises:
            SessionNotFoundError: If the session is not in the registry
            SessionIOError: If the kill signal could not be delivered
        """
        with self._lock.read_lock():
            session = self._get(session_id)
            logger.info(f"[TerminalManager] Terminating: session_id={session_id}")
            session.kill()
            session.status.mark_terminated()

        self._cleanup_finished()

    def _cleanup_finished(self) -> None:
        with self._lock.write_lock():
            finished = [sid for sid, s in self._sessions.items() if not s.is_running]
            removed = [self._sessions.pop(sid) for sid in finished]

        for session in removed:
            session.close()

        if removed:
            logger.info(
                f"[TerminalManager] Cleaned up {len(removed)} finished sessions: "
                f"{[s.session_id for s in removed]}"
            )

    def terminate_all(self) -> None:
        """
        Terminate every session in the registry.

        Called on application shutdown. Errors are logged but don't stop the
        remaining terminations.
        """
        with self._lock.read_lock():
            session_ids = list(self._sessions.keys())

        if not session_ids:
            logger.debug("[TerminalManager] No sessions to terminate")
            return

        logger.info(f"[TerminalManager] Terminating {len(session_ids)} sessions")

        for session_id in session_ids:
            try:
                self.terminate(session_id)
            except AgentDeckException as e:
                logger.error(f"Error terminating session {session_id}: {e}")

        self._cleanup_finished()
        logger.info("[TerminalManager] All sessions terminated")

    # ==================== Queries ====================

    def list_active(self) -> List[SessionInfo]:
        """Snapshots of every registry entry (Terminated ones included until cleanup)"""
        with self._lock.read_lock():
            return [session.snapshot() for session in self._sessions.values()]

    def get_info(self, session_id: str) -> SessionInfo:
        """
        Snapshot of one session.

        Raises:
            SessionNotFoundError: If the session is not in the registry
        """
        with self._lock.read_lock():
            return self._get(session_id).snapshot()

    @property
    def running_count(self) -> int:
        with self._lock.read_lock():
            return sum(1 for s in self._sessions.values() if s.is_running)
