"""Per-session state for one managed terminal.

This module holds everything the registry keeps for a single session:
- SessionRecord: identity and metadata
- StatusCell: status shared with the exit watcher thread
- PTYSession: the record plus its pty handles, each behind its own lock
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import BinaryIO, Optional

from ..enum import SessionStatus
from ..exception import SessionIOError
from ..schema.session import SessionInfo
from .pty_backend import PtyChild, PtyMaster

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    """Metadata for one session, owned by the registry

    Attributes:
        id: Session id (uuid4 string)
        agent_type: Agent profile key used at launch
        agent_name: Resolved binary
        working_dir: Working directory the child was started in
        started_at: UTC launch time
        pid: OS process id of the child
        cumulative_cost_usd: Updated by the usage tracker
        token_count: Updated by the usage tracker
    """
    id: str
    agent_type: str
    agent_name: str
    working_dir: str
    pid: Optional[int] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cumulative_cost_usd: float = 0.0
    token_count: int = 0


class StatusCell:
    """Session status shared between the registry and the exit watcher

    Transitions only RUNNING -> TERMINATED. The exit code is recorded the
    first time one is reported and never overwritten.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status = SessionStatus.RUNNING
        self._exit_code: Optional[int] = None

    def get(self) -> tuple[SessionStatus, Optional[int]]:
        with self._lock:
            return self._status, self._exit_code

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._status is SessionStatus.RUNNING

    def mark_terminated(self, exit_code: Optional[int] = None) -> bool:
        """Set TERMINATED; returns True if this call made the transition"""
        with self._lock:
            transitioned = self._status is SessionStatus.RUNNING
            self._status = SessionStatus.TERMINATED
            if exit_code is not None and self._exit_code is None:
                self._exit_code = exit_code
            return transitioned


class PTYSession:
    """
    One registry entry: a session record and its pty handles.

    Locking:
    - writer: guarded by _writer_lock (write + flush are one unit)
    - master: guarded by _master_lock (resize, close)
    - child: not locked here; kill() and the exit watcher's wait() are
      safe to run concurrently
    - status: the StatusCell's own lock
    - usage counters: _usage_lock

    None of these locks is the registry lock, so I/O on one session never
    blocks another session.
    """

    def __init__(
        self,
        record: SessionRecord,
        master: PtyMaster,
        writer: BinaryIO,
        child: PtyChild,
        status: Optional[StatusCell] = None,
    ):
        self.record = record
        self.status = status or StatusCell()

        self._master = master
        self._writer = writer
        self._child = child

        self._writer_lock = threading.Lock()
        self._master_lock = threading.Lock()
        self._usage_lock = threading.Lock()
        self._closed = False

    @property
    def session_id(self) -> str:
        return self.record.id

    @property
    def child(self) -> PtyChild:
        return self._child

    @property
    def is_running(self) -> bool:
        return self.status.is_running

    def write(self, data: bytes) -> None:
        """
        Write all of ``data`` to the terminal input and flush.

        Raises:
            SessionIOError: If the write or flush fails
        """
        with self._writer_lock:
            try:
                view = memoryview(data)
                while view:
                    written = self._writer.write(view)
                    if written is None:
                        raise BlockingIOError("pty writer would block")
                    view = view[written:]
                self._writer.flush()
            except (OSError, ValueError) as e:
                raise SessionIOError(f"Write failed: {e}") from e

    def resize(self, cols: int, rows: int) -> None:
        """
        Resize the terminal window.

        Raises:
            SessionIOError: If the ioctl fails
        """
        with self._master_lock:
            try:
                self._master.resize(rows, cols)
            except OSError as e:
                raise SessionIOError(f"Failed to resize: {e}") from e

    def kill(self) -> None:
        """
        Kill the child process. A child that already exited is not an error.

        Raises:
            SessionIOError: If the signal could not be delivered
        """
        try:
            self._child.kill()
        except OSError as e:
            raise SessionIOError(f"Failed to kill process: {e}") from e

    def update_usage(self, cumulative_cost_usd: float, token_count: int) -> None:
        with self._usage_lock:
            self.record.cumulative_cost_usd = cumulative_cost_usd
            self.record.token_count = token_count

    def close(self) -> None:
        """Release the writer and master handles (idempotent)"""
        with self._writer_lock:
            if self._closed:
                return
            try:
                self._writer.close()
            except OSError as e:
                logger.debug(f"[PTYSession] Error closing writer: session_id={self.session_id}, {e}")
            self._closed = True

        with self._master_lock:
            self._master.close()

        logger.debug(f"[PTYSession] Handles closed: session_id={self.session_id}")

    def snapshot(self) -> SessionInfo:
        """Copy of the record with status refreshed from the status cell"""
        status, exit_code = self.status.get()
        with self._usage_lock:
            cost = self.record.cumulative_cost_usd
            tokens = self.record.token_count

        return SessionInfo(
            id=self.record.id,
            agent_type=self.record.agent_type,
            agent_name=self.record.agent_name,
            working_dir=self.record.working_dir,
            started_at=self.record.started_at,
            status=status,
            pid=self.record.pid,
            exit_code=exit_code,
            cumulative_cost_usd=cost,
            token_count=tokens,
        )
