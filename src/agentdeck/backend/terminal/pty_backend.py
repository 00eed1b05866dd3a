"""Pseudo-terminal backend.

This module wraps the host pty facility behind a small capability set so the
session manager never touches file descriptors or process handles directly:

- PtyBackend.open(rows, cols) -> (PtyMaster, PtySlave)
- PtySlave.spawn(binary, args, cwd) -> PtyChild
- PtyMaster.resize / try_clone_reader / take_writer / close
- PtyChild.pid / kill / wait

NativePtyBackend is the OS implementation (openpty + subprocess + TIOCSWINSZ).
Every call here is a blocking syscall and must only run on threads where
blocking is tolerated.
"""

import fcntl
import logging
import os
import signal
import struct
import subprocess
import termios
import pty
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional, Sequence

from ..exception import PtyError, SpawnError

logger = logging.getLogger(__name__)


class PtyChild(ABC):
    """Handle to the process running on the pty slave"""

    @property
    @abstractmethod
    def pid(self) -> Optional[int]:
        """OS process id, if known"""

    @abstractmethod
    def kill(self) -> None:
        """Kill the process; a process that already exited is not an error"""

    @abstractmethod
    def wait(self) -> Optional[int]:
        """Block until the process exits and return its exit code"""


class PtyMaster(ABC):
    """Controlling side of a pty pair"""

    @abstractmethod
    def resize(self, rows: int, cols: int) -> None:
        """Set the window size"""

    @abstractmethod
    def try_clone_reader(self) -> BinaryIO:
        """Return an independent reader over the terminal output"""

    @abstractmethod
    def take_writer(self) -> BinaryIO:
        """Return the input writer; may only be taken once"""

    @abstractmethod
    def close(self) -> None:
        """Release the master side"""


class PtySlave(ABC):
    """Terminal side of a pty pair; used once to spawn the child"""

    @abstractmethod
    def spawn(self, binary: str, args: Sequence[str], cwd: str) -> PtyChild:
        """Start ``binary`` with ``args`` in ``cwd`` attached to this terminal"""

    @abstractmethod
    def close(self) -> None:
        """Release the slave side in this process"""


class PtyBackend(ABC):
    """Factory for pty pairs"""

    @abstractmethod
    def open(self, rows: int, cols: int) -> tuple[PtyMaster, PtySlave]:
        """Open a pty pair sized rows x cols"""


# ==================== Native implementation ====================


def _set_winsize(fd: int, rows: int, cols: int) -> None:
    # Pack window size: (rows, cols, xpixel, ypixel)
    winsize = struct.pack("HHHH", rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


def _acquire_controlling_tty() -> None:
    """Runs in the child after setsid(); stdin is already the slave"""
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class NativePtyChild(PtyChild):
    """PtyChild backed by subprocess.Popen"""

    def __init__(self, process: subprocess.Popen):
        self._process = process

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    def kill(self) -> None:
        if self._process.returncode is not None:
            return
        # The child leads its own session, so its pid is also its process group id
        try:
            os.killpg(self._process.pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug(f"[NativePtyChild] Process already gone: pid={self._process.pid}")

    def wait(self) -> Optional[int]:
        return self._process.wait()


class NativePtyMaster(PtyMaster):
    """PtyMaster backed by the master file descriptor"""

    def __init__(self, fd: int):
        self._fd = fd
        self._writer_taken = False

    @property
    def fd(self) -> int:
        return self._fd

    def resize(self, rows: int, cols: int) -> None:
        _set_winsize(self._fd, rows, cols)

    def try_clone_reader(self) -> BinaryIO:
        try:
            return os.fdopen(os.dup(self._fd), "rb", buffering=0)
        except OSError as e:
            raise PtyError(f"Failed to clone reader: {e}") from e

    def take_writer(self) -> BinaryIO:
        if self._writer_taken:
            raise PtyError("Failed to take writer: writer already taken")
        try:
            writer = os.fdopen(os.dup(self._fd), "wb", buffering=0)
        except OSError as e:
            raise PtyError(f"Failed to take writer: {e}") from e
        self._writer_taken = True
        return writer

    def close(self) -> None:
        if self._fd < 0:
            return
        try:
            os.close(self._fd)
        except OSError:
            pass
        self._fd = -1


class NativePtySlave(PtySlave):
    """PtySlave backed by the slave file descriptor"""

    def __init__(self, fd: int):
        self._fd = fd

    def spawn(self, binary: str, args: Sequence[str], cwd: str) -> PtyChild:
        """Spawn the child with the slave as stdin/stdout/stderr

        The child gets a new session with the slave as its controlling
        terminal. The parent's copy of the slave is closed afterwards, success
        or not, so the reader sees end-of-stream once the child is gone.

        Raises:
            SpawnError: If the binary or cwd is missing, or exec fails
        """
        env = dict(os.environ)
        env.setdefault("TERM", "xterm-256color")

        preexec = _acquire_controlling_tty if hasattr(termios, "TIOCSCTTY") else None

        try:
            process = subprocess.Popen(
                [binary, *args],
                cwd=cwd,
                stdin=self._fd,
                stdout=self._fd,
                stderr=self._fd,
                env=env,
                start_new_session=True,
                preexec_fn=preexec,
                close_fds=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise SpawnError(f"Failed to spawn command: {e}") from e
        finally:
            self.close()

        logger.debug(f"[NativePtySlave] Spawned: binary={binary}, pid={process.pid}, cwd={cwd}")
        return NativePtyChild(process)

    def close(self) -> None:
        if self._fd < 0:
            return
        try:
            os.close(self._fd)
        except OSError:
            pass
        self._fd = -1


class NativePtyBackend(PtyBackend):
    """PtyBackend using the host's openpty()"""

    def open(self, rows: int, cols: int) -> tuple[PtyMaster, PtySlave]:
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise PtyError(f"Failed to open PTY: {e}") from e

        master = NativePtyMaster(master_fd)
        slave = NativePtySlave(slave_fd)
        try:
            _set_winsize(master_fd, rows, cols)
        except OSError as e:
            master.close()
            slave.close()
            raise PtyError(f"Failed to size PTY: {e}") from e

        return master, slave
