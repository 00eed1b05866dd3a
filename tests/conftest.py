import itertools
import queue
import threading
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from agentdeck.backend.event.sink import EventSink
from agentdeck.backend.exception import PtyError, SpawnError
from agentdeck.backend.terminal.manager import TerminalManager
from agentdeck.backend.terminal.pty_backend import PtyBackend, PtyChild, PtyMaster, PtySlave

WAIT_TIMEOUT = 5.0

_pids = itertools.count(10000)


class FakeReader:
    """Blocking reader fed from a queue; None marks end-of-stream"""

    def __init__(self, feed: queue.Queue):
        self._feed = feed
        self._pending = b""
        self.closed = False

    def read(self, size: int) -> bytes:
        if not self._pending:
            data = self._feed.get()
            if data is None:
                self._feed.put(None)
                return b""
            self._pending = data
        chunk, self._pending = self._pending[:size], self._pending[size:]
        return chunk

    def close(self) -> None:
        self.closed = True


class FakeWriter:
    def __init__(self, master: "FakeMaster"):
        self._master = master
        self.data = bytearray()
        self.closed = False
        self.fail_with: Optional[Exception] = None
        self.max_chunk: Optional[int] = None

    def write(self, data) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        chunk = bytes(data)
        if self.max_chunk is not None:
            chunk = chunk[: self.max_chunk]
        self.data.extend(chunk)
        if self._master.echo:
            self._master.feed.put(chunk)
        return len(chunk)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class FakeChild(PtyChild):
    def __init__(self, master: "FakeMaster", binary: str, args: List[str], cwd: str):
        self._pid = next(_pids)
        self._master = master
        self._exited = threading.Event()
        self._exit_code: Optional[int] = None
        self.binary = binary
        self.args = args
        self.cwd = cwd
        self.kill_count = 0

    @property
    def pid(self) -> Optional[int]:
        return self._pid

    def exit(self, code: int) -> None:
        """Simulate the process exiting on its own"""
        if self._exited.is_set():
            return
        self._exit_code = code
        self._master.feed.put(None)
        self._exited.set()

    def kill(self) -> None:
        self.kill_count += 1
        self.exit(-9)

    def wait(self) -> Optional[int]:
        self._exited.wait()
        return self._exit_code


class FakeMaster(PtyMaster):
    def __init__(self, rows: int, cols: int, echo: bool = False):
        self.feed: queue.Queue = queue.Queue()
        self.echo = echo
        self.sizes: List[Tuple[int, int]] = [(rows, cols)]
        self.writer = FakeWriter(self)
        self.reader: Optional[FakeReader] = None
        self.closed = False
        self._writer_taken = False

    def resize(self, rows: int, cols: int) -> None:
        self.sizes.append((rows, cols))

    def try_clone_reader(self) -> FakeReader:
        self.reader = FakeReader(self.feed)
        return self.reader

    def take_writer(self) -> FakeWriter:
        if self._writer_taken:
            raise PtyError("Failed to take writer: writer already taken")
        self._writer_taken = True
        return self.writer

    def close(self) -> None:
        self.closed = True

    def emit(self, data: bytes) -> None:
        """Simulate the child printing to the terminal"""
        self.feed.put(data)


class FakeSlave(PtySlave):
    def __init__(self, backend: "FakePtyBackend", master: FakeMaster):
        self._backend = backend
        self._master = master
        self.closed = False

    def spawn(self, binary: str, args: Sequence[str], cwd: str) -> FakeChild:
        try:
            if self._backend.spawn_error is not None:
                raise SpawnError(self._backend.spawn_error)
            child = FakeChild(self._master, binary, list(args), cwd)
            self._backend.children.append(child)
            return child
        finally:
            self.close()

    def close(self) -> None:
        self.closed = True


class FakePtyBackend(PtyBackend):
    """In-memory pty pairs with scriptable children"""

    def __init__(self, echo: bool = False):
        self.echo = echo
        self.masters: List[FakeMaster] = []
        self.children: List[FakeChild] = []
        self.open_error: Optional[str] = None
        self.spawn_error: Optional[str] = None
        self.writer_error: Optional[Exception] = None

    def open(self, rows: int, cols: int):
        if self.open_error is not None:
            raise PtyError(self.open_error)
        master = FakeMaster(rows, cols, echo=self.echo)
        master.writer.fail_with = self.writer_error
        self.masters.append(master)
        return master, FakeSlave(self, master)

    @property
    def last_child(self) -> FakeChild:
        return self.children[-1]

    @property
    def last_master(self) -> FakeMaster:
        return self.masters[-1]


class RecordingSink(EventSink):
    """Collects output and exit events, with helpers to wait for them"""

    def __init__(self):
        self._cond = threading.Condition()
        self.output: Dict[str, bytearray] = {}
        self.chunks: List[Tuple[str, bytes]] = []
        self.exits: List[Tuple[str, Optional[int]]] = []

    def emit_output(self, session_id: str, data: bytes) -> None:
        with self._cond:
            self.output.setdefault(session_id, bytearray()).extend(data)
            self.chunks.append((session_id, bytes(data)))
            self._cond.notify_all()

    def emit_exit(self, session_id: str, exit_code: Optional[int]) -> None:
        with self._cond:
            self.exits.append((session_id, exit_code))
            self._cond.notify_all()

    def output_of(self, session_id: str) -> bytes:
        with self._cond:
            return bytes(self.output.get(session_id, b""))

    def exits_of(self, session_id: str) -> List[Optional[int]]:
        with self._cond:
            return [code for sid, code in self.exits if sid == session_id]

    def wait_for_output(self, session_id: str, needle: bytes, timeout: float = WAIT_TIMEOUT) -> bool:
        with self._cond:
            return self._cond.wait_for(
                lambda: needle in self.output.get(session_id, b""), timeout=timeout
            )

    def wait_for_exit(self, session_id: str, timeout: float = WAIT_TIMEOUT) -> Optional[int]:
        with self._cond:
            found = self._cond.wait_for(
                lambda: any(sid == session_id for sid, _ in self.exits), timeout=timeout
            )
            assert found, f"no exit event for {session_id}"
            return next(code for sid, code in self.exits if sid == session_id)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def backend():
    return FakePtyBackend()


@pytest.fixture
def manager(sink, backend):
    manager = TerminalManager(sink, pty_backend=backend, home_resolver=lambda: "/home/tester")
    yield manager
    manager.terminate_all()


@pytest.fixture(autouse=True)
def isolated_instance(tmp_path_factory, monkeypatch):
    """Keep settings lookups away from the real ~/.agentdeck"""
    from agentdeck.backend.config import get_settings

    instance = tmp_path_factory.mktemp("instance")
    monkeypatch.setenv("AGENTDECK_INSTANCE_PATH", str(instance))
    get_settings.cache_clear()
    yield instance
    get_settings.cache_clear()
