import threading

import pytest

from agentdeck.backend.enum import SessionStatus
from agentdeck.backend.exception import (
    CapacityExceededError,
    ExecutableNotAllowedError,
    PtyError,
    SessionIOError,
    SessionNotFoundError,
    SpawnError,
    UnknownAgentError,
)
from agentdeck.backend.terminal.manager import MAX_SESSIONS, TerminalManager, default_home_dir

from conftest import RecordingSink, FakePtyBackend


def _launch_shell(manager, **kwargs):
    return manager.launch("shell", executable="bash", **kwargs)


# ==================== Launch ====================


def test_launch_profile_builds_command(manager, backend):
    session_id = manager.launch("claude_code", args=["--verbose"], initial_prompt="fix the bug")

    child = backend.last_child
    assert child.binary == "claude"
    assert child.args == ["--prompt", "fix the bug", "--verbose"]
    # Prompt went through the flag, nothing typed
    assert bytes(backend.last_master.writer.data) == b""

    info = manager.get_info(session_id)
    assert info.agent_type == "claude_code"
    assert info.agent_name == "claude"
    assert info.status == SessionStatus.RUNNING
    assert info.pid == child.pid
    assert info.exit_code is None


def test_launch_profile_default_args(manager, backend):
    manager.launch("goose", args=["--resume"])
    assert backend.last_child.binary == "goose"
    assert backend.last_child.args == ["session", "--resume"]


def test_launch_sets_initial_window_size(manager, backend):
    manager.launch("codex", cols=200, rows=50)
    assert backend.last_master.sizes == [(50, 200)]


def test_session_ids_are_unique(manager):
    ids = {_launch_shell(manager) for _ in range(5)}
    assert len(ids) == 5


def test_custom_executable_types_initial_prompt(manager, backend):
    session_id = manager.launch("codex", executable="bash", initial_prompt="echo hi")

    assert backend.last_child.binary == "bash"
    assert backend.last_child.args == []
    assert bytes(backend.last_master.writer.data) == b"echo hi\n"
    # The requested agent type is kept on the record
    assert manager.get_info(session_id).agent_type == "codex"
    assert manager.get_info(session_id).agent_name == "bash"


def test_custom_executable_skips_profile_lookup(manager, backend):
    manager.launch("not-an-agent", executable="zsh")
    assert backend.last_child.binary == "zsh"


def test_unknown_agent_rejected(manager, backend):
    with pytest.raises(UnknownAgentError) as exc_info:
        manager.launch("not-an-agent")
    assert exc_info.value.code == "UNKNOWN_AGENT"
    assert backend.children == []


def test_disallowed_executable_rejected(manager, backend):
    with pytest.raises(ExecutableNotAllowedError) as exc_info:
        manager.launch("shell", executable="rm", args=["-rf", "/"])
    assert "rm" in exc_info.value.message
    assert "bash" in exc_info.value.message
    assert backend.masters == []
    assert manager.list_active() == []


def test_allowlist_matches_basename(manager, backend):
    manager.launch("shell", executable="/usr/bin/bash")
    assert backend.last_child.binary == "/usr/bin/bash"

    with pytest.raises(ExecutableNotAllowedError):
        manager.launch("shell", executable="/tmp/evil/rm")


@pytest.mark.parametrize(
    "cwd, expected",
    [
        ("~/projects/app", "/home/tester/projects/app"),
        ("~", "/home/tester"),
        ("", "/home/tester"),
        ("/srv/work", "/srv/work"),
    ],
)
def test_working_dir_resolution(manager, backend, cwd, expected):
    session_id = _launch_shell(manager, cwd=cwd)
    assert backend.last_child.cwd == expected
    assert manager.get_info(session_id).working_dir == expected


def test_default_home_dir_prefers_env(monkeypatch):
    monkeypatch.setenv("HOME", "/home/someone")
    assert default_home_dir() == "/home/someone"


def test_pty_open_failure_releases_slot(sink, backend):
    manager = TerminalManager(sink, pty_backend=backend, max_sessions=1)
    backend.open_error = "out of ptys"
    with pytest.raises(PtyError):
        _launch_shell(manager)

    backend.open_error = None
    _launch_shell(manager)
    manager.terminate_all()


def test_spawn_failure_closes_handles(manager, backend):
    backend.spawn_error = "No such file or directory"
    with pytest.raises(SpawnError):
        _launch_shell(manager, cwd="/does/not/exist")

    assert backend.last_master.closed
    assert manager.list_active() == []


def test_initial_prompt_write_failure_kills_child(sink, backend):
    manager = TerminalManager(sink, pty_backend=backend, max_sessions=1)
    backend.writer_error = OSError("broken pipe")

    with pytest.raises(SessionIOError):
        manager.launch("shell", executable="bash", initial_prompt="hello")

    child = backend.last_child
    assert child.kill_count == 1
    assert manager.list_active() == []

    # The reservation was released
    backend.writer_error = None
    _launch_shell(manager)
    manager.terminate_all()


# ==================== Capacity ====================


def test_capacity_limit(manager, backend):
    for _ in range(MAX_SESSIONS):
        _launch_shell(manager)
    assert manager.running_count == MAX_SESSIONS

    with pytest.raises(CapacityExceededError) as exc_info:
        _launch_shell(manager)
    assert exc_info.value.code == "CAPACITY_EXCEEDED"
    # Rejected before anything was spawned
    assert len(backend.children) == MAX_SESSIONS

    victim = manager.list_active()[0].id
    manager.terminate(victim)
    _launch_shell(manager)
    assert manager.running_count == MAX_SESSIONS


def test_exited_sessions_do_not_count_toward_capacity(sink, backend):
    manager = TerminalManager(sink, pty_backend=backend, max_sessions=2)
    first = _launch_shell(manager)
    _launch_shell(manager)

    backend.children[0].exit(0)
    sink.wait_for_exit(first)

    _launch_shell(manager)
    assert manager.running_count == 2
    manager.terminate_all()


def test_concurrent_launches_respect_capacity(sink, backend):
    manager = TerminalManager(sink, pty_backend=backend, max_sessions=5)
    errors = []
    started = []
    lock = threading.Lock()

    def worker():
        try:
            session_id = _launch_shell(manager)
            with lock:
                started.append(session_id)
        except CapacityExceededError as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(started) == 5
    assert len(errors) == 7
    manager.terminate_all()


# ==================== I/O ====================


def test_output_reaches_sink(manager, backend, sink):
    session_id = _launch_shell(manager)
    backend.last_master.emit(b"hello ")
    backend.last_master.emit(b"world\r\n")

    assert sink.wait_for_output(session_id, b"hello world")


def test_write_reaches_terminal(manager, backend):
    session_id = _launch_shell(manager)
    manager.write(session_id, b"ls -la\n")
    manager.write(session_id, b"\x03")
    assert bytes(backend.last_master.writer.data) == b"ls -la\n\x03"


def test_write_handles_partial_writes(manager, backend):
    session_id = _launch_shell(manager)
    backend.last_master.writer.max_chunk = 3
    manager.write(session_id, b"abcdefgh")
    assert bytes(backend.last_master.writer.data) == b"abcdefgh"


def test_write_failure_raises_session_io_error(manager, backend):
    session_id = _launch_shell(manager)
    backend.last_master.writer.fail_with = OSError("EIO")
    with pytest.raises(SessionIOError):
        manager.write(session_id, b"x")


def test_write_unknown_session(manager):
    with pytest.raises(SessionNotFoundError) as exc_info:
        manager.write("missing", b"x")
    assert exc_info.value.code == "SESSION_NOT_FOUND"


def test_resize(manager, backend):
    session_id = _launch_shell(manager)
    manager.resize(session_id, cols=100, rows=40)
    assert backend.last_master.sizes[-1] == (40, 100)

    with pytest.raises(SessionNotFoundError):
        manager.resize("missing", 80, 24)


def test_update_usage(manager):
    session_id = _launch_shell(manager)
    manager.update_usage(session_id, 1.25, 4200)

    info = manager.get_info(session_id)
    assert info.cumulative_cost_usd == 1.25
    assert info.token_count == 4200


# ==================== Lifecycle ====================


def test_natural_exit_marks_terminated(manager, backend, sink):
    session_id = _launch_shell(manager)
    backend.last_child.exit(0)

    assert sink.wait_for_exit(session_id) == 0

    # Still listed until a cleanup pass runs
    info = manager.get_info(session_id)
    assert info.status == SessionStatus.TERMINATED
    assert info.exit_code == 0
    assert manager.running_count == 0


def test_status_never_returns_to_running(manager, backend, sink):
    session_id = _launch_shell(manager)
    backend.last_child.exit(2)
    sink.wait_for_exit(session_id)

    for _ in range(3):
        assert manager.get_info(session_id).status == SessionStatus.TERMINATED
    assert manager.get_info(session_id).exit_code == 2


def test_terminate_then_write_fails(manager, backend, sink):
    session_id = _launch_shell(manager)
    manager.write(session_id, b"echo hi\n")

    manager.terminate(session_id)

    assert backend.last_child.kill_count == 1
    assert sink.wait_for_exit(session_id) == -9
    with pytest.raises(SessionNotFoundError):
        manager.write(session_id, b"echo again\n")
    with pytest.raises(SessionNotFoundError):
        manager.get_info(session_id)
    assert backend.last_master.closed
    assert backend.last_master.writer.closed


def test_exit_event_emitted_once(manager, backend, sink):
    session_id = _launch_shell(manager)
    backend.last_child.exit(0)
    sink.wait_for_exit(session_id)
    manager.terminate(session_id)

    assert sink.exits_of(session_id) == [0]


def test_terminate_unknown_session(manager):
    with pytest.raises(SessionNotFoundError):
        manager.terminate("missing")


def test_terminate_cleans_up_other_finished_sessions(manager, backend, sink):
    exited = _launch_shell(manager)
    backend.last_child.exit(1)
    sink.wait_for_exit(exited)

    running = _launch_shell(manager)
    other = _launch_shell(manager)
    manager.terminate(other)

    remaining = [info.id for info in manager.list_active()]
    assert remaining == [running]


def test_list_active_snapshots(manager):
    first = _launch_shell(manager)
    second = manager.launch("codex")

    infos = {info.id: info for info in manager.list_active()}
    assert set(infos) == {first, second}
    assert infos[second].agent_name == "codex"
    assert all(info.status == SessionStatus.RUNNING for info in infos.values())


def test_terminate_all(sink):
    backend = FakePtyBackend()
    manager = TerminalManager(sink, pty_backend=backend)
    ids = [_launch_shell(manager) for _ in range(3)]

    manager.terminate_all()

    assert manager.list_active() == []
    for session_id in ids:
        assert sink.wait_for_exit(session_id) == -9


def test_sink_failure_does_not_break_manager(backend):
    class ExplodingSink(RecordingSink):
        def emit_output(self, session_id, data):
            raise RuntimeError("sink down")

    sink = ExplodingSink()
    manager = TerminalManager(sink, pty_backend=backend)
    session_id = _launch_shell(manager)
    backend.last_master.emit(b"boom")

    manager.write(session_id, b"still alive\n")
    manager.terminate(session_id)
    assert sink.wait_for_exit(session_id) == -9
