"""Background threads bound to one session.

- Reader loop: drains pty output into the event sink until end-of-stream
- Exit watcher: blocks on the child, then marks the session terminated

Both are native daemon threads because the reads and the wait are blocking
syscalls. Neither touches the session registry.
"""

import logging
import threading
from typing import BinaryIO

from ..event.sink import EventSink
from .pty_backend import PtyChild
from .pty_session import StatusCell

logger = logging.getLogger(__name__)

READ_BUFFER_SIZE = 4096


def _reader_loop(
    reader: BinaryIO,
    session_id: str,
    sink: EventSink,
    buffer_size: int,
) -> None:
    logger.debug(f"[Reader] Started: session_id={session_id}")
    chunks = 0
    try:
        while True:
            try:
                data = reader.read(buffer_size)
            except OSError as e:
                # Linux reports EIO on the master once every slave fd is closed
                logger.debug(f"[Reader] Read ended: session_id={session_id}, {e}")
                break

            if not data:
                break

            try:
                sink.emit_output(session_id, data)
            except Exception as e:
                logger.error(f"[Reader] Sink error, stopping: session_id={session_id}, {e}")
                break
            chunks += 1
    finally:
        try:
            reader.close()
        except OSError:
            pass
        logger.debug(f"[Reader] Ended: session_id={session_id}, chunks={chunks}")


def _exit_watcher(
    child: PtyChild,
    session_id: str,
    sink: EventSink,
    status: StatusCell,
) -> None:
    exit_code = None
    try:
        exit_code = child.wait()
    except Exception as e:
        logger.error(f"[ExitWatcher] Wait failed: session_id={session_id}, {e}")

    status.mark_terminated(exit_code)
    logger.info(f"[ExitWatcher] Session exited: session_id={session_id}, exit_code={exit_code}")

    try:
        sink.emit_exit(session_id, exit_code)
    except Exception as e:
        logger.error(f"[ExitWatcher] Sink error: session_id={session_id}, {e}")


def spawn_reader_thread(
    reader: BinaryIO,
    session_id: str,
    sink: EventSink,
    buffer_size: int = READ_BUFFER_SIZE,
) -> threading.Thread:
    """
    Start the reader loop for a session.

    Every non-empty read is forwarded to ``sink.emit_output``. The loop stops
    on end-of-stream or an I/O error and closes ``reader``. It has no other
    cancellation path.

    Returns:
        The started daemon thread
    """
    thread = threading.Thread(
        target=_reader_loop,
        args=(reader, session_id, sink, buffer_size),
        name=f"pty-reader-{session_id[:8]}",
        daemon=True,
    )
    thread.start()
    return thread


def spawn_exit_watcher(
    child: PtyChild,
    session_id: str,
    sink: EventSink,
    status: StatusCell,
) -> threading.Thread:
    """
    Start the exit watcher for a session.

    Blocks on ``child.wait()`` until the process exits or is killed, marks the
    status cell TERMINATED and emits exactly one exit event.

    Returns:
        The started daemon thread
    """
    thread = threading.Thread(
        target=_exit_watcher,
        args=(child, session_id, sink, status),
        name=f"pty-exit-{session_id[:8]}",
        daemon=True,
    )
    thread.start()
    return thread
