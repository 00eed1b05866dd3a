"""Thread-to-asyncio event broker.

Reader and exit-watcher threads push events here; subscribers on the main
asyncio loop consume them from per-subscriber queues.

Architecture:
    Reader Thread / Exit Watcher Thread
        broker.emit_output(session_id, chunk)
            ↓ call_soon_threadsafe
    Main Loop
        EventBroker._push_message_internal(message)
            ↓ queue.put_nowait(message)
        Subscriber (UI bridge, remote control, tests)
            ↓ await queue.get()
"""

import asyncio
import logging
import uuid
from typing import Dict, Optional

from .sink import EventSink, build_output_message, build_exit_message

logger = logging.getLogger(__name__)


class EventBroker(EventSink):
    """
    EventSink that fans terminal events out to asyncio subscribers.

    Responsibilities:
    - Accept events from any thread
    - Hand all queue access over to the main loop via call_soon_threadsafe
    - Route events to every subscriber, optionally filtered by session id

    Lifecycle:
    - Created once by the front end
    - set_main_loop() must be called before sessions are launched
    - Subscribers come and go via subscribe()/unsubscribe()
    """

    def __init__(self, main_loop: Optional[asyncio.AbstractEventLoop] = None):
        # Subscriber queues: {subscriber_id → asyncio.Queue}
        self._queues: Dict[str, asyncio.Queue] = {}

        # Optional session filter per subscriber: {subscriber_id → session_id}
        self._filters: Dict[str, Optional[str]] = {}

        self._main_loop = main_loop

    def set_main_loop(self, loop: asyncio.AbstractEventLoop):
        """
        Set main event loop reference.

        Args:
            loop: Loop that owns the subscriber queues
        """
        self._main_loop = loop
        logger.info("EventBroker: Main event loop set")

    def subscribe(self, session_id: Optional[str] = None) -> tuple[str, asyncio.Queue]:
        """
        Register a subscriber.

        Must be called from the main loop.

        Args:
            session_id: Only receive events for this session (None for all)

        Returns:
            Tuple of (subscriber_id, queue)
        """
        subscriber_id = str(uuid.uuid4())
        queue: asyncio.Queue = asyncio.Queue()
        self._queues[subscriber_id] = queue
        self._filters[subscriber_id] = session_id
        logger.debug(f"Subscriber {subscriber_id} registered: session_filter={session_id}")
        return subscriber_id, queue

    def unsubscribe(self, subscriber_id: str) -> None:
        self._queues.pop(subscriber_id, None)
        self._filters.pop(subscriber_id, None)
        logger.debug(f"Subscriber {subscriber_id} removed")

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def emit_output(self, session_id: str, data: bytes) -> None:
        self.push_from_worker(session_id, build_output_message(session_id, data))

    def emit_exit(self, session_id: str, exit_code: Optional[int]) -> None:
        self.push_from_worker(session_id, build_exit_message(session_id, exit_code))

    def push_from_worker(self, session_id: str, message: dict):
        """
        Push message from a worker thread.

        Thread-safe. No dictionary access happens in the calling thread;
        everything is scheduled on the main loop.

        Args:
            session_id: Session the message belongs to
            message: Transport message dict
        """
        if not self._main_loop:
            logger.debug(f"No main loop set, event dropped: session={session_id}")
            return

        try:
            self._main_loop.call_soon_threadsafe(
                self._push_message_internal, session_id, message
            )
        except RuntimeError:
            # Loop already closed during shutdown
            logger.debug(f"Main loop closed, event dropped: session={session_id}")

    def _push_message_internal(self, session_id: str, message: dict):
        """
        Queue the message for every matching subscriber (runs in main loop).

        Args:
            session_id: Session the message belongs to
            message: Transport message dict
        """
        for subscriber_id, queue in list(self._queues.items()):
            wanted = self._filters.get(subscriber_id)
            if wanted is not None and wanted != session_id:
                continue
            queue.put_nowait(message)

        logger.debug(
            f"Event queued: event={message.get('event')}, "
            f"subscribers={len(self._queues)}"
        )
