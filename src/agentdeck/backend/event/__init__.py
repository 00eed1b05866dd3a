"""Terminal event delivery.

Components:
- EventSink: interface the reader/exit-watcher threads emit into
- CallbackSink: sink forwarding transport messages to a callable
- EventBroker: sink bridging worker threads to asyncio subscribers
"""

from .sink import EventSink, CallbackSink, build_output_message, build_exit_message
from .broker import EventBroker

__all__ = [
    'EventSink',
    'CallbackSink',
    'EventBroker',
    'build_output_message',
    'build_exit_message',
]
