"""
Bounded delivery channel between a paging producer and a stream consumer.
"""

import logging
import queue
import threading
import time
from typing import Iterator, Optional

from ..errors import ChannelClosedError
from ..types import StreamEvent

# How often a blocked producer re-checks for cancellation
_POLL_INTERVAL = 0.1

_CLOSED = object()


class StreamChannel:
    """
    Bounded queue of StreamEvents with blocking send and a single close.

    The producer blocks in send() while the queue is full, so paging never
    runs more than ``maxsize`` pages ahead of the consumer. The consumer
    iterates until the channel is closed. A consumer that stops early should
    call cancel(); that unblocks the producer and ends paging.

    Example:
        >>> channel = client.stream_query(100, 'samples', 'my-project', 'select * from [samples.shakespeare]')
        >>> for event in channel:
        ...     if event.error:
        ...         raise event.error
        ...     handle(event.headers, event.rows)
    """

    def __init__(self, maxsize: int = 1):
        if maxsize <= 0:
            raise ValueError(f'maxsize must be positive, got {maxsize}')
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = False
        self._drained = False
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancelled

    def cancel(self) -> None:
        """Signal the producer to stop paging."""
        if not self._cancelled.is_set():
            self.logger.info('Stream cancelled by consumer')
            self._cancelled.set()

    def send(self, event: StreamEvent) -> bool:
        """
        Deliver an event, blocking while the channel is full.

        Returns:
            True if the event was queued, False if the channel was cancelled
            before the consumer made room

        Raises:
            ChannelClosedError: If the channel is already closed
        """
        if self._closed:
            raise ChannelClosedError('send on closed channel')
        return self._put(event)

    def close(self) -> None:
        """Close the channel; the consumer stops after draining queued events."""
        with self._lock:
            if self._closed:
                self.logger.debug('Channel already closed')
                return
            self._closed = True
        self._put(_CLOSED)

    def _put(self, item) -> bool:
        while not self._cancelled.is_set():
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def receive(self, timeout: Optional[float] = None) -> Optional[StreamEvent]:
        """
        Wait for the next event.

        Returns:
            The next event, or None once the channel is closed and drained
            (or cancelled and empty)

        Raises:
            queue.Empty: If timeout elapses with no event
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._drained:
            wait = _POLL_INTERVAL
            if deadline is not None:
                wait = min(wait, max(0.0, deadline - time.monotonic()))
            try:
                item = self._queue.get(timeout=wait)
            except queue.Empty:
                if self._cancelled.is_set():
                    self._drained = True
                elif deadline is not None and time.monotonic() >= deadline:
                    raise
                continue
            if item is _CLOSED:
                self._drained = True
                return None
            return item
        return None

    def __iter__(self) -> Iterator[StreamEvent]:
        while True:
            event = self.receive()
            if event is None:
                return
            yield event
