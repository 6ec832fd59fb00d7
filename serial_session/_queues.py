import asyncio
import collections
import logging
import threading
from collections.abc import Callable

from serial_session import _exceptions
from serial_session import _messages
from serial_session import _timeout_math

log = logging.getLogger("serial_session.queues")

NotificationSink = Callable[[_messages.Notification], None]


class CommandQueue:
    """Unbounded command channel: put() from any thread, get() from asyncio"""

    def __init__(self) -> None:
        self._monitor = threading.Condition()
        self._items: collections.deque[_messages.Command] = collections.deque()
        self._closed = False
        self._async_futures: list[asyncio.Future[None]] = []
        self._async_loop: asyncio.AbstractEventLoop | None = None

    def __repr__(self) -> str:
        with self._monitor:
            state = "closed" if self._closed else "open"
            return f"CommandQueue({len(self._items)} pending, {state})"

    def put(self, command: _messages.Command) -> None:
        with self._monitor:
            if self._closed:
                raise _exceptions.CommandQueueClosed("Command queue was closed")
            self._items.append(command)
            self._notify_all_locked()

    def close(self) -> None:
        """Marks the producer as gone; get() returns None once drained"""

        with self._monitor:
            if not self._closed:
                pending = len(self._items)
                log.debug("Closing command queue (%d pending)", pending)
                self._closed = True
                self._notify_all_locked()

    @property
    def closed(self) -> bool:
        with self._monitor:
            return self._closed

    async def get(self) -> _messages.Command | None:
        while True:
            with self._monitor:
                if self._items:
                    return self._items.popleft()
                elif self._closed:
                    return None
                self._async_loop = asyncio.get_running_loop()
                future = self._async_loop.create_future()
                self._async_futures.append(future)
            try:
                await future
            except asyncio.CancelledError:
                with self._monitor:
                    if future in self._async_futures:
                        self._async_futures.remove(future)
                raise

    def _notify_all_locked(self) -> None:
        """Must be run with self._monitor lock held."""

        self._monitor.notify_all()
        if self._async_futures:
            assert self._async_loop
            if self._async_loop.is_closed():
                self._async_futures.clear()
                return
            self._async_loop.call_soon_threadsafe(self._resolve_futures_in_loop)

    def _resolve_futures_in_loop(self) -> None:
        """Must be run from asyncio event loop."""

        with self._monitor:
            futures, self._async_futures = self._async_futures, []
        for f in futures:
            if not f.done():
                f.set_result(None)


class NotificationQueue:
    """Thread-safe notification sink for a consumer on another thread"""

    def __init__(self) -> None:
        self._monitor = threading.Condition()
        self._items: collections.deque[_messages.Notification] = (
            collections.deque()
        )

    def __call__(self, notification: _messages.Notification) -> None:
        with self._monitor:
            self._items.append(notification)
            self._monitor.notify_all()

    def __len__(self) -> int:
        with self._monitor:
            return len(self._items)

    def get(
        self, timeout: float | int | None = None
    ) -> _messages.Notification | None:
        deadline = _timeout_math.to_deadline(timeout)
        with self._monitor:
            while not self._items:
                wait = _timeout_math.from_deadline(deadline)
                if wait <= 0:
                    return None
                self._monitor.wait(timeout=wait)
            return self._items.popleft()

    def get_all(self) -> list[_messages.Notification]:
        with self._monitor:
            items = list(self._items)
            self._items.clear()
            return items
