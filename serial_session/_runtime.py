import asyncio
import contextlib
import logging
import threading

import pydantic

from serial_session import _config
from serial_session import _device
from serial_session import _dispatcher
from serial_session import _messages
from serial_session import _queues
from serial_session import _session

log = logging.getLogger("serial_session.runtime")


class SerialRuntime(contextlib.AbstractContextManager):
    """
    Runs the serial dispatcher on its own thread with its own event loop.

    Commands may be sent from any thread. Notifications are delivered to
    'notify' on the runtime thread, so the sink must be thread-safe
    (NotificationQueue is).
    """

    def __init__(
        self,
        notify: _queues.NotificationSink,
        open_fn: _session.DeviceOpener = _device.SerialDevice,
    ):
        self._commands = _queues.CommandQueue()
        self._notify = notify
        self._open_fn = open_fn
        self.exception: BaseException | None = None
        self._thread = threading.Thread(
            target=self._run, name="serial runtime", daemon=True
        )
        self._thread.start()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return f"SerialRuntime({self._commands!r})"

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def send(self, command: _messages.Command) -> None:
        self._commands.put(command)

    @pydantic.validate_call
    def open(self, config: _config.ConnectionConfig) -> None:
        self.send(_messages.Open(config))

    @pydantic.validate_call
    def write(self, data: bytes) -> None:
        self.send(_messages.Write(data))

    def close_port(self) -> None:
        self.send(_messages.Close())

    def shutdown(self, timeout: float | int | None = None) -> None:
        """Ends the command stream and waits for the runtime thread"""

        self._commands.close()
        self._thread.join(timeout)
        exception, self.exception = self.exception, None
        if exception:
            raise exception

    def _run(self) -> None:
        log.debug("Starting thread")
        try:
            dispatch = _dispatcher.dispatch(
                self._commands, self._notify, self._open_fn
            )
            asyncio.run(dispatch)
        except Exception as exc:
            log.error("Serial runtime failed", exc_info=True)
            self.exception = exc
            self._commands.close()
        log.debug("Thread exiting")
