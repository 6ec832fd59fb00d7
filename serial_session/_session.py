import asyncio
import logging
from collections.abc import Callable
from typing import Literal

from serial_session import _config
from serial_session import _device
from serial_session import _exceptions
from serial_session import _messages
from serial_session import _queues

log = logging.getLogger("serial_session.session")
data_log = logging.getLogger(log.name + ".data")

SessionEnd = Literal["closed", "exhausted"]
DeviceOpener = Callable[[_config.TransportParams], _device.DeviceHandle]


def open_device(
    open_fn: DeviceOpener, config: _config.ConnectionConfig
) -> _device.DeviceHandle | None:
    """Resolves and opens; returns None (after logging) if the open fails"""

    try:
        return open_fn(_config.resolve(config))
    except _exceptions.SerialOpenException as exc:
        log.debug("Can't open %s (%s)", config.port, exc)
        return None


class SerialSession:
    """
    Drives one open device until Close or the end of the command stream.

    Each loop iteration handles exactly one event: a command, or the result
    of reading the device. A read failure is reported once per run of
    failures, and every failure triggers an immediate reopen attempt with
    the current settings. Reopening is not throttled.

    The device handle never escapes this object. Replacing it (on Open or
    reconnect) opens the new handle before closing the old one, and a read
    pending on the old handle is discarded.
    """

    def __init__(
        self,
        commands: _queues.CommandQueue,
        notify: _queues.NotificationSink,
        device: _device.DeviceHandle,
        config: _config.ConnectionConfig,
        open_fn: DeviceOpener,
    ):
        self._commands = commands
        self._notify = notify
        self._device = device
        self._config = config
        self._open_fn = open_fn
        self._error_flagged = False
        self._read_task: asyncio.Task[bytes] | None = None

    def __repr__(self) -> str:
        return f"SerialSession({self._config.port!r})"

    async def run(self) -> SessionEnd:
        log.debug("%s: Session started", self._config.port)
        command_task: asyncio.Task | None = None
        try:
            while True:
                if command_task is None:
                    command_task = asyncio.create_task(self._commands.get())
                if self._read_task is None:
                    read = self._device.read_async()
                    self._read_task = asyncio.create_task(read)

                await asyncio.wait(
                    (command_task, self._read_task),
                    return_when=asyncio.FIRST_COMPLETED,
                )

                # Commands first, so a reconnect loop can't starve Close
                if command_task.done():
                    command, command_task = command_task.result(), None
                    if command is None:
                        log.debug("%s: Command stream ended", self._config.port)
                        return "exhausted"
                    elif isinstance(command, _messages.Close):
                        log.debug("%s: Closing", self._config.port)
                        return "closed"
                    elif isinstance(command, _messages.Open):
                        self._swap_config(command.config)
                    elif isinstance(command, _messages.Write):
                        await self._write(command.data)
                    else:
                        raise TypeError(f"Unknown command: {command!r}")
                else:
                    read_task, self._read_task = self._read_task, None
                    self._on_read_done(read_task)
        finally:
            if command_task is not None:
                command_task.cancel()
            self._discard_read()
            self._device.close()

    def _swap_config(self, config: _config.ConnectionConfig) -> None:
        device = open_device(self._open_fn, config)
        if device is None:
            old_port, new_port = self._config.port, config.port
            log.warning("Can't open %s, keeping %s", new_port, old_port)
            self._notify(_messages.Error(_messages.OPEN_FAILED))
            return

        log.info("Reopened as %s", config.port)
        self._install(device, config)

    async def _write(self, data: bytes) -> None:
        try:
            await self._device.write_async(data)
        except _exceptions.SerialIoException as exc:
            log.warning("%s: Write failed (%s)", self._config.port, exc)
            self._notify(_messages.Error(_messages.WRITE_FAILED))
            return

        data_log.debug("%s: Wrote %db", self._config.port, len(data))
        self._notify(_messages.Data("out", data))

    def _on_read_done(self, task: asyncio.Task[bytes]) -> None:
        try:
            incoming = task.result()
        except _exceptions.SerialIoException as exc:
            data_log.debug("%s: Read failed (%s)", self._config.port, exc)
            incoming = b""

        if incoming:
            data_log.debug("%s: Read %db", self._config.port, len(incoming))
            self._notify(_messages.Data("in", incoming))
            return

        if not self._error_flagged:
            log.warning("%s: Read failed, reconnecting", self._config.port)
            self._notify(_messages.Error(_messages.READ_FAILED))
            self._error_flagged = True

        device = open_device(self._open_fn, self._config)
        if device is not None:
            log.info("Reconnected to %s", self._config.port)
            self._install(device, self._config)

    def _install(
        self, device: _device.DeviceHandle, config: _config.ConnectionConfig
    ) -> None:
        old_device = self._device
        self._discard_read()
        self._device, self._config = device, config
        self._error_flagged = False
        old_device.close()

    def _discard_read(self) -> None:
        task, self._read_task = self._read_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        elif not task.cancelled():
            task.exception()  # mark retrieved; the result is stale
