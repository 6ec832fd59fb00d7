import asyncio
import contextlib
import errno
import logging
import threading
import typing

import msgspec.structs
import serial

from serial_session import _config
from serial_session import _exceptions

log = logging.getLogger("serial_session.device")
data_log = logging.getLogger(log.name + ".data")


@typing.runtime_checkable
class DeviceHandle(typing.Protocol):
    """What a session needs from an open device"""

    async def read_async(self) -> bytes: ...

    async def write_async(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class SerialDevice(contextlib.AbstractContextManager):
    """An open serial port with background I/O threads, used from asyncio"""

    def __init__(self, params: _config.TransportParams):
        with contextlib.ExitStack() as cleanup:
            log.debug("Opening %s (%s)", params.port, params)
            try:
                pyserial = cleanup.enter_context(
                    serial.Serial(**msgspec.structs.asdict(params))
                )
            except OSError as ex:
                if ex.errno == errno.EBUSY:
                    message, port = "Serial port busy (EBUSY)", params.port
                    raise _exceptions.SerialOpenBusy(message, port) from ex
                else:
                    message, port = "Serial port open error", params.port
                    raise _exceptions.SerialOpenException(message, port) from ex
            except ValueError as ex:
                message, port = "Serial port settings rejected", params.port
                raise _exceptions.SerialOpenException(message, port) from ex

            self._io = cleanup.enter_context(_IoThreads(pyserial))
            self._io.start()
            self._cleanup = cleanup.pop_all()

    def __del__(self) -> None:
        if hasattr(self, "_cleanup"):
            self._cleanup.close()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self._cleanup.__exit__(exc_type, exc_value, traceback)

    def __repr__(self) -> str:
        return f"SerialDevice({self.port!r})"

    @property
    def port(self) -> str:
        return self._io.pyserial.port

    def close(self) -> None:
        self._cleanup.close()

    async def read_async(self) -> bytes:
        """Waits for inbound bytes and returns everything received so far"""

        while True:
            with self._io.monitor:
                if self._io.incoming:
                    incoming = bytes(self._io.incoming)
                    self._io.incoming.clear()
                    return incoming
                elif self._io.read_error:
                    raise self._io.read_error
                elif self._io.closed:
                    raise _exceptions.SerialIoClosed(
                        "Serial port was closed", self.port
                    )
                # registered under the lock, so no wakeup is missed
                future = self._io.create_future_in_loop()
            await future

    async def write_async(self, data: bytes) -> None:
        """Queues data and waits until the port has accepted all of it"""

        with self._io.monitor:
            if self._io.closed:
                message = "Serial port was closed"
                raise _exceptions.SerialIoClosed(message, self.port)
            elif not data:
                return
            self._io.outgoing.extend(data)
            self._io.queued += len(data)
            target = self._io.queued
            self._io.monitor.notify_all()

        while True:
            with self._io.monitor:
                if self._io.written >= target:
                    if target <= self._io.failed_through:
                        assert self._io.write_error
                        raise self._io.write_error
                    return
                elif self._io.closed:
                    message = "Serial port was closed"
                    raise _exceptions.SerialIoClosed(message, self.port)
                future = self._io.create_future_in_loop()
            await future


class _IoThreads(contextlib.AbstractContextManager):
    def __init__(self, pyserial: serial.Serial) -> None:
        self.threads: list[threading.Thread] = []
        self.pyserial = pyserial
        self.monitor = threading.Condition()
        self.closed = False
        self.incoming = bytearray()
        self.read_error: None | _exceptions.SerialIoException = None
        self.outgoing = bytearray()
        self.queued = 0
        self.written = 0
        self.failed_through = 0
        self.write_error: None | _exceptions.SerialIoException = None
        self.async_futures: list[asyncio.Future[None]] = []
        self.async_loop: asyncio.AbstractEventLoop | None
        try:
            self.async_loop = asyncio.get_running_loop()
        except RuntimeError:
            self.async_loop = None

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()

    def start(self):
        for t, n in ((self._readloop, "reader"), (self._writeloop, "writer")):
            port = self.pyserial.port
            thread = threading.Thread(target=t, name=f"{port} {n}", daemon=True)
            thread.start()
            self.threads.append(thread)

    def stop(self):
        with self.monitor:
            if self.closed:
                return
            self.closed = True
            self._notify_all_locked()

        try:
            self.pyserial.cancel_read()
            self.pyserial.cancel_write()
            log.debug("Cancelled %s I/O", self.pyserial.port)
        except OSError:
            port = self.pyserial.port
            log.warning("Can't cancel %s I/O", port, exc_info=True)

        log.debug("Joining %s I/O threads", self.pyserial.port)
        for thr in self.threads:
            thr.join()

    def _readloop(self) -> None:
        log.debug("Starting thread")
        while not (self.closed or self.read_error):
            incoming, error = b"", None
            try:
                # Block for at least one byte, then grab all available
                incoming = self.pyserial.read(size=1)
                if incoming:
                    waiting = self.pyserial.in_waiting
                    if waiting > 0:
                        incoming += self.pyserial.read(size=waiting)
            except OSError as ex:
                message, port = "Serial read error", self.pyserial.port
                error = _exceptions.SerialIoException(message, port)
                error.__cause__ = ex
                if not self.closed:
                    data_log.warning("%s", message, exc_info=True)

            with self.monitor:
                if self.closed:
                    break
                if incoming:
                    data_log.debug(
                        "Read %db buf=%db", len(incoming), len(self.incoming)
                    )
                if incoming or error:
                    self.incoming.extend(incoming)
                    self.read_error = self.read_error or error
                    self._notify_all_locked()

    def _writeloop(self) -> None:
        log.debug("Starting thread")
        chunk = b""
        while not self.closed:
            error = None
            if chunk:
                try:
                    self.pyserial.write(chunk)
                    self.pyserial.flush()
                except OSError as ex:
                    message, port = "Serial write error", self.pyserial.port
                    error = _exceptions.SerialIoException(message, port)
                    error.__cause__ = ex
                    if not self.closed:
                        data_log.warning("%s", message, exc_info=True)

            with self.monitor:
                if error:
                    # Everything queued so far fails along with this chunk
                    self.write_error = error
                    self.failed_through = self.written = self.queued
                    self.outgoing.clear()
                elif chunk:
                    assert self.outgoing.startswith(chunk)
                    chunk_len, outgoing_len = len(chunk), len(self.outgoing)
                    data_log.debug("Wrote %d/%db", chunk_len, outgoing_len)
                    del self.outgoing[:chunk_len]
                    self.written += chunk_len
                if chunk or error:
                    self._notify_all_locked()
                while not self.closed and not self.outgoing:
                    self.monitor.wait()
                chunk = bytes(self.outgoing[:256])

    def _notify_all_locked(self) -> None:
        """Must be run with self.monitor lock held."""

        self.monitor.notify_all()
        if self.async_futures:
            assert self.async_loop
            self.async_loop.call_soon_threadsafe(self._resolve_futures_in_loop)

    def create_future_in_loop(self) -> asyncio.Future[None]:
        """Must be run from asyncio event loop."""

        assert self.async_loop
        with self.monitor:
            future = self.async_loop.create_future()
            self.async_futures.append(future)
            return future

    def _resolve_futures_in_loop(self) -> None:
        """Must be run from asyncio event loop."""

        with self.monitor:
            futures, self.async_futures = self.async_futures, []
            data_log.debug(
                "%s: Waking %d async futures", self.pyserial.port, len(futures)
            )
        for f in futures:
            if not f.done():
                f.set_result(None)
