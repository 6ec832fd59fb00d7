"""
Serial terminal session manager: opens a serial device, streams bytes both
ways, reports failures as notifications and reconnects automatically.
"""

from beartype.claw import beartype_this_package as _beartype_me

# ruff: noqa: E402
_beartype_me()

from serial_session._config import (
    ConnectionConfig,
    TransportParams,
    resolve,
)

from serial_session._device import DeviceHandle, SerialDevice
from serial_session._dispatcher import dispatch

from serial_session._display import (
    DisplayMode,
    describe_config,
    format_bytes,
    parse_input,
)

from serial_session._exceptions import (
    CommandQueueClosed,
    SerialException,
    SerialInputInvalid,
    SerialIoClosed,
    SerialIoException,
    SerialOpenBusy,
    SerialOpenException,
    SerialScanException,
)

from serial_session._messages import (
    NOT_OPEN,
    OPEN_FAILED,
    READ_FAILED,
    WRITE_FAILED,
    ByteDirection,
    Close,
    Command,
    Data,
    Error,
    Notification,
    Open,
    Write,
)

from serial_session._queues import (
    CommandQueue,
    NotificationQueue,
    NotificationSink,
)

from serial_session._runtime import SerialRuntime
from serial_session._scanning import SerialPort, scan_serial_ports
from serial_session._session import SerialSession

__all__ = [n for n in dir() if not n.startswith("_")]
