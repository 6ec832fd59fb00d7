"""Commands sent to a serial session and notifications coming back"""

from typing import Literal

import msgspec

from serial_session import _config

ByteDirection = Literal["in", "out"]

OPEN_FAILED = "Cannot open the port"
WRITE_FAILED = "Cannot write data on the port"
READ_FAILED = "Error while reading data"
NOT_OPEN = "Cannot write data port not open"


class Open(msgspec.Struct, frozen=True):
    """Open the device, or reopen it with new settings"""

    config: _config.ConnectionConfig


class Write(msgspec.Struct, frozen=True):
    data: bytes


class Close(msgspec.Struct, frozen=True):
    pass


class Data(msgspec.Struct, frozen=True):
    """Bytes seen going to or coming from the device"""

    direction: ByteDirection
    data: bytes


class Error(msgspec.Struct, frozen=True):
    message: str


Command = Open | Write | Close
Notification = Data | Error
