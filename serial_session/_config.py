from typing import Literal

import msgspec
import pydantic
import serial

DataBits = Literal[5, 6, 7, 8]
Parity = Literal["none", "even", "odd"]
StopBits = Literal[1, 2]
FlowControl = Literal["none", "hardware", "software"]

_BYTESIZE = {
    5: serial.FIVEBITS,
    6: serial.SIXBITS,
    7: serial.SEVENBITS,
    8: serial.EIGHTBITS,
}

_PARITY = {
    "none": serial.PARITY_NONE,
    "even": serial.PARITY_EVEN,
    "odd": serial.PARITY_ODD,
}

_STOPBITS = {
    1: serial.STOPBITS_ONE,
    2: serial.STOPBITS_TWO,
}


class ConnectionConfig(pydantic.BaseModel):
    """User-facing line settings for one open attempt"""

    model_config = pydantic.ConfigDict(frozen=True)

    port: str
    baud: pydantic.NonNegativeInt = 115200
    data_bits: DataBits = 8
    parity: Parity = "none"
    stop_bits: StopBits = 1
    flow_control: FlowControl = "none"


class TransportParams(msgspec.Struct, frozen=True):
    """Keyword arguments for serial.Serial(), one field per argument"""

    port: str
    baudrate: int
    bytesize: int
    parity: str
    stopbits: int
    xonxoff: bool
    rtscts: bool


def resolve(config: ConnectionConfig) -> TransportParams:
    """Maps a ConnectionConfig onto concrete pyserial open parameters"""

    return TransportParams(
        port=config.port,
        baudrate=config.baud,
        bytesize=_BYTESIZE[config.data_bits],
        parity=_PARITY[config.parity],
        stopbits=_STOPBITS[config.stop_bits],
        xonxoff=config.flow_control == "software",
        rtscts=config.flow_control == "hardware",
    )
