"""Rendering of session traffic and parsing of user input for display"""

from typing import Literal

from serial_session import _config
from serial_session import _exceptions

DisplayMode = Literal["raw", "text"]

_PARITY_NAMES = {"none": "None", "even": "Even", "odd": "Odd"}
_STOP_NAMES = {1: "One", 2: "Two"}
_FLOW_NAMES = {"none": "None", "hardware": "Hardware", "software": "Software"}


def format_bytes(data: bytes, mode: DisplayMode) -> str:
    """Hex pairs ("01 AB") for raw mode, lossy UTF-8 for text mode"""

    if mode == "raw":
        return " ".join(f"{b:02X}" for b in data)
    return data.decode("utf-8", errors="replace")


def parse_input(text: str, mode: DisplayMode) -> bytes:
    """Converts typed input to bytes to send; raw mode takes hex digits"""

    if mode == "raw":
        try:
            return bytes.fromhex("".join(text.split()))
        except ValueError as ex:
            message = "Incorrect data doesn't respect protocol format"
            raise _exceptions.SerialInputInvalid(message) from ex
    return text.encode()


def describe_config(config: _config.ConnectionConfig) -> str:
    return ", ".join(
        (
            config.port,
            str(config.baud),
            _FLOW_NAMES[config.flow_control],
            _PARITY_NAMES[config.parity],
            _STOP_NAMES[config.stop_bits],
        )
    )
