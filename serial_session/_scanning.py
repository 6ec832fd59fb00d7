import logging
import os
import pathlib

import msgspec
import msgspec.json
import natsort
from serial.tools import list_ports
from serial.tools import list_ports_common

from serial_session import _exceptions

log = logging.getLogger("serial_session.scanning")

SCAN_OVERRIDE_ENV = "SERIAL_SESSION_SCAN_OVERRIDE"


class SerialPort(msgspec.Struct, frozen=True):
    """A serial port present on the system, with pyserial's description"""

    name: str
    attr: dict[str, str]

    def __str__(self):
        return self.name


def scan_serial_ports() -> list[SerialPort]:
    """Returns the serial ports found on the current system, naturally sorted"""

    if ov := os.getenv(SCAN_OVERRIDE_ENV):
        try:
            ov_data = msgspec.json.decode(
                pathlib.Path(ov).read_bytes(), type=dict[str, dict[str, str]]
            )
        except (OSError, msgspec.ValidationError, msgspec.DecodeError) as ex:
            msg = f"Can't read ${SCAN_OVERRIDE_ENV} {ov}"
            raise _exceptions.SerialScanException(msg) from ex

        out = [SerialPort(name=p, attr=a) for p, a in ov_data.items()]
        log.debug("$%s (%s): %d ports", SCAN_OVERRIDE_ENV, ov, len(out))
    else:
        try:
            ports = list_ports.comports()
        except OSError as ex:
            raise _exceptions.SerialScanException("Can't scan serial") from ex

        out = [_convert_port(p) for p in ports]

    out.sort(key=natsort.natsort_keygen(key=lambda p: p.name, alg=natsort.ns.P))
    log.debug("Found %d ports", len(out))
    return out


def _convert_port(p: list_ports_common.ListPortInfo) -> SerialPort:
    _NA = (None, "", "n/a")
    attr = {k.lower(): str(v) for k, v in vars(p).items() if v not in _NA}
    return SerialPort(name=p.device, attr=attr)
