import asyncio
import contextlib
import io
import json
import ok_logging_setup
import os
import pty
import pytest
import typing

import serial_session

ok_logging_setup.install(
    {
        "OK_LOGGING_LEVEL": "serial_session=DEBUG,WARNING",
        "OK_LOGGING_OUTPUT": "stdout",
    }
)


class PseudoTtySerial(typing.NamedTuple):
    path: str
    control: io.FileIO
    simulated: io.FileIO


@pytest.fixture
def pty_serial():
    with contextlib.ExitStack() as cleanup:
        ctrl_fd, sim_fd = pty.openpty()
        path = os.ttyname(sim_fd)
        ctrl = cleanup.enter_context(os.fdopen(ctrl_fd, "r+b", buffering=0))
        sim = cleanup.enter_context(os.fdopen(sim_fd, "r+b", buffering=0))
        yield PseudoTtySerial(path=path, control=ctrl, simulated=sim)


@pytest.fixture
def set_scan_override(monkeypatch, tmp_path):
    path = tmp_path / "scan.json"
    path.write_text("{}")
    monkeypatch.setenv("SERIAL_SESSION_SCAN_OVERRIDE", str(path))

    def set_ports(ports: dict[str, dict[str, str]]):
        path.write_text(json.dumps(ports))

    return set_ports


#
# In-memory devices for driving sessions deterministically
#


class FakeDevice:
    def __init__(self, params: serial_session.TransportParams):
        self.params = params
        self.loop = asyncio.get_running_loop()
        self.inbound: asyncio.Queue[bytes | Exception] = asyncio.Queue()
        self.written: list[bytes] = []
        self.fail_writes = False
        self.broken = False
        self.closed = False

    def __repr__(self) -> str:
        return f"FakeDevice({self.params.port!r})"

    def feed(self, data: bytes):
        self.loop.call_soon_threadsafe(self.inbound.put_nowait, data)

    def fail_reads(self):
        message = "Fake read failure"
        error = serial_session.SerialIoException(message, self.params.port)
        self.loop.call_soon_threadsafe(self.inbound.put_nowait, error)

    async def read_async(self) -> bytes:
        if self.broken:
            message = "Fake read failure (still broken)"
            raise serial_session.SerialIoException(message, self.params.port)
        item = await self.inbound.get()
        if isinstance(item, Exception):
            self.broken = True
            raise item
        return item

    async def write_async(self, data: bytes) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            message = "Fake write failure"
            raise serial_session.SerialIoException(message, self.params.port)
        self.written.append(data)

    def close(self) -> None:
        self.closed = True


class FakeOpener:
    def __init__(self):
        self.devices: list[FakeDevice] = []
        self.attempts = 0
        self.unavailable: set[str] = set()

    def __call__(self, params: serial_session.TransportParams) -> FakeDevice:
        self.attempts += 1
        if params.port in self.unavailable:
            message = "Fake open failure"
            raise serial_session.SerialOpenException(message, params.port)
        device = FakeDevice(params)
        self.devices.append(device)
        return device

    def on_port(self, port: str) -> list[FakeDevice]:
        return [d for d in self.devices if d.params.port == port]


@pytest.fixture
def fake_opener():
    return FakeOpener()


@pytest.fixture
def wait_until():
    async def wait(predicate: typing.Callable[[], bool], timeout: float = 5.0):
        async def poll():
            while not predicate():
                await asyncio.sleep(0.001)

        await asyncio.wait_for(poll(), timeout)

    return wait
