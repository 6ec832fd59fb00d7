"""Unit tests for serial_session._config."""

import pydantic
import pytest
import serial

import serial_session


def test_defaults_resolve():
    config = serial_session.ConnectionConfig(port="/dev/ttyUSB0")
    assert serial_session.resolve(config) == serial_session.TransportParams(
        port="/dev/ttyUSB0",
        baudrate=115200,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        xonxoff=False,
        rtscts=False,
    )


@pytest.mark.parametrize(
    "data_bits, bytesize",
    [
        (5, serial.FIVEBITS),
        (6, serial.SIXBITS),
        (7, serial.SEVENBITS),
        (8, serial.EIGHTBITS),
    ],
)
def test_data_bits(data_bits, bytesize):
    config = serial_session.ConnectionConfig(port="p", data_bits=data_bits)
    assert serial_session.resolve(config).bytesize == bytesize


@pytest.mark.parametrize(
    "parity, expected",
    [
        ("none", serial.PARITY_NONE),
        ("even", serial.PARITY_EVEN),
        ("odd", serial.PARITY_ODD),
    ],
)
def test_parity(parity, expected):
    config = serial_session.ConnectionConfig(port="p", parity=parity)
    assert serial_session.resolve(config).parity == expected


def test_stop_bits():
    config = serial_session.ConnectionConfig(port="p", stop_bits=2)
    assert serial_session.resolve(config).stopbits == serial.STOPBITS_TWO


@pytest.mark.parametrize(
    "flow_control, xonxoff, rtscts",
    [
        ("none", False, False),
        ("software", True, False),
        ("hardware", False, True),
    ],
)
def test_flow_control(flow_control, xonxoff, rtscts):
    config = serial_session.ConnectionConfig(
        port="p", flow_control=flow_control
    )
    params = serial_session.resolve(config)
    assert (params.xonxoff, params.rtscts) == (xonxoff, rtscts)


def test_resolve_is_pure():
    config = serial_session.ConnectionConfig(port="/dev/ttyS1", baud=9600)
    assert serial_session.resolve(config) == serial_session.resolve(config)
    same = serial_session.ConnectionConfig(port="/dev/ttyS1", baud=9600)
    assert config == same


@pytest.mark.parametrize(
    "bad",
    [
        {"baud": -1},
        {"baud": "fast"},
        {"data_bits": 9},
        {"parity": "mark"},
        {"stop_bits": 3},
        {"flow_control": "dtr"},
    ],
)
def test_invalid_config_rejected(bad):
    with pytest.raises(pydantic.ValidationError):
        serial_session.ConnectionConfig(port="p", **bad)


def test_config_is_frozen():
    config = serial_session.ConnectionConfig(port="p")
    with pytest.raises(pydantic.ValidationError):
        config.baud = 9600
